"""
HTTP API tests through FastAPI's TestClient.

Each test runs against a fresh SQLite file; the app lifespan creates the
tables and the admin account.
"""

import asyncio

from qrcafe.database import async_session_maker
from qrcafe.models import MenuCategory, MenuItem

from tests.conftest import order_payload


def create(client, **overrides) -> dict:
    response = client.post("/api/orders", json=order_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["order"]


class TestRoot:

    def test_root_links(self, client):
        data = client.get("/").json()
        assert data["orders"] == "/api/orders"
        assert data["staff_events"] == "/ws/staff"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "operational"
        assert data["database"] == "healthy"
        assert data["realtime"] == "healthy"
        assert data["staff_connections"] == 0


class TestSubmitOrder:

    def test_created(self, client):
        response = client.post("/api/orders", json=order_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        order = body["order"]
        assert order["total"] == 11.75
        assert order["status"] == "pending"
        assert order["table_number"] == "3"
        assert order["order_id"].startswith("ORD-")
        assert len(order["line_items"]) == 2

    def test_total_is_optional(self, client):
        payload = order_payload()
        del payload["total"]
        response = client.post("/api/orders", json=payload)
        assert response.status_code == 201
        assert response.json()["order"]["total"] == 11.75

    def test_total_mismatch(self, client):
        response = client.post("/api/orders", json=order_payload(total=5.0))
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Validation failed"

    def test_empty_cart(self, client):
        response = client.post("/api/orders", json=order_payload(line_items=[]))
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_missing_customer_name(self, client):
        payload = order_payload()
        del payload["customer_name"]
        response = client.post("/api/orders", json=payload)
        assert response.status_code == 400
        assert "customer_name" in response.json()["detail"]

    def test_blank_table(self, client):
        response = client.post("/api/orders", json=order_payload(table_number="  "))
        assert response.status_code == 400

    def test_zero_quantity(self, client):
        payload = order_payload()
        payload["line_items"][0]["quantity"] = 0
        response = client.post("/api/orders", json=payload)
        assert response.status_code == 400


class TestStaffAuth:

    def test_login(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["admin"]["username"] == "admin"

    def test_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_orders_require_token(self, client):
        response = client.get("/api/orders")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_forged_token(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_status_update_requires_token(self, client):
        order = create(client)
        response = client.patch(
            f"/api/orders/{order['order_id']}/status", json={"status": "confirmed"}
        )
        assert response.status_code == 401


class TestStaffOrders:

    def test_snapshot_newest_first(self, client, auth_headers):
        first = create(client, table_number="1")
        second = create(client, table_number="2")

        response = client.get("/api/orders", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [o["order_id"] for o in body["orders"]] == [second["order_id"], first["order_id"]]

    def test_snapshot_limit(self, client, auth_headers):
        for table in range(3):
            create(client, table_number=str(table + 1))

        body = client.get("/api/orders", params={"limit": 2}, headers=auth_headers).json()
        assert body["total"] == 2

    def test_get_single_order(self, client, auth_headers):
        order = create(client)
        response = client.get(f"/api/orders/{order['order_id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["order"]["customer_name"] == "Jane Doe"

    def test_get_unknown_order(self, client, auth_headers):
        response = client.get("/api/orders/ORD-000000-00000000", headers=auth_headers)
        assert response.status_code == 404

    def test_advance_status(self, client, auth_headers):
        order = create(client)
        url = f"/api/orders/{order['order_id']}/status"

        response = client.patch(url, json={"status": "confirmed"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "confirmed"

        response = client.patch(url, json={"status": "preparing"}, headers=auth_headers)
        assert response.json()["order"]["status"] == "preparing"

    def test_invalid_transition(self, client, auth_headers):
        order = create(client)
        response = client.patch(
            f"/api/orders/{order['order_id']}/status",
            json={"status": "ready"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status transition"

        snapshot = client.get(f"/api/orders/{order['order_id']}", headers=auth_headers).json()
        assert snapshot["order"]["status"] == "pending"

    def test_unknown_status_value(self, client, auth_headers):
        order = create(client)
        response = client.patch(
            f"/api/orders/{order['order_id']}/status",
            json={"status": "eaten"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_transition_unknown_order(self, client, auth_headers):
        response = client.patch(
            "/api/orders/ORD-000000-00000000/status",
            json={"status": "confirmed"},
            headers=auth_headers,
        )
        assert response.status_code == 404


class TestMenu:

    def test_only_available_items(self, client):
        async def seed():
            async with async_session_maker() as session:
                session.add_all([
                    MenuItem(name="Flat White", description="Double shot", price=3.5,
                             category=MenuCategory.COFFEE, image="/img/fw.jpg"),
                    MenuItem(name="Scone", description="Sold out", price=2.0,
                             category=MenuCategory.PASTRY, image="/img/scone.jpg",
                             available=False),
                ])
                await session.commit()

        asyncio.run(seed())

        body = client.get("/api/menu").json()
        assert body["success"] is True
        assert [item["name"] for item in body["menu_items"]] == ["Flat White"]
        assert body["menu_items"][0]["category"] == "coffee"

"""
Shared test fixtures for the QR Cafe test suite.

The environment is pinned before any ``qrcafe`` import: settings, the
default engine and the broadcaster factory all read it at import time.
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="qrcafe-tests-")
TEST_DB_PATH = os.path.join(_TEST_DIR, "api.db")

os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-bytes-for-hs256"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"

from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402

from qrcafe.database import build_engine, init_db  # noqa: E402
from qrcafe.schemas import LineItemCreate  # noqa: E402
from qrcafe.services.lifecycle import OrderLifecycleEngine  # noqa: E402
from qrcafe.services.realtime import BaseBroadcaster, EventKind, reset_broadcaster  # noqa: E402
from qrcafe.services.store import OrderStore  # noqa: E402


# ============================================================================
# Helpers
# ============================================================================


class RecordingBroadcaster(BaseBroadcaster):
    """Keeps every published event instead of delivering it."""

    def __init__(self):
        super().__init__()
        self.events: list[tuple[EventKind, dict[str, Any]]] = []

    @property
    def provider_name(self) -> str:
        return "recording"

    def publish(self, kind: EventKind, order: dict[str, Any]) -> None:
        self.events.append((kind, order))


class ExplodingBroadcaster(BaseBroadcaster):
    """Fan-out that fails on every publish."""

    @property
    def provider_name(self) -> str:
        return "exploding"

    def publish(self, kind: EventKind, order: dict[str, Any]) -> None:
        raise RuntimeError("fan-out is down")


class FakeSocket:
    """Collects JSON frames written to a staff connection."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)


def line(item_id: str, unit_price: float, quantity: int, name: Optional[str] = None) -> LineItemCreate:
    return LineItemCreate(
        item_id=item_id,
        name=name or f"Item {item_id}",
        unit_price=unit_price,
        quantity=quantity,
    )


def order_payload(**overrides) -> dict[str, Any]:
    """Valid POST /api/orders body (total 11.75)."""
    payload = {
        "customer_name": "Jane Doe",
        "customer_phone": "555-123-4567",
        "table_number": "3",
        "line_items": [
            {"item_id": "A", "name": "Flat White", "unit_price": 3.5, "quantity": 2},
            {"item_id": "B", "name": "Croissant", "unit_price": 4.75, "quantity": 1},
        ],
        "total": 11.75,
    }
    payload.update(overrides)
    return payload


# ============================================================================
# Database fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def recorder():
    return RecordingBroadcaster()


@pytest.fixture
def lifecycle(session, recorder):
    return OrderLifecycleEngine(OrderStore(session), recorder)


# ============================================================================
# API fixtures
# ============================================================================


@pytest.fixture
def client():
    """TestClient against a fresh database with the admin account bootstrapped."""
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)
    reset_broadcaster()

    from qrcafe.main import app

    with TestClient(app) as test_client:
        yield test_client

    reset_broadcaster()


@pytest.fixture
def staff_token(client):
    response = client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "admin123"},
    )
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def auth_headers(staff_token):
    return {"Authorization": f"Bearer {staff_token}"}

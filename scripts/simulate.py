"""
Rush-Hour Simulation Script

Fires concurrent table orders at a running server, then logs in as
staff and checks the snapshot: every order id unique, every stored
total equal to its line items.

Run from project root: python scripts/simulate.py --orders 50

Author: Khalil_Bannouri
Version: 1.0.0
"""

import asyncio
import sys
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50
TABLE_COUNT = 12

# Sample data for random orders
FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Taylor"]
FALLBACK_MENU = [
    {"item_id": "1", "name": "Espresso", "unit_price": 2.5},
    {"item_id": "2", "name": "Flat White", "unit_price": 3.5},
    {"item_id": "3", "name": "Cappuccino", "unit_price": 3.25},
    {"item_id": "4", "name": "Croissant", "unit_price": 2.75},
    {"item_id": "5", "name": "Avocado Toast", "unit_price": 7.9},
    {"item_id": "6", "name": "Cheesecake", "unit_price": 4.5},
]


def generate_random_customer() -> dict[str, str]:
    """Generate random customer info."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "phone": f"555-{random.randint(100,999)}-{random.randint(1000,9999)}",
    }


def generate_random_items(menu: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Pick 1-4 distinct menu items with random quantities."""
    picks = random.sample(menu, k=min(len(menu), random.randint(1, 4)))
    return [dict(item, quantity=random.randint(1, 3)) for item in picks]


def generate_order_payload(menu: list[dict[str, Any]]) -> dict[str, Any]:
    customer = generate_random_customer()
    items = generate_random_items(menu)
    return {
        "customer_name": customer["name"],
        "customer_phone": customer["phone"],
        "table_number": str(random.randint(1, TABLE_COUNT)),
        "line_items": items,
        "notes": random.choice([None, "No sugar", "Oat milk", "Extra hot", "To share"]),
        "total": round(sum(i["unit_price"] * i["quantity"] for i in items), 2),
    }


async def load_menu(client: httpx.AsyncClient) -> list[dict[str, Any]]:
    """Use the live menu when one is configured."""
    response = await client.get(f"{API_BASE_URL}/api/menu")
    response.raise_for_status()
    items = response.json().get("menu_items", [])
    if not items:
        return FALLBACK_MENU
    return [
        {"item_id": str(item["id"]), "name": item["name"], "unit_price": item["price"]}
        for item in items
    ]


# =============================================================================
# ORDER SUBMISSION
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    menu: list[dict[str, Any]],
) -> dict[str, Any]:
    """Submit one order and time it."""
    payload = generate_order_payload(menu)
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            order = response.json()["order"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": order["order_id"],
                "total": order["total"],
                "expected_total": payload["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# STAFF VERIFICATION
# =============================================================================

async def verify_with_staff(
    client: httpx.AsyncClient,
    username: str,
    password: str,
    results: list[dict[str, Any]],
) -> bool:
    """Compare the staff snapshot with what the customers were told."""
    response = await client.post(
        f"{API_BASE_URL}/api/auth/login",
        json={"username": username, "password": password},
    )
    if response.status_code != 200:
        print(f"   ❌ Staff login failed: {response.text[:100]}")
        return False

    headers = {"Authorization": f"Bearer {response.json()['token']}"}
    response = await client.get(
        f"{API_BASE_URL}/api/orders",
        params={"limit": 200},
        headers=headers,
    )
    response.raise_for_status()
    snapshot = {o["order_id"]: o for o in response.json()["orders"]}

    ok = True
    submitted = [r for r in results if r["success"]]
    ids = [r["order_id"] for r in submitted]

    if len(ids) != len(set(ids)):
        print("   ❌ Duplicate order ids returned to customers")
        ok = False

    for r in submitted:
        stored = snapshot.get(r["order_id"])
        if stored is None:
            # Older than the snapshot window
            continue
        if abs(stored["total"] - r["expected_total"]) > 0.01:
            print(f"   ❌ {r['order_id']}: stored {stored['total']} != {r['expected_total']}")
            ok = False
        if stored["status"] != "pending":
            print(f"   ⚠️ {r['order_id']} already moved to {stored['status']}")

    if ok:
        print(f"   ✅ {len(ids)} unique ids, totals match ({len(snapshot)} in snapshot)")
    return ok


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    username: str = "admin",
    password: str = "admin123",
) -> dict[str, Any]:
    """
    Run the rush-hour simulation.

    Args:
        num_orders: Number of orders to submit concurrently
        username: Staff account used for verification
        password: Staff password
    """
    print("=" * 70)
    print("☕ RUSH-HOUR SIMULATION - CONCURRENT TABLE ORDERS")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = await load_menu(client)
        print(f"\n🚀 Firing {num_orders} orders across {TABLE_COUNT} tables...\n")
        tasks = [send_order(client, i + 1, menu) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

        total_time = round(time.time() - start_time, 2)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print("=" * 70)
        print("📊 SIMULATION RESULTS")
        print("=" * 70)
        print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
        print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
        print(f"⏱️  Total Time: {total_time}s")

        if successful:
            avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
            print(f"\n📈 Performance Metrics:")
            print(f"   Average Response: {avg_time}s")
            print(f"   Fastest: {min(r['time'] for r in successful)}s")
            print(f"   Slowest: {max(r['time'] for r in successful)}s")
            print(f"   💰 Total Value: ${sum(r['total'] for r in successful):.2f}")

        if failed:
            print(f"\n⚠️  Failed Order Details (showing first 5):")
            for f in failed[:5]:
                print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

        print("\n🔍 Staff verification...")
        verified = await verify_with_staff(client, username, password, results)

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "verified": verified,
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush-Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    parser.add_argument("--username", default="admin", help="Staff username")
    parser.add_argument("--password", default="admin123", help="Staff password")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    summary = asyncio.run(run_simulation(args.orders, args.username, args.password))
    sys.exit(0 if summary["failed"] == 0 and summary["verified"] else 1)

"""
Rush Hour Simulation Script

Simulates many tables ordering at once, then the kitchen working through
the queue, to exercise order creation and status updates under concurrency.
Run from project root (server must be running): python scripts/simulate.py

Author: Khalil_Bannouri
Version: 4.0.0
"""

import asyncio
import sys
import random
import time
import argparse
from datetime import datetime
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:3001"
TOTAL_ORDERS = 50
TABLE_NUMBERS = list(range(1, 11))

CUSTOMER_NAMES = ["Budi", "Sari", "Andi", "Dewi", "Rudi", "Putri", "Agus", "Rina", "Eko", "Wati"]
NOTES = ["", "", "", "no chili", "extra spicy", "less sugar", "no ice"]
STATUS_FLOW = ["preparing", "ready", "completed"]


def token_from_qr_url(qr_url: str) -> str:
    """Extract the table token from a QR link."""
    return parse_qs(urlparse(qr_url).query)["token"][0]


async def scan_table(client: httpx.AsyncClient, table_number: int) -> Optional[str]:
    """What a customer's phone gets by scanning the table QR."""
    response = await client.get(f"{API_BASE_URL}/api/table/{table_number}")
    if response.status_code != 200:
        return None
    return token_from_qr_url(response.json()["qrUrl"])


def generate_order_payload(token: str, table_number: int, menu: list[dict]) -> dict[str, Any]:
    """Random basket for one table."""
    items = []
    for menu_item in random.sample(menu, k=min(len(menu), random.randint(1, 4))):
        items.append({
            "menuItemId": menu_item["id"],
            "quantity": random.randint(1, 3),
            "price": menu_item["price"],
            "notes": random.choice(NOTES),
        })
    total = sum(item["price"] * item["quantity"] for item in items)

    return {
        "token": token,
        "tableNumber": table_number,
        "customerName": random.choice(CUSTOMER_NAMES),
        "paymentMethod": random.choice(["cash", "qris", "card"]),
        "paymentStatus": random.choice(["pending", "paid"]),
        "totalAmount": total,
        "items": items,
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    tokens: dict[int, str],
    menu: list[dict],
) -> dict[str, Any]:
    """Place one order from a random table."""
    table_number = random.choice(list(tokens))
    payload = generate_order_payload(tokens[table_number], table_number, menu)
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 200:
            return {
                "order_num": order_num,
                "success": True,
                "order_id": response.json().get("orderId"),
                "total": payload["totalAmount"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def advance_order(client: httpx.AsyncClient, order_id: int) -> int:
    """Walk one order through the kitchen. Returns the number of accepted steps."""
    accepted = 0
    for status in STATUS_FLOW:
        response = await client.put(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": status},
            timeout=30.0,
        )
        if response.status_code != 200:
            break
        accepted += 1
    return accepted


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS, advance: bool = True) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH HOUR SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        menu = (await client.get(f"{API_BASE_URL}/api/menu")).json()
        if not menu:
            print("\n❌ Menu is empty. Start the server in development mode to seed sample data.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        scanned = await asyncio.gather(*(scan_table(client, n) for n in TABLE_NUMBERS))
        tokens = {n: t for n, t in zip(TABLE_NUMBERS, scanned) if t}
        print(f"\n📱 Scanned {len(tokens)} table QR codes")
        if not tokens:
            print("\n❌ No table QR could be scanned.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        start_time = time.time()
        print("\n🚀 Firing orders...\n")
        results = await asyncio.gather(
            *(send_order(client, i + 1, tokens, menu) for i in range(num_orders))
        )

        steps = 0
        if advance:
            print("👩‍🍳 Kitchen working through the queue...\n")
            created = [r["order_id"] for r in results if r["success"]]
            steps = sum(await asyncio.gather(*(advance_order(client, oid) for oid in created)))

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")
    if advance:
        print(f"🍳 Status steps accepted: {steps}/{len(successful) * len(STATUS_FLOW)}")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: {sum(r['total'] for r in successful):,.0f}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--no-advance", action="store_true", help="Only place orders")
    parser.add_argument("--url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    asyncio.run(run_simulation(num_orders=args.orders, advance=not args.no_advance))

"""
Chaos Simulation Script

Fires concurrent storefront traffic at a running OrderDesk API and checks
that the order state machine holds up:

    1. N customers place orders at the same time
    2. Each order gets a checkout session
    3. A signed checkout.session.completed webhook is delivered for each
       order, some of them twice (Stripe retries)
    4. Several staff clients race to move every paid order forward
    5. Final snapshots are read back: every order must be FINISHED

Run from project root (server in development mode):
    python scripts/simulate.py --slug burger-house --email admin@burger.test --password ...
"""

import argparse
import asyncio
import hashlib
import hmac
import json
import os
import random
import sys
import time
from datetime import datetime
from typing import Any, Optional

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from orderdesk.cpf import is_valid_cpf

# Configuration
API_BASE_URL = "http://localhost:8000"
TOTAL_ORDERS = 50
STAFF_CLIENTS = 3

FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elisa", "Fabio", "Gabi", "Hugo", "Iris", "Joao"]
LAST_NAMES = ["Silva", "Souza", "Costa", "Santos", "Oliveira", "Pereira", "Lima", "Gomes"]
STREETS = ["Rua Augusta", "Av. Paulista", "Rua Oscar Freire", "Rua da Consolacao", "Av. Reboucas"]


def random_cpf() -> str:
    """A random CPF with valid check digits."""
    base = "".join(str(random.randint(0, 9)) for _ in range(9))
    for suffix in range(100):
        candidate = f"{base}{suffix:02d}"
        if is_valid_cpf(candidate):
            return candidate
    return random_cpf()


def generate_order_payload(slug: str, products: list[dict[str, Any]]) -> dict[str, Any]:
    """Random cart from the live menu."""
    method = random.choice(["DINE_IN", "TAKEAWAY"])
    cart = random.sample(products, k=min(len(products), random.randint(1, 3)))
    payload = {
        "customerName": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customerCpf": random_cpf(),
        "customerPhone": f"(11) 9{random.randint(1000, 9999)}-{random.randint(1000, 9999)}",
        "consumptionMethod": method,
        "products": [{"id": p["id"], "quantity": random.randint(1, 3)} for p in cart],
        "slug": slug,
    }
    if method == "TAKEAWAY":
        payload["deliveryAddress"] = f"{random.choice(STREETS)}, {random.randint(1, 2000)}"
    return payload


def sign_payload(payload: str, secret: str) -> str:
    """Stripe-Signature header for a raw body."""
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


# =============================================================================
# FLOWS
# =============================================================================

async def place_order(
    client: httpx.AsyncClient,
    order_num: int,
    slug: str,
    products: list[dict[str, Any]],
) -> dict[str, Any]:
    """Order intake followed by checkout."""
    payload = generate_order_payload(slug, products)
    start_time = time.time()

    try:
        response = await client.post("/api/orders", json=payload)
        if response.status_code != 201:
            return {"order_num": order_num, "success": False, "error": response.text[:100]}
        order = response.json()

        response = await client.post(
            "/api/checkout",
            json={
                "orderId": order["id"],
                "slug": slug,
                "consumptionMethod": payload["consumptionMethod"],
                "cpf": payload["customerCpf"],
            },
        )
        elapsed = round(time.time() - start_time, 3)
        if response.status_code != 200:
            return {"order_num": order_num, "success": False, "error": response.text[:100]}

        return {
            "order_num": order_num,
            "success": True,
            "order_id": order["id"],
            "total": order["total"],
            "session_id": response.json()["sessionId"],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100]}


async def deliver_payment_event(
    client: httpx.AsyncClient,
    order_id: int,
    secret: str,
    duplicate: bool,
) -> list[str]:
    """Send checkout.session.completed, twice when duplicate is set."""
    body = json.dumps(
        {
            "id": f"evt_sim_{order_id}",
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": {"id": f"cs_sim_{order_id}", "metadata": {"orderId": str(order_id)}}},
        }
    )
    outcomes = []
    for _ in range(2 if duplicate else 1):
        response = await client.post(
            "/api/webhooks/stripe",
            content=body,
            headers={"Stripe-Signature": sign_payload(body, secret), "Content-Type": "application/json"},
        )
        outcomes.append(response.json().get("outcome", f"http {response.status_code}"))
    return outcomes


async def staff_worker(
    client: httpx.AsyncClient,
    order_ids: list[int],
    headers: dict[str, str],
) -> dict[str, int]:
    """Push every order to IN_PREPARATION then FINISHED, racing the other workers."""
    tally = {"changed": 0, "unchanged": 0, "rejected": 0}
    ids = order_ids[:]
    random.shuffle(ids)

    for order_id in ids:
        for status in ("IN_PREPARATION", "FINISHED"):
            response = await client.post(
                "/api/admin/orders/update",
                json={"orderId": order_id, "status": status},
                headers=headers,
            )
            if response.status_code == 200:
                tally["changed" if response.json()["changed"] else "unchanged"] += 1
            else:
                tally["rejected"] += 1
    return tally


async def login(client: httpx.AsyncClient, email: str, password: str) -> Optional[dict[str, str]]:
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    if response.status_code != 200:
        print(f"   ❌ Login failed: {response.text[:100]}")
        return None
    token = response.cookies.get("auth-token")
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    slug: str,
    email: str,
    password: str,
    webhook_secret: str,
    num_orders: int = TOTAL_ORDERS,
) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 CHAOS SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL} ({slug})")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=30.0) as client:
        menu = (await client.get(f"/api/public/{slug}/menu")).json()["restaurant"]
        products = [p for c in menu["categories"] for p in c["products"]]
        if not products:
            print("❌ Menu has no active products")
            return {"successful": 0}

        print("\n🚀 Placing orders...\n")
        results = await asyncio.gather(
            *(place_order(client, i + 1, slug, products) for i in range(num_orders))
        )
        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]
        order_ids = [r["order_id"] for r in successful]

        print("💳 Delivering payment webhooks (every third one twice)...\n")
        webhook_outcomes = await asyncio.gather(
            *(
                deliver_payment_event(client, order_id, webhook_secret, duplicate=i % 3 == 0)
                for i, order_id in enumerate(order_ids)
            )
        )

        headers = await login(client, email, password)
        tallies = []
        if headers:
            print(f"👩‍🍳 {STAFF_CLIENTS} staff clients racing status updates...\n")
            tallies = await asyncio.gather(
                *(staff_worker(client, order_ids, headers) for _ in range(STAFF_CLIENTS))
            )

        final = []
        if order_ids:
            response = await client.post("/api/orders/status-check", json={"orderIds": order_ids[:100]})
            final = response.json()["data"]

    total_time = round(time.time() - start_time, 2)
    flat_outcomes = [o for outcomes in webhook_outcomes for o in outcomes]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Orders placed: {len(successful)}/{num_orders}")
    print(f"❌ Failed: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)
        print(f"\n📈 Intake + checkout average: {avg_time}s")
        print(f"   💰 Total Revenue: R$ {total_revenue:.2f}")

    print("\n💳 Webhook outcomes:")
    for outcome in sorted(set(flat_outcomes)):
        print(f"   {outcome}: {flat_outcomes.count(outcome)}")

    if tallies:
        changed = sum(t["changed"] for t in tallies)
        print("\n👩‍🍳 Staff updates:")
        print(f"   applied: {changed} (expected {2 * len(order_ids)})")
        print(f"   no-ops: {sum(t['unchanged'] for t in tallies)}")
        print(f"   rejected: {sum(t['rejected'] for t in tallies)}")

    not_finished = [o for o in final if o["status"] != "FINISHED"]
    if not_finished:
        print(f"\n⚠️  {len(not_finished)} order(s) not FINISHED:")
        for o in not_finished[:5]:
            print(f"   Order #{o['id']}: {o['status']}")
    elif final:
        print(f"\n✅ All {len(final)} checked orders are FINISHED")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 NEXT STEP: python scripts/verify.py to check the sales export")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def preflight() -> bool:
    """Health check before the simulation."""
    async with httpx.AsyncClient(base_url=API_BASE_URL) as client:
        print("\n1️⃣ Health Check...")
        try:
            response = await client.get("/health")
        except httpx.HTTPError as e:
            print(f"   ❌ Failed: {e}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Realtime: {data.get('realtime')}")
        print(f"   Payments: {data.get('payment_service')}")
        return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--slug", required=True, help="Restaurant slug")
    parser.add_argument("--email", required=True, help="Staff login email")
    parser.add_argument("--password", required=True, help="Staff login password")
    parser.add_argument(
        "--webhook-secret",
        default=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
        help="Secret the server verifies webhooks with",
    )
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--skip-tests", action="store_true", help="Skip the health check")
    args = parser.parse_args()

    if not args.skip_tests and not asyncio.run(preflight()):
        print("\n❌ Pre-flight check failed. Fix issues before running simulation.")
        sys.exit(1)

    asyncio.run(
        run_simulation(args.slug, args.email, args.password, args.webhook_secret, args.orders)
    )

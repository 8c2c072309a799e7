"""
Concurrency Simulation Script

Drives a running instance to check the idempotency guarantees end to end:
    1. Creates orders concurrently (order numbers must all be distinct)
    2. Pays every order twice at the same time (one charge per order)
    3. Replays a signed payment_intent.succeeded webhook twice per order
       (paid_at must not change)

Run from project root, against seeded catalog data:
    python scripts/simulate.py --customer c-1 --restaurant r-1 --menu-item m-1

Author: Khalil_Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import hashlib
import hmac
import json
import time
import uuid
from typing import Any, Optional

import httpx

API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 20


def sign_payload(payload: str, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def succeeded_event(order_id: str, intent_id: str) -> str:
    return json.dumps({
        "id": f"evt_{uuid.uuid4().hex[:24]}",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "status": "succeeded",
                "description": f"Order {order_id}",
                "metadata": {"order_id": order_id},
            }
        },
    })


async def create_order(client: httpx.AsyncClient, args: argparse.Namespace) -> dict[str, Any]:
    response = await client.post(
        "/api/orders",
        json={
            "customer_id": args.customer,
            "restaurant_id": args.restaurant,
            "items": [{"menu_item_id": args.menu_item, "quantity": 2}],
        },
    )
    response.raise_for_status()
    return response.json()["data"]


async def pay_twice(client: httpx.AsyncClient, order_id: str) -> list[dict[str, Any]]:
    requests = [
        client.post(f"/api/orders/{order_id}/pay", json={"payment_method": "card"})
        for _ in range(2)
    ]
    responses = await asyncio.gather(*requests)
    return [{"status": r.status_code, "body": r.json()} for r in responses]


async def replay_webhook(
    client: httpx.AsyncClient,
    order_id: str,
    intent_id: str,
    secret: Optional[str],
) -> list[int]:
    payload = succeeded_event(order_id, intent_id)
    headers = {"Content-Type": "application/json"}
    if secret:
        headers["Stripe-Signature"] = sign_payload(payload, secret)
    codes = []
    for _ in range(2):
        response = await client.post("/webhooks/stripe", content=payload, headers=headers)
        codes.append(response.status_code)
    return codes


async def run_simulation(args: argparse.Namespace) -> dict[str, Any]:
    print("=" * 70)
    print("CONCURRENCY SIMULATION")
    print("=" * 70)
    print(f"Orders: {args.orders}   Target: {args.base_url}")

    started = time.time()
    async with httpx.AsyncClient(base_url=args.base_url, timeout=30.0) as client:
        orders = await asyncio.gather(*(create_order(client, args) for _ in range(args.orders)))
        numbers = {order["sequence_number"] for order in orders}
        print(f"\nCreated {len(orders)} orders, {len(numbers)} distinct order numbers")

        payments = await asyncio.gather(*(pay_twice(client, order["id"]) for order in orders))
        double_charged = 0
        for attempts in payments:
            ids = {
                a["body"]["data"]["payment"]["transaction_id"]
                for a in attempts
                if a["status"] == 200
            }
            if len(ids) > 1:
                double_charged += 1
        print(f"Paid every order twice: {double_charged} orders with two distinct transactions")

        unchanged = 0
        for order in orders:
            before = (await client.get(f"/api/orders/{order['id']}")).json()["data"]
            intent_id = before["payment"]["transaction_id"] or f"pi_sim_{uuid.uuid4().hex[:16]}"
            codes = await replay_webhook(client, order["id"], intent_id, args.webhook_secret)
            after = (await client.get(f"/api/orders/{order['id']}")).json()["data"]
            if codes == [200, 200] and before["payment"]["paid_at"] == after["payment"]["paid_at"]:
                unchanged += 1
        print(f"Webhook replays leaving paid_at untouched: {unchanged}/{len(orders)}")

    total_time = round(time.time() - started, 2)
    print(f"\nTotal time: {total_time}s")
    print("=" * 70)

    return {
        "orders": len(orders),
        "distinct_numbers": len(numbers),
        "double_charged": double_charged,
        "idempotent_webhooks": unchanged,
        "total_time": total_time,
    }


def main():
    parser = argparse.ArgumentParser(description="Order service concurrency simulation")
    parser.add_argument("--base-url", default=API_BASE_URL)
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS)
    parser.add_argument("--customer", required=True)
    parser.add_argument("--restaurant", required=True)
    parser.add_argument("--menu-item", required=True)
    parser.add_argument("--webhook-secret", default=None, help="Stripe endpoint secret (whsec_...)")
    args = parser.parse_args()

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()

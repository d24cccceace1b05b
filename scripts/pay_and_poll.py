"""Initiate one mobile-money payment through the relay and poll until settled.

Mirrors what the mobile app does: create the payment, then call the verify
endpoint on an interval because the relay registers no webhook.
"""

import argparse
import asyncio
import json
import sys

import httpx

TERMINAL_STATUSES = {"successful", "completed", "failed", "cancelled", "rejected"}
SUCCESS_STATUSES = {"successful", "completed"}


def payment_status(envelope: dict) -> str:
    """Lower-cased `data.status`, or an empty string when absent."""

    data = envelope.get("data")
    if not isinstance(data, dict):
        return ""
    return str(data.get("status") or "").lower()


async def pay_and_poll(
    base_url: str,
    phone: str,
    amount: str,
    interval: float,
    max_polls: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> int:
    """Return a process exit code: 0 paid, 1 failed or rejected, 2 still pending."""

    async with httpx.AsyncClient(base_url=base_url, timeout=30.0, transport=transport) as client:
        resp = await client.post(
            "/create-mobile-money-payment",
            json={"from_payer": phone, "amount": amount},
        )
        created = resp.json()
        print(json.dumps(created, indent=2))
        if created.get("isError"):
            return 1
        transaction_id = (created.get("data") or {}).get("transaction_id")
        if not transaction_id:
            print("Relay accepted the payment but returned no transaction_id.")
            return 1

        for attempt in range(1, max_polls + 1):
            await asyncio.sleep(interval)
            resp = await client.post(
                "/verify-mobile-money-payment",
                json={"transaction_id": transaction_id},
            )
            verified = resp.json()
            status = payment_status(verified)
            print(f"poll={attempt} status={status or 'unknown'}")
            if verified.get("isError"):
                print(json.dumps(verified, indent=2))
                return 1
            if status in TERMINAL_STATUSES:
                print(json.dumps(verified, indent=2))
                return 0 if status in SUCCESS_STATUSES else 1

    print(f"Payment {transaction_id} still pending after {max_polls} polls.")
    return 2


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default="http://localhost:3000")
    parser.add_argument("--phone", required=True, help="10-digit payer number, e.g. 0971234567")
    parser.add_argument("--amount", required=True)
    parser.add_argument("--interval", type=float, default=5.0)
    parser.add_argument("--max-polls", type=int, default=24)
    args = parser.parse_args()
    sys.exit(asyncio.run(pay_and_poll(args.base_url, args.phone, args.amount, args.interval, args.max_polls)))

#!/usr/bin/env python3
"""
Demo seed script — populates the ledger with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates accounts for a handful of fictional owners and fills
them with two months of transactions, some pending, a few transfers, and
one bulk admin adjustment. It talks to the running API only.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000
"""

import argparse
import asyncio
import os
import random
import sys
import uuid
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo owners
# ---------------------------------------------------------------------------

OWNERS = [
    {
        "name": "Alice Chen",
        "accounts": [
            {"type": "checking", "opening": 850_00},
            {"type": "savings", "opening": 5_000_00},
        ],
    },
    {
        "name": "Bob Martinez",
        "accounts": [
            {"type": "checking", "opening": 1_200_00},
            {"type": "credit", "opening": 0, "credit_limit_cents": 3_000_00, "apr": 21.49},
        ],
    },
    {
        "name": "Carol Nguyen",
        "accounts": [
            {"type": "checking", "opening": 3_200_00},
            {"type": "savings", "opening": 12_000_00},
        ],
    },
    {
        "name": "Dave Johnson",
        "accounts": [
            {"type": "checking", "opening": 600_00},
            {"type": "loan", "opening": -15_000_00},
        ],
    },
]

MERCHANTS = [
    ("Coffee shop", "Dining"), ("Grocery store", "Groceries"),
    ("Gas station", "Auto"), ("Online subscription", "Entertainment"),
    ("Restaurant", "Dining"), ("Utility bill", "Utilities"),
    ("Phone bill", "Utilities"), ("Pharmacy", "Health"),
    ("Hardware store", "Home"), ("Gym membership", "Health"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def cents_to_dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


async def create_account(client: httpx.AsyncClient, owner_id: str, owner_name: str,
                         info: dict) -> dict:
    body = {
        "owner_id": owner_id,
        "name": f"{owner_name.split()[0]}'s {info['type'].capitalize()}",
        "account_type": info["type"],
        "balance_cents": info["opening"],
    }
    for key in ("credit_limit_cents", "apr"):
        if key in info:
            body[key] = info[key]
    resp = await client.post(f"{BASE_URL}/accounts", json=body)
    resp.raise_for_status()
    return resp.json()


async def post(client: httpx.AsyncClient, account_id: str, txn_type: str,
               amount_cents: int, description: str, txn_date: date,
               pending: bool = False, **extra) -> dict:
    body = {
        "type": txn_type,
        "amount_cents": amount_cents,
        "description": description,
        "date": txn_date.isoformat(),
        "pending": pending,
        **extra,
    }
    resp = await client.post(f"{BASE_URL}/accounts/{account_id}/transactions", json=body)
    resp.raise_for_status()
    return resp.json()


async def do_transfer(client: httpx.AsyncClient, from_id: str, to_id: str,
                      amount_cents: int, description: str) -> dict:
    resp = await client.post(f"{BASE_URL}/transfers", json={
        "from_account_id": from_id,
        "to_account_id": to_id,
        "amount_cents": amount_cents,
        "description": description,
    })
    return resp.json()


async def get_balance(client: httpx.AsyncClient, account_id: str) -> dict:
    resp = await client.get(f"{BASE_URL}/accounts/{account_id}/balance")
    resp.raise_for_status()
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed_checking(client: httpx.AsyncClient, account_id: str, months: int) -> int:
    """Two paychecks and 8-15 purchases per month, the last few left pending."""
    created = 0
    today = date.today()

    for month in range(months, 0, -1):
        month_start = today - timedelta(days=30 * month)
        for day in (1, 15):
            await post(client, account_id, "credit", random.randint(1_800_00, 3_200_00),
                       "Payroll deposit", month_start + timedelta(days=day),
                       category="Income")
            created += 1
        for _ in range(random.randint(8, 15)):
            merchant, category = random.choice(MERCHANTS)
            await post(client, account_id, "debit", random.randint(3_00, 120_00),
                       merchant, month_start + timedelta(days=random.randint(0, 29)),
                       category=category, merchant=merchant)
            created += 1

    for _ in range(random.randint(1, 3)):
        merchant, category = random.choice(MERCHANTS)
        await post(client, account_id, "debit", random.randint(5_00, 60_00),
                   merchant, today, pending=True, category=category, merchant=merchant)
        created += 1

    return created


async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn bankledger.main:app --reload\n")
            sys.exit(1)

        checking_accounts: list[dict] = []

        for owner in OWNERS:
            owner_id = str(uuid.uuid4())
            print(f"\nCreating accounts for {owner['name']} ({owner_id})...")

            checking_id = None
            for info in owner["accounts"]:
                account = await create_account(client, owner_id, owner["name"], info)
                log(f"{info['type'].capitalize()} {account['account_number']}: "
                    f"opened with {cents_to_dollars(info['opening'])}")

                if info["type"] == "checking":
                    checking_id = account["id"]
                    created = await seed_checking(client, account["id"], months=2)
                    log(f"  {created} transactions posted")
                    checking_accounts.append({"id": account["id"], "owner": owner["name"]})
                elif info["type"] == "savings" and checking_id:
                    for _ in range(2):
                        amount = random.randint(200_00, 800_00)
                        result = await do_transfer(client, checking_id, account["id"],
                                                   amount, "Monthly savings transfer")
                        if "error_type" not in result:
                            log(f"  Savings transfer {result['reference_code']}: "
                                f"{cents_to_dollars(amount)}")

        # --- Transfers between owners ---
        print("\nCreating transfers between owners...")
        for a, b in zip(checking_accounts, checking_accounts[1:]):
            amount = random.randint(25_00, 150_00)
            result = await do_transfer(client, a["id"], b["id"], amount,
                                       f"Payment from {a['owner']} to {b['owner']}")
            if "error_type" in result:
                log(f"{a['owner']} -> {b['owner']}: declined ({result['error_type']})")
            else:
                log(f"{a['owner']} -> {b['owner']}: {cents_to_dollars(amount)} "
                    f"[{result['reference_code']}]")

        # --- Bulk admin adjustment ---
        if checking_accounts:
            print("\nBulk cashback adjustment...")
            target = checking_accounts[0]
            resp = await client.post(
                f"{BASE_URL}/admin/accounts/{target['id']}/adjust-balance",
                json={
                    "amount_cents": 75_00,
                    "direction": "add",
                    "description": "Cashback reward",
                    "is_bulk": True,
                    "bulk_count": 5,
                    "randomize_amounts": True,
                    "category": "Rewards",
                },
            )
            resp.raise_for_status()
            log(f"{target['owner']}: batch {resp.json()['batch_id']}")

        # --- Integrity check ---
        print("\nVerifying balances against history...")
        for acct in checking_accounts:
            balance = await get_balance(client, acct["id"])
            status = "OK" if balance["match"] else "MISMATCH"
            log(f"{acct['owner']:<15s} {cents_to_dollars(balance['balance_cents']):>12s}  {status}")

        stats = (await client.get(f"{BASE_URL}/admin/stats")).json()

    print("\n========================================")
    print("  SEED COMPLETE")
    print("========================================")
    print(f"\n  Accounts:             {stats['total_accounts']}")
    print(f"  Total balance:        {cents_to_dollars(stats['total_balance_cents'])}")
    print(f"  Pending transactions: {stats['pending_transactions']}")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "ledger.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample accounts, transactions, and transfers for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())

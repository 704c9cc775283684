#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates accounts with known passwords and PINs. It is intended
ONLY for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding (every PIN is 123456):
    ┌───────────────────────────────────┬───────────────────┬─────────┐
    │ Email                             │ Password          │ Role    │
    ├───────────────────────────────────┼───────────────────┼─────────┤
    │ admin@canteen.example.com         │ AdminDemo123!     │ ADMIN   │
    │ warung.bu.sri@canteen.example.com │ SriDemo123!       │ OWNER   │
    │ kedai.kopi@canteen.example.com    │ KopiDemo123!      │ OWNER   │
    │ andi@student.example.com          │ AndiDemo123!      │ STUDENT │
    │ bella@student.example.com         │ BellaDemo123!     │ STUDENT │
    │ citra@student.example.com         │ CitraDemo123!     │ STUDENT │
    └───────────────────────────────────┴───────────────────┴─────────┘
"""

import argparse
import asyncio
import os
import random
import sys

import httpx

BASE_URL = "http://localhost:8000"
DEMO_PIN = "123456"

# ---------------------------------------------------------------------------
# Demo accounts
# ---------------------------------------------------------------------------

ADMIN = {"name": "Canteen Admin", "email": "admin@canteen.example.com", "password": "AdminDemo123!"}

OWNERS = [
    {
        "name": "Warung Bu Sri",
        "email": "warung.bu.sri@canteen.example.com",
        "password": "SriDemo123!",
        "menu": [
            {"name": "Nasi Goreng", "price": 15_000, "stock": 40, "category": "food"},
            {"name": "Mie Ayam", "price": 13_000, "stock": 30, "category": "food"},
            {"name": "Soto Ayam", "price": 14_000, "stock": 25, "category": "food"},
            {"name": "Es Teh Manis", "price": 4_000, "stock": 80, "category": "drink"},
        ],
    },
    {
        "name": "Kedai Kopi",
        "email": "kedai.kopi@canteen.example.com",
        "password": "KopiDemo123!",
        "menu": [
            {"name": "Kopi Susu", "price": 12_000, "stock": 50, "category": "drink",
             "barcode_value": "8991234500011"},
            {"name": "Roti Bakar", "price": 10_000, "stock": 20, "category": "food"},
            {"name": "Air Mineral", "price": 3_000, "stock": 100, "category": "drink",
             "barcode_value": "8991234500028"},
        ],
    },
]

STUDENTS = [
    {"name": "Andi", "email": "andi@student.example.com", "password": "AndiDemo123!", "topup": 150_000},
    {"name": "Bella", "email": "bella@student.example.com", "password": "BellaDemo123!", "topup": 200_000},
    {"name": "Citra", "email": "citra@student.example.com", "password": "CitraDemo123!", "topup": 75_000},
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def rupiah(amount: int) -> str:
    return f"Rp {amount:,}".replace(",", ".")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: httpx.AsyncClient, user: dict) -> tuple[str, str]:
    """Sign up an account, return (account_id, JWT token)."""
    resp = await client.post(f"{BASE_URL}/auth/signup", json={
        "name": user["name"],
        "email": user["email"],
        "password": user["password"],
        "pin": DEMO_PIN,
    })
    resp.raise_for_status()
    data = resp.json()
    return data["account_id"], data["token"]


async def promote_to_admin(admin_email: str) -> None:
    """Directly update the account's role to ADMIN in the database.

    The first admin can only be provisioned by an operator; every later
    role change goes through the admin API.
    """
    from promote_role import promote
    from canteen.models.account import Role

    await promote(admin_email, Role.ADMIN)


async def set_role(client: httpx.AsyncClient, admin_token: str, account_id: str, role: str) -> None:
    resp = await client.patch(
        f"{BASE_URL}/admin/accounts/{account_id}/role",
        json={"role": role},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()


async def place_order(client: httpx.AsyncClient, token: str, lines: list[dict]) -> dict:
    resp = await client.post(
        f"{BASE_URL}/orders",
        json={"items": lines},
        headers=auth_header(token),
    )
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn canteen.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating admin...")
        await signup(client, ADMIN)
        await promote_to_admin(ADMIN["email"])
        resp = await client.post(f"{BASE_URL}/auth/login", json={
            "email": ADMIN["email"], "password": ADMIN["password"],
        })
        resp.raise_for_status()
        admin_token = resp.json()["token"]
        log(f"Admin: {ADMIN['email']} / {ADMIN['password']}")

        # --- Owners and menus ---
        menus: list[list[dict]] = []
        for owner in OWNERS:
            print(f"\nCreating stall {owner['name']}...")
            owner_id, owner_token = await signup(client, owner)
            await set_role(client, admin_token, owner_id, "owner")
            menu: list[dict] = []
            for item in owner["menu"]:
                resp = await client.post(
                    f"{BASE_URL}/menu", json=item, headers=auth_header(owner_token),
                )
                resp.raise_for_status()
                menu.append(resp.json())
                log(f"  {item['name']}: {rupiah(item['price'])} x{item['stock']}")
            menus.append(menu)
            owner["token"] = owner_token

        # --- Students ---
        students: list[dict] = []
        for student in STUDENTS:
            print(f"\nCreating student {student['name']}...")
            student_id, token = await signup(client, student)
            resp = await client.post(
                f"{BASE_URL}/admin/accounts/{student_id}/topup",
                json={"amount": student["topup"]},
                headers=auth_header(admin_token),
            )
            resp.raise_for_status()
            log(f"Top-up: {rupiah(student['topup'])}")
            students.append({**student, "id": student_id, "token": token})

        # --- Orders ---
        print("\nPlacing orders...")
        for student in students:
            for _ in range(random.randint(1, 3)):
                # One stall per order
                menu = random.choice(menus)
                picks = random.sample(menu, k=random.randint(1, 2))
                lines = [{"item_id": p["id"], "quantity": random.randint(1, 2)} for p in picks]
                result = await place_order(client, student["token"], lines)
                if "error_type" in result:
                    log(f"{student['name']}: {result['detail']}")
                else:
                    log(f"{student['name']}: order {result['id'][:8]} {rupiah(result['total_price'])}")

        # --- Transfer ---
        print("\nCreating a transfer...")
        a, b = students[0], students[1]
        amount = random.randint(5, 20) * 1_000
        resp = await client.post(
            f"{BASE_URL}/wallet/transfer",
            json={"to_email": b["email"], "amount": amount, "pin": DEMO_PIN,
                  "description": "Split lunch"},
            headers=auth_header(a["token"]),
        )
        if resp.status_code == 201:
            log(f"{a['name']} -> {b['name']}: {rupiah(amount)}")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<34s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 34} {'─' * 20} {'─' * 7}")
    print(f"  {ADMIN['email']:<34s} {ADMIN['password']:<20s} ADMIN")
    for o in OWNERS:
        print(f"  {o['email']:<34s} {o['password']:<20s} OWNER")
    for s in STUDENTS:
        print(f"  {s['email']:<34s} {s['password']:<20s} STUDENT")
    print(f"\n  Every PIN is {DEMO_PIN}\n")


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "canteen.db")
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
        epilog="Creates sample stalls, menus, students, orders and a transfer.",
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

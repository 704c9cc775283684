"""
Tests for monthly reports.

These tests verify:
  - A stall owner's report covers only their stall's orders
  - Line items are aggregated per menu item from the order snapshots
  - Canceled orders are counted but left out of revenue and spend
  - A student's report totals their spend and checks it against the budget
  - Admins see the whole canteen, or one stall with owner_id
  - Best sellers running low on stock are flagged for restock
"""

from datetime import datetime, timezone

import pytest


@pytest.fixture
def order(client):
    """Factory: a student orders (item, quantity) lines from one stall."""

    async def _order(student, *lines):
        response = await client.post(
            "/orders",
            json={"items": [{"item_id": item["id"], "quantity": qty} for item, qty in lines]},
            headers=student["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _order


async def _report(client, account, **params):
    response = await client.get("/reports/monthly", params=params, headers=account["headers"])
    assert response.status_code == 200, response.text
    return response.json()


class TestOwnerReport:

    async def test_revenue_and_items_for_own_stall(
        self, client, student, owner, second_owner, add_item, topup, order
    ):
        nasi = await add_item(owner, name="Nasi Goreng", price=15_000, stock=20)
        teh = await add_item(owner, name="Es Teh", price=4_000, stock=20, category="drink")
        kopi = await add_item(second_owner, name="Kopi Susu", price=12_000, stock=20)
        await topup(student, 200_000)

        await order(student, (nasi, 2), (teh, 1))
        await order(student, (teh, 3))
        await order(student, (kopi, 1))

        report = await _report(client, owner)
        assert report["scope"] == "owner"
        assert report["account_id"] == owner["id"]
        assert report["order_count"] == 2
        assert report["total"] == 46_000
        assert report["average_order_value"] == 23_000
        assert report["budget"] is None

        assert [(i["name"], i["quantity"], i["total"]) for i in report["items"]] == [
            ("Es Teh", 4, 16_000),
            ("Nasi Goreng", 2, 30_000),
        ]
        assert report["top_by_total"][0]["name"] == "Nasi Goreng"

        today = datetime.now(timezone.utc).date().isoformat()
        assert report["daily"] == [{"day": today, "orders": 2, "total": 46_000}]

        other = await _report(client, second_owner)
        assert other["order_count"] == 1
        assert other["total"] == 12_000

    async def test_canceled_orders_counted_but_not_totalled(
        self, client, student, owner, add_item, topup, order
    ):
        nasi = await add_item(owner, name="Nasi Goreng", price=10_000, stock=10)
        teh = await add_item(owner, name="Es Teh", price=5_000, stock=10)
        await topup(student, 50_000)

        canceled = await order(student, (nasi, 1))
        await order(student, (teh, 1))
        response = await client.post(f"/orders/{canceled['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 200

        report = await _report(client, owner)
        assert report["order_count"] == 1
        assert report["canceled_count"] == 1
        assert report["status_counts"]["canceled"] == 1
        assert report["status_counts"]["processing"] == 1
        assert report["total"] == 5_000
        assert [i["name"] for i in report["items"]] == ["Es Teh"]

    async def test_low_stock_best_sellers_flagged(
        self, client, student, owner, add_item, topup, order
    ):
        nasi = await add_item(owner, name="Nasi Goreng", price=1_000, stock=7)
        teh = await add_item(owner, name="Es Teh", price=1_000, stock=20)
        await add_item(owner, name="Unsold", price=1_000, stock=1)
        await topup(student, 50_000)

        await order(student, (nasi, 3), (teh, 1))

        report = await _report(client, owner)
        assert report["low_stock"] == [{"id": nasi["id"], "name": "Nasi Goreng", "stock": 4}]

    async def test_other_month_is_empty(self, client, student, owner, add_item, topup, order):
        item = await add_item(owner, price=1_000)
        await topup(student, 10_000)
        await order(student, (item, 1))

        report = await _report(client, owner, year=2020, month=1)
        assert report["order_count"] == 0
        assert report["total"] == 0
        assert report["average_order_value"] == 0
        assert report["items"] == []
        assert report["daily"] == []

    async def test_owner_cannot_view_another_stall(self, client, owner, second_owner):
        response = await client.get(
            "/reports/monthly", params={"owner_id": second_owner["id"]},
            headers=owner["headers"],
        )
        assert response.status_code == 403


class TestStudentReport:

    async def test_spend_against_budget(
        self, client, student, second_student, owner, second_owner, add_item, topup, order
    ):
        nasi = await add_item(owner, price=15_000)
        kopi = await add_item(second_owner, price=12_000)
        await topup(student, 100_000)
        await client.put("/me/budget", json={"monthly_budget": 20_000}, headers=student["headers"])

        await order(student, (nasi, 1))
        await order(student, (kopi, 1))

        report = await _report(client, student)
        assert report["scope"] == "student"
        assert report["account_id"] == student["id"]
        assert report["order_count"] == 2
        assert report["total"] == 27_000
        assert report["low_stock"] == []
        assert report["budget"] == {"monthly_budget": 20_000, "spent": 27_000, "over_budget": True}

        other = await _report(client, second_student)
        assert other["order_count"] == 0
        assert other["budget"]["over_budget"] is False

    async def test_invalid_month_rejected(self, client, student):
        response = await client.get(
            "/reports/monthly", params={"month": 13}, headers=student["headers"]
        )
        assert response.status_code == 422


class TestAdminReport:

    async def test_canteen_wide_and_single_stall(
        self, client, student, owner, second_owner, admin, add_item, topup, order
    ):
        nasi = await add_item(owner, price=15_000)
        kopi = await add_item(second_owner, price=12_000)
        await topup(student, 100_000)
        await order(student, (nasi, 1))
        await order(student, (kopi, 2))

        everything = await _report(client, admin)
        assert everything["scope"] == "canteen"
        assert everything["account_id"] is None
        assert everything["order_count"] == 2
        assert everything["total"] == 39_000

        stall = await _report(client, admin, owner_id=second_owner["id"])
        assert stall["scope"] == "owner"
        assert stall["account_id"] == second_owner["id"]
        assert stall["order_count"] == 1
        assert stall["total"] == 24_000

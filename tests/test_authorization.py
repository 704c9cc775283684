"""
Tests for authorization boundaries — cross-user isolation and role enforcement.

1. **Order visibility** is decided on the server: a student sees only their
   own orders, an owner only orders made entirely of their items.

2. **Role enforcement**: students and owners cannot reach /admin/*, and
   admins cannot spend from a wallet.
"""

import pytest


@pytest.fixture
def order_for(client, add_item, topup):
    async def _order_for(student, owner):
        item = await add_item(owner, price=1_000, stock=10)
        await topup(student, 10_000)
        response = await client.post(
            "/orders", json={"items": [{"item_id": item["id"], "quantity": 1}]},
            headers=student["headers"],
        )
        assert response.status_code == 201
        return response.json()

    return _order_for


class TestOrderVisibility:

    async def test_students_only_see_their_own_orders(
        self, client, student, second_student, owner, order_for
    ):
        mine = await order_for(student, owner)
        theirs = await order_for(second_student, owner)

        listed = (await client.get("/orders", headers=student["headers"])).json()
        assert [o["id"] for o in listed] == [mine["id"]]

        response = await client.get(f"/orders/{theirs['id']}", headers=student["headers"])
        assert response.status_code == 403

    async def test_owners_only_see_their_own_orders(
        self, client, student, owner, second_owner, order_for
    ):
        sri = await order_for(student, owner)
        kopi = await order_for(student, second_owner)

        listed = (await client.get("/orders", headers=owner["headers"])).json()
        assert [o["id"] for o in listed] == [sri["id"]]

        response = await client.get(f"/orders/{kopi['id']}", headers=owner["headers"])
        assert response.status_code == 403

    async def test_status_filter(self, client, student, owner, order_for):
        first = await order_for(student, owner)
        await order_for(student, owner)
        await client.post(
            f"/orders/{first['id']}/status", json={"status": "ready"}, headers=owner["headers"]
        )

        ready = (await client.get("/orders", params={"status": "ready"}, headers=owner["headers"])).json()
        assert [o["id"] for o in ready] == [first["id"]]

    async def test_admin_sees_everything(
        self, client, student, second_student, owner, second_owner, admin, order_for
    ):
        await order_for(student, owner)
        await order_for(second_student, second_owner)

        response = await client.get("/admin/orders", headers=admin["headers"])
        assert response.status_code == 200
        assert len(response.json()) == 2

    async def test_unknown_order(self, client, student):
        response = await client.get(
            "/orders/00000000-0000-0000-0000-000000000000", headers=student["headers"]
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "order_not_found"


class TestRoleEnforcement:

    @pytest.mark.parametrize("path", [
        "/admin/accounts",
        "/admin/transactions",
        "/admin/orders",
    ])
    async def test_non_admins_blocked(self, client, student, owner, path):
        for account in (student, owner):
            response = await client.get(path, headers=account["headers"])
            assert response.status_code == 403

    async def test_admin_cannot_place_orders_or_transfer(
        self, client, admin, student, owner, add_item
    ):
        item = await add_item(owner)
        response = await client.post(
            "/orders", json={"items": [{"item_id": item["id"], "quantity": 1}]},
            headers=admin["headers"],
        )
        assert response.status_code == 403

        response = await client.post(
            "/wallet/transfer",
            json={"to_email": student["email"], "amount": 1_000, "pin": "123456"},
            headers=admin["headers"],
        )
        assert response.status_code == 403

    async def test_owner_cannot_cancel_as_student(self, client, student, owner, order_for):
        order = await order_for(student, owner)
        response = await client.post(f"/orders/{order['id']}/cancel", headers=student["headers"])
        assert response.status_code == 403

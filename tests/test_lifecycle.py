"""
Tests for the order lifecycle: status changes, cancellation and refunds,
two-party pickup.

These tests verify:
  - Owners advance orders one step at a time, and only their own orders
  - Cancel restores stock and refunds the student exactly once
  - Completed and canceled orders accept no further transitions
  - An order is completed only once both parties have confirmed pickup
    (or the owner moved it to completed, which sets both flags)
"""

import pytest


@pytest.fixture
def place_order(client, add_item, topup):
    """Factory: fund the student and place an order for one owner's item."""

    async def _place_order(student, owner, price=10_000, quantity=2, stock=10):
        item = await add_item(owner, price=price, stock=stock)
        await topup(student, 100_000)
        response = await client.post(
            "/orders", json={"items": [{"item_id": item["id"], "quantity": quantity}]},
            headers=student["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json(), item

    return _place_order


async def _advance(client, owner, order_id, status):
    return await client.post(
        f"/orders/{order_id}/status", json={"status": status}, headers=owner["headers"]
    )


class TestAdvanceStatus:

    async def test_processing_to_ready_to_completed(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)

        ready = await _advance(client, owner, order["id"], "ready")
        assert ready.status_code == 200
        assert ready.json()["status"] == "ready"

        done = await _advance(client, owner, order["id"], "completed")
        assert done.status_code == 200
        body = done.json()
        assert body["status"] == "completed"
        assert body["student_picked_up"] is True
        assert body["owner_picked_up"] is True

    async def test_cannot_skip_ready(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        response = await _advance(client, owner, order["id"], "completed")
        assert response.status_code == 409
        body = response.json()
        assert body["error_type"] == "invalid_transition"
        assert body["current"] == "processing"
        assert body["target"] == "completed"

    async def test_student_is_told_when_ready(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")

        inbox = (await client.get("/notifications", headers=student["headers"])).json()
        assert inbox["items"][0]["category"] == "order_ready"
        assert inbox["items"][0]["meta"]["order_id"] == order["id"]

    async def test_other_owner_cannot_advance(
        self, client, student, owner, second_owner, place_order
    ):
        order, _ = await place_order(student, owner)
        response = await _advance(client, second_owner, order["id"], "ready")
        assert response.status_code == 403
        assert response.json()["error_type"] == "not_owner"

    async def test_student_cannot_advance(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        response = await _advance(client, student, order["id"], "ready")
        assert response.status_code == 403

    async def test_one_order_per_stall_each_owner_can_refund(
        self, client, student, owner, second_owner, add_item, topup
    ):
        a = await add_item(owner, price=1_000)
        b = await add_item(second_owner, price=1_000)
        await topup(student, 10_000)

        orders = []
        for item in (a, b):
            response = await client.post(
                "/orders", json={"items": [{"item_id": item["id"], "quantity": 1}]},
                headers=student["headers"],
            )
            assert response.status_code == 201
            orders.append(response.json())

        for who, order in zip((owner, second_owner), orders):
            response = await client.post(f"/orders/{order['id']}/cancel", headers=who["headers"])
            assert response.status_code == 200
            assert response.json()["status"] == "canceled"

        balance = (await client.get("/wallet/balance", headers=student["headers"])).json()
        assert balance["wallet_balance"] == 10_000


class TestCancel:

    async def test_cancel_refunds_and_restores_stock(self, client, student, owner, place_order):
        order, item = await place_order(student, owner, price=10_000, quantity=2, stock=10)

        response = await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "canceled"
        assert body["stock_restored"] is True

        stock = (await client.get(f"/menu/{item['id']}", headers=student["headers"])).json()["stock"]
        assert stock == 10
        balance = (await client.get("/wallet/balance", headers=student["headers"])).json()
        assert balance["wallet_balance"] == 100_000
        assert balance["match"] is True

        refunds = (await client.get(
            "/wallet/transactions", params={"type": "refund"}, headers=student["headers"]
        )).json()
        assert len(refunds) == 1
        assert refunds[0]["order_id"] == order["id"]
        assert refunds[0]["amount"] == 20_000

        inbox = (await client.get("/notifications", headers=student["headers"])).json()
        assert inbox["items"][0]["category"] == "order_canceled"

    async def test_second_cancel_changes_nothing(self, client, student, owner, place_order):
        order, item = await place_order(student, owner, stock=10)
        await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])

        response = await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 409
        assert response.json()["error_type"] == "already_terminal"

        stock = (await client.get(f"/menu/{item['id']}", headers=student["headers"])).json()["stock"]
        assert stock == 10
        refunds = (await client.get(
            "/wallet/transactions", params={"type": "refund"}, headers=student["headers"]
        )).json()
        assert len(refunds) == 1
        assert (await client.get("/wallet/balance", headers=student["headers"])).json()["wallet_balance"] == 100_000

    async def test_cannot_cancel_completed_order(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")
        await _advance(client, owner, order["id"], "completed")

        response = await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 409
        assert response.json()["error_type"] == "already_terminal"

    async def test_ready_order_can_be_canceled(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")
        response = await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 200

    async def test_canceled_order_cannot_advance(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        response = await _advance(client, owner, order["id"], "ready")
        assert response.status_code == 409
        assert response.json()["error_type"] == "already_terminal"

    async def test_other_owner_cannot_cancel(self, client, student, owner, second_owner, place_order):
        order, _ = await place_order(student, owner)
        response = await client.post(f"/orders/{order['id']}/cancel", headers=second_owner["headers"])
        assert response.status_code == 403
        status = (await client.get(f"/orders/{order['id']}", headers=student["headers"])).json()["status"]
        assert status == "processing"

    async def test_cancel_survives_deleted_menu_item(self, client, student, owner, place_order):
        order, item = await place_order(student, owner)
        await client.delete(f"/menu/{item['id']}", headers=owner["headers"])

        response = await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])
        assert response.status_code == 200
        balance = (await client.get("/wallet/balance", headers=student["headers"])).json()
        assert balance["wallet_balance"] == 100_000


class TestPickup:

    async def test_both_parties_must_confirm(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")

        first = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert first.status_code == 200
        body = first.json()
        assert body["status"] == "ready"
        assert body["student_picked_up"] is True
        assert body["owner_picked_up"] is False

        inbox = (await client.get("/notifications", headers=owner["headers"])).json()
        assert inbox["items"][0]["category"] == "pickup_confirmation"

        second = await client.post(f"/orders/{order['id']}/pickup", headers=owner["headers"])
        assert second.status_code == 200
        body = second.json()
        assert body["status"] == "completed"
        assert body["student_picked_up"] is True
        assert body["owner_picked_up"] is True

    async def test_owner_can_confirm_first(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")

        first = await client.post(f"/orders/{order['id']}/pickup", headers=owner["headers"])
        assert first.json()["status"] == "ready"
        assert first.json()["owner_picked_up"] is True

        second = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert second.json()["status"] == "completed"

    async def test_repeat_confirmation_is_a_no_op(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")

        await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        again = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert again.status_code == 200
        assert again.json()["status"] == "ready"
        assert again.json()["owner_picked_up"] is False

        inbox = (await client.get("/notifications", headers=owner["headers"])).json()
        assert [n["category"] for n in inbox["items"]] == ["pickup_confirmation"]

    async def test_pickup_before_ready_rejected(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        response = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_transition"

    async def test_pickup_after_completion_rejected(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")
        await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        await client.post(f"/orders/{order['id']}/pickup", headers=owner["headers"])

        response = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert response.status_code == 409
        assert response.json()["error_type"] == "already_completed"

    async def test_pickup_of_canceled_order_rejected(self, client, student, owner, place_order):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")
        await client.post(f"/orders/{order['id']}/cancel", headers=owner["headers"])

        response = await client.post(f"/orders/{order['id']}/pickup", headers=student["headers"])
        assert response.status_code == 409
        assert response.json()["error_type"] == "already_terminal"

    async def test_strangers_cannot_confirm(
        self, client, student, second_student, owner, second_owner, place_order
    ):
        order, _ = await place_order(student, owner)
        await _advance(client, owner, order["id"], "ready")

        for stranger in (second_student, second_owner):
            response = await client.post(f"/orders/{order['id']}/pickup", headers=stranger["headers"])
            assert response.status_code == 403

    async def test_completed_status_always_has_both_flags(
        self, client, student, second_student, owner, place_order
    ):
        """Whichever path completes an order, both pickup flags are set."""
        via_pickup, _ = await place_order(student, owner)
        via_status, _ = await place_order(second_student, owner)
        for order in (via_pickup, via_status):
            await _advance(client, owner, order["id"], "ready")

        await client.post(f"/orders/{via_pickup['id']}/pickup", headers=student["headers"])
        await client.post(f"/orders/{via_pickup['id']}/pickup", headers=owner["headers"])
        await _advance(client, owner, via_status["id"], "completed")

        orders = (await client.get("/orders", headers=owner["headers"])).json()
        for order in orders:
            completed = order["status"] == "completed"
            both = order["student_picked_up"] and order["owner_picked_up"]
            assert completed == both

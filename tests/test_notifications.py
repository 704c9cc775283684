"""
Tests for the notification inbox and for notification failures never
breaking the operation that triggered them.
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError


async def _request_money(client, requester, target, amount=5_000):
    response = await client.post(
        "/wallet/request", json={"from_email": target["email"], "amount": amount},
        headers=requester["headers"],
    )
    assert response.status_code == 202


class TestInbox:

    async def test_unread_count_and_mark_read(self, client, student, second_student):
        await _request_money(client, second_student, student)
        await _request_money(client, second_student, student, amount=7_000)

        inbox = (await client.get("/notifications", headers=student["headers"])).json()
        assert inbox["unread"] == 2
        newest = inbox["items"][0]

        response = await client.post(
            f"/notifications/{newest['id']}/read", headers=student["headers"]
        )
        assert response.status_code == 204
        inbox = (await client.get("/notifications", headers=student["headers"])).json()
        assert inbox["unread"] == 1

        unread = (await client.get(
            "/notifications", params={"unread_only": True}, headers=student["headers"]
        )).json()
        assert [n["id"] for n in unread["items"]] != [newest["id"]]
        assert len(unread["items"]) == 1

    async def test_read_all_and_clear(self, client, student, second_student):
        await _request_money(client, second_student, student)
        await _request_money(client, second_student, student)

        response = await client.post("/notifications/read-all", headers=student["headers"])
        assert response.json() == {"updated": 2}

        response = await client.delete("/notifications", headers=student["headers"])
        assert response.json() == {"deleted": 2}
        inbox = (await client.get("/notifications", headers=student["headers"])).json()
        assert inbox == {"unread": 0, "items": []}

    async def test_cannot_read_someone_elses_notification(
        self, client, student, second_student
    ):
        await _request_money(client, second_student, student)
        notification_id = (
            await client.get("/notifications", headers=student["headers"])
        ).json()["items"][0]["id"]

        response = await client.post(
            f"/notifications/{notification_id}/read", headers=second_student["headers"]
        )
        assert response.status_code == 404
        assert response.json()["error_type"] == "notification_not_found"


class TestNotificationFailure:

    async def test_failed_notification_does_not_undo_transfer(
        self, client, student, second_student, topup
    ):
        await topup(student, 20_000)

        broken = OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))
        with patch("canteen.services.notification_service.Notification", side_effect=broken):
            response = await client.post(
                "/wallet/transfer",
                json={"to_email": second_student["email"], "amount": 5_000, "pin": "123456"},
                headers=student["headers"],
            )

        assert response.status_code == 201
        balance = (await client.get("/wallet/balance", headers=second_student["headers"])).json()
        assert balance["wallet_balance"] == 5_000
        inbox = (await client.get("/notifications", headers=second_student["headers"])).json()
        assert inbox["items"] == []

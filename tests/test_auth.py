"""
Tests for authentication: signup, login, and token handling.

These tests verify:
  - Signup creates a student with an empty wallet and returns a token
  - Duplicate emails are rejected
  - Request validation (password length, PIN format) runs before any
    service code
  - Login uses one error for every failure (no user enumeration)
  - Protected endpoints reject missing, malformed and orphaned tokens
  - Deactivated accounts lose access on their next request
"""

import uuid

from sqlalchemy import update

from canteen.models.account import Account
from canteen.security import create_access_token


SIGNUP = {
    "name": "Andi",
    "email": "andi@student.example.com",
    "password": "SecurePass123!",
    "pin": "123456",
}


class TestSignup:

    async def test_signup_creates_student(self, client):
        response = await client.post("/auth/signup", json=SIGNUP)
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == SIGNUP["email"]
        assert data["role"] == "student"
        assert data["token_type"] == "bearer"
        assert data["token"]

        me = await client.get(
            "/me", headers={"Authorization": f"Bearer {data['token']}"}
        )
        assert me.status_code == 200
        assert me.json()["wallet_balance"] == 0
        assert me.json()["monthly_budget"] is None

    async def test_signup_never_returns_hashes(self, client):
        response = await client.post("/auth/signup", json=SIGNUP)
        token = response.json()["token"]
        me = await client.get("/me", headers={"Authorization": f"Bearer {token}"})
        body = me.json()
        assert "hashed_password" not in body
        assert "hashed_pin" not in body

    async def test_duplicate_email_rejected(self, client):
        await client.post("/auth/signup", json=SIGNUP)
        response = await client.post("/auth/signup", json=SIGNUP)
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_email"

    async def test_short_password_rejected(self, client):
        response = await client.post("/auth/signup", json={**SIGNUP, "password": "short"})
        assert response.status_code == 422

    async def test_pin_must_be_digits(self, client):
        for pin in ("12a4", "123", "1234567", ""):
            response = await client.post("/auth/signup", json={**SIGNUP, "pin": pin})
            assert response.status_code == 422, pin

    async def test_reserved_email_domain_rejected(self, client):
        for email in ("andi@student.test", "not-an-email"):
            response = await client.post("/auth/signup", json={**SIGNUP, "email": email})
            assert response.status_code == 422, email

    async def test_fixture_accounts_can_sign_in(self, client, student, owner, admin):
        for account in (student, owner, admin):
            me = await client.get("/me", headers=account["headers"])
            assert me.status_code == 200
            assert me.json()["email"] == account["email"]


class TestLogin:

    async def test_login_returns_token(self, client):
        await client.post("/auth/signup", json=SIGNUP)
        response = await client.post(
            "/auth/login",
            json={"email": SIGNUP["email"], "password": SIGNUP["password"]},
        )
        assert response.status_code == 200
        assert response.json()["token"]

    async def test_wrong_password_and_unknown_email_look_the_same(self, client):
        await client.post("/auth/signup", json=SIGNUP)

        wrong_password = await client.post(
            "/auth/login", json={"email": SIGNUP["email"], "password": "WrongPass123!"}
        )
        unknown_email = await client.post(
            "/auth/login", json={"email": "nobody@student.example.com", "password": "WrongPass123!"}
        )
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()


class TestTokens:

    async def test_missing_token(self, client):
        response = await client.get("/me")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    async def test_token_for_unknown_account(self, client):
        token = create_access_token(data={"sub": str(uuid.uuid4())})
        response = await client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_deactivated_account_rejected(self, client, student, session_factory):
        async with session_factory() as session:
            await session.execute(
                update(Account)
                .where(Account.id == uuid.UUID(student["id"]))
                .values(is_active=False)
            )
            await session.commit()

        response = await client.get("/me", headers=student["headers"])
        assert response.status_code == 401

    async def test_role_is_read_from_database(self, client, student, admin):
        """A promotion takes effect on the next request with the same token."""
        response = await client.post("/menu", json={"name": "Tea", "price": 3000},
                                     headers=student["headers"])
        assert response.status_code == 403

        await client.patch(
            f"/admin/accounts/{student['id']}/role",
            json={"role": "owner"},
            headers=admin["headers"],
        )
        response = await client.post("/menu", json={"name": "Tea", "price": 3000},
                                     headers=student["headers"])
        assert response.status_code == 201

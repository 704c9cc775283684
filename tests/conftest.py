"""
Test fixtures for the Canteen API test suite.

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - client: Async HTTP test client (unauthenticated); every request gets its
    own session, committed or rolled back exactly like get_db()
  - register: Factory that signs an account up through the real endpoint
    and, for owners and admins, sets the role directly in the database
  - student / second_student / owner / second_owner / admin: Ready-made
    accounts, each a dict with "id", "email" and "headers"
  - add_item / topup: Shortcuts for stocking a menu and funding a wallet

Each account carries its own Authorization header, so one client can act
as several people in the same test.

Key design decisions:
  - In-memory SQLite shares one connection (StaticPool). A test module can
    override db_engine to use a file database when it needs real
    concurrent connections (see test_concurrency.py).
  - The engine is built with build_engine(), so tests run with the same
    BEGIN IMMEDIATE and savepoint handling as production.
  - Owners and admins are provisioned by a direct role update, the same
    way an operator promotes the first admin.
"""

import os
import uuid

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from canteen.database import Base, build_engine, get_db, rollback_or_flag
from canteen.main import app
from canteen.models.account import Account, Role


TEST_DATABASE_URL = "sqlite+aiosqlite://"
DEFAULT_PIN = "123456"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session for service-level tests. Don't mix with HTTP calls."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    get_db is overridden so all requests hit the test database, with the
    same commit-or-rollback behaviour as production.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await rollback_or_flag(session)
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def register(client, session_factory):
    """Factory: sign up an account and optionally give it a role."""

    async def _register(
        name: str,
        email: str,
        role: Role = Role.STUDENT,
        password: str = "SecurePass123!",
        pin: str = DEFAULT_PIN,
    ) -> dict:
        response = await client.post(
            "/auth/signup",
            json={"name": name, "email": email, "password": password, "pin": pin},
        )
        assert response.status_code == 201, f"Signup failed: {response.text}"
        data = response.json()

        if role != Role.STUDENT:
            async with session_factory() as session:
                await session.execute(
                    update(Account)
                    .where(Account.id == uuid.UUID(data["account_id"]))
                    .values(role=role)
                )
                await session.commit()

        return {
            "id": data["account_id"],
            "email": email,
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _register


@pytest_asyncio.fixture
async def student(register):
    return await register("Andi", "andi@student.example.com")


@pytest_asyncio.fixture
async def second_student(register):
    return await register("Bella", "bella@student.example.com")


@pytest_asyncio.fixture
async def owner(register):
    return await register("Warung Bu Sri", "sri@canteen.example.com", role=Role.OWNER)


@pytest_asyncio.fixture
async def second_owner(register):
    return await register("Kedai Kopi", "kopi@canteen.example.com", role=Role.OWNER)


@pytest_asyncio.fixture
async def admin(register):
    return await register("Admin", "admin@canteen.example.com", role=Role.ADMIN)


@pytest_asyncio.fixture
async def add_item(client):
    """Factory: an owner adds a menu item. Returns the item JSON."""

    async def _add_item(owner: dict, name: str = "Nasi Goreng", price: int = 15_000,
                        stock: int = 10, **extra) -> dict:
        response = await client.post(
            "/menu",
            json={"name": name, "price": price, "stock": stock, **extra},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _add_item


@pytest_asyncio.fixture
async def topup(client):
    """Factory: a student tops up their own wallet. Returns the new balance."""

    async def _topup(student: dict, amount: int) -> int:
        response = await client.post(
            "/wallet/topup", json={"amount": amount}, headers=student["headers"],
        )
        assert response.status_code == 201, response.text
        return response.json()["wallet_balance"]

    return _topup

#!/usr/bin/env python3
"""
Set an account's role directly in the database. Run on the server.

The first admin has to be provisioned this way; after that admins use
PATCH /admin/accounts/{id}/role.

Usage:
    python demo/promote_role.py admin@canteen.example.com admin
"""
import argparse
import asyncio

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canteen.config import settings
from canteen.database import build_engine
from canteen.models.account import Account, Role


async def promote(email: str, role: Role) -> None:
    engine = build_engine(settings.DATABASE_URL)
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(Account)
            .where(Account.email == email)
            .values(role=role)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Change an account's role")
    parser.add_argument("email")
    parser.add_argument("role", choices=[r.value for r in Role])
    args = parser.parse_args()
    asyncio.run(promote(args.email, Role(args.role)))

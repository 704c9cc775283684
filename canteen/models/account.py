"""
Account model — a canteen user and their wallet.

One row per person. The role decides what the account may do:

  - STUDENT: browses menus, places orders and pre-orders, pays from the wallet
  - OWNER: runs a stall, manages its menu items and fulfils orders for them
  - ADMIN: oversight, role management and wallet top-ups for any account

Wallet:
  `wallet_balance` is an integer in the smallest currency unit (rupiah have
  no minor unit, so 5000 means Rp 5.000). Only the ledger service changes it,
  and every change is paired with exactly one Transaction row. A CHECK
  constraint keeps it from ever going negative, as a last line of defense
  behind the service's compare-and-set updates.

Secrets:
  The login password and the payment PIN are both stored as Argon2id hashes.
  The PIN authorizes debits (transfers, point-of-sale charges) and is
  re-verified against this row right before money moves.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from canteen.database import Base


class Role(str, enum.Enum):
    """Account role. Inherits from str so it serializes naturally to JSON."""
    STUDENT = "student"
    OWNER = "owner"
    ADMIN = "admin"


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_accounts_non_negative_balance"),
        CheckConstraint(
            "monthly_budget IS NULL OR monthly_budget >= 0",
            name="ck_accounts_non_negative_budget",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Login identifier
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_pin: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[Role] = mapped_column(
        Enum(Role),
        default=Role.STUDENT,
        nullable=False,
    )

    wallet_balance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Optional spending target; checkout warns but does not enforce it
    monthly_budget: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Soft-disable: deactivated accounts can't log in but their data is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

"""
Transaction model — the append-only wallet ledger.

Every balance change on an Account is paired with exactly one row here,
written in the same database transaction as the change itself. Rows are
never updated or deleted.

Direction is given by the two nullable parties:

  type      sender     receiver   meaning
  topup     NULL       account    money in from an external source
  order     account    NULL       payment to the canteen
  refund    NULL       account    canceled order paid back
  transfer  account    account    wallet to wallet

so an account's balance always equals
    sum(amount where receiver = account) - sum(amount where sender = account)
which is what the balance check endpoint recomputes.

`amount` is always positive; the CHECK constraint enforces it. A unique
partial index on order_id for refund rows makes a second refund of the same
order fail at the database level, whatever the application does.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from canteen.database import Base


class TransactionType(str, enum.Enum):
    TOPUP = "topup"
    TRANSFER = "transfer"
    ORDER = "order"
    REFUND = "refund"


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_positive_amount"),
        CheckConstraint(
            "sender_id IS NOT NULL OR receiver_id IS NOT NULL",
            name="ck_transactions_has_party",
        ),
        Index(
            "uq_transactions_one_refund_per_order",
            "order_id",
            unique=True,
            sqlite_where=text("type = 'refund'"),
            postgresql_where=text("type = 'refund'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # NULL = external source (top-up funding, refund from the canteen)
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    # NULL = external sink (payment to the canteen)
    receiver_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    # The order paid for or refunded, if any
    order_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("orders.id"),
        nullable=True,
        index=True,
    )

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

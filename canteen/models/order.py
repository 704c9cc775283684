"""
Order model — one checkout.

Line items are stored as a JSON array of snapshots taken at checkout:

    [{"id": "<menu item uuid>", "name": "Nasi Goreng", "price": 15000,
      "quantity": 2, "note": "no chili"}, ...]

so later menu price changes never touch an existing order, and
`total_price` always equals the sum of price * quantity.

Status machine:

    preorder -> processing -> ready -> completed
    preorder | processing | ready -> canceled   (owner; refund + restore)

completed and canceled are terminal.

Pickup rendezvous:
  `student_picked_up` and `owner_picked_up` are the source of truth for
  completion. Every code path that reaches COMPLETED sets both flags and the
  status in the same UPDATE, so `status == completed` holds exactly when
  both flags are true.

Ownership:
  `owner_id` is the one stall every line item belongs to; checkout rejects
  carts that span several stalls. Owner queries and owner actions filter
  on this column in the database, so an owner can never read or act on
  another stall's order.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from canteen.database import Base


class OrderStatus(str, enum.Enum):
    PREORDER = "preorder"
    PROCESSING = "processing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELED = "canceled"


TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELED)
CANCELABLE_STATUSES = (OrderStatus.PREORDER, OrderStatus.PROCESSING, OrderStatus.READY)


class Order(Base):
    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_orders_non_negative_total"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # The student who placed (and paid for) the order
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # The stall that owns every line item
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    items: Mapped[list[dict]] = mapped_column(JSON, nullable=False)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PROCESSING,
        index=True,
    )

    # Pickup day for pre-orders, NULL for immediate orders
    scheduled_for: Mapped[date | None] = mapped_column(Date, nullable=True)

    student_picked_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    owner_picked_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Set when a cancellation put the reserved stock back
    stock_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

"""
MenuItem model — something a stall sells.

Stock is a plain counter. It only goes down through the inventory service's
reservation (a compare-and-set UPDATE that cannot take it below zero) and
only goes up through a cancellation restore or an owner restock. The CHECK
constraint backs that up at the database level.

Orders never reference the live price: they keep a snapshot of name, price
and quantity taken at checkout.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from canteen.database import Base


class MenuItem(Base):
    __tablename__ = "menu_items"

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_menu_items_non_negative_stock"),
        CheckConstraint("price >= 0", name="ck_menu_items_non_negative_price"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # The stall owner selling this item
    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # "food" or "drink"
    category: Mapped[str] = mapped_column(String(10), nullable=False, default="food")

    # Printed barcode students can scan instead of browsing
    barcode_value: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

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

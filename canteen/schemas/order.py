"""
Pydantic schemas for order endpoints.

The server prices every line from the menu. A client may send the
`unit_price` it displayed; if it no longer matches, checkout fails with
price_changed instead of silently charging a different amount.
"""

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class OrderLineRequest(BaseModel):
    item_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_price: int | None = Field(None, ge=0, description="Price shown to the user, if any")
    note: str | None = Field(None, max_length=200)


class OrderCreateRequest(BaseModel):
    """Request body for POST /orders. `scheduled_for` makes it a pre-order."""
    items: list[OrderLineRequest] = Field(min_length=1)
    scheduled_for: date | None = None


class OrderItemSnapshot(BaseModel):
    """A line as it was priced at checkout. Later menu edits don't change it."""
    id: uuid.UUID
    name: str
    price: int
    quantity: int
    note: str | None = None


class OrderResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    owner_id: uuid.UUID
    items: list[OrderItemSnapshot]
    total_price: int
    status: str
    scheduled_for: date | None
    student_picked_up: bool
    owner_picked_up: bool
    stock_restored: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    """Request body for POST /orders/{id}/status."""
    status: Literal["processing", "ready", "completed"]


class ChargeRequest(BaseModel):
    """
    Request body for POST /orders/charge (owner counter sale).

    Either `items` (creates an order for the owner's items) or a plain
    `amount`.
    """
    student_code: str = Field(min_length=1, description="Scanned student QR payload")
    pin: str = Field(pattern=r"^\d{4,6}$")
    items: list[OrderLineRequest] | None = None
    amount: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def items_or_amount(self):
        if not self.items and self.amount is None:
            raise ValueError("Provide items or an amount")
        return self


class ChargeResponse(BaseModel):
    order: OrderResponse | None
    amount: int
    balance_after: int


class ReleaseResponse(BaseModel):
    released: int

"""
Pydantic schemas for menu endpoints.

Prices are whole rupiah (integers). Stock is a non-negative count.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class MenuItemCreate(BaseModel):
    """Request body for POST /menu."""
    name: str = Field(min_length=1, max_length=100)
    price: int = Field(ge=0)
    stock: int = Field(0, ge=0)
    category: Literal["food", "drink"] = "food"
    barcode_value: str | None = Field(None, max_length=64)
    image_url: str | None = Field(None, max_length=500)


class MenuItemUpdate(BaseModel):
    """Request body for PATCH /menu/{id}. Sending `stock` restocks the item."""
    name: str | None = Field(None, min_length=1, max_length=100)
    price: int | None = Field(None, ge=0)
    stock: int | None = Field(None, ge=0)
    category: Literal["food", "drink"] | None = None
    barcode_value: str | None = Field(None, max_length=64)
    image_url: str | None = Field(None, max_length=500)


class MenuItemResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    price: int
    stock: int
    category: str
    barcode_value: str | None
    image_url: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

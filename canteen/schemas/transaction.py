"""
Pydantic schemas for wallet endpoints.

All amounts are whole rupiah and must be positive.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class TransactionResponse(BaseModel):
    """One ledger row. Exactly one row per money movement."""
    id: uuid.UUID
    sender_id: uuid.UUID | None
    receiver_id: uuid.UUID | None
    amount: int
    type: str
    order_id: uuid.UUID | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TopupRequest(BaseModel):
    amount: int = Field(gt=0)


class TopupResponse(BaseModel):
    account_id: uuid.UUID
    amount: int
    wallet_balance: int


class TransferRequest(BaseModel):
    """Request body for POST /wallet/transfer."""
    to_email: EmailStr
    amount: int = Field(gt=0)
    pin: str = Field(pattern=r"^\d{4,6}$")
    description: str | None = Field(None, max_length=255)


class MoneyRequest(BaseModel):
    """Request body for POST /wallet/request. Only sends a notification."""
    from_email: EmailStr
    amount: int = Field(gt=0)

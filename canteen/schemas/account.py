"""Pydantic schemas for profile, PIN, budget and admin account endpoints."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class AccountResponse(BaseModel):
    """Public representation of an account. Hashes are never exposed."""
    id: uuid.UUID
    name: str
    email: str
    role: str
    wallet_balance: int
    monthly_budget: int | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    """
    Cached balance next to the balance recomputed from the ledger.

    `match` is False only if a balance change bypassed the ledger.
    """
    account_id: uuid.UUID
    wallet_balance: int
    computed_balance: int
    match: bool


class PinChangeRequest(BaseModel):
    """Request body for PUT /me/pin."""
    current_pin: str = Field(pattern=r"^\d{4,6}$")
    new_pin: str = Field(pattern=r"^\d{4,6}$")

    @model_validator(mode="after")
    def pins_must_differ(self):
        if self.current_pin == self.new_pin:
            raise ValueError("New PIN must be different")
        return self


class BudgetRequest(BaseModel):
    """Request body for PUT /me/budget. null clears the budget."""
    monthly_budget: int | None = Field(None, ge=0)


class BudgetStatusResponse(BaseModel):
    monthly_budget: int | None
    spent_this_month: int
    remaining: int | None
    would_exceed: bool


class RoleUpdateRequest(BaseModel):
    role: Literal["student", "owner", "admin"]

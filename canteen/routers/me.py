"""
Profile router — the authenticated account's own settings.

Endpoints:
  GET /me         — Profile
  PUT /me/pin     — Change payment PIN (current PIN required)
  PUT /me/budget  — Set or clear the monthly spending budget
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account
from canteen.models.account import Account
from canteen.schemas.account import AccountResponse, BudgetRequest, PinChangeRequest
from canteen.services import ledger_service

router = APIRouter()


@router.get("", response_model=AccountResponse, summary="Get my profile")
async def get_me(account: Account = Depends(get_current_account)):
    return account


@router.put("/pin", status_code=status.HTTP_204_NO_CONTENT, summary="Change my PIN")
async def change_pin(
    request: PinChangeRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    await ledger_service.change_pin(db, account.id, request.current_pin, request.new_pin)


@router.put("/budget", response_model=AccountResponse, summary="Set my monthly budget")
async def set_budget(
    request: BudgetRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Budgets are advisory: exceeding one warns, it never blocks a payment."""
    return await ledger_service.set_monthly_budget(db, account.id, request.monthly_budget)

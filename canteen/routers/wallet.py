"""
Wallet router — balance, history and money movement for the caller.

Endpoints:
  GET  /wallet/balance       — Cached balance with ledger cross-check
  GET  /wallet/budget        — Month-to-date spend against the budget
  GET  /wallet/transactions  — Own ledger rows, newest first
  POST /wallet/topup         — [Student] Add funds
  POST /wallet/transfer      — [Student] Send money to another account (PIN)
  POST /wallet/request       — Ask another account for money

Every movement writes exactly one Transaction row in the same database
transaction as the balance change.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account, require_student
from canteen.models.account import Account
from canteen.models.transaction import TransactionType
from canteen.schemas.account import BalanceResponse, BudgetStatusResponse
from canteen.schemas.transaction import (
    MoneyRequest,
    TopupRequest,
    TopupResponse,
    TransactionResponse,
    TransferRequest,
)
from canteen.services import account_service, ledger_service

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse, summary="Get my balance")
async def get_balance(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Returns the cached wallet balance and the balance recomputed from the
    ledger. `match` should always be true.
    """
    return await ledger_service.get_balance(db, account.id)


@router.get("/budget", response_model=BudgetStatusResponse, summary="Get my budget status")
async def get_budget(
    pending: int = Query(0, ge=0, description="Amount about to be spent"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.budget_status(db, account.id, pending_amount=pending)


@router.get("/transactions", response_model=list[TransactionResponse], summary="List my transactions")
async def list_transactions(
    type: TransactionType | None = Query(None, description="Filter by transaction type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.list_transactions(
        db, account_id=account.id, type_filter=type, limit=limit, offset=offset
    )


@router.post(
    "/topup",
    response_model=TopupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Top up my wallet",
)
async def topup(
    request: TopupRequest,
    account: Account = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    balance = await ledger_service.topup(db, account.id, request.amount)
    return TopupResponse(account_id=account.id, amount=request.amount, wallet_balance=balance)


@router.post(
    "/transfer",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send money to another account",
)
async def transfer(
    request: TransferRequest,
    account: Account = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """
    Atomic transfer authorized by the sender's PIN. A wrong PIN or a short
    balance moves nothing and writes no ledger row.
    """
    recipient = await account_service.get_active_account_by_email(db, request.to_email)
    return await ledger_service.transfer(
        db,
        from_account_id=account.id,
        to_account_id=recipient.id,
        amount=request.amount,
        pin=request.pin,
        description=request.description,
    )


@router.post("/request", status_code=status.HTTP_202_ACCEPTED, summary="Request money")
async def request_money(
    request: MoneyRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    target = await ledger_service.request_money(db, account, request.from_email, request.amount)
    return {"requested_from": target.id, "amount": request.amount}

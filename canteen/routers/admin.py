"""
Admin router — organization-wide visibility and a few privileged actions.

All endpoints require ADMIN role.

Endpoints:
  GET   /admin/accounts                        — List accounts (filter by role)
  GET   /admin/accounts/{account_id}/balance   — Any wallet, with ledger cross-check
  PATCH /admin/accounts/{account_id}/role      — Promote/demote an account
  POST  /admin/accounts/{account_id}/topup     — Fund any wallet (cash desk)
  GET   /admin/transactions                    — Ledger rows org-wide
  GET   /admin/orders                          — Orders org-wide
  POST  /admin/preorders/release               — Move today's pre-orders to processing

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import require_admin
from canteen.models.account import Account, Role
from canteen.models.order import OrderStatus
from canteen.models.transaction import TransactionType
from canteen.schemas.account import AccountResponse, BalanceResponse, RoleUpdateRequest
from canteen.schemas.order import OrderResponse, ReleaseResponse
from canteen.schemas.transaction import TopupRequest, TopupResponse, TransactionResponse
from canteen.services import account_service, ledger_service, order_service

router = APIRouter()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.get(
    "/accounts",
    response_model=list[AccountResponse],
    summary="[Admin] List all accounts",
)
async def admin_list_accounts(
    role: Role | None = Query(None),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.admin_get_all_accounts(db, role=role)


@router.get(
    "/accounts/{account_id}/balance",
    response_model=BalanceResponse,
    summary="[Admin] Get any account's balance",
)
async def admin_get_balance(
    account_id: uuid.UUID,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.get_balance(db, account_id)


@router.patch(
    "/accounts/{account_id}/role",
    response_model=AccountResponse,
    summary="[Admin] Change an account's role",
)
async def admin_set_role(
    account_id: uuid.UUID,
    request: RoleUpdateRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.admin_set_role(db, admin, account_id, Role(request.role))


@router.post(
    "/accounts/{account_id}/topup",
    response_model=TopupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Top up any wallet",
)
async def admin_topup(
    account_id: uuid.UUID,
    request: TopupRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Records a TOPUP ledger row exactly like a self-service top-up."""
    balance = await ledger_service.topup(db, account_id, request.amount)
    return TopupResponse(account_id=account_id, amount=request.amount, wallet_balance=balance)


# ---------------------------------------------------------------------------
# Ledger and orders
# ---------------------------------------------------------------------------

@router.get(
    "/transactions",
    response_model=list[TransactionResponse],
    summary="[Admin] List all transactions",
)
async def admin_list_transactions(
    account_id: uuid.UUID | None = Query(None),
    type: TransactionType | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.list_transactions(
        db, account_id=account_id, type_filter=type, limit=limit, offset=offset
    )


@router.get(
    "/orders",
    response_model=list[OrderResponse],
    summary="[Admin] List all orders",
)
async def admin_list_orders(
    status_filter: OrderStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.list_orders(
        db, admin, status_filter=status_filter, limit=limit, offset=offset
    )


@router.post(
    "/preorders/release",
    response_model=ReleaseResponse,
    summary="[Admin] Release due pre-orders",
)
async def admin_release_preorders(
    today: date | None = Query(None, description="Defaults to the server's date"),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    released = await order_service.release_due_preorders(db, today)
    return ReleaseResponse(released=released)

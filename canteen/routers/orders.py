"""
Orders router — checkout and the order lifecycle.

Endpoints:
  POST /orders                 — [Student] Place an order or pre-order
  GET  /orders                 — Orders visible to me
  GET  /orders/preorders       — Upcoming pre-orders visible to me
  POST /orders/charge          — [Owner] Counter sale: scan student QR + PIN
  GET  /orders/{id}            — One order
  POST /orders/{id}/status     — [Owner] Advance the status
  POST /orders/{id}/cancel     — [Owner] Cancel, restore stock, refund
  POST /orders/{id}/pickup     — [Student/Owner] Confirm pickup

Visibility is decided on the server: students see their own orders, owners
see orders made up entirely of their items, admins see everything.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account, require_owner, require_student
from canteen.models.account import Account
from canteen.models.order import OrderStatus
from canteen.schemas.order import (
    ChargeRequest,
    ChargeResponse,
    OrderCreateRequest,
    OrderLineRequest,
    OrderResponse,
    StatusUpdateRequest,
)
from canteen.services import order_service
from canteen.services.order_service import CartLine

router = APIRouter()


def _cart_lines(lines: list[OrderLineRequest]) -> list[CartLine]:
    return [
        CartLine(
            item_id=line.item_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            note=line.note,
        )
        for line in lines
    ]


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
)
async def place_order(
    request: OrderCreateRequest,
    student: Account = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve stock, snapshot prices and debit the wallet in one transaction.

    - **items**: at least one line, positive quantities
    - **unit_price**: optional; if sent and stale, fails with price_changed
    - **scheduled_for**: optional weekday, tomorrow up to 7 days ahead
    """
    return await order_service.place_order(
        db,
        student,
        _cart_lines(request.items),
        scheduled_for=request.scheduled_for,
    )


@router.get("", response_model=list[OrderResponse], summary="List my orders")
async def list_orders(
    status_filter: OrderStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.list_orders(
        db, account, status_filter=status_filter, limit=limit, offset=offset
    )


@router.get("/preorders", response_model=list[OrderResponse], summary="List upcoming pre-orders")
async def list_preorders(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.list_preorders(db, account)


@router.post(
    "/charge",
    response_model=ChargeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Owner] Charge a student at the counter",
)
async def charge_student(
    request: ChargeRequest,
    owner: Account = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """
    The owner scans the student's QR code; the student enters their PIN.
    Sending `items` creates an order for the owner's own items.
    """
    return await order_service.charge_student(
        db,
        owner,
        student_code=request.student_code,
        pin=request.pin,
        lines=_cart_lines(request.items) if request.items else None,
        amount=request.amount,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get an order")
async def get_order(
    order_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_order(db, order_id, account)


@router.post("/{order_id}/status", response_model=OrderResponse, summary="[Owner] Advance order status")
async def advance_status(
    order_id: uuid.UUID,
    request: StatusUpdateRequest,
    owner: Account = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.advance_status(db, order_id, owner, OrderStatus(request.status))


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="[Owner] Cancel an order")
async def cancel_order(
    order_id: uuid.UUID,
    owner: Account = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Restores stock and refunds the student in the same transaction."""
    return await order_service.cancel_order(db, order_id, owner)


@router.post("/{order_id}/pickup", response_model=OrderResponse, summary="Confirm pickup")
async def confirm_pickup(
    order_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Both the student and the owner confirm; the second confirmation
    completes the order. Repeating your own confirmation is harmless.
    """
    return await order_service.confirm_pickup(db, order_id, account)

"""
Order service — checkout and the order lifecycle.

Checkout (place_order, charge_student) runs as one database transaction:

  1. reserve stock for every line             (inventory_service.reserve)
  2. snapshot name/price/quantity and insert the Order
  3. debit the student for the total          (ledger_service.debit, type=order,
                                               linked to the order)

Any failure along the way (short stock, price changed, insufficient funds,
a lost connection) raises, and the request's rollback undoes the stock
decrement, the order row and the debit together. Nothing partial is ever
committed. The order row is inserted before the debit only so the ledger
row can reference it; no other transaction can see either until commit.

Lifecycle:

    preorder -> processing -> ready -> completed
    preorder | processing | ready -> canceled

Status changes are compare-and-set UPDATEs conditioned on the status the
caller observed, on top of the row lock, so two requests racing on the same
order cannot both apply. Cancel restores stock, refunds and notifies in the
same transaction as the status change.

Pickup is a two-party rendezvous: the student and the owner each set their
own flag; whoever sets the second one moves the order to completed.

Owner scope:
  Every order belongs to exactly one stall: a cart with items from several
  owners is rejected before any stock is reserved. An owner may only act on
  orders with Order.owner_id equal to their id, so each order has exactly
  one owner able to advance, cancel and refund it.
"""

import uuid
from datetime import date, timedelta
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.config import settings
from canteen.exceptions import (
    AlreadyCompletedError,
    AlreadyTerminalError,
    InvalidInputError,
    InvalidPreorderDateError,
    InvalidTransitionError,
    NotOwnerError,
    OrderNotFoundError,
    PriceChangedError,
    StockAlreadyRestoredError,
    UnauthorizedAccessError,
)
from canteen.logging_config import get_logger
from canteen.models.account import Account, Role
from canteen.models.menu_item import MenuItem
from canteen.models.order import CANCELABLE_STATUSES, Order, OrderStatus
from canteen.models.transaction import TransactionType
from canteen.services import inventory_service, ledger_service, notification_service
from canteen.services.scan_codes import parse_scan_code

logger = get_logger(__name__)


class CartLine(NamedTuple):
    """One requested line. unit_price is what the client displayed, if sent."""
    item_id: uuid.UUID
    quantity: int
    unit_price: int | None = None
    note: str | None = None


# Owner-driven status moves. COMPLETED is also reached through pickup.
_NEXT_STATUS = {
    OrderStatus.PREORDER: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}


def validate_preorder_date(scheduled_for: date, today: date | None = None) -> None:
    """
    A pre-order date must fall between tomorrow and PREORDER_MAX_DAYS_AHEAD
    days from today, and on a weekday when PREORDER_WEEKDAYS_ONLY is set.
    """
    today = today or date.today()
    earliest = today + timedelta(days=1)
    latest = today + timedelta(days=settings.PREORDER_MAX_DAYS_AHEAD)

    if not earliest <= scheduled_for <= latest:
        raise InvalidPreorderDateError(
            f"Pre-order date must be between {earliest.isoformat()} and {latest.isoformat()}"
        )
    if settings.PREORDER_WEEKDAYS_ONLY and scheduled_for.weekday() >= 5:
        raise InvalidPreorderDateError("Pre-order date must be a weekday")


async def _stall_owners(db: AsyncSession, item_ids: list[uuid.UUID]) -> set[uuid.UUID]:
    """Distinct owners of the given items. Unknown ids are left to reserve()."""
    result = await db.execute(
        select(MenuItem.owner_id).where(MenuItem.id.in_(set(item_ids))).distinct()
    )
    return set(result.scalars().all())


async def _checkout(
    db: AsyncSession,
    student: Account,
    lines: list[CartLine],
    scheduled_for: date | None = None,
    seller: Account | None = None,
) -> Order:
    """Reserve, snapshot, insert and debit. See the module docstring."""
    if not lines:
        raise InvalidInputError("Your cart is empty")

    owner_ids = await _stall_owners(db, [line.item_id for line in lines])
    if len(owner_ids) > 1:
        raise InvalidInputError("Your cart has items from more than one stall; place one order per stall")
    if seller is not None and owner_ids - {seller.id}:
        raise UnauthorizedAccessError("You can only sell your own menu items")

    items = await inventory_service.reserve(db, [(line.item_id, line.quantity) for line in lines])

    snapshot = []
    for line in lines:
        item = items[line.item_id]
        price = item.price
        if line.unit_price is not None and line.unit_price != item.price:
            if settings.REVALIDATE_PRICES:
                raise PriceChangedError(item.id, line.unit_price, item.price)
            # Price lock: honour the price the student saw when adding to cart
            price = line.unit_price

        entry = {
            "id": str(item.id),
            "name": item.name,
            "price": price,
            "quantity": line.quantity,
        }
        if line.note:
            entry["note"] = line.note
        snapshot.append(entry)

    total = sum(entry["price"] * entry["quantity"] for entry in snapshot)

    order = Order(
        user_id=student.id,
        owner_id=next(iter(items.values())).owner_id,
        items=snapshot,
        total_price=total,
        status=OrderStatus.PREORDER if scheduled_for else OrderStatus.PROCESSING,
        scheduled_for=scheduled_for,
    )
    db.add(order)
    await db.flush()

    if total > 0:
        await ledger_service.debit(
            db,
            student.id,
            total,
            TransactionType.ORDER,
            order_id=order.id,
            description="Pre-order payment" if scheduled_for else "Order payment",
        )

    logger.info(
        "Order placed",
        order_id=order.id,
        account_id=student.id,
        total=total,
        status=order.status.value,
        scheduled_for=scheduled_for,
        lines=len(snapshot),
    )
    return order


async def place_order(
    db: AsyncSession,
    student: Account,
    lines: list[CartLine],
    scheduled_for: date | None = None,
    today: date | None = None,
) -> Order:
    """
    Check out a student's cart.

    Args:
        db: Database session; everything joins its transaction.
        student: The verified, authenticated student.
        lines: Cart lines. Prices come from the menu, not the client.
        scheduled_for: Pickup day for a pre-order, or None.
        today: Override for "today" when validating the pre-order date.

    Returns:
        The new Order, status PROCESSING or PREORDER.

    Raises:
        InsufficientStockError, InsufficientFundsError, PriceChangedError,
        InvalidPreorderDateError, MenuItemNotFoundError, InvalidInputError
    """
    if student.role != Role.STUDENT:
        raise UnauthorizedAccessError("Only students can place orders")
    if scheduled_for is not None:
        validate_preorder_date(scheduled_for, today)

    return await _checkout(db, student, lines, scheduled_for)


async def charge_student(
    db: AsyncSession,
    owner: Account,
    student_code: str,
    pin: str,
    lines: list[CartLine] | None = None,
    amount: int | None = None,
) -> dict:
    """
    Counter sale: the owner scans a student's QR code and the student types
    their PIN on the owner's device.

    With `lines`, this is a normal checkout of the owner's own items, so
    stock is reserved and an order is created. With only `amount`, the
    student's wallet is debited for a plain counter payment.

    Returns:
        {"order": Order | None, "amount": int, "balance_after": int}
    """
    if owner.role != Role.OWNER:
        raise UnauthorizedAccessError("Only stall owners can charge students")
    if not lines and (amount is None or amount <= 0):
        raise InvalidInputError("Enter a valid amount or select items")

    ref = parse_scan_code(student_code, expected_kind="student")
    if not isinstance(ref, uuid.UUID):
        raise InvalidInputError("Invalid student QR")

    # Fresh PIN and balance read, under lock
    student = await ledger_service.verify_pin(db, ref, pin)
    if student.role != Role.STUDENT:
        raise InvalidInputError("QR does not belong to a student")

    order = None
    if lines:
        order = await _checkout(db, student, lines, seller=owner)
        charged = order.total_price
    else:
        charged = amount
        await ledger_service.debit(
            db,
            student.id,
            amount,
            TransactionType.ORDER,
            description=f"Counter payment to {owner.name}",
        )

    await db.refresh(student)
    logger.info(
        "Student charged at counter",
        owner_id=owner.id,
        account_id=student.id,
        amount=charged,
        order_id=order.id if order else None,
    )
    return {"order": order, "amount": charged, "balance_after": student.wallet_balance}


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def _lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _require_owner(order: Order, actor: Account) -> None:
    if actor.role != Role.OWNER or order.owner_id != actor.id:
        raise NotOwnerError(order.id)


async def advance_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    actor: Account,
    target: OrderStatus,
) -> Order:
    """
    Owner moves an order one step: preorder -> processing -> ready -> completed.

    Reaching completed this way sets both pickup flags, keeping the
    rendezvous flags and the status in agreement.

    Raises:
        NotOwnerError: The actor does not own every item in the order.
        AlreadyTerminalError: The order is completed or canceled.
        InvalidTransitionError: `target` is not the next status.
    """
    order = await _lock_order(db, order_id)
    _require_owner(order, actor)

    current = order.status
    if order.is_terminal:
        raise AlreadyTerminalError(order.id, current.value, target.value)
    if _NEXT_STATUS.get(current) != target:
        raise InvalidTransitionError(order.id, current.value, target.value)

    values: dict = {"status": target}
    if target == OrderStatus.COMPLETED:
        values.update(student_picked_up=True, owner_picked_up=True)

    result = await db.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(order)
    if result.rowcount != 1:
        raise InvalidTransitionError(order.id, order.status.value, target.value)

    logger.info(
        "Order status changed",
        order_id=order.id,
        actor_id=actor.id,
        from_status=current.value,
        to_status=target.value,
    )

    if target == OrderStatus.READY:
        await notification_service.notify(
            db,
            user_id=order.user_id,
            category="order_ready",
            title="Order ready",
            message="Your order is ready for pickup",
            link="/student",
            meta={"order_id": str(order.id)},
        )
    return order


async def cancel_order(db: AsyncSession, order_id: uuid.UUID, actor: Account) -> Order:
    """
    Owner cancels an order that is not yet completed.

    In one transaction: status -> canceled, stock restored, total refunded,
    student notified. A second cancel finds the order terminal and fails
    before touching stock or money.

    Raises:
        NotOwnerError, AlreadyTerminalError
    """
    order = await _lock_order(db, order_id)
    _require_owner(order, actor)

    previous = order.status
    if order.is_terminal:
        raise AlreadyTerminalError(order.id, previous.value)

    result = await db.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status.in_(CANCELABLE_STATUSES))
        .values(status=OrderStatus.CANCELED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.refresh(order)
        raise AlreadyTerminalError(order.id, order.status.value)

    await restore_order_stock(db, order)
    if order.total_price > 0:
        await ledger_service.refund(db, order)
    await db.refresh(order)

    logger.info(
        "Order canceled",
        order_id=order.id,
        actor_id=actor.id,
        from_status=previous.value,
        refunded=order.total_price,
    )

    await notification_service.notify(
        db,
        user_id=order.user_id,
        category="order_canceled",
        title="Order canceled",
        message=f"Your order was canceled and Rp {order.total_price:,} was refunded".replace(",", "."),
        link="/wallet",
        meta={"order_id": str(order.id), "amount": order.total_price},
    )
    return order


async def restore_order_stock(db: AsyncSession, order: Order) -> None:
    """
    Put an order's quantities back into stock, once.

    Raises:
        StockAlreadyRestoredError: This order's stock was already restored.
    """
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.stock_restored.is_(False))
        .values(stock_restored=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StockAlreadyRestoredError(order.id)

    await inventory_service.restore(
        db,
        [(uuid.UUID(entry["id"]), entry["quantity"]) for entry in order.items],
    )


async def confirm_pickup(db: AsyncSession, order_id: uuid.UUID, actor: Account) -> Order:
    """
    Record that one party (the student who ordered, or the owner) considers
    the order handed over.

    Only the caller's own flag is set. If the other party already confirmed,
    the order becomes completed; otherwise the other party is notified.
    Confirming twice is a no-op.

    Raises:
        NotOwnerError: The actor is neither the student nor the order's owner.
        AlreadyCompletedError: The order is already completed.
        AlreadyTerminalError: The order was canceled.
        InvalidTransitionError: The order is not ready yet.
    """
    order = await _lock_order(db, order_id)

    if actor.id == order.user_id:
        own_flag, other_flag = "student_picked_up", "owner_picked_up"
        other_party = order.owner_id
    elif actor.role == Role.OWNER and order.owner_id == actor.id:
        own_flag, other_flag = "owner_picked_up", "student_picked_up"
        other_party = order.user_id
    else:
        raise NotOwnerError(order.id)

    if order.status == OrderStatus.COMPLETED:
        raise AlreadyCompletedError(order.id)
    if order.status == OrderStatus.CANCELED:
        raise AlreadyTerminalError(order.id, order.status.value, OrderStatus.COMPLETED.value)
    if order.status != OrderStatus.READY:
        raise InvalidTransitionError(order.id, order.status.value, OrderStatus.COMPLETED.value)

    if getattr(order, own_flag):
        return order

    other_confirmed = getattr(order, other_flag)
    values: dict = {own_flag: True}
    if other_confirmed:
        values["status"] = OrderStatus.COMPLETED

    result = await db.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status == OrderStatus.READY)
        .where(getattr(Order, own_flag).is_(False))
        .where(getattr(Order, other_flag).is_(other_confirmed))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(order)
    if result.rowcount != 1:
        raise InvalidTransitionError(order.id, order.status.value, OrderStatus.COMPLETED.value)

    logger.info(
        "Pickup confirmed",
        order_id=order.id,
        actor_id=actor.id,
        flag=own_flag,
        completed=order.status == OrderStatus.COMPLETED,
    )

    if order.status != OrderStatus.COMPLETED and other_party is not None:
        await notification_service.notify(
            db,
            user_id=other_party,
            category="pickup_confirmation",
            title="Confirm pickup",
            message="The other party marked this order as picked up. Please confirm.",
            link="/student" if own_flag == "owner_picked_up" else "/owner",
            meta={"order_id": str(order.id)},
        )
    return order


async def release_due_preorders(db: AsyncSession, today: date | None = None) -> int:
    """Move every pre-order scheduled for today or earlier to processing."""
    today = today or date.today()
    result = await db.execute(
        update(Order)
        .where(Order.status == OrderStatus.PREORDER)
        .where(Order.scheduled_for <= today)
        .values(status=OrderStatus.PROCESSING)
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount
    if released:
        logger.info("Pre-orders released", count=released, today=today)
    return released


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_order(db: AsyncSession, order_id: uuid.UUID, actor: Account) -> Order:
    """
    Get one order if the actor may see it: the student who placed it, the
    owner of all its items, or an admin.
    """
    order = await db.get(Order, order_id, populate_existing=True)
    if order is None:
        raise OrderNotFoundError(order_id)

    allowed = (
        actor.role == Role.ADMIN
        or order.user_id == actor.id
        or (actor.role == Role.OWNER and order.owner_id == actor.id)
    )
    if not allowed:
        raise UnauthorizedAccessError("You do not have access to this order")
    return order


async def list_orders(
    db: AsyncSession,
    actor: Account,
    status_filter: OrderStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Order]:
    """
    Orders visible to the actor, newest first: a student's own orders, an
    owner's fully-owned orders, or every order for an admin.
    """
    query = (
        select(Order)
        .order_by(Order.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if actor.role == Role.STUDENT:
        query = query.where(Order.user_id == actor.id)
    elif actor.role == Role.OWNER:
        query = query.where(Order.owner_id == actor.id)
    if status_filter is not None:
        query = query.where(Order.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_preorders(db: AsyncSession, actor: Account) -> list[Order]:
    """Upcoming pre-orders visible to the actor, soonest first."""
    query = (
        select(Order)
        .where(Order.status == OrderStatus.PREORDER)
        .order_by(Order.scheduled_for, Order.created_at)
    )
    if actor.role == Role.STUDENT:
        query = query.where(Order.user_id == actor.id)
    elif actor.role == Role.OWNER:
        query = query.where(Order.owner_id == actor.id)

    result = await db.execute(query)
    return list(result.scalars().all())


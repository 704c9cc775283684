"""
Report service — monthly order reports for students, stalls and admins.

A report covers one calendar month (UTC) and is built by:
  1. Loading the orders created in the month that the caller may see
  2. Counting them per status
  3. Totalling every order that was not canceled (canceled orders were
     refunded, so they are neither revenue nor spend)
  4. Aggregating the line-item snapshots per menu item and per day

Scope is decided here, on the server, from the verified account:

  - STUDENT: their own orders, totalled as spend, plus the month's budget
  - OWNER: orders of their stall (Order.owner_id), totalled as revenue,
    plus their best sellers that are running low on stock
  - ADMIN: every order, or a single stall's when `owner_id` is given

Totals come from the order snapshots, never from live menu prices, so a
later price change does not rewrite a past month.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.config import settings
from canteen.exceptions import InvalidInputError, UnauthorizedAccessError
from canteen.logging_config import get_logger
from canteen.models.account import Account, Role
from canteen.models.menu_item import MenuItem
from canteen.models.order import Order, OrderStatus
from canteen.services import ledger_service

logger = get_logger(__name__)

TOP_ITEMS = 5


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """[start, end) of a calendar month in UTC."""
    if not 1 <= month <= 12:
        raise InvalidInputError("Month must be between 1 and 12")

    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def _aggregate_items(orders: list[Order]) -> list[dict]:
    """Quantity and total per menu item across the orders, best sellers first."""
    per_item: dict[str, dict] = {}
    for order in orders:
        for line in order.items:
            entry = per_item.setdefault(
                line["id"], {"id": line["id"], "name": line["name"], "quantity": 0, "total": 0}
            )
            entry["quantity"] += line["quantity"]
            entry["total"] += line["price"] * line["quantity"]

    return sorted(per_item.values(), key=lambda e: (-e["quantity"], e["name"]))


def _daily_breakdown(orders: list[Order]) -> list[dict]:
    days: dict[str, dict] = {}
    for order in orders:
        day = order.created_at.date().isoformat()
        entry = days.setdefault(day, {"day": day, "orders": 0, "total": 0})
        entry["orders"] += 1
        entry["total"] += order.total_price
    return [days[day] for day in sorted(days)]


async def _low_stock(db: AsyncSession, items: list[dict]) -> list[dict]:
    """Items sold in the month whose current stock is at or below the threshold."""
    sold = [uuid.UUID(entry["id"]) for entry in items]
    if not sold:
        return []

    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.id.in_(sold))
        .where(MenuItem.stock <= settings.LOW_STOCK_THRESHOLD)
    )
    low = {item.id: item for item in result.scalars().all()}

    # Keep best-seller order; deleted items simply drop out
    return [
        {"id": low[item_id].id, "name": low[item_id].name, "stock": low[item_id].stock}
        for item_id in sold
        if item_id in low
    ][:TOP_ITEMS]


async def monthly_report(
    db: AsyncSession,
    actor: Account,
    year: int,
    month: int,
    owner_id: uuid.UUID | None = None,
) -> dict:
    """
    Build the month's report for the caller.

    Args:
        db: Database session.
        actor: The verified, authenticated account.
        year: Report year.
        month: Report month (1-12).
        owner_id: Admins only: restrict the report to one stall.

    Returns:
        Dictionary matching MonthlyReportResponse.

    Raises:
        InvalidInputError: The month is out of range.
        UnauthorizedAccessError: A non-admin asked for a stall's report.
    """
    start, end = month_window(year, month)

    if owner_id is not None and actor.role != Role.ADMIN:
        raise UnauthorizedAccessError("Only admins can view another stall's report")

    query = (
        select(Order)
        .where(Order.created_at >= start)
        .where(Order.created_at < end)
        .order_by(Order.created_at)
    )
    if actor.role == Role.STUDENT:
        scope = "student"
        query = query.where(Order.user_id == actor.id)
    elif actor.role == Role.OWNER:
        scope = "owner"
        owner_id = actor.id
        query = query.where(Order.owner_id == actor.id)
    else:
        scope = "owner" if owner_id is not None else "canteen"
        if owner_id is not None:
            query = query.where(Order.owner_id == owner_id)

    orders = list((await db.execute(query)).scalars().all())

    status_counts = {s.value: 0 for s in OrderStatus}
    for order in orders:
        status_counts[order.status.value] += 1

    # Canceled orders were refunded: count them, but leave them out of totals
    counted = [o for o in orders if o.status != OrderStatus.CANCELED]
    total = sum(o.total_price for o in counted)
    items = _aggregate_items(counted)

    report = {
        "scope": scope,
        "account_id": actor.id if scope == "student" else owner_id,
        "year": year,
        "month": month,
        "order_count": len(counted),
        "canceled_count": status_counts[OrderStatus.CANCELED.value],
        "preorder_count": status_counts[OrderStatus.PREORDER.value],
        "status_counts": status_counts,
        "total": total,
        "average_order_value": total // len(counted) if counted else 0,
        "items": items,
        "top_by_quantity": items[:TOP_ITEMS],
        "top_by_total": sorted(items, key=lambda e: (-e["total"], e["name"]))[:TOP_ITEMS],
        "daily": _daily_breakdown(counted),
        "low_stock": [],
        "budget": None,
    }

    if scope == "student":
        # Ledger-based, like GET /wallet/budget, so counter payments count too
        spent = await ledger_service.spent_this_month(db, actor.id, today=date(year, month, 1))
        budget = actor.monthly_budget
        report["budget"] = {
            "monthly_budget": budget,
            "spent": spent,
            "over_budget": budget is not None and spent > budget,
        }
    else:
        report["low_stock"] = await _low_stock(db, items)

    logger.info(
        "Monthly report built",
        actor_id=actor.id,
        scope=scope,
        owner_id=owner_id,
        year=year,
        month=month,
        orders=len(orders),
        total=total,
    )
    return report

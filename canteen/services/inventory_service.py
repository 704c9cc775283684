"""
Inventory service — stock reservation and menu management.

Reservation:
  reserve() takes (item_id, quantity) pairs and either decrements every item
  or raises InsufficientStockError naming the first item found short. It
  never leaves a partial decrement behind: all decrements happen inside the
  caller's database transaction, which get_db() rolls back on any error.

  Each decrement is a compare-and-set:

      UPDATE menu_items SET stock = stock - :q
       WHERE id = :id AND stock >= :q

  and a zero rowcount is treated as insufficient stock. Items are locked in
  sorted id order first (SELECT ... FOR UPDATE on PostgreSQL, the database
  write lock on SQLite), so two concurrent checkouts for the same item
  serialize and the sum of reserved quantities can never exceed the stock.

Unsafe fallback:
  When settings.UNSAFE_STOCK_FALLBACK is on, reserve() instead reads stock,
  computes the new value in Python and writes it unconditionally. Between
  the read and the write another checkout can reserve the same units, so
  this path can oversell under concurrency. It exists only for stores that
  cannot run the guarded UPDATE, and logs a warning on every use.

Menu management:
  Owners create, edit, restock (direct set) and delete their own items.
  Admins may edit or delete any item.
"""

import uuid
from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.config import settings
from canteen.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    MenuItemNotFoundError,
    UnauthorizedAccessError,
)
from canteen.logging_config import get_logger
from canteen.models.account import Account, Role
from canteen.models.menu_item import MenuItem
from canteen.services.scan_codes import parse_scan_code

logger = get_logger(__name__)

StockLines = Iterable[tuple[uuid.UUID, int]]


def merge_lines(lines: StockLines) -> dict[uuid.UUID, int]:
    """
    Sum quantities per item. Rejects non-positive quantities and empty input
    before anything touches the database.
    """
    merged: dict[uuid.UUID, int] = {}
    for item_id, quantity in lines:
        if quantity <= 0:
            raise InvalidInputError(f"Quantity for item {item_id} must be positive")
        merged[item_id] = merged.get(item_id, 0) + quantity

    if not merged:
        raise InvalidInputError("No items given")
    return merged


async def _lock_items(db: AsyncSession, item_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, MenuItem]:
    """Load and lock items in sorted id order. Raises on any unknown id."""
    ids = sorted(set(item_ids))
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.id.in_(ids))
        .order_by(MenuItem.id)
        .with_for_update()  # No-op on SQLite, locks rows on PostgreSQL
        .execution_options(populate_existing=True)
    )
    items = {item.id: item for item in result.scalars().all()}

    for item_id in ids:
        if item_id not in items:
            raise MenuItemNotFoundError(item_id)
    return items


async def reserve(db: AsyncSession, lines: StockLines) -> dict[uuid.UUID, MenuItem]:
    """
    Reserve stock for every line, all or nothing.

    Args:
        db: Database session; the decrements join its transaction.
        lines: (item_id, quantity) pairs. Repeated items are summed.

    Returns:
        The locked MenuItem rows keyed by id, with post-decrement stock.

    Raises:
        InvalidInputError: Empty input or a non-positive quantity.
        MenuItemNotFoundError: An item id does not exist.
        InsufficientStockError: An item has less stock than requested.
    """
    wanted = merge_lines(lines)

    if settings.UNSAFE_STOCK_FALLBACK:
        return await _reserve_unguarded(db, wanted)

    items = await _lock_items(db, wanted)

    # Check everything before writing anything so the error names the item
    for item_id in sorted(wanted):
        item = items[item_id]
        if item.stock < wanted[item_id]:
            raise InsufficientStockError(item.id, item.name, wanted[item_id], item.stock)

    for item_id in sorted(wanted):
        quantity = wanted[item_id]
        result = await db.execute(
            update(MenuItem)
            .where(MenuItem.id == item_id)
            .where(MenuItem.stock >= quantity)
            .values(stock=MenuItem.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        item = items[item_id]
        await db.refresh(item)
        if result.rowcount != 1:
            raise InsufficientStockError(item.id, item.name, quantity, item.stock)

        logger.info(
            "Stock reserved",
            item_id=item_id,
            quantity=quantity,
            stock_after=item.stock,
        )

    return items


async def _reserve_unguarded(db: AsyncSession, wanted: dict[uuid.UUID, int]) -> dict[uuid.UUID, MenuItem]:
    """Read-then-write reservation. Can oversell under concurrent checkouts."""
    logger.warning(
        "Unsafe stock fallback in use; concurrent checkouts may oversell",
        item_ids=sorted(str(i) for i in wanted),
    )

    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.id.in_(list(wanted)))
        .execution_options(populate_existing=True)
    )
    items = {item.id: item for item in result.scalars().all()}

    for item_id in sorted(wanted):
        item = items.get(item_id)
        if item is None:
            raise MenuItemNotFoundError(item_id)
        if item.stock < wanted[item_id]:
            raise InsufficientStockError(item.id, item.name, wanted[item_id], item.stock)

    for item_id in sorted(wanted):
        item = items[item_id]
        item.stock = item.stock - wanted[item_id]
        logger.info("Stock reserved (unguarded)", item_id=item_id, quantity=wanted[item_id])

    await db.flush()
    return items


async def restore(db: AsyncSession, lines: StockLines) -> None:
    """
    Put quantities back into stock, e.g. for a canceled order.

    Guarding against restoring the same order twice is the caller's job
    (see order_service.cancel_order). Items deleted since checkout are
    skipped with a warning.
    """
    wanted = merge_lines(lines)

    for item_id in sorted(wanted):
        quantity = wanted[item_id]
        result = await db.execute(
            update(MenuItem)
            .where(MenuItem.id == item_id)
            .values(stock=MenuItem.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Restock skipped, item no longer exists", item_id=item_id, quantity=quantity)
            continue
        logger.info("Stock restored", item_id=item_id, quantity=quantity)


# ---------------------------------------------------------------------------
# Menu management
# ---------------------------------------------------------------------------

async def get_item(db: AsyncSession, item_id: uuid.UUID) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise MenuItemNotFoundError(item_id)
    return item


async def find_by_code(db: AsyncSession, code: str) -> MenuItem:
    """
    Resolve a scanned code to a menu item: an item id, an {"t": "item"}
    envelope, or a printed barcode value.
    """
    ref = parse_scan_code(code, expected_kind="item")
    if isinstance(ref, uuid.UUID):
        return await get_item(db, ref)

    result = await db.execute(select(MenuItem).where(MenuItem.barcode_value == ref))
    item = result.scalar_one_or_none()
    if item is None:
        raise MenuItemNotFoundError(ref)
    return item


async def list_items(
    db: AsyncSession,
    owner_id: uuid.UUID | None = None,
    category: str | None = None,
    in_stock_only: bool = False,
) -> list[MenuItem]:
    """List menu items ordered by name, optionally for one owner or category."""
    query = select(MenuItem).order_by(MenuItem.name)
    if owner_id is not None:
        query = query.where(MenuItem.owner_id == owner_id)
    if category is not None:
        query = query.where(MenuItem.category == category)
    if in_stock_only:
        query = query.where(MenuItem.stock > 0)

    result = await db.execute(query)
    return list(result.scalars().all())


async def _ensure_barcode_free(
    db: AsyncSession,
    barcode_value: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(MenuItem.id).where(MenuItem.barcode_value == barcode_value)
    if exclude_id is not None:
        query = query.where(MenuItem.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise InvalidInputError(f"Barcode {barcode_value} is already in use")


async def create_item(
    db: AsyncSession,
    owner: Account,
    name: str,
    price: int,
    stock: int,
    category: str = "food",
    barcode_value: str | None = None,
    image_url: str | None = None,
) -> MenuItem:
    """Add an item to an owner's menu."""
    if owner.role != Role.OWNER:
        raise UnauthorizedAccessError("Only stall owners can add menu items")
    if barcode_value:
        await _ensure_barcode_free(db, barcode_value)

    item = MenuItem(
        owner_id=owner.id,
        name=name,
        price=price,
        stock=stock,
        category=category,
        barcode_value=barcode_value or None,
        image_url=image_url,
    )
    db.add(item)
    await db.flush()

    logger.info("Menu item created", item_id=item.id, owner_id=owner.id, price=price, stock=stock)
    return item


async def _get_editable_item(db: AsyncSession, item_id: uuid.UUID, actor: Account) -> MenuItem:
    result = await db.execute(
        select(MenuItem).where(MenuItem.id == item_id).with_for_update()
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise MenuItemNotFoundError(item_id)
    if actor.role != Role.ADMIN and item.owner_id != actor.id:
        raise UnauthorizedAccessError("You do not have access to this menu item")
    return item


async def update_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    actor: Account,
    changes: dict,
) -> MenuItem:
    """
    Apply `changes` (any of name, price, stock, category, barcode_value,
    image_url) to an item. Setting stock is a restock: the value replaces the
    counter outright. Price changes never affect existing orders.
    """
    item = await _get_editable_item(db, item_id, actor)

    for field in ("name", "price", "stock", "category"):
        if field in changes and changes[field] is None:
            raise InvalidInputError(f"{field} cannot be empty")

    barcode_value = changes.get("barcode_value")
    if barcode_value:
        await _ensure_barcode_free(db, barcode_value, exclude_id=item.id)

    for field in ("name", "price", "stock", "category", "barcode_value", "image_url"):
        if field in changes:
            setattr(item, field, changes[field])
    await db.flush()

    logger.info(
        "Menu item updated",
        item_id=item.id,
        actor_id=actor.id,
        fields=sorted(changes),
        price=item.price,
        stock=item.stock,
    )
    return item


async def delete_item(db: AsyncSession, item_id: uuid.UUID, actor: Account) -> None:
    item = await _get_editable_item(db, item_id, actor)
    await db.delete(item)
    await db.flush()
    logger.info("Menu item deleted", item_id=item_id, actor_id=actor.id)

"""
Notification service — best-effort messages attached to mutations.

notify() is called by the ledger and order services whenever an operation
changes another party's state. The insert runs inside a SAVEPOINT: if it
fails, only the savepoint is rolled back, the failure is logged, and the
parent operation carries on. A notification can never fail a refund, a
transfer or a pickup.
"""

import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.logging_config import get_logger
from canteen.models.notification import Notification

logger = get_logger(__name__)


async def notify(
    db: AsyncSession,
    user_id: uuid.UUID,
    category: str,
    title: str,
    message: str | None = None,
    link: str | None = None,
    meta: dict | None = None,
) -> Notification | None:
    """
    Write one notification for `user_id`. Returns None if the write failed.
    """
    try:
        async with db.begin_nested():
            notification = Notification(
                user_id=user_id,
                category=category,
                title=title,
                message=message,
                link=link,
                meta=meta,
            )
            db.add(notification)
            await db.flush()
    except SQLAlchemyError:
        logger.warning(
            "Notification dropped",
            user_id=user_id,
            category=category,
            exc_info=True,
        )
        return None
    return notification


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    """List an account's notifications, newest first."""
    query = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if unread_only:
        query = query.where(Notification.read.is_(False))

    result = await db.execute(query)
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.read.is_(False))
    )
    return result.scalar_one()


async def mark_read(
    db: AsyncSession,
    user_id: uuid.UUID,
    notification_id: uuid.UUID,
) -> bool:
    """Mark one of the account's notifications as read. False if not found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.user_id == user_id)
        .values(read=True)
    )
    return result.rowcount > 0


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.read.is_(False))
        .values(read=True)
    )
    return result.rowcount


async def clear_all(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Delete every notification of the account."""
    result = await db.execute(
        delete(Notification).where(Notification.user_id == user_id)
    )
    return result.rowcount

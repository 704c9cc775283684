"""
Notifications router — the caller's inbox.

Endpoints:
  GET    /notifications             — List (newest first) with unread count
  POST   /notifications/{id}/read   — Mark one read
  POST   /notifications/read-all    — Mark all read
  DELETE /notifications             — Clear all
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account
from canteen.exceptions import NotificationNotFoundError
from canteen.models.account import Account
from canteen.schemas.notification import NotificationListResponse, NotificationResponse
from canteen.services import notification_service

router = APIRouter()


@router.get("", response_model=NotificationListResponse, summary="List my notifications")
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    items = await notification_service.list_notifications(
        db, account.id, unread_only=unread_only, limit=limit, offset=offset
    )
    unread = await notification_service.unread_count(db, account.id)
    return NotificationListResponse(
        unread=unread,
        items=[NotificationResponse.model_validate(n) for n in items],
    )


@router.post("/read-all", summary="Mark all notifications read")
async def mark_all_read(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    updated = await notification_service.mark_all_read(db, account.id)
    return {"updated": updated}


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT, summary="Mark read")
async def mark_read(
    notification_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    if not await notification_service.mark_read(db, account.id, notification_id):
        raise NotificationNotFoundError(notification_id)


@router.delete("", summary="Clear all notifications")
async def clear_all(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    deleted = await notification_service.clear_all(db, account.id)
    return {"deleted": deleted}

"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_current_user, get_db_session
from easypark.db.models import Notification, User
from easypark.schemas.notification import NotificationList, NotificationResponse
from easypark.schemas.user import MessageResponse

router = APIRouter()

NOTIFICATION_LIMIT = 50


async def _unread_count(db: AsyncSession, user: User) -> int:
    count = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
    )
    return count or 0


@router.get("", response_model=NotificationList)
async def list_notifications(
    unread_only: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Latest notifications for the caller plus the unread count."""
    query = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc()).limit(NOTIFICATION_LIMIT)

    result = await db.execute(query)
    return NotificationList(
        items=[NotificationResponse.model_validate(item) for item in result.scalars().all()],
        unread_count=await _unread_count(db, user),
    )


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Mark one notification as read."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification with id {notification_id} not found",
        )

    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Mark every notification of the caller as read."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return MessageResponse(message=f"{result.rowcount} notifications marked as read")

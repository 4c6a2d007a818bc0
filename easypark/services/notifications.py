"""In-app notifications."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.models import Notification

logger = logging.getLogger(__name__)


async def notify(db: AsyncSession, user_id: UUID, title: str, message: str) -> Notification:
    notification = Notification(user_id=user_id, title=title, message=message, is_read=False)
    db.add(notification)
    await db.flush()
    logger.info("Notification '%s' queued for user %s", title, user_id)
    return notification

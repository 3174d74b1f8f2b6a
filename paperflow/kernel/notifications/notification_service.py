"""
Recipient-side notification operations.
"""

import uuid
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.errors import NotFoundError
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.notification import Notification


class NotificationService:
    """Read and tidy the notifications addressed to one user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> List[Notification]:
        """Newest first."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def unread_count(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
        )
        return result.scalar_one()

    async def _get_own(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        notification = await self.session.get(Notification, notification_id)
        # Another user's notification is reported as missing
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        notification = await self._get_own(user_id, notification_id)
        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            await self.session.flush()
        return notification

    async def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        notification = await self._get_own(user_id, notification_id)
        await self.session.delete(notification)
        await self.session.flush()

    async def clear_all(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            delete(Notification)
            .where(Notification.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def clear_read(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            delete(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(True))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

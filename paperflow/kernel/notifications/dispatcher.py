"""
Notification dispatcher.

Workflow and admin services hand it NotificationRequests after their own
write has committed. Each request is persisted in a session of its own and
then, where the recipient allows it, sent by email. Nothing raised while
emitting ever reaches the caller: a failed notification is logged and the
originating state change stands.
"""

import uuid
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paperflow.config import Settings
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.file_record import FileRecord
from paperflow.kernel.models.notification import Notification, NotificationType
from paperflow.kernel.models.user import User, UserRole
from paperflow.kernel.notifications.email_sender import EmailSender
from paperflow.kernel.notifications.email_templates import render_notification_email
from paperflow.logging_config import get_logger

logger = get_logger(__name__)


class NotificationRequest(BaseModel):
    """One notification to create for one recipient."""

    recipient_user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    related_file_id: Optional[uuid.UUID] = None
    action_path: Optional[str] = None


class NotificationDispatcher:
    """Best-effort delivery of in-app notifications and their emails."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        settings: Settings,
        email_sender: Optional[EmailSender] = None,
    ):
        self.session_maker = session_maker
        self.settings = settings
        self.email_sender = email_sender or EmailSender(settings)

    async def emit(self, request: NotificationRequest) -> Optional[uuid.UUID]:
        """
        Create the notification and try to email it.

        Returns the notification id, or None if it could not be stored.
        Never raises.
        """
        try:
            return await self._emit(request)
        except Exception:
            logger.warning(
                "Notification dispatch failed",
                exc_info=True,
                extra={
                    "recipient_id": str(request.recipient_user_id),
                    "file_id": str(request.related_file_id) if request.related_file_id else None,
                    "notification_type": request.type.value,
                },
            )
            return None

    async def emit_many(self, requests: Iterable[NotificationRequest]) -> List[Optional[uuid.UUID]]:
        return [await self.emit(request) for request in requests]

    async def emit_to_role(
        self,
        role: UserRole,
        type: NotificationType,
        title: str,
        message: str,
        related_file_id: Optional[uuid.UUID] = None,
        action_path: Optional[str] = None,
    ) -> int:
        """Notify every active user holding role. Returns how many were stored."""
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    select(User.id).where(User.role == role.value, User.is_active.is_(True))
                )
                recipient_ids = list(result.scalars().all())
        except Exception:
            logger.warning("Could not resolve notification recipients", exc_info=True, extra={"role": role.value})
            return 0

        stored = await self.emit_many(
            NotificationRequest(
                recipient_user_id=recipient_id,
                type=type,
                title=title,
                message=message,
                related_file_id=related_file_id,
                action_path=action_path,
            )
            for recipient_id in recipient_ids
        )
        return sum(1 for notification_id in stored if notification_id is not None)

    async def _emit(self, request: NotificationRequest) -> uuid.UUID:
        async with self.session_maker() as session:
            notification = Notification(
                user_id=request.recipient_user_id,
                type=request.type,
                title=request.title,
                message=request.message,
                file_id=request.related_file_id,
                action_path=request.action_path,
                read=False,
                email_sent=False,
                created_at=utcnow(),
            )
            session.add(notification)
            await session.commit()
            notification_id = notification.id

            recipient = await session.get(User, request.recipient_user_id)
            if recipient is None or not recipient.email or not recipient.email_notifications_enabled:
                return notification_id

            file_name = None
            if request.related_file_id is not None:
                record = await session.get(FileRecord, request.related_file_id)
                file_name = record.file_name if record else None

            email = render_notification_email(
                notification_type=request.type.value,
                title=request.title,
                message=request.message,
                recipient_name=recipient.display_name,
                base_url=self.settings.app_base_url,
                file_id=str(request.related_file_id) if request.related_file_id else None,
                file_name=file_name,
                action_path=request.action_path,
            )

            # The in-app notification is already committed; email failure
            # leaves email_sent False.
            try:
                sent = await self.email_sender.send(recipient.email, email)
            except Exception:
                logger.warning(
                    "Notification email failed",
                    exc_info=True,
                    extra={"notification_id": str(notification_id), "recipient_id": str(recipient.id)},
                )
                return notification_id

            if sent:
                notification.email_sent = True
                await session.commit()
            return notification_id

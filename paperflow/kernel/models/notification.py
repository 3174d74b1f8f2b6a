"""
In-app notification produced as a side effect of workflow events.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, generate_uuid


class NotificationType(str, Enum):
    APPROVAL = "approval"
    REJECTION = "rejection"
    REVIEW_REQUEST = "review_request"
    FEEDBACK = "feedback"
    ROLE_ASSIGNED = "role_assigned"


class Notification(Base):
    """One message for one recipient."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    type: Mapped[NotificationType] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    file_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    action_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        Index("ix_notifications_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.type} -> {self.user_id}>"

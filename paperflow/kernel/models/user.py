"""
User model for identity management.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class UserRole(str, Enum):
    """User roles in the system."""
    PENDING = "pending"
    LECTURER = "lecturer"
    HOS = "hos"
    EXAM_UNIT = "exam_unit"
    REJECTED = "rejected"


# Roles that may use the application once approved
ACTIVE_ROLES = {UserRole.LECTURER, UserRole.HOS, UserRole.EXAM_UNIT}


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        String(50),
        default=UserRole.PENDING,
        nullable=False,
        index=True,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    email_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def role_value(self) -> str:
        # role may come back as a plain str from SQLite
        return self.role.value if hasattr(self.role, "value") else str(self.role)

    def __repr__(self) -> str:
        return f"<User {self.email}>"

"""
Immutable event log for audit trail.

Every mutation of a file, a user's role or a department is appended here in
the same session as the mutation itself.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Text, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""

    # User events
    USER_REGISTERED = "user.registered"
    USER_LOGGED_IN = "user.logged_in"
    USER_ROLE_CHANGED = "user.role_changed"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"

    # Department events
    DEPARTMENT_CREATED = "department.created"
    DEPARTMENT_UPDATED = "department.updated"
    DEPARTMENT_DELETED = "department.deleted"
    HOS_ASSIGNED = "department.hos_assigned"
    COURSE_CREATED = "course.created"
    COURSE_UPDATED = "course.updated"
    COURSE_DELETED = "course.deleted"
    SUBJECT_CREATED = "subject.created"
    SUBJECT_UPDATED = "subject.updated"
    SUBJECT_DELETED = "subject.deleted"
    LECTURER_ASSIGNED = "subject.lecturer_assigned"
    LECTURER_UNASSIGNED = "subject.lecturer_unassigned"

    # File events
    FILE_UPLOADED = "file.uploaded"
    FILE_VERSION_UPLOADED = "file.version_uploaded"
    FILE_METADATA_UPDATED = "file.metadata_updated"
    FILE_EXPIRATION_SET = "file.expiration_set"
    FILE_DOWNLOADED = "file.downloaded"
    FILE_DELETED = "file.deleted"

    # Workflow events
    WORKFLOW_STATUS_CHANGED = "workflow.status_changed"


class EventLog(Base):
    """
    Immutable audit event log.

    Append-only: rows are never updated or deleted.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,  # System events may not have a user
        index=True,
    )
    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"

"""
Kernel Data Models

SQLAlchemy models for users, departments, exam files and their history.
"""

from paperflow.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow, as_utc
from paperflow.kernel.models.user import User, UserRole, ACTIVE_ROLES
from paperflow.kernel.models.department import Course, Department, Subject
from paperflow.kernel.models.file_record import (
    FileRecord,
    WorkflowStatus,
    FileCategory,
    ReviewStage,
)
from paperflow.kernel.models.file_version import FileVersion, FeedbackEntry, FeedbackAction
from paperflow.kernel.models.notification import Notification, NotificationType
from paperflow.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "as_utc",
    # User
    "User",
    "UserRole",
    "ACTIVE_ROLES",
    # Departments
    "Department",
    "Course",
    "Subject",
    # Files
    "FileRecord",
    "WorkflowStatus",
    "FileCategory",
    "ReviewStage",
    "FileVersion",
    "FeedbackEntry",
    "FeedbackAction",
    # Notifications
    "Notification",
    "NotificationType",
    # Event Log
    "EventLog",
    "EventType",
]

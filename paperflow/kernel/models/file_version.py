"""
Append-only upload history for a FileRecord, plus review feedback rows.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, Text, func, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, generate_uuid, utcnow


class FileVersion(Base):
    """Immutable record of one upload; each version has its own key."""

    __tablename__ = "file_versions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    encryption_key: Mapped[str] = mapped_column(String(64), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    uploaded_by: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    uploaded_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_file_versions_file_version", "file_id", "version", unique=True),
    )

    def __repr__(self) -> str:
        return f"<FileVersion {self.file_id} v{self.version}>"


class FeedbackAction(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class FeedbackEntry(Base):
    """Immutable record of one approve/reject action."""

    __tablename__ = "feedback"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_role: Mapped[str] = mapped_column(String(50), nullable=False)
    reviewer_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False)
    reviewer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action: Mapped[FeedbackAction] = mapped_column(String(20), nullable=False)
    file_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<FeedbackEntry {self.file_id} {self.reviewer_role} {self.action}>"

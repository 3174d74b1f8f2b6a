"""
FileRecord model - one exam document tracked through the approval workflow.

workflow_status is authoritative. Every per-stage field is declared up front
and nullable; a stage that has not happened yet simply leaves them empty.
The encryption key and storage path always belong to the latest version.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, TimestampMixin, as_utc, generate_uuid, utcnow


class WorkflowStatus(str, Enum):
    """Approval workflow states."""

    DRAFT = "DRAFT"
    PENDING_HOS_REVIEW = "PENDING_HOS_REVIEW"
    NEEDS_REVISION = "NEEDS_REVISION"
    PENDING_EXAM_UNIT = "PENDING_EXAM_UNIT"
    APPROVED = "APPROVED"


class FileCategory(str, Enum):
    QUESTION_PAPER = "question-paper"
    ANSWER_KEY = "answer-key"
    RUBRIC = "rubric"
    MARKING_SCHEME = "marking-scheme"
    MODEL_ANSWER = "model-answer"
    OTHER = "other"


class ReviewStage(str, Enum):
    """Which reviewer acted: department head or central exam unit."""

    HOS = "hos"
    EXAM_UNIT = "exam_unit"


class FileRecord(Base, TimestampMixin):
    """Logical exam document; mutated in place on every transition."""

    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    # Current (latest version) file attributes
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_type: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50),
        default=FileCategory.QUESTION_PAPER,
        nullable=False,
    )
    encryption_key: Mapped[str] = mapped_column(String(64), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    encrypted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    version_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Ownership and classification
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid(), nullable=False, index=True)
    owner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True, index=True)
    department_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    subject_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    subject_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    workflow_status: Mapped[WorkflowStatus] = mapped_column(
        String(50),
        default=WorkflowStatus.DRAFT,
        nullable=False,
    )

    # Submission
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    submitted_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # HOS review
    hos_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    hos_approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    hos_approved_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hos_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hos_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    hos_rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    hos_rejected_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hos_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Exam unit review
    exam_unit_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    exam_unit_approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    exam_unit_approved_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    exam_unit_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    exam_unit_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    exam_unit_rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    exam_unit_rejected_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    exam_unit_rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Downloads and expiry
    downloads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    download_history: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_files_department_status", "department_id", "workflow_status"),
        Index("ix_files_status", "workflow_status"),
    )

    @property
    def status_value(self) -> str:
        return self.workflow_status.value if hasattr(self.workflow_status, "value") else str(self.workflow_status)

    @property
    def active_rejection_stage(self) -> Optional[ReviewStage]:
        """The stage whose rejection put the file into NEEDS_REVISION, if any."""
        if self.status_value != WorkflowStatus.NEEDS_REVISION.value:
            return None
        hos_at = as_utc(self.hos_rejected_at)
        exam_at = as_utc(self.exam_unit_rejected_at)
        if hos_at is None and exam_at is None:
            return None
        if exam_at is None:
            return ReviewStage.HOS
        if hos_at is None or exam_at >= hos_at:
            return ReviewStage.EXAM_UNIT
        return ReviewStage.HOS

    @property
    def active_rejection_reason(self) -> Optional[str]:
        stage = self.active_rejection_stage
        if stage == ReviewStage.HOS:
            return self.hos_rejection_reason
        if stage == ReviewStage.EXAM_UNIT:
            return self.exam_unit_rejection_reason
        return None

    @property
    def active_rejected_by_name(self) -> Optional[str]:
        stage = self.active_rejection_stage
        if stage == ReviewStage.HOS:
            return self.hos_rejected_by_name
        if stage == ReviewStage.EXAM_UNIT:
            return self.exam_unit_rejected_by_name
        return None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > as_utc(self.expires_at)

    def days_until_expiration(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days left (rounded up), 0 once expired, None without expiry."""
        if self.expires_at is None:
            return None
        remaining = as_utc(self.expires_at) - (now or utcnow())
        seconds = remaining.total_seconds()
        if seconds <= 0:
            return 0
        return int(-(-seconds // 86400))

    def __repr__(self) -> str:
        return f"<FileRecord {self.file_name} v{self.version} {self.status_value}>"

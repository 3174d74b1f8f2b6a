"""
File, version and download schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class FileResponse(BaseModel):
    """FileRecord as listed in dashboards and review queues."""

    id: uuid.UUID
    file_name: str
    file_size: int
    file_type: str
    category: str
    encrypted: bool
    version: int
    version_description: Optional[str] = None
    workflow_status: str

    owner_id: uuid.UUID
    owner_name: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None
    subject_id: Optional[uuid.UUID] = None
    subject_code: Optional[str] = None
    subject_name: Optional[str] = None

    submitted_at: Optional[datetime] = None
    submitted_by: Optional[uuid.UUID] = None
    submitted_by_name: Optional[str] = None

    hos_approved_at: Optional[datetime] = None
    hos_approved_by_name: Optional[str] = None
    hos_comments: Optional[str] = None
    hos_rejected_at: Optional[datetime] = None
    hos_rejected_by_name: Optional[str] = None
    hos_rejection_reason: Optional[str] = None

    exam_unit_approved_at: Optional[datetime] = None
    exam_unit_approved_by_name: Optional[str] = None
    exam_unit_comments: Optional[str] = None
    exam_unit_rejected_at: Optional[datetime] = None
    exam_unit_rejected_by_name: Optional[str] = None
    exam_unit_rejection_reason: Optional[str] = None

    # Current rejection when NEEDS_REVISION (later of the two stages)
    active_rejection_stage: Optional[str] = None
    active_rejection_reason: Optional[str] = None
    active_rejected_by_name: Optional[str] = None

    downloads: int = 0
    last_downloaded_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FileDetailResponse(FileResponse):
    """Single file view; carries the active key and storage path."""

    encryption_key: str
    storage_path: str
    expired: bool = False
    days_remaining: Optional[int] = None


class FileVersionResponse(BaseModel):
    id: uuid.UUID
    file_id: uuid.UUID
    version: int
    file_name: str
    file_size: int
    file_type: Optional[str] = None
    storage_path: str
    uploaded_by: uuid.UUID
    uploaded_by_name: Optional[str] = None
    description: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class FileMetadataUpdate(BaseModel):
    file_name: Optional[str] = Field(None, min_length=1, max_length=500)
    category: Optional[str] = None


class ExpirationUpdate(BaseModel):
    """None clears the expiration."""

    expires_at: Optional[datetime] = None


class DownloadHistoryEntry(BaseModel):
    email: Optional[str] = None
    timestamp: str


class DownloadHistoryResponse(BaseModel):
    file_id: uuid.UUID
    downloads: int
    history: List[DownloadHistoryEntry]

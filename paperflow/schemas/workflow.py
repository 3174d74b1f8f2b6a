"""
Review action schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ApproveRequest(BaseModel):
    comments: Optional[str] = Field(None, max_length=5000)


class RejectRequest(BaseModel):
    """The service rejects a blank reason with a 400."""

    reason: str = Field("", max_length=5000)


class FeedbackResponse(BaseModel):
    id: uuid.UUID
    file_id: uuid.UUID
    reviewer_role: str
    reviewer_id: uuid.UUID
    reviewer_name: Optional[str] = None
    comments: Optional[str] = None
    action: str
    file_version: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransitionOption(BaseModel):
    action: str
    role: str


class WorkflowStateResponse(BaseModel):
    """Current status plus the actions this user may take from it."""

    file_id: uuid.UUID
    workflow_status: str
    version: int
    available: List[TransitionOption]

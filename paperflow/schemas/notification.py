"""
Notification schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    file_id: Optional[uuid.UUID] = None
    action_path: Optional[str] = None
    read: bool
    read_at: Optional[datetime] = None
    email_sent: bool
    created_at: datetime

    class Config:
        from_attributes = True

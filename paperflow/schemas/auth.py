"""
Authentication and profile schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Registration request. New accounts start pending."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=255)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """User profile response."""

    id: uuid.UUID
    email: str
    display_name: str
    role: str
    department_id: Optional[uuid.UUID] = None
    is_active: bool
    email_notifications_enabled: bool
    approved_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email_notifications_enabled: Optional[bool] = None


class TokenResponse(BaseModel):
    """Authentication token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until the token expires
    user: UserResponse

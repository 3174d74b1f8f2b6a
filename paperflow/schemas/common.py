"""
Common schema types used across the API.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response; code distinguishes failure kinds."""

    detail: str
    code: Optional[str] = None


class SuccessResponse(BaseModel):
    message: str
    data: Optional[Any] = None


class CountResponse(BaseModel):
    count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
    encryption: str = "available"

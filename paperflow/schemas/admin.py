"""
Department, course, subject and user administration schemas.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, max_length=50)


class DepartmentResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: Optional[str] = None
    hos_id: Optional[uuid.UUID] = None
    hos_name: Optional[str] = None

    class Config:
        from_attributes = True


class AssignHOSRequest(BaseModel):
    user_id: uuid.UUID


class CourseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)


class CourseUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class CourseResponse(BaseModel):
    id: uuid.UUID
    department_id: uuid.UUID
    code: str
    name: str

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    course_id: Optional[uuid.UUID] = None


class SubjectUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class SubjectResponse(BaseModel):
    id: uuid.UUID
    department_id: uuid.UUID
    course_id: Optional[uuid.UUID] = None
    code: str
    name: str
    lecturer_id: Optional[uuid.UUID] = None
    lecturer_name: Optional[str] = None

    class Config:
        from_attributes = True


class AssignLecturerRequest(BaseModel):
    lecturer_id: uuid.UUID


class RoleChangeRequest(BaseModel):
    role: str
    department_id: Optional[uuid.UUID] = None


class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    department_id: Optional[uuid.UUID] = None

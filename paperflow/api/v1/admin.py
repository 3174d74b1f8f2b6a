"""
Administration endpoints (exam unit only): departments, courses, subjects, users.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request, Response, status

from paperflow.api.deps import Departments, ExamUnitUser, Identity, MemberUser, get_client_ip
from paperflow.kernel.models.user import UserRole
from paperflow.schemas.admin import (
    AssignHOSRequest,
    AssignLecturerRequest,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    RoleChangeRequest,
    SubjectCreate,
    SubjectResponse,
    SubjectUpdate,
    UserUpdate,
)
from paperflow.schemas.auth import UserResponse

router = APIRouter()


# ----------------------------------------------------------------------
# Departments
# ----------------------------------------------------------------------

@router.post("/departments", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(data: DepartmentCreate, user: ExamUnitUser, departments: Departments):
    return await departments.create_department(data.name, user, code=data.code)


@router.get("/departments", response_model=List[DepartmentResponse])
async def list_departments(user: MemberUser, departments: Departments):
    """Visible to every approved user (upload forms pick a subject from these)."""
    return await departments.list_departments()


@router.get("/departments/{department_id}", response_model=DepartmentResponse)
async def get_department(department_id: uuid.UUID, user: MemberUser, departments: Departments):
    return await departments.get_department(department_id)


@router.patch("/departments/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    data: DepartmentUpdate,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.update_department(department_id, user, name=data.name, code=data.code)


@router.delete("/departments/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(department_id: uuid.UUID, user: ExamUnitUser, departments: Departments):
    await departments.delete_department(department_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/departments/{department_id}/hos", response_model=DepartmentResponse)
async def assign_hos(
    department_id: uuid.UUID,
    data: AssignHOSRequest,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.assign_hos(department_id, data.user_id, user)


# ----------------------------------------------------------------------
# Courses
# ----------------------------------------------------------------------

@router.post(
    "/departments/{department_id}/courses",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_course(
    department_id: uuid.UUID,
    data: CourseCreate,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.add_course(department_id, data.code, data.name, user)


@router.get("/departments/{department_id}/courses", response_model=List[CourseResponse])
async def list_courses(department_id: uuid.UUID, user: MemberUser, departments: Departments):
    return await departments.list_courses(department_id)


@router.patch("/courses/{course_id}", response_model=CourseResponse)
async def update_course(
    course_id: uuid.UUID,
    data: CourseUpdate,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.update_course(course_id, user, code=data.code, name=data.name)


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(course_id: uuid.UUID, user: ExamUnitUser, departments: Departments):
    """Also deletes the course's subjects."""
    await departments.delete_course(course_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# Subjects
# ----------------------------------------------------------------------

@router.post(
    "/departments/{department_id}/subjects",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_subject(
    department_id: uuid.UUID,
    data: SubjectCreate,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.add_subject(
        department_id, data.code, data.name, user, course_id=data.course_id
    )


@router.get("/departments/{department_id}/subjects", response_model=List[SubjectResponse])
async def list_subjects(
    department_id: uuid.UUID,
    user: MemberUser,
    departments: Departments,
    course_id: Optional[uuid.UUID] = None,
):
    return await departments.list_subjects(department_id, course_id=course_id)


@router.get("/subjects/mine", response_model=List[SubjectResponse])
async def list_my_subjects(user: MemberUser, departments: Departments):
    return await departments.list_lecturer_subjects(user.id)


@router.delete("/subjects/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subject(subject_id: uuid.UUID, user: ExamUnitUser, departments: Departments):
    await departments.delete_subject(subject_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/subjects/{subject_id}/lecturer", response_model=SubjectResponse)
async def assign_lecturer(
    subject_id: uuid.UUID,
    data: AssignLecturerRequest,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.assign_lecturer(subject_id, data.lecturer_id, user)


@router.delete("/subjects/{subject_id}/lecturer", response_model=SubjectResponse)
async def unassign_lecturer(subject_id: uuid.UUID, user: ExamUnitUser, departments: Departments):
    return await departments.unassign_lecturer(subject_id, user)


@router.patch("/subjects/{subject_id}", response_model=SubjectResponse)
async def update_subject(
    subject_id: uuid.UUID,
    data: SubjectUpdate,
    user: ExamUnitUser,
    departments: Departments,
):
    return await departments.update_subject(subject_id, user, code=data.code, name=data.name)


# ----------------------------------------------------------------------
# Users and roles
# ----------------------------------------------------------------------

@router.get("/users", response_model=List[UserResponse])
async def list_users(user: ExamUnitUser, identity: Identity, role: Optional[str] = None):
    return await identity.list_users(_parse_role(role) if role else None)


@router.get("/users/pending", response_model=List[UserResponse])
async def list_pending_users(user: ExamUnitUser, identity: Identity):
    return await identity.list_pending_users()


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def change_role(
    request: Request,
    user_id: uuid.UUID,
    data: RoleChangeRequest,
    user: ExamUnitUser,
    identity: Identity,
):
    """Approving a pending account notifies its owner."""
    return await identity.change_role(
        user_id,
        _parse_role(data.role),
        user,
        department_id=data.department_id,
        ip_address=get_client_ip(request),
    )


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: uuid.UUID,
    data: UserUpdate,
    user: ExamUnitUser,
    identity: Identity,
):
    return await identity.update_user(
        user_id,
        user,
        display_name=data.display_name,
        email=data.email,
        department_id=data.department_id,
        ip_address=get_client_ip(request),
    )


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(request: Request, user_id: uuid.UUID, user: ExamUnitUser, identity: Identity):
    """Files the user uploaded are kept."""
    await identity.delete_user(user_id, user, ip_address=get_client_ip(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _parse_role(value: str) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role: {value}",
        )

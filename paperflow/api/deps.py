"""
FastAPI dependencies for authentication, authorization, database sessions
and the per-request services.
"""

import uuid
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.context import AppContext
from paperflow.kernel.departments.department_service import DepartmentService
from paperflow.kernel.identity.identity_service import IdentityService
from paperflow.kernel.identity.jwt import JWTManager
from paperflow.kernel.models.file_record import FileRecord
from paperflow.kernel.models.user import User
from paperflow.kernel.notifications.notification_service import NotificationService
from paperflow.kernel.permissions.permission_service import AccessControl
from paperflow.orchestration.file_service import FileService
from paperflow.orchestration.workflow_service import WorkflowService


# Security scheme
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    """The AppContext built in the lifespan handler."""
    return request.app.state.context


Context = Annotated[AppContext, Depends(get_context)]


async def get_db(ctx: Context) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields database sessions."""
    async with ctx.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
) -> User:
    """Get current authenticated user or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = JWTManager().verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, uuid.UUID(payload.sub))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def require_active_member(user: CurrentUser) -> User:
    """Pending and rejected accounts may only see their own profile."""
    if not AccessControl.is_active_member(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending approval",
        )
    return user


MemberUser = Annotated[User, Depends(require_active_member)]


async def require_exam_unit(user: CurrentUser) -> User:
    if not AccessControl.is_exam_unit(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Exam unit access required",
        )
    return user


ExamUnitUser = Annotated[User, Depends(require_exam_unit)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


# Services bound to the request session

def get_access_control(db: DbSession) -> AccessControl:
    return AccessControl(db)


def get_file_service(db: DbSession, ctx: Context) -> FileService:
    return FileService(db, ctx.blob_store, ctx.encryption, ctx.settings)


def get_workflow_service(db: DbSession, ctx: Context) -> WorkflowService:
    return WorkflowService(db, ctx.dispatcher)


def get_identity_service(db: DbSession, ctx: Context) -> IdentityService:
    return IdentityService(db, ctx.dispatcher)


def get_department_service(db: DbSession) -> DepartmentService:
    return DepartmentService(db)


def get_notification_service(db: DbSession) -> NotificationService:
    return NotificationService(db)


Access = Annotated[AccessControl, Depends(get_access_control)]
Files = Annotated[FileService, Depends(get_file_service)]
Workflow = Annotated[WorkflowService, Depends(get_workflow_service)]
Identity = Annotated[IdentityService, Depends(get_identity_service)]
Departments = Annotated[DepartmentService, Depends(get_department_service)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]


async def load_viewable_file(
    file_id: uuid.UUID,
    user: User,
    files: FileService,
    access: AccessControl,
) -> FileRecord:
    """Fetch a file the user may see; 403 otherwise (404 if it does not exist)."""
    record = await files.get_file(file_id)
    if not await access.can_view(user, record):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this file",
        )
    return record

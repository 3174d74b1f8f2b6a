"""
Identity service for account registration, login and role administration.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.errors import NotFoundError, ValidationError
from paperflow.kernel.events.event_store import EventStore
from paperflow.kernel.identity.jwt import JWTManager
from paperflow.kernel.identity.password import hash_password, verify_password
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.department import Department, Subject
from paperflow.kernel.models.event_log import EventType
from paperflow.kernel.models.notification import Notification, NotificationType
from paperflow.kernel.models.user import ACTIVE_ROLES, User, UserRole
from paperflow.kernel.notifications.dispatcher import NotificationDispatcher, NotificationRequest
from paperflow.logging_config import get_logger

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class IdentityService:
    """
    Service for user identity operations.

    New accounts start as ``pending`` and can do nothing until the exam unit
    assigns them a role.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        jwt_manager: Optional[JWTManager] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.jwt_manager = jwt_manager or JWTManager()
        self.event_store = EventStore(session)

    async def register_user(
        self,
        email: str,
        password: str,
        display_name: str,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Create a pending account and tell the exam unit about it.

        Raises:
            ValidationError: email taken, password too short or name missing
        """
        email = email.lower().strip()
        display_name = (display_name or "").strip()
        if not display_name:
            raise ValidationError("Display name is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if await self.get_user_by_email(email):
            raise ValidationError("Email already registered")

        user = User(
            email=email,
            password_hash=hash_password(password),
            display_name=display_name,
            role=UserRole.PENDING,
            is_active=True,
            email_notifications_enabled=True,
        )
        self.session.add(user)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"email": user.email},
            ip_address=ip_address,
        )
        await self.session.commit()

        if self.dispatcher is not None:
            await self.dispatcher.emit_to_role(
                UserRole.EXAM_UNIT,
                type=NotificationType.REVIEW_REQUEST,
                title="New User Registration",
                message=f"{user.display_name} ({user.email}) has registered and is pending approval",
                action_path="/admin",
            )
        return user

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[tuple[User, str, datetime]]:
        """
        Check credentials and issue an access token.

        Returns:
            Tuple of (User, access_token, expires_at) if successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None

        token, expires_at = self.jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role_value,
        )
        await self.event_store.log(
            event_type=EventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"method": "password"},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return user, token, expires_at

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == email.lower().strip())
        )
        return result.scalar_one_or_none()

    async def update_profile(
        self,
        user: User,
        display_name: Optional[str] = None,
        email_notifications_enabled: Optional[bool] = None,
    ) -> User:
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise ValidationError("Display name cannot be empty")
            user.display_name = display_name
        if email_notifications_enabled is not None:
            user.email_notifications_enabled = email_notifications_enabled
        await self.session.commit()
        return user

    # ------------------------------------------------------------------
    # Role administration (exam unit)
    # ------------------------------------------------------------------

    async def list_users(self, role: Optional[UserRole] = None) -> List[User]:
        query = select(User).order_by(User.created_at.desc())
        if role is not None:
            query = query.where(User.role == role.value)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_pending_users(self) -> List[User]:
        return await self.list_users(UserRole.PENDING)

    async def update_user(
        self,
        user_id: uuid.UUID,
        actor: User,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Edit another user's name, email or department.

        Raises:
            NotFoundError: unknown user or department
            ValidationError: empty name or email already in use
        """
        user = await self._require_user(user_id)
        changes = {}
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise ValidationError("Display name cannot be empty")
            user.display_name = display_name
            changes["display_name"] = display_name
        if email is not None:
            email = email.lower().strip()
            if email != user.email:
                existing = await self.get_user_by_email(email)
                if existing is not None:
                    raise ValidationError("Email already registered")
                user.email = email
                changes["email"] = email
        if department_id is not None:
            if await self.session.get(Department, department_id) is None:
                raise NotFoundError(f"Department {department_id} not found")
            user.department_id = department_id
            changes["department_id"] = department_id

        if changes:
            await self.event_store.log(
                event_type=EventType.USER_UPDATED,
                entity_type="user",
                entity_id=user.id,
                user_id=actor.id,
                payload=changes,
                ip_address=ip_address,
            )
            await self.session.commit()
        return user

    async def delete_user(
        self,
        user_id: uuid.UUID,
        actor: User,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Remove an account. Its files stay; department headship, subject
        assignments and notifications are cleared.
        """
        if user_id == actor.id:
            raise ValidationError("You cannot delete your own account")
        user = await self._require_user(user_id)
        email = user.email

        await self.session.execute(
            update(Department)
            .where(Department.hos_id == user_id)
            .values(hos_id=None, hos_name=None, updated_at=utcnow())
        )
        await self.session.execute(
            update(Subject)
            .where(Subject.lecturer_id == user_id)
            .values(lecturer_id=None, lecturer_name=None, updated_at=utcnow())
        )
        await self.session.execute(
            delete(Notification).where(Notification.user_id == user_id)
        )
        await self.session.delete(user)
        await self.event_store.log(
            event_type=EventType.USER_DELETED,
            entity_type="user",
            entity_id=user_id,
            user_id=actor.id,
            payload={"email": email},
            ip_address=ip_address,
        )
        await self.session.commit()

    async def _require_user(self, user_id: uuid.UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def change_role(
        self,
        user_id: uuid.UUID,
        role: UserRole,
        actor: User,
        department_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Assign a role (and optionally a department) to a user.

        Approving a pending account notifies its owner.
        """
        user = await self._require_user(user_id)
        if department_id is not None and await self.session.get(Department, department_id) is None:
            raise NotFoundError(f"Department {department_id} not found")

        old_role = user.role_value
        user.role = role
        if department_id is not None:
            user.department_id = department_id
        approved = old_role == UserRole.PENDING.value and role in ACTIVE_ROLES
        if approved:
            user.approved_at = utcnow()

        await self.event_store.log(
            event_type=EventType.USER_ROLE_CHANGED,
            entity_type="user",
            entity_id=user.id,
            user_id=actor.id,
            payload={
                "from_role": old_role,
                "to_role": role.value,
                "department_id": department_id,
            },
            ip_address=ip_address,
        )
        await self.session.commit()

        if approved and self.dispatcher is not None:
            role_label = role.value.replace("_", " ").upper()
            await self.dispatcher.emit(
                NotificationRequest(
                    recipient_user_id=user.id,
                    type=NotificationType.ROLE_ASSIGNED,
                    title="Account Approved!",
                    message=f"Your account has been approved as {role_label}. You can now access all features.",
                    action_path="/dashboard",
                )
            )
        return user

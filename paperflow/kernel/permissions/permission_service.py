"""
Access control for exam files.

Resolves what the current user may do with a file before any workflow or
file operation is called. The services themselves trust their caller.
"""

import uuid
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.models.department import Department
from paperflow.kernel.models.file_record import FileRecord
from paperflow.kernel.models.user import ACTIVE_ROLES, User, UserRole
from paperflow.orchestration.state_machine import ActorRole


class AccessControl:
    """
    Role checks over users, departments and files.

    Roles:
    - lecturer: owns the files they upload
    - hos: reviews files of the department they head
    - exam_unit: reviews every department's files and administers roles
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def is_active_member(user: User) -> bool:
        """Approved account that may use the application."""
        return user.is_active and UserRole(user.role_value) in ACTIVE_ROLES

    @staticmethod
    def is_exam_unit(user: User) -> bool:
        return user.is_active and user.role_value == UserRole.EXAM_UNIT.value

    @staticmethod
    def is_owner(user: User, record: FileRecord) -> bool:
        return record.owner_id == user.id

    async def is_hos_of_department(self, user: User, department_id: Optional[uuid.UUID]) -> bool:
        """True if user holds the hos role and heads department_id."""
        if department_id is None or not user.is_active:
            return False
        if user.role_value != UserRole.HOS.value:
            return False
        result = await self.session.execute(
            select(Department.hos_id).where(Department.id == department_id)
        )
        return result.scalar_one_or_none() == user.id

    async def headed_department_id(self, user: User) -> Optional[uuid.UUID]:
        """The department user heads, if any."""
        if user.role_value != UserRole.HOS.value:
            return None
        result = await self.session.execute(
            select(Department.id).where(Department.hos_id == user.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def actor_roles(self, user: User, record: FileRecord) -> Set[ActorRole]:
        """Every workflow role user holds with respect to record."""
        roles: Set[ActorRole] = set()
        if self.is_owner(user, record):
            roles.add(ActorRole.OWNER)
        if await self.is_hos_of_department(user, record.department_id):
            roles.add(ActorRole.DEPARTMENT_HEAD)
        if self.is_exam_unit(user):
            roles.add(ActorRole.CENTRAL_UNIT)
        return roles

    async def can_view(self, user: User, record: FileRecord) -> bool:
        """Owner, head of the file's department, or exam unit."""
        return bool(await self.actor_roles(user, record))

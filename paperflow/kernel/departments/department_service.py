"""
Department, course and subject administration (exam unit only).
"""

import uuid
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.errors import NotFoundError, ValidationError
from paperflow.kernel.events.event_store import EventStore
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.department import Course, Department, Subject
from paperflow.kernel.models.event_log import EventType
from paperflow.kernel.models.user import User, UserRole


class DepartmentService:
    """CRUD over departments, courses and subjects plus HOS/lecturer assignment."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def create_department(
        self,
        name: str,
        actor: User,
        code: Optional[str] = None,
    ) -> Department:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Department name is required")
        code = (code or "").strip().upper() or None

        department = Department(name=name, code=code)
        self.session.add(department)
        await self._flush_unique("Department code already exists")

        await self.event_store.log(
            event_type=EventType.DEPARTMENT_CREATED,
            entity_type="department",
            entity_id=department.id,
            user_id=actor.id,
            payload={"name": name, "code": code},
        )
        await self.session.commit()
        return department

    async def list_departments(self) -> List[Department]:
        result = await self.session.execute(select(Department).order_by(Department.name))
        return list(result.scalars().all())

    async def get_department(self, department_id: uuid.UUID) -> Department:
        department = await self.session.get(Department, department_id)
        if department is None:
            raise NotFoundError(f"Department {department_id} not found")
        return department

    async def update_department(
        self,
        department_id: uuid.UUID,
        actor: User,
        name: Optional[str] = None,
        code: Optional[str] = None,
    ) -> Department:
        department = await self.get_department(department_id)
        changes = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Department name cannot be empty")
            department.name = name
            changes["name"] = name
        if code is not None:
            department.code = code.strip().upper() or None
            changes["code"] = department.code

        if changes:
            await self._flush_unique("Department code already exists")
            await self.event_store.log(
                event_type=EventType.DEPARTMENT_UPDATED,
                entity_type="department",
                entity_id=department.id,
                user_id=actor.id,
                payload=changes,
            )
            await self.session.commit()
        return department

    async def delete_department(self, department_id: uuid.UUID, actor: User) -> None:
        """Delete a department with its courses and subjects; its users are detached."""
        department = await self.get_department(department_id)
        await self.session.execute(
            update(User)
            .where(User.department_id == department_id)
            .values(department_id=None, updated_at=utcnow())
        )
        await self.session.execute(
            delete(Subject).where(Subject.department_id == department_id)
        )
        await self.session.execute(
            delete(Course).where(Course.department_id == department_id)
        )
        await self.session.delete(department)
        await self.event_store.log(
            event_type=EventType.DEPARTMENT_DELETED,
            entity_type="department",
            entity_id=department_id,
            user_id=actor.id,
            payload={"name": department.name},
        )
        await self.session.commit()

    async def assign_hos(
        self,
        department_id: uuid.UUID,
        hos_user_id: uuid.UUID,
        actor: User,
    ) -> Department:
        """Make a user head of a department; the user's role becomes hos."""
        department = await self.get_department(department_id)
        user = await self._get_user(hos_user_id)
        if user.role_value in (UserRole.PENDING.value, UserRole.REJECTED.value):
            raise ValidationError("Only approved users can be assigned as HOS")

        department.hos_id = user.id
        department.hos_name = user.display_name
        user.role = UserRole.HOS
        user.department_id = department.id

        await self.event_store.log(
            event_type=EventType.HOS_ASSIGNED,
            entity_type="department",
            entity_id=department.id,
            user_id=actor.id,
            payload={"hos_id": user.id, "hos_name": user.display_name},
        )
        await self.session.commit()
        return department

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    async def add_course(
        self,
        department_id: uuid.UUID,
        code: str,
        name: str,
        actor: User,
    ) -> Course:
        await self.get_department(department_id)
        code, name = _clean_code_and_name(code, name, "Course")

        course = Course(department_id=department_id, code=code, name=name)
        self.session.add(course)
        await self._flush_unique(f"Course {code} already exists in this department")

        await self.event_store.log(
            event_type=EventType.COURSE_CREATED,
            entity_type="course",
            entity_id=course.id,
            user_id=actor.id,
            payload={"department_id": department_id, "code": code, "name": name},
        )
        await self.session.commit()
        return course

    async def list_courses(self, department_id: uuid.UUID) -> List[Course]:
        await self.get_department(department_id)
        result = await self.session.execute(
            select(Course).where(Course.department_id == department_id).order_by(Course.code)
        )
        return list(result.scalars().all())

    async def get_course(self, course_id: uuid.UUID) -> Course:
        course = await self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found")
        return course

    async def update_course(
        self,
        course_id: uuid.UUID,
        actor: User,
        code: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Course:
        course = await self.get_course(course_id)
        changes = _apply_code_and_name(course, code, name, "Course")
        if changes:
            await self._flush_unique("Course code already exists in this department")
            await self.event_store.log(
                event_type=EventType.COURSE_UPDATED,
                entity_type="course",
                entity_id=course.id,
                user_id=actor.id,
                payload=changes,
            )
            await self.session.commit()
        return course

    async def delete_course(self, course_id: uuid.UUID, actor: User) -> None:
        """Delete a course and every subject under it."""
        course = await self.get_course(course_id)
        await self.session.execute(delete(Subject).where(Subject.course_id == course_id))
        await self.session.delete(course)
        await self.event_store.log(
            event_type=EventType.COURSE_DELETED,
            entity_type="course",
            entity_id=course_id,
            user_id=actor.id,
            payload={"code": course.code},
        )
        await self.session.commit()

    # ------------------------------------------------------------------
    # Subjects
    # ------------------------------------------------------------------

    async def add_subject(
        self,
        department_id: uuid.UUID,
        code: str,
        name: str,
        actor: User,
        course_id: Optional[uuid.UUID] = None,
    ) -> Subject:
        """Add a subject to a department, optionally under one of its courses."""
        await self.get_department(department_id)
        if course_id is not None:
            course = await self.get_course(course_id)
            if course.department_id != department_id:
                raise ValidationError("Course belongs to another department")
        code, name = _clean_code_and_name(code, name, "Subject")

        subject = Subject(department_id=department_id, course_id=course_id, code=code, name=name)
        self.session.add(subject)
        await self._flush_unique(f"Subject {code} already exists in this department")

        await self.event_store.log(
            event_type=EventType.SUBJECT_CREATED,
            entity_type="subject",
            entity_id=subject.id,
            user_id=actor.id,
            payload={"department_id": department_id, "course_id": course_id, "code": code, "name": name},
        )
        await self.session.commit()
        return subject

    async def list_subjects(
        self,
        department_id: uuid.UUID,
        course_id: Optional[uuid.UUID] = None,
    ) -> List[Subject]:
        await self.get_department(department_id)
        query = select(Subject).where(Subject.department_id == department_id)
        if course_id is not None:
            query = query.where(Subject.course_id == course_id)
        result = await self.session.execute(query.order_by(Subject.code))
        return list(result.scalars().all())

    async def update_subject(
        self,
        subject_id: uuid.UUID,
        actor: User,
        code: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Subject:
        subject = await self.get_subject(subject_id)
        changes = _apply_code_and_name(subject, code, name, "Subject")
        if changes:
            await self._flush_unique("Subject code already exists in this department")
            await self.event_store.log(
                event_type=EventType.SUBJECT_UPDATED,
                entity_type="subject",
                entity_id=subject.id,
                user_id=actor.id,
                payload=changes,
            )
            await self.session.commit()
        return subject

    async def list_lecturer_subjects(self, lecturer_id: uuid.UUID) -> List[Subject]:
        result = await self.session.execute(
            select(Subject).where(Subject.lecturer_id == lecturer_id).order_by(Subject.code)
        )
        return list(result.scalars().all())

    async def get_subject(self, subject_id: uuid.UUID) -> Subject:
        subject = await self.session.get(Subject, subject_id)
        if subject is None:
            raise NotFoundError(f"Subject {subject_id} not found")
        return subject

    async def delete_subject(self, subject_id: uuid.UUID, actor: User) -> None:
        subject = await self.get_subject(subject_id)
        await self.session.delete(subject)
        await self.event_store.log(
            event_type=EventType.SUBJECT_DELETED,
            entity_type="subject",
            entity_id=subject_id,
            user_id=actor.id,
            payload={"code": subject.code},
        )
        await self.session.commit()

    async def assign_lecturer(
        self,
        subject_id: uuid.UUID,
        lecturer_id: uuid.UUID,
        actor: User,
    ) -> Subject:
        """Assign a lecturer to a subject; the lecturer joins its department."""
        subject = await self.get_subject(subject_id)
        lecturer = await self._get_user(lecturer_id)
        if lecturer.role_value != UserRole.LECTURER.value:
            raise ValidationError("Only lecturers can be assigned to subjects")

        subject.lecturer_id = lecturer.id
        subject.lecturer_name = lecturer.display_name
        lecturer.department_id = subject.department_id

        await self.event_store.log(
            event_type=EventType.LECTURER_ASSIGNED,
            entity_type="subject",
            entity_id=subject.id,
            user_id=actor.id,
            payload={"lecturer_id": lecturer.id},
        )
        await self.session.commit()
        return subject

    async def unassign_lecturer(self, subject_id: uuid.UUID, actor: User) -> Subject:
        """Clear a subject's lecturer. The lecturer keeps their department."""
        subject = await self.get_subject(subject_id)
        previous = subject.lecturer_id
        if previous is None:
            return subject

        subject.lecturer_id = None
        subject.lecturer_name = None
        await self.event_store.log(
            event_type=EventType.LECTURER_UNASSIGNED,
            entity_type="subject",
            entity_id=subject.id,
            user_id=actor.id,
            payload={"lecturer_id": previous},
        )
        await self.session.commit()
        return subject

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _flush_unique(self, message: str) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ValidationError(message) from e


def _clean_code_and_name(code: Optional[str], name: Optional[str], label: str) -> Tuple[str, str]:
    code = (code or "").strip().upper()
    name = (name or "").strip()
    if not code or not name:
        raise ValidationError(f"{label} code and name are required")
    return code, name


def _apply_code_and_name(
    target: Union[Course, Subject],
    code: Optional[str],
    name: Optional[str],
    label: str,
) -> Dict[str, str]:
    changes = {}
    if code is not None:
        code = code.strip().upper()
        if not code:
            raise ValidationError(f"{label} code cannot be empty")
        target.code = code
        changes["code"] = code
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError(f"{label} name cannot be empty")
        target.name = name
        changes["name"] = name
    return changes

"""Integration tests for account, role and department administration."""

import uuid

import pytest
from sqlalchemy import select

from paperflow.kernel.departments.department_service import DepartmentService
from paperflow.kernel.errors import NotFoundError, ValidationError
from paperflow.kernel.identity.identity_service import IdentityService
from paperflow.kernel.models.event_log import EventLog, EventType
from paperflow.kernel.models.notification import Notification, NotificationType
from paperflow.kernel.models.user import User, UserRole
from paperflow.kernel.notifications.dispatcher import NotificationRequest


@pytest.fixture
def identity(db_session, context) -> IdentityService:
    return IdentityService(db_session, context.dispatcher)


@pytest.fixture
def departments(db_session) -> DepartmentService:
    return DepartmentService(db_session)


async def _titles_for(context, user_id):
    async with context.session_maker() as session:
        result = await session.execute(
            select(Notification.title).where(Notification.user_id == user_id)
        )
        return list(result.scalars().all())


class TestRegistration:
    async def test_new_account_is_pending(self, identity, exam_unit_user, context):
        user = await identity.register_user("  New.Lecturer@Example.com ", "secret123", "New Lecturer")
        assert user.email == "new.lecturer@example.com"
        assert user.role_value == UserRole.PENDING.value
        assert await _titles_for(context, exam_unit_user.id) == ["New User Registration"]

    async def test_duplicate_email(self, identity):
        await identity.register_user("dup@example.com", "secret123", "First")
        with pytest.raises(ValidationError):
            await identity.register_user("DUP@example.com", "secret123", "Second")

    @pytest.mark.parametrize("password,name", [("short", "Name"), ("secret123", "   ")])
    async def test_invalid_registration(self, identity, password, name):
        with pytest.raises(ValidationError):
            await identity.register_user("someone@example.com", password, name)

    async def test_authenticate(self, identity):
        await identity.register_user("login@example.com", "secret123", "Login User")
        result = await identity.authenticate("login@example.com", "secret123")
        assert result is not None
        user, token, expires_at = result
        assert identity.jwt_manager.verify_access_token(token).sub == str(user.id)

        assert await identity.authenticate("login@example.com", "wrong") is None
        assert await identity.authenticate("nobody@example.com", "secret123") is None


class TestRoleChanges:
    async def test_approving_pending_account(self, identity, exam_unit_user, department, context, db_session):
        user = await identity.register_user("pending@example.com", "secret123", "Pending Person")

        user = await identity.change_role(user.id, UserRole.LECTURER, exam_unit_user, department_id=department.id)
        assert user.role_value == UserRole.LECTURER.value
        assert user.department_id == department.id
        assert user.approved_at is not None
        assert await _titles_for(context, user.id) == ["Account Approved!"]

        result = await db_session.execute(
            select(EventLog).where(EventLog.event_type == EventType.USER_ROLE_CHANGED.value)
        )
        event = result.scalar_one()
        assert event.payload["from_role"] == "pending"
        assert event.payload["to_role"] == "lecturer"

    async def test_role_change_between_active_roles_is_silent(self, identity, lecturer, exam_unit_user, context):
        await identity.change_role(lecturer.id, UserRole.EXAM_UNIT, exam_unit_user)
        assert await _titles_for(context, lecturer.id) == []

    async def test_unknown_department(self, identity, lecturer, exam_unit_user):
        with pytest.raises(NotFoundError):
            await identity.change_role(lecturer.id, UserRole.LECTURER, exam_unit_user, department_id=uuid.uuid4())

    async def test_list_pending(self, identity, make_user):
        pending = await make_user(UserRole.PENDING)
        await make_user(UserRole.LECTURER)
        assert [u.id for u in await identity.list_pending_users()] == [pending.id]


class TestDepartments:
    async def test_create_and_duplicate_code(self, departments, exam_unit_user):
        dept = await departments.create_department("Mathematics", exam_unit_user, code="math")
        assert dept.code == "MATH"
        with pytest.raises(ValidationError):
            await departments.create_department("Applied Mathematics", exam_unit_user, code="MATH")

    async def test_assign_hos(self, departments, department, make_user, exam_unit_user):
        candidate = await make_user(UserRole.LECTURER)
        dept = await departments.assign_hos(department.id, candidate.id, exam_unit_user)
        assert dept.hos_id == candidate.id
        assert candidate.role_value == UserRole.HOS.value
        assert candidate.department_id == department.id

    async def test_pending_user_cannot_be_hos(self, departments, department, make_user, exam_unit_user):
        pending = await make_user(UserRole.PENDING)
        with pytest.raises(ValidationError):
            await departments.assign_hos(department.id, pending.id, exam_unit_user)

    async def test_subjects_and_lecturers(self, departments, department, make_user, exam_unit_user):
        lecturer = await make_user(UserRole.LECTURER)
        subject = await departments.add_subject(department.id, "cs201", "Data Structures", exam_unit_user)
        assert subject.code == "CS201"

        subject = await departments.assign_lecturer(subject.id, lecturer.id, exam_unit_user)
        assert subject.lecturer_id == lecturer.id
        assert lecturer.department_id == department.id
        assert [s.id for s in await departments.list_lecturer_subjects(lecturer.id)] == [subject.id]

        with pytest.raises(ValidationError):
            await departments.assign_lecturer(subject.id, exam_unit_user.id, exam_unit_user)

        # the failed flush rolls the session back, so this goes last
        with pytest.raises(ValidationError):
            await departments.add_subject(department.id, "CS201", "Duplicate", exam_unit_user)

    async def test_update_subject_and_unassign_lecturer(self, departments, department, make_user, exam_unit_user):
        lecturer = await make_user(UserRole.LECTURER)
        subject = await departments.add_subject(department.id, "CS202", "Algorithms", exam_unit_user)
        await departments.assign_lecturer(subject.id, lecturer.id, exam_unit_user)

        subject = await departments.update_subject(subject.id, exam_unit_user, code="cs212", name=" Algorithms II ")
        assert (subject.code, subject.name) == ("CS212", "Algorithms II")

        subject = await departments.unassign_lecturer(subject.id, exam_unit_user)
        assert subject.lecturer_id is None
        assert subject.lecturer_name is None
        assert await departments.list_lecturer_subjects(lecturer.id) == []
        assert lecturer.department_id == department.id

        with pytest.raises(ValidationError):
            await departments.update_subject(subject.id, exam_unit_user, name="  ")

    async def test_delete_department_detaches_users(self, departments, department, lecturer, exam_unit_user, db_session):
        await departments.add_subject(department.id, "CS301", "Compilers", exam_unit_user)
        await departments.delete_department(department.id, exam_unit_user)

        with pytest.raises(NotFoundError):
            await departments.get_department(department.id)
        result = await db_session.execute(select(User.department_id).where(User.id == lecturer.id))
        assert result.scalar_one() is None


class TestCourses:
    async def test_subjects_grouped_under_courses(self, departments, department, exam_unit_user):
        course = await departments.add_course(department.id, "bsc-cs", "BSc Computer Science", exam_unit_user)
        assert course.code == "BSC-CS"

        in_course = await departments.add_subject(
            department.id, "CS110", "Discrete Maths", exam_unit_user, course_id=course.id
        )
        loose = await departments.add_subject(department.id, "CS120", "Study Skills", exam_unit_user)
        assert in_course.course_id == course.id
        assert loose.course_id is None

        assert [s.id for s in await departments.list_subjects(department.id, course_id=course.id)] == [in_course.id]
        assert {s.id for s in await departments.list_subjects(department.id)} == {in_course.id, loose.id}
        assert [c.id for c in await departments.list_courses(department.id)] == [course.id]

    async def test_update_course(self, departments, department, exam_unit_user, db_session):
        course = await departments.add_course(department.id, "MSC", "MSc", exam_unit_user)
        course = await departments.update_course(course.id, exam_unit_user, name="MSc Data Science")
        assert course.name == "MSc Data Science"
        assert course.code == "MSC"

        result = await db_session.execute(
            select(EventLog).where(EventLog.event_type == EventType.COURSE_UPDATED.value)
        )
        assert result.scalar_one().payload == {"name": "MSc Data Science"}

    async def test_delete_course_removes_its_subjects(self, departments, department, exam_unit_user):
        course = await departments.add_course(department.id, "DIP", "Diploma", exam_unit_user)
        subject = await departments.add_subject(department.id, "DP100", "Basics", exam_unit_user, course_id=course.id)
        kept = await departments.add_subject(department.id, "CS130", "Ethics", exam_unit_user)

        await departments.delete_course(course.id, exam_unit_user)

        with pytest.raises(NotFoundError):
            await departments.get_course(course.id)
        with pytest.raises(NotFoundError):
            await departments.get_subject(subject.id)
        assert (await departments.get_subject(kept.id)).id == kept.id

    async def test_course_from_another_department(self, departments, department, exam_unit_user):
        other = await departments.create_department("Physics", exam_unit_user, code="PHY")
        course = await departments.add_course(other.id, "BSC-PHY", "BSc Physics", exam_unit_user)
        with pytest.raises(ValidationError):
            await departments.add_subject(department.id, "CS140", "Optics", exam_unit_user, course_id=course.id)
        with pytest.raises(NotFoundError):
            await departments.add_course(uuid.uuid4(), "X", "Nowhere", exam_unit_user)

        # the failed flush rolls the session back, so this goes last
        with pytest.raises(ValidationError):
            await departments.add_course(other.id, "bsc-phy", "Duplicate", exam_unit_user)


class TestUserAdministration:
    async def test_update_user(self, identity, make_user, department, exam_unit_user):
        user = await make_user(UserRole.LECTURER)
        user = await identity.update_user(
            user.id,
            exam_unit_user,
            display_name=" Renamed ",
            email="Renamed@Example.com",
            department_id=department.id,
        )
        assert user.display_name == "Renamed"
        assert user.email == "renamed@example.com"
        assert user.department_id == department.id

        with pytest.raises(ValidationError):
            await identity.update_user(user.id, exam_unit_user, email=exam_unit_user.email)
        with pytest.raises(NotFoundError):
            await identity.update_user(user.id, exam_unit_user, department_id=uuid.uuid4())
        with pytest.raises(NotFoundError):
            await identity.update_user(uuid.uuid4(), exam_unit_user, display_name="Ghost")

    async def test_delete_user_clears_assignments(
        self, identity, departments, department, hos_user, lecturer, subject, exam_unit_user, context, db_session
    ):
        await context.dispatcher.emit(
            NotificationRequest(
                recipient_user_id=hos_user.id,
                type=NotificationType.FEEDBACK,
                title="Hello",
                message="Hello",
            )
        )
        department_id, subject_id = department.id, subject.id
        hos_id, lecturer_id = hos_user.id, lecturer.id

        await identity.delete_user(hos_id, exam_unit_user)
        await identity.delete_user(lecturer_id, exam_unit_user)

        assert await identity.get_user_by_id(hos_id) is None
        dept = await departments.get_department(department_id)
        assert dept.hos_id is None
        assert dept.hos_name is None
        assert (await departments.get_subject(subject_id)).lecturer_id is None
        assert await _titles_for(context, hos_id) == []

        result = await db_session.execute(
            select(EventLog).where(EventLog.event_type == EventType.USER_DELETED.value)
        )
        assert len(result.scalars().all()) == 2

    async def test_cannot_delete_self_or_unknown(self, identity, exam_unit_user):
        with pytest.raises(ValidationError):
            await identity.delete_user(exam_unit_user.id, exam_unit_user)
        with pytest.raises(NotFoundError):
            await identity.delete_user(uuid.uuid4(), exam_unit_user)

"""
Pytest fixtures for paperflow tests.

Every test gets its own file-based SQLite database and local blob directory
under tmp_path, so app sessions and the notification dispatcher share one
database without touching anything outside the test.
"""

import uuid
from typing import AsyncGenerator, Callable, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.config import Settings
from paperflow.context import AppContext, build_context
from paperflow.database import init_db
from paperflow.kernel.identity.jwt import JWTManager
from paperflow.kernel.identity.password import PasswordHasher
from paperflow.kernel.models.department import Department, Subject
from paperflow.kernel.models.user import User, UserRole
from paperflow.kernel.notifications.dispatcher import NotificationDispatcher
from paperflow.kernel.notifications.email_sender import EmailSender
from paperflow.kernel.notifications.email_templates import RenderedEmail
from paperflow.kernel.storage.blob_store import LocalBlobStore


TEST_PASSWORD = "SecurePass123"
# Low cost factor keeps fixture users fast; verify() reads rounds from the hash
TEST_PASSWORD_HASH = PasswordHasher(rounds=4).hash(TEST_PASSWORD)


class RecordingEmailSender(EmailSender):
    """Collects emails instead of delivering them."""

    def __init__(self, settings: Settings, fail: bool = False):
        super().__init__(settings)
        self.sent: List[Tuple[str, RenderedEmail]] = []
        self.fail = fail

    async def send(self, to_email: str, email: RenderedEmail) -> bool:
        if self.fail:
            raise RuntimeError("mail relay unreachable")
        self.sent.append((to_email, email))
        return True


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at per-test storage."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'paperflow.db'}",
        storage_backend="local",
        local_storage_path=str(tmp_path / "blobs"),
        email_enabled=False,
        email_function_url="",
        max_upload_size=1024 * 1024,
        download_history_limit=5,
        app_base_url="http://portal.test",
    )


@pytest.fixture
def email_sender(settings: Settings) -> RecordingEmailSender:
    return RecordingEmailSender(settings)


@pytest_asyncio.fixture
async def context(settings: Settings, email_sender: RecordingEmailSender) -> AsyncGenerator[AppContext, None]:
    """AppContext with tables created and a local blob store."""
    ctx = build_context(
        settings,
        blob_store=LocalBlobStore(settings.local_storage_path),
        email_sender=email_sender,
    )
    await init_db(ctx.engine)
    yield ctx
    await ctx.close()


@pytest.fixture
def failing_dispatcher(context: AppContext) -> NotificationDispatcher:
    """Dispatcher whose email channel always raises."""
    return NotificationDispatcher(
        context.session_maker,
        context.settings,
        email_sender=RecordingEmailSender(context.settings, fail=True),
    )


@pytest_asyncio.fixture
async def db_session(context: AppContext) -> AsyncGenerator[AsyncSession, None]:
    async with context.session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory for committed users."""

    async def _make(
        role: UserRole = UserRole.LECTURER,
        department_id: Optional[uuid.UUID] = None,
        name: Optional[str] = None,
        email_notifications_enabled: bool = True,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=f"{role.value}-{suffix}@example.com",
            password_hash=TEST_PASSWORD_HASH,
            display_name=name or f"{role.value.title()} {suffix}",
            role=role,
            department_id=department_id,
            is_active=True,
            email_notifications_enabled=email_notifications_enabled,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def department(db_session: AsyncSession) -> Department:
    department = Department(name="Computer Science", code="CS")
    db_session.add(department)
    await db_session.commit()
    return department


@pytest_asyncio.fixture
async def hos_user(db_session: AsyncSession, department: Department, make_user) -> User:
    """Head of the test department."""
    user = await make_user(UserRole.HOS, department_id=department.id, name="Dr. Head")
    department.hos_id = user.id
    department.hos_name = user.display_name
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def lecturer(department: Department, make_user) -> User:
    return await make_user(UserRole.LECTURER, department_id=department.id, name="Lee Lecturer")


@pytest_asyncio.fixture
async def exam_unit_user(make_user) -> User:
    return await make_user(UserRole.EXAM_UNIT, name="Exam Officer")


@pytest_asyncio.fixture
async def subject(db_session: AsyncSession, department: Department, lecturer: User) -> Subject:
    subject = Subject(
        department_id=department.id,
        code="CS101",
        name="Intro to Programming",
        lecturer_id=lecturer.id,
        lecturer_name=lecturer.display_name,
    )
    db_session.add(subject)
    await db_session.commit()
    return subject


@pytest.fixture
def jwt_manager() -> JWTManager:
    """Uses the application's secret so the API accepts the tokens."""
    return JWTManager()


@pytest.fixture
def auth_headers(jwt_manager: JWTManager) -> Callable[[User], dict]:
    def _headers(user: User) -> dict:
        token, _ = jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role_value,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(context: AppContext) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the test context."""
    from paperflow.main import app

    app.state.context = context
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.state.context = None

"""
Application context - the collaborators shared by every request.

Built once at startup (see paperflow.main lifespan) and handed to
endpoints through FastAPI dependencies. Nothing here is a module global.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from paperflow.config import Settings
from paperflow.database import create_engine_for_url, create_session_maker
from paperflow.engines.encryption.encryption_engine import EncryptionEngine
from paperflow.kernel.notifications.dispatcher import NotificationDispatcher
from paperflow.kernel.notifications.email_sender import EmailSender
from paperflow.kernel.storage.blob_store import BlobStore, create_blob_store


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    blob_store: BlobStore
    encryption: EncryptionEngine
    dispatcher: NotificationDispatcher

    async def close(self) -> None:
        await self.engine.dispose()


def build_context(
    settings: Settings,
    blob_store: Optional[BlobStore] = None,
    email_sender: Optional[EmailSender] = None,
) -> AppContext:
    """Wire the collaborators from settings; tests may pass their own store or sender."""
    engine = create_engine_for_url(settings.database_url, echo=settings.debug)
    session_maker = create_session_maker(engine)
    return AppContext(
        settings=settings,
        engine=engine,
        session_maker=session_maker,
        blob_store=blob_store or create_blob_store(settings),
        encryption=EncryptionEngine(),
        dispatcher=NotificationDispatcher(
            session_maker,
            settings,
            email_sender=email_sender or EmailSender(settings),
        ),
    )

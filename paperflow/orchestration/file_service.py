"""
File service - encrypted upload, versioning, download and queries.

Plaintext never reaches the blob store: every upload is encrypted with a
freshly generated key, and the key is stored on the FileRecord and its
FileVersion row. The record always carries the latest version's key and
storage path.
"""

import asyncio
import uuid
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.config import Settings
from paperflow.engines.encryption.encryption_engine import EncryptedPayload, EncryptionEngine
from paperflow.kernel.errors import (
    DecryptionError,
    EncryptionError,
    FileExpiredError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from paperflow.kernel.events.event_store import EventStore
from paperflow.kernel.models.base import as_utc, generate_uuid, utcnow
from paperflow.kernel.models.department import Department, Subject
from paperflow.kernel.models.event_log import EventType
from paperflow.kernel.models.file_record import FileCategory, FileRecord, WorkflowStatus
from paperflow.kernel.models.file_version import FeedbackEntry, FileVersion
from paperflow.kernel.models.user import User
from paperflow.kernel.storage.blob_store import BlobStore, build_blob_path
from paperflow.logging_config import get_logger
from paperflow.orchestration.state_machine import ActorRole, WorkflowAction, require_transition

logger = get_logger(__name__)

INITIAL_VERSION_DESCRIPTION = "Initial version"

# Sort order of the review overviews
HOS_OVERVIEW_ORDER = (
    WorkflowStatus.PENDING_HOS_REVIEW,
    WorkflowStatus.PENDING_EXAM_UNIT,
    WorkflowStatus.NEEDS_REVISION,
    WorkflowStatus.APPROVED,
)
EXAM_UNIT_OVERVIEW_ORDER = (
    WorkflowStatus.PENDING_EXAM_UNIT,
    WorkflowStatus.NEEDS_REVISION,
    WorkflowStatus.APPROVED,
)


class DownloadResult(BaseModel):
    """Decrypted content of one file version."""

    file_id: uuid.UUID
    file_name: str
    content_type: str
    version: int
    content: bytes


class FileService:
    """Owner-side file operations and the review queues."""

    def __init__(
        self,
        session: AsyncSession,
        blob_store: BlobStore,
        encryption: EncryptionEngine,
        settings: Settings,
    ):
        self.session = session
        self.blob_store = blob_store
        self.encryption = encryption
        self.settings = settings
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(
        self,
        owner: User,
        file_name: str,
        content: bytes,
        content_type: str,
        category: str = FileCategory.QUESTION_PAPER.value,
        subject_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """
        Encrypt and store a new file as version 1 in DRAFT.

        Raises:
            ValidationError: empty, oversized or unsupported content, bad category
            NotFoundError: subject_id does not exist
            EncryptionError: encryption unavailable or failed
            StorageError: blob store rejected the ciphertext
        """
        file_name = self._validate_content(file_name, content, content_type)
        category_value = _parse_category(category)
        subject, department = await self._classification(owner, subject_id)

        file_id = generate_uuid()
        payload = await self._encrypt(content)
        now = utcnow()
        storage_path = build_blob_path(owner.id, file_id, file_name)
        await self.blob_store.put(
            storage_path,
            payload.to_blob(),
            metadata=_blob_metadata(file_name, now),
        )

        record = FileRecord(
            id=file_id,
            file_name=file_name,
            file_size=len(content),
            file_type=content_type,
            category=category_value,
            encryption_key=payload.key,
            storage_path=storage_path,
            encrypted=True,
            version=1,
            version_description=INITIAL_VERSION_DESCRIPTION,
            owner_id=owner.id,
            owner_name=owner.display_name,
            department_id=department.id if department else None,
            department_name=department.name if department else None,
            subject_id=subject.id if subject else None,
            subject_code=subject.code if subject else None,
            subject_name=subject.name if subject else None,
            workflow_status=WorkflowStatus.DRAFT,
            downloads=0,
            download_history=[],
        )
        self.session.add(record)
        self.session.add(
            FileVersion(
                file_id=file_id,
                version=1,
                encryption_key=payload.key,
                storage_path=storage_path,
                file_name=file_name,
                file_size=len(content),
                file_type=content_type,
                uploaded_by=owner.id,
                uploaded_by_name=owner.display_name,
                description=INITIAL_VERSION_DESCRIPTION,
                uploaded_at=now,
            )
        )
        await self.event_store.log(
            event_type=EventType.FILE_UPLOADED,
            entity_type="file",
            entity_id=file_id,
            user_id=owner.id,
            payload={
                "file_name": file_name,
                "file_size": len(content),
                "category": category_value,
                "department_id": record.department_id,
            },
            ip_address=ip_address,
        )
        await self._commit_or_discard_blob(storage_path)

        logger.info(
            "File uploaded",
            extra={"file_id": str(file_id), "owner_id": str(owner.id), "file_size": len(content)},
        )
        return record

    async def upload_new_version(
        self,
        file_id: uuid.UUID,
        actor: User,
        file_name: str,
        content: bytes,
        content_type: str,
        description: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """
        Replace the active content with a new encrypted version.

        Legal from DRAFT or NEEDS_REVISION; always lands in DRAFT. Review
        fields of earlier rounds are kept for history.
        """
        record = await self.get_file(file_id)
        from_status = record.status_value
        target = require_transition(from_status, WorkflowAction.UPLOAD_NEW_VERSION, ActorRole.OWNER)
        file_name = self._validate_content(file_name, content, content_type)
        description = (description or "").strip() or None

        new_version = await self._next_version_number(record)
        payload = await self._encrypt(content)
        now = utcnow()
        storage_path = build_blob_path(record.owner_id, record.id, file_name, new_version)
        await self.blob_store.put(
            storage_path,
            payload.to_blob(),
            metadata=_blob_metadata(file_name, now, version=new_version),
        )

        record.version = new_version
        record.encryption_key = payload.key
        record.storage_path = storage_path
        record.file_name = file_name
        record.file_size = len(content)
        record.file_type = content_type
        record.version_description = description
        record.workflow_status = target

        self.session.add(
            FileVersion(
                file_id=record.id,
                version=new_version,
                encryption_key=payload.key,
                storage_path=storage_path,
                file_name=file_name,
                file_size=len(content),
                file_type=content_type,
                uploaded_by=actor.id,
                uploaded_by_name=actor.display_name,
                description=description,
                uploaded_at=now,
            )
        )
        await self.event_store.log(
            event_type=EventType.FILE_VERSION_UPLOADED,
            entity_type="file",
            entity_id=record.id,
            user_id=actor.id,
            payload={
                "version": new_version,
                "from_status": from_status,
                "to_status": record.status_value,
                "file_name": file_name,
            },
            ip_address=ip_address,
        )
        await self._commit_or_discard_blob(storage_path)
        return record

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def download(
        self,
        file_id: uuid.UUID,
        user: User,
        version: Optional[int] = None,
        ip_address: Optional[str] = None,
    ) -> DownloadResult:
        """
        Fetch and decrypt the latest (or a given) version.

        Raises:
            NotFoundError: unknown file, version or missing blob
            FileExpiredError: the file is past its expiration
            DecryptionError: empty ciphertext, wrong key, tampering or empty result
            StorageError: the blob store could not be reached
        """
        record = await self.get_file(file_id)
        if record.is_expired():
            raise FileExpiredError("This file has expired and is no longer available")

        key, storage_path, file_name, content_type, version_number = (
            record.encryption_key,
            record.storage_path,
            record.file_name,
            record.file_type,
            record.version,
        )
        if version is not None and version != record.version:
            file_version = await self.get_version(file_id, version)
            key, storage_path, file_name, version_number = (
                file_version.encryption_key,
                file_version.storage_path,
                file_version.file_name,
                file_version.version,
            )
            content_type = file_version.file_type or record.file_type

        ciphertext = await self.blob_store.get(storage_path)
        if not ciphertext:
            raise DecryptionError("Downloaded file is empty")

        plaintext = await asyncio.to_thread(self.encryption.decrypt, ciphertext, key)
        if not plaintext:
            raise DecryptionError("Decryption resulted in empty file")

        await self._record_download(record, user, version_number, ip_address)

        return DownloadResult(
            file_id=file_id,
            file_name=file_name,
            content_type=content_type,
            version=version_number,
            content=plaintext,
        )

    async def _record_download(
        self,
        record: FileRecord,
        user: User,
        version: int,
        ip_address: Optional[str],
    ) -> None:
        """Counter and capped history. Failures are logged, not raised."""
        now = utcnow()
        history = list(record.download_history or [])
        history.append({"email": user.email, "timestamp": now.isoformat()})
        limit = self.settings.download_history_limit

        record.downloads = (record.downloads or 0) + 1
        record.last_downloaded_at = now
        record.download_history = history[-limit:]
        # A rollback expires both objects
        file_id, user_id = record.id, user.id
        try:
            await self.event_store.log(
                event_type=EventType.FILE_DOWNLOADED,
                entity_type="file",
                entity_id=file_id,
                user_id=user_id,
                payload={"version": version},
                ip_address=ip_address,
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.warning(
                "Could not record download",
                exc_info=True,
                extra={"file_id": str(file_id), "user_id": str(user_id)},
            )

    # ------------------------------------------------------------------
    # Metadata, expiration, delete
    # ------------------------------------------------------------------

    async def update_metadata(
        self,
        file_id: uuid.UUID,
        actor: User,
        file_name: Optional[str] = None,
        category: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """Rename or recategorise a file. Only while it is a DRAFT."""
        record = await self.get_file(file_id)
        if record.status_value != WorkflowStatus.DRAFT.value:
            raise ValidationError(
                f"File metadata can only be edited in DRAFT (current status: {record.status_value})"
            )

        changes = {}
        if file_name is not None:
            file_name = file_name.strip()
            if not file_name:
                raise ValidationError("File name cannot be empty")
            record.file_name = file_name
            changes["file_name"] = file_name
        if category is not None:
            record.category = _parse_category(category)
            changes["category"] = record.category

        if changes:
            await self.event_store.log(
                event_type=EventType.FILE_METADATA_UPDATED,
                entity_type="file",
                entity_id=record.id,
                user_id=actor.id,
                payload=changes,
                ip_address=ip_address,
            )
            await self.session.commit()
        return record

    async def set_expiration(
        self,
        file_id: uuid.UUID,
        actor: User,
        expires_at: Optional[datetime],
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """Set (or clear with None) the expiration timestamp."""
        record = await self.get_file(file_id)
        record.expires_at = as_utc(expires_at)
        await self.event_store.log(
            event_type=EventType.FILE_EXPIRATION_SET,
            entity_type="file",
            entity_id=record.id,
            user_id=actor.id,
            payload={"expires_at": record.expires_at},
            ip_address=ip_address,
        )
        await self.session.commit()
        return record

    async def delete(
        self,
        file_id: uuid.UUID,
        actor: User,
        ip_address: Optional[str] = None,
    ) -> None:
        """Hard delete the record and its history; best-effort delete of every blob."""
        record = await self.get_file(file_id)
        versions = await self.list_versions(file_id)
        paths = {v.storage_path for v in versions}
        paths.add(record.storage_path)

        await self.session.execute(delete(FeedbackEntry).where(FeedbackEntry.file_id == file_id))
        await self.session.execute(delete(FileVersion).where(FileVersion.file_id == file_id))
        await self.session.delete(record)
        await self.event_store.log(
            event_type=EventType.FILE_DELETED,
            entity_type="file",
            entity_id=file_id,
            user_id=actor.id,
            payload={"file_name": record.file_name, "versions": len(versions)},
            ip_address=ip_address,
        )
        await self.session.commit()

        for path in sorted(paths):
            await self._discard_blob(path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_file(self, file_id: uuid.UUID) -> FileRecord:
        record = await self.session.get(FileRecord, file_id)
        if record is None:
            raise NotFoundError(f"File {file_id} not found")
        return record

    async def get_version(self, file_id: uuid.UUID, version: int) -> FileVersion:
        result = await self.session.execute(
            select(FileVersion).where(
                FileVersion.file_id == file_id,
                FileVersion.version == version,
            )
        )
        file_version = result.scalar_one_or_none()
        if file_version is None:
            raise NotFoundError(f"Version {version} of file {file_id} not found")
        return file_version

    async def list_versions(self, file_id: uuid.UUID) -> List[FileVersion]:
        """Oldest first."""
        result = await self.session.execute(
            select(FileVersion)
            .where(FileVersion.file_id == file_id)
            .order_by(FileVersion.version.asc())
        )
        return list(result.scalars().all())

    async def download_history(self, file_id: uuid.UUID) -> List[dict]:
        record = await self.get_file(file_id)
        return list(record.download_history or [])

    async def list_owner_files(self, owner_id: uuid.UUID) -> List[FileRecord]:
        """An owner's files, newest first."""
        result = await self.session.execute(
            select(FileRecord)
            .where(FileRecord.owner_id == owner_id)
            .order_by(FileRecord.created_at.desc())
        )
        return list(result.scalars().all())

    async def hos_review_queue(self, department_id: uuid.UUID) -> List[FileRecord]:
        """Files awaiting the department head, newest submission first."""
        result = await self.session.execute(
            select(FileRecord)
            .where(
                FileRecord.department_id == department_id,
                FileRecord.workflow_status == WorkflowStatus.PENDING_HOS_REVIEW.value,
            )
            .order_by(FileRecord.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def hos_department_overview(self, department_id: uuid.UUID) -> List[FileRecord]:
        """Every submitted file of a department, in review order."""
        result = await self.session.execute(
            select(FileRecord).where(
                FileRecord.department_id == department_id,
                FileRecord.workflow_status.in_([s.value for s in HOS_OVERVIEW_ORDER]),
            )
        )
        return _sort_by_status(result.scalars().all(), HOS_OVERVIEW_ORDER)

    async def exam_unit_review_queue(self) -> List[FileRecord]:
        """Files awaiting final approval, most recent HOS approval first."""
        result = await self.session.execute(
            select(FileRecord)
            .where(FileRecord.workflow_status == WorkflowStatus.PENDING_EXAM_UNIT.value)
            .order_by(FileRecord.hos_approved_at.desc())
        )
        return list(result.scalars().all())

    async def exam_unit_overview(self) -> List[FileRecord]:
        result = await self.session.execute(
            select(FileRecord).where(
                FileRecord.workflow_status.in_([s.value for s in EXAM_UNIT_OVERVIEW_ORDER]),
            )
        )
        return _sort_by_status(result.scalars().all(), EXAM_UNIT_OVERVIEW_ORDER)

    async def approved_files(self) -> List[FileRecord]:
        """Approved files, most recently approved first."""
        result = await self.session.execute(
            select(FileRecord)
            .where(FileRecord.workflow_status == WorkflowStatus.APPROVED.value)
            .order_by(FileRecord.exam_unit_approved_at.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_content(self, file_name: str, content: bytes, content_type: str) -> str:
        file_name = (file_name or "").strip()
        if not file_name:
            raise ValidationError("File name is required")
        if not content:
            raise ValidationError("No file content provided")
        if len(content) > self.settings.max_upload_size:
            limit_mb = self.settings.max_upload_size // (1024 * 1024)
            raise ValidationError(f"File size exceeds {limit_mb}MB limit")
        if content_type not in self.settings.allowed_file_types:
            raise ValidationError(f"File type {content_type or 'unknown'} is not supported")
        return file_name

    async def _classification(
        self,
        owner: User,
        subject_id: Optional[uuid.UUID],
    ) -> Tuple[Optional[Subject], Optional[Department]]:
        """Subject given explicitly, department from the subject or the owner."""
        subject = None
        department_id = owner.department_id
        if subject_id is not None:
            subject = await self.session.get(Subject, subject_id)
            if subject is None:
                raise NotFoundError(f"Subject {subject_id} not found")
            department_id = subject.department_id

        department = None
        if department_id is not None:
            department = await self.session.get(Department, department_id)
        return subject, department

    async def _encrypt(self, content: bytes) -> EncryptedPayload:
        if not self.encryption.is_available():
            raise EncryptionError("Encryption is not available in this environment")
        return await asyncio.to_thread(self.encryption.encrypt_with_new_key, content)

    async def _next_version_number(self, record: FileRecord) -> int:
        versions = await self.list_versions(record.id)
        highest = max((v.version for v in versions), default=0)
        return max(highest, record.version or 0) + 1

    async def _commit_or_discard_blob(self, storage_path: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            await self._discard_blob(storage_path)
            raise StorageError(f"Failed to save file metadata: {e}") from e

    async def _discard_blob(self, storage_path: str) -> None:
        try:
            await self.blob_store.delete(storage_path)
        except StorageError:
            logger.warning(
                "Could not delete blob",
                exc_info=True,
                extra={"storage_path": storage_path},
            )


def _parse_category(category: str) -> str:
    try:
        return FileCategory(category).value
    except ValueError as e:
        raise ValidationError(f"Unknown category: {category}") from e


def _blob_metadata(file_name: str, uploaded_at: datetime, version: int = 1) -> dict:
    return {
        "encrypted": "true",
        "uploadedAt": uploaded_at.isoformat(),
        "originalName": file_name,
        "version": str(version),
    }


def _sort_by_status(
    records: Sequence[FileRecord],
    order: Sequence[WorkflowStatus],
) -> List[FileRecord]:
    """Status order first, then most recently updated."""
    rank = {status.value: i for i, status in enumerate(order)}

    def key(record: FileRecord):
        updated = as_utc(record.updated_at or record.created_at)
        return (rank.get(record.status_value, len(rank)), -updated.timestamp() if updated else 0.0)

    return sorted(records, key=key)

"""Integration tests for encrypted upload, download and file administration."""

import uuid
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from paperflow.kernel.errors import (
    DecryptionError,
    FileExpiredError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.event_log import EventLog, EventType
from paperflow.kernel.models.file_record import FileRecord, WorkflowStatus
from paperflow.kernel.models.file_version import FileVersion
from paperflow.kernel.storage.blob_store import LocalBlobStore
from paperflow.orchestration.file_service import FileService
from paperflow.orchestration.workflow_service import WorkflowService

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


@pytest.fixture
def files(db_session, context) -> FileService:
    return FileService(db_session, context.blob_store, context.encryption, context.settings)


async def _upload(files, owner, **overrides):
    params = dict(
        owner=owner,
        file_name="final-exam.pdf",
        content=PDF_BYTES,
        content_type="application/pdf",
    )
    params.update(overrides)
    return await files.upload(**params)


class TestUpload:
    async def test_stores_only_ciphertext(self, files, lecturer, settings):
        record = await _upload(files, lecturer)

        assert record.encrypted is True
        assert record.version == 1
        assert record.file_size == len(PDF_BYTES)
        assert record.version_description == "Initial version"
        assert record.storage_path == f"{lecturer.id}/{record.id}/final-exam.pdf.enc"

        stored = (Path(settings.local_storage_path) / record.storage_path).read_bytes()
        assert PDF_BYTES not in stored
        assert len(stored) == len(PDF_BYTES) + 12 + 16

    async def test_creates_first_version(self, files, lecturer):
        record = await _upload(files, lecturer)
        versions = await files.list_versions(record.id)
        assert len(versions) == 1
        assert versions[0].encryption_key == record.encryption_key
        assert versions[0].storage_path == record.storage_path

    async def test_classified_by_owner_department(self, files, lecturer, department):
        record = await _upload(files, lecturer)
        assert record.department_id == department.id
        assert record.department_name == "Computer Science"
        assert record.subject_id is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"content": b""},
            {"file_name": "   "},
            {"content_type": "application/x-msdownload"},
            {"category": "cheat-sheet"},
        ],
    )
    async def test_rejects_bad_input(self, files, lecturer, db_session, overrides):
        with pytest.raises(ValidationError):
            await _upload(files, lecturer, **overrides)
        result = await db_session.execute(select(FileRecord))
        assert result.scalars().all() == []

    async def test_rejects_oversized_file(self, files, lecturer, settings):
        with pytest.raises(ValidationError, match="1MB"):
            await _upload(files, lecturer, content=b"x" * (settings.max_upload_size + 1))

    async def test_unknown_subject(self, files, lecturer):
        with pytest.raises(NotFoundError):
            await _upload(files, lecturer, subject_id=uuid.uuid4())

    async def test_storage_failure_leaves_no_record(self, db_session, context, lecturer):
        class UnreachableStore(LocalBlobStore):
            async def put(self, path, data, metadata=None):
                raise StorageError("bucket unreachable")

        files = FileService(
            db_session,
            UnreachableStore(context.settings.local_storage_path),
            context.encryption,
            context.settings,
        )
        with pytest.raises(StorageError):
            await _upload(files, lecturer)
        result = await db_session.execute(select(FileRecord))
        assert result.scalars().all() == []


class TestDownload:
    async def test_round_trip_and_counter(self, files, lecturer):
        record = await _upload(files, lecturer)

        result = await files.download(record.id, lecturer)
        assert result.content == PDF_BYTES
        assert result.file_name == "final-exam.pdf"
        assert result.content_type == "application/pdf"
        assert result.version == 1

        await files.download(record.id, lecturer)
        record = await files.get_file(record.id)
        assert record.downloads == 2
        assert record.last_downloaded_at is not None
        assert [h["email"] for h in record.download_history] == [lecturer.email] * 2

    async def test_history_is_capped(self, files, lecturer, exam_unit_user, settings):
        record = await _upload(files, lecturer)
        for _ in range(settings.download_history_limit):
            await files.download(record.id, lecturer)
        await files.download(record.id, exam_unit_user)

        history = await files.download_history(record.id)
        assert len(history) == settings.download_history_limit
        assert history[-1]["email"] == exam_unit_user.email
        record = await files.get_file(record.id)
        assert record.downloads == settings.download_history_limit + 1

    async def test_download_is_audited(self, files, lecturer, db_session):
        record = await _upload(files, lecturer)
        await files.download(record.id, lecturer, ip_address="10.0.0.7")
        result = await db_session.execute(
            select(EventLog).where(EventLog.event_type == EventType.FILE_DOWNLOADED.value)
        )
        event = result.scalar_one()
        assert event.entity_id == record.id
        assert event.ip_address == "10.0.0.7"

    async def test_older_version_uses_its_own_key(self, files, lecturer):
        record = await _upload(files, lecturer)
        await files.upload_new_version(
            record.id, lecturer, "final-exam-v2.pdf", PDF_BYTES + b"% v2", "application/pdf"
        )

        old = await files.download(record.id, lecturer, version=1)
        new = await files.download(record.id, lecturer)
        assert old.content == PDF_BYTES
        assert old.file_name == "final-exam.pdf"
        assert new.content == PDF_BYTES + b"% v2"
        assert new.version == 2

    async def test_audit_failure_still_returns_content(self, files, lecturer, monkeypatch):
        record = await _upload(files, lecturer)
        record_id = record.id

        async def broken_log(**kwargs):
            raise OperationalError("INSERT INTO event_logs", {}, Exception("database is locked"))

        monkeypatch.setattr(files.event_store, "log", broken_log)
        result = await files.download(record_id, lecturer)
        assert result.content == PDF_BYTES
        assert result.file_id == record_id

        record = await files.get_file(record_id)
        assert record.downloads == 0

    async def test_unknown_version(self, files, lecturer):
        record = await _upload(files, lecturer)
        with pytest.raises(NotFoundError):
            await files.download(record.id, lecturer, version=7)

    async def test_expired_file(self, files, lecturer):
        record = await _upload(files, lecturer)
        await files.set_expiration(record.id, lecturer, utcnow() - timedelta(minutes=1))
        with pytest.raises(FileExpiredError):
            await files.download(record.id, lecturer)

    async def test_tampered_blob(self, files, lecturer, settings):
        record = await _upload(files, lecturer)
        blob_path = Path(settings.local_storage_path) / record.storage_path
        data = bytearray(blob_path.read_bytes())
        data[-1] ^= 0xFF
        blob_path.write_bytes(bytes(data))

        with pytest.raises(DecryptionError):
            await files.download(record.id, lecturer)
        record = await files.get_file(record.id)
        assert record.downloads == 0

    async def test_empty_blob(self, files, lecturer, settings):
        record = await _upload(files, lecturer)
        (Path(settings.local_storage_path) / record.storage_path).write_bytes(b"")
        with pytest.raises(DecryptionError):
            await files.download(record.id, lecturer)

    async def test_missing_blob(self, files, lecturer, settings):
        record = await _upload(files, lecturer)
        (Path(settings.local_storage_path) / record.storage_path).unlink()
        with pytest.raises(NotFoundError):
            await files.download(record.id, lecturer)


class TestMetadata:
    async def test_rename_in_draft(self, files, lecturer):
        record = await _upload(files, lecturer)
        record = await files.update_metadata(
            record.id, lecturer, file_name="  renamed.pdf ", category="answer-key"
        )
        assert record.file_name == "renamed.pdf"
        assert record.category == "answer-key"

    async def test_locked_once_submitted(self, files, db_session, context, lecturer):
        record = await _upload(files, lecturer)
        await WorkflowService(db_session, context.dispatcher).submit_for_review(record.id, lecturer)
        with pytest.raises(ValidationError):
            await files.update_metadata(record.id, lecturer, file_name="renamed.pdf")

    async def test_set_and_clear_expiration(self, files, lecturer):
        record = await _upload(files, lecturer)
        expires = utcnow() + timedelta(days=3)
        record = await files.set_expiration(record.id, lecturer, expires)
        assert record.days_until_expiration() == 3

        record = await files.set_expiration(record.id, lecturer, None)
        assert record.expires_at is None
        assert record.is_expired() is False


class TestDelete:
    async def test_removes_record_versions_and_blobs(self, files, lecturer, db_session, settings):
        record = await _upload(files, lecturer)
        await files.upload_new_version(record.id, lecturer, "v2.pdf", PDF_BYTES, "application/pdf")
        paths = [v.storage_path for v in await files.list_versions(record.id)]

        await files.delete(record.id, lecturer)

        with pytest.raises(NotFoundError):
            await files.get_file(record.id)
        result = await db_session.execute(select(FileVersion).where(FileVersion.file_id == record.id))
        assert result.scalars().all() == []
        for path in paths:
            assert not (Path(settings.local_storage_path) / path).exists()

    async def test_delete_tolerates_missing_blob(self, files, lecturer, settings):
        record = await _upload(files, lecturer)
        (Path(settings.local_storage_path) / record.storage_path).unlink()
        await files.delete(record.id, lecturer)
        with pytest.raises(NotFoundError):
            await files.get_file(record.id)


class TestQueues:
    async def test_hos_and_exam_unit_queues(self, files, db_session, context, lecturer, hos_user, exam_unit_user, department):
        workflow = WorkflowService(db_session, context.dispatcher)
        draft = await _upload(files, lecturer, file_name="draft.pdf")
        waiting = await _upload(files, lecturer, file_name="waiting.pdf")
        forwarded = await _upload(files, lecturer, file_name="forwarded.pdf")

        await workflow.submit_for_review(waiting.id, lecturer)
        await workflow.submit_for_review(forwarded.id, lecturer)
        await workflow.hos_approve(forwarded.id, hos_user)

        hos_queue = await files.hos_review_queue(department.id)
        assert [r.id for r in hos_queue] == [waiting.id]

        overview = await files.hos_department_overview(department.id)
        assert [r.id for r in overview] == [waiting.id, forwarded.id]
        assert draft.id not in [r.id for r in overview]

        exam_queue = await files.exam_unit_review_queue()
        assert [r.id for r in exam_queue] == [forwarded.id]

        await workflow.exam_unit_approve(forwarded.id, exam_unit_user)
        assert [r.id for r in await files.approved_files()] == [forwarded.id]
        assert await files.exam_unit_review_queue() == []

        mine = await files.list_owner_files(lecturer.id)
        assert {r.id for r in mine} == {draft.id, waiting.id, forwarded.id}

"""Integration tests for the review workflow against SQLite and a local blob store."""

import uuid

import pytest
from sqlalchemy import select

from paperflow.kernel.errors import InvalidTransitionError, NotFoundError, ValidationError
from paperflow.kernel.models.event_log import EventLog, EventType
from paperflow.kernel.models.file_record import ReviewStage, WorkflowStatus
from paperflow.kernel.models.file_version import FeedbackAction
from paperflow.kernel.models.notification import Notification, NotificationType
from paperflow.kernel.notifications.dispatcher import NotificationDispatcher
from paperflow.orchestration.file_service import FileService
from paperflow.orchestration.workflow_service import WorkflowService

PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


@pytest.fixture
def files(db_session, context) -> FileService:
    return FileService(db_session, context.blob_store, context.encryption, context.settings)


@pytest.fixture
def workflow(db_session, context) -> WorkflowService:
    return WorkflowService(db_session, context.dispatcher)


async def _notifications_for(context, user_id):
    async with context.session_maker() as session:
        result = await session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at)
        )
        return list(result.scalars().all())


async def _upload(files, lecturer, subject=None, content=PDF_BYTES):
    return await files.upload(
        owner=lecturer,
        file_name="midterm.pdf",
        content=content,
        content_type="application/pdf",
        subject_id=subject.id if subject else None,
    )


class TestHappyPath:
    async def test_draft_to_approved(self, files, workflow, lecturer, hos_user, exam_unit_user, subject, context):
        record = await _upload(files, lecturer, subject)
        assert record.workflow_status == WorkflowStatus.DRAFT
        assert record.department_name == "Computer Science"
        assert record.subject_code == "CS101"

        record = await workflow.submit_for_review(record.id, lecturer)
        assert record.status_value == WorkflowStatus.PENDING_HOS_REVIEW.value
        assert record.submitted_by == lecturer.id
        assert record.submitted_at is not None

        record = await workflow.hos_approve(record.id, hos_user, comments="  Looks good  ")
        assert record.status_value == WorkflowStatus.PENDING_EXAM_UNIT.value
        assert record.hos_approved_by_name == "Dr. Head"
        assert record.hos_comments == "Looks good"

        record = await workflow.exam_unit_approve(record.id, exam_unit_user)
        assert record.status_value == WorkflowStatus.APPROVED.value
        assert record.exam_unit_approved_by == exam_unit_user.id

        feedback = await workflow.feedback_history(record.id)
        assert len(feedback) == 2
        assert {f.action for f in feedback} == {FeedbackAction.APPROVED.value}
        assert {f.reviewer_role for f in feedback} == {ReviewStage.HOS.value, ReviewStage.EXAM_UNIT.value}

    async def test_notifications_follow_transitions(
        self, files, workflow, lecturer, hos_user, exam_unit_user, context, email_sender
    ):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)
        await workflow.hos_approve(record.id, hos_user)
        await workflow.exam_unit_approve(record.id, exam_unit_user)

        to_hos = await _notifications_for(context, hos_user.id)
        assert [n.title for n in to_hos] == ["New Review Request", "File Approved"]
        assert to_hos[0].type == NotificationType.REVIEW_REQUEST.value
        assert to_hos[0].file_id == record.id

        to_owner = await _notifications_for(context, lecturer.id)
        assert [n.title for n in to_owner] == ["HOS Approved", "File Approved!"]
        assert all(n.email_sent for n in to_owner)
        assert lecturer.email in [to for to, _ in email_sender.sent]

    async def test_head_uploading_own_file_gets_both_approval_notices(
        self, files, workflow, hos_user, exam_unit_user, context
    ):
        record = await _upload(files, hos_user)
        await workflow.submit_for_review(record.id, hos_user)
        await workflow.hos_approve(record.id, hos_user)
        await workflow.exam_unit_approve(record.id, exam_unit_user)

        titles = [n.title for n in await _notifications_for(context, hos_user.id)]
        assert titles[-2:] == ["File Approved!", "File Approved"]

    async def test_transitions_are_audited(self, files, workflow, lecturer, hos_user, db_session):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)

        result = await db_session.execute(
            select(EventLog).where(
                EventLog.entity_id == record.id,
                EventLog.event_type == EventType.WORKFLOW_STATUS_CHANGED.value,
            )
        )
        event = result.scalar_one()
        assert event.payload["from_status"] == "DRAFT"
        assert event.payload["to_status"] == "PENDING_HOS_REVIEW"
        assert event.user_id == lecturer.id


class TestRevisionLoop:
    async def test_rejection_then_new_version(self, files, workflow, lecturer, hos_user, exam_unit_user, context):
        record = await _upload(files, lecturer)
        first_key = record.encryption_key
        await workflow.submit_for_review(record.id, lecturer)

        record = await workflow.hos_reject(record.id, hos_user, reason="Question 3 is ambiguous")
        assert record.status_value == WorkflowStatus.NEEDS_REVISION.value
        assert record.active_rejection_stage == ReviewStage.HOS
        assert record.active_rejection_reason == "Question 3 is ambiguous"

        owner_notes = await _notifications_for(context, lecturer.id)
        assert owner_notes[-1].title == "Revision Needed"
        assert owner_notes[-1].type == NotificationType.REJECTION.value
        assert "Question 3 is ambiguous" in owner_notes[-1].message

        record = await files.upload_new_version(
            record.id, lecturer, "midterm-v2.pdf", PDF_BYTES + b"% fixed", "application/pdf",
            description="Clarified question 3",
        )
        assert record.status_value == WorkflowStatus.DRAFT.value
        assert record.version == 2
        assert record.encryption_key != first_key
        assert record.storage_path.split("/")[1] == f"{record.id}_v2"
        # earlier review history is kept on the record
        assert record.hos_rejection_reason == "Question 3 is ambiguous"

        await workflow.submit_for_review(record.id, lecturer)
        await workflow.hos_approve(record.id, hos_user)
        record = await workflow.exam_unit_reject(record.id, exam_unit_user, reason="Marks do not add up")
        assert record.active_rejection_stage == ReviewStage.EXAM_UNIT
        assert record.active_rejection_reason == "Marks do not add up"
        assert record.hos_rejection_reason == "Question 3 is ambiguous"

        feedback = await workflow.feedback_history(record.id)
        assert [f.action for f in feedback] == ["rejected", "approved", "rejected"]
        assert feedback[0].file_version == 2
        assert feedback[-1].comments == "Question 3 is ambiguous"

    async def test_versions_are_monotonic(self, files, workflow, lecturer):
        record = await _upload(files, lecturer)
        for _ in range(3):
            record = await files.upload_new_version(
                record.id, lecturer, "midterm.pdf", PDF_BYTES, "application/pdf"
            )
        versions = await files.list_versions(record.id)
        assert [v.version for v in versions] == [1, 2, 3, 4]
        assert len({v.encryption_key for v in versions}) == 4
        assert record.version == 4


class TestRefusals:
    async def test_reject_without_reason(self, files, workflow, lecturer, hos_user):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)

        with pytest.raises(ValidationError):
            await workflow.hos_reject(record.id, hos_user, reason="   ")

        record = await workflow.get_record(record.id)
        assert record.status_value == WorkflowStatus.PENDING_HOS_REVIEW.value
        assert record.hos_rejected_at is None
        assert await workflow.feedback_history(record.id) == []

    async def test_approve_from_draft(self, files, workflow, lecturer, hos_user):
        record = await _upload(files, lecturer)
        with pytest.raises(InvalidTransitionError):
            await workflow.hos_approve(record.id, hos_user)

    async def test_exam_unit_cannot_skip_hos(self, files, workflow, lecturer, exam_unit_user):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)
        with pytest.raises(InvalidTransitionError):
            await workflow.exam_unit_approve(record.id, exam_unit_user)

    async def test_no_new_version_while_under_review(self, files, workflow, lecturer):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)
        with pytest.raises(InvalidTransitionError):
            await files.upload_new_version(record.id, lecturer, "x.pdf", PDF_BYTES, "application/pdf")

    async def test_approved_is_final(self, files, workflow, lecturer, hos_user, exam_unit_user):
        record = await _upload(files, lecturer)
        await workflow.submit_for_review(record.id, lecturer)
        await workflow.hos_approve(record.id, hos_user)
        await workflow.exam_unit_approve(record.id, exam_unit_user)
        with pytest.raises(InvalidTransitionError):
            await workflow.exam_unit_reject(record.id, exam_unit_user, reason="Too late")
        with pytest.raises(InvalidTransitionError):
            await workflow.submit_for_review(record.id, lecturer)

    async def test_unknown_file(self, workflow, lecturer):
        with pytest.raises(NotFoundError):
            await workflow.submit_for_review(uuid.uuid4(), lecturer)


class TestNotificationIsolation:
    async def test_email_failure_does_not_undo_transition(
        self, db_session, context, files, failing_dispatcher, lecturer, hos_user
    ):
        workflow = WorkflowService(db_session, failing_dispatcher)

        record = await _upload(files, lecturer)
        record = await workflow.submit_for_review(record.id, lecturer)
        assert record.status_value == WorkflowStatus.PENDING_HOS_REVIEW.value

        notes = await _notifications_for(context, hos_user.id)
        assert len(notes) == 1
        assert notes[0].email_sent is False

    async def test_dispatcher_crash_does_not_undo_transition(self, db_session, context, files, lecturer, hos_user):
        class BrokenDispatcher(NotificationDispatcher):
            async def _emit(self, request):
                raise RuntimeError("notification store offline")

        workflow = WorkflowService(db_session, BrokenDispatcher(context.session_maker, context.settings))
        record = await _upload(files, lecturer)
        record = await workflow.submit_for_review(record.id, lecturer)

        stored = await workflow.get_record(record.id)
        assert stored.status_value == WorkflowStatus.PENDING_HOS_REVIEW.value

    async def test_no_department_head(self, files, workflow, make_user, context):
        orphan = await make_user()
        record = await _upload(files, orphan)
        record = await workflow.submit_for_review(record.id, orphan)
        assert record.status_value == WorkflowStatus.PENDING_HOS_REVIEW.value
        assert record.department_id is None

"""
Workflow service - performs review transitions on FileRecords.

Each transition validates input, checks the state machine, writes the
per-stage fields, appends a FeedbackEntry for review actions, logs an
audit event and commits. Notifications are emitted only after the commit
and never affect the outcome.

Callers are expected to have authorized the actor (see AccessControl);
this service does not re-check role membership. There is no
compare-and-swap on workflow_status: two reviewers acting on the same file
concurrently may both pass validation and the last write wins.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.errors import NotFoundError, ValidationError
from paperflow.kernel.events.event_store import EventStore
from paperflow.kernel.models.base import utcnow
from paperflow.kernel.models.department import Department
from paperflow.kernel.models.event_log import EventType
from paperflow.kernel.models.file_record import FileRecord, ReviewStage
from paperflow.kernel.models.file_version import FeedbackAction, FeedbackEntry
from paperflow.kernel.models.notification import NotificationType
from paperflow.kernel.models.user import User
from paperflow.kernel.notifications.dispatcher import NotificationDispatcher, NotificationRequest
from paperflow.logging_config import get_logger
from paperflow.orchestration.state_machine import (
    ActorRole,
    WorkflowAction,
    require_transition,
)

logger = get_logger(__name__)

_DASHBOARD = "/dashboard"


class WorkflowService:
    """Submit, approve and reject exam files."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.event_store = EventStore(session)

    async def get_record(self, file_id: uuid.UUID) -> FileRecord:
        record = await self.session.get(FileRecord, file_id)
        if record is None:
            raise NotFoundError(f"File {file_id} not found")
        return record

    async def submit_for_review(
        self,
        file_id: uuid.UUID,
        actor: User,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """DRAFT -> PENDING_HOS_REVIEW. Notifies the department head."""
        record = await self.get_record(file_id)
        from_status = record.status_value
        target = require_transition(from_status, WorkflowAction.SUBMIT, ActorRole.OWNER)

        now = utcnow()
        record.workflow_status = target
        record.submitted_at = now
        record.submitted_by = actor.id
        record.submitted_by_name = actor.display_name

        await self._log_transition(record, from_status, WorkflowAction.SUBMIT, actor, ip_address)
        await self.session.commit()

        hos_id = await self._department_head_id(record.department_id)
        if hos_id is None:
            logger.info(
                "No department head to notify",
                extra={"file_id": str(record.id), "department_id": str(record.department_id)},
            )
        else:
            await self._notify(
                NotificationRequest(
                    recipient_user_id=hos_id,
                    type=NotificationType.REVIEW_REQUEST,
                    title="New Review Request",
                    message=f"{actor.display_name} has submitted {record.file_name} for review",
                    related_file_id=record.id,
                    action_path=_DASHBOARD,
                )
            )
        return record

    async def hos_approve(
        self,
        file_id: uuid.UUID,
        actor: User,
        comments: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """PENDING_HOS_REVIEW -> PENDING_EXAM_UNIT. Notifies the owner."""
        record = await self.get_record(file_id)
        from_status = record.status_value
        target = require_transition(from_status, WorkflowAction.APPROVE, ActorRole.DEPARTMENT_HEAD)
        comments = _clean(comments)

        now = utcnow()
        record.workflow_status = target
        record.hos_approved_at = now
        record.hos_approved_by = actor.id
        record.hos_approved_by_name = actor.display_name
        record.hos_comments = comments

        self._append_feedback(record, ReviewStage.HOS, actor, FeedbackAction.APPROVED, comments, now)
        await self._log_transition(record, from_status, WorkflowAction.APPROVE, actor, ip_address)
        await self.session.commit()

        await self._notify(
            NotificationRequest(
                recipient_user_id=record.owner_id,
                type=NotificationType.APPROVAL,
                title="HOS Approved",
                message=f'Your file "{record.file_name}" has been approved by HOS and sent to Exam Unit',
                related_file_id=record.id,
                action_path=_DASHBOARD,
            )
        )
        return record

    async def hos_reject(
        self,
        file_id: uuid.UUID,
        actor: User,
        reason: str,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """PENDING_HOS_REVIEW -> NEEDS_REVISION. A reason is mandatory."""
        return await self._reject(file_id, actor, reason, ReviewStage.HOS, ip_address)

    async def exam_unit_approve(
        self,
        file_id: uuid.UUID,
        actor: User,
        comments: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """PENDING_EXAM_UNIT -> APPROVED. Notifies the owner and the department head."""
        record = await self.get_record(file_id)
        from_status = record.status_value
        target = require_transition(from_status, WorkflowAction.APPROVE, ActorRole.CENTRAL_UNIT)
        comments = _clean(comments)

        now = utcnow()
        record.workflow_status = target
        record.exam_unit_approved_at = now
        record.exam_unit_approved_by = actor.id
        record.exam_unit_approved_by_name = actor.display_name
        record.exam_unit_comments = comments

        self._append_feedback(record, ReviewStage.EXAM_UNIT, actor, FeedbackAction.APPROVED, comments, now)
        await self._log_transition(record, from_status, WorkflowAction.APPROVE, actor, ip_address)
        await self.session.commit()

        await self._notify(
            NotificationRequest(
                recipient_user_id=record.owner_id,
                type=NotificationType.APPROVAL,
                title="File Approved!",
                message=f'Your file "{record.file_name}" has been approved by Exam Unit and is ready for printing',
                related_file_id=record.id,
                action_path=_DASHBOARD,
            )
        )
        hos_id = await self._department_head_id(record.department_id)
        if hos_id is not None:
            await self._notify(
                NotificationRequest(
                    recipient_user_id=hos_id,
                    type=NotificationType.APPROVAL,
                    title="File Approved",
                    message=f'File "{record.file_name}" has been approved by Exam Unit',
                    related_file_id=record.id,
                    action_path=_DASHBOARD,
                )
            )
        return record

    async def exam_unit_reject(
        self,
        file_id: uuid.UUID,
        actor: User,
        reason: str,
        ip_address: Optional[str] = None,
    ) -> FileRecord:
        """PENDING_EXAM_UNIT -> NEEDS_REVISION. A reason is mandatory."""
        return await self._reject(file_id, actor, reason, ReviewStage.EXAM_UNIT, ip_address)

    async def feedback_history(self, file_id: uuid.UUID) -> List[FeedbackEntry]:
        """Review actions on a file, newest first."""
        await self.get_record(file_id)
        result = await self.session.execute(
            select(FeedbackEntry)
            .where(FeedbackEntry.file_id == file_id)
            .order_by(FeedbackEntry.created_at.desc())
        )
        return list(result.scalars().all())

    async def _reject(
        self,
        file_id: uuid.UUID,
        actor: User,
        reason: str,
        stage: ReviewStage,
        ip_address: Optional[str],
    ) -> FileRecord:
        record = await self.get_record(file_id)
        reason = _clean(reason)
        if not reason:
            raise ValidationError("A rejection reason is required")

        role = ActorRole.DEPARTMENT_HEAD if stage == ReviewStage.HOS else ActorRole.CENTRAL_UNIT
        from_status = record.status_value
        target = require_transition(from_status, WorkflowAction.REJECT, role)

        now = utcnow()
        record.workflow_status = target
        if stage == ReviewStage.HOS:
            record.hos_rejected_at = now
            record.hos_rejected_by = actor.id
            record.hos_rejected_by_name = actor.display_name
            record.hos_rejection_reason = reason
        else:
            record.exam_unit_rejected_at = now
            record.exam_unit_rejected_by = actor.id
            record.exam_unit_rejected_by_name = actor.display_name
            record.exam_unit_rejection_reason = reason

        self._append_feedback(record, stage, actor, FeedbackAction.REJECTED, reason, now)
        await self._log_transition(
            record, from_status, WorkflowAction.REJECT, actor, ip_address, reason=reason
        )
        await self.session.commit()

        await self._notify(
            NotificationRequest(
                recipient_user_id=record.owner_id,
                type=NotificationType.REJECTION,
                title="Revision Needed",
                message=f'Your file "{record.file_name}" needs revision. Reason: {reason}',
                related_file_id=record.id,
                action_path=_DASHBOARD,
            )
        )
        return record

    def _append_feedback(
        self,
        record: FileRecord,
        stage: ReviewStage,
        actor: User,
        action: FeedbackAction,
        comments: Optional[str],
        at,
    ) -> FeedbackEntry:
        entry = FeedbackEntry(
            file_id=record.id,
            reviewer_role=stage.value,
            reviewer_id=actor.id,
            reviewer_name=actor.display_name,
            comments=comments,
            action=action.value,
            file_version=record.version,
            created_at=at,
        )
        self.session.add(entry)
        return entry

    async def _log_transition(
        self,
        record: FileRecord,
        from_status: str,
        action: WorkflowAction,
        actor: User,
        ip_address: Optional[str],
        **extra,
    ) -> None:
        await self.event_store.log(
            event_type=EventType.WORKFLOW_STATUS_CHANGED,
            entity_type="file",
            entity_id=record.id,
            user_id=actor.id,
            payload={
                "from_status": from_status,
                "to_status": record.status_value,
                "action": action.value,
                "version": record.version,
                **extra,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Workflow transition",
            extra={
                "file_id": str(record.id),
                "from_status": from_status,
                "to_status": record.status_value,
                "action": action.value,
                "actor_id": str(actor.id),
            },
        )

    async def _department_head_id(self, department_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
        if department_id is None:
            return None
        # Only used to address notifications, so a lookup failure is not fatal
        try:
            result = await self.session.execute(
                select(Department.hos_id).where(Department.id == department_id)
            )
        except SQLAlchemyError:
            logger.warning(
                "Department head lookup failed",
                exc_info=True,
                extra={"department_id": str(department_id)},
            )
            return None
        return result.scalar_one_or_none()

    async def _notify(self, request: NotificationRequest) -> None:
        if self.dispatcher is None:
            return
        await self.dispatcher.emit(request)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None

"""
Approval workflow state machine for exam files.

    DRAFT --submit(owner)--> PENDING_HOS_REVIEW
    PENDING_HOS_REVIEW --approve(department_head)--> PENDING_EXAM_UNIT
    PENDING_HOS_REVIEW --reject(department_head)--> NEEDS_REVISION
    PENDING_EXAM_UNIT --approve(central_unit)--> APPROVED
    PENDING_EXAM_UNIT --reject(central_unit)--> NEEDS_REVISION
    NEEDS_REVISION --upload_new_version(owner)--> DRAFT
    DRAFT --upload_new_version(owner)--> DRAFT

APPROVED is terminal. Anything not listed here is an invalid transition.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from paperflow.kernel.errors import InvalidTransitionError
from paperflow.kernel.models.file_record import WorkflowStatus


class WorkflowAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    UPLOAD_NEW_VERSION = "upload_new_version"


class ActorRole(str, Enum):
    """Role an actor plays with respect to one file."""

    OWNER = "owner"
    DEPARTMENT_HEAD = "department_head"
    CENTRAL_UNIT = "central_unit"


# (from_status, action, actor_role) -> to_status
_TRANSITIONS: Dict[Tuple[str, WorkflowAction, ActorRole], WorkflowStatus] = {
    (WorkflowStatus.DRAFT.value, WorkflowAction.SUBMIT, ActorRole.OWNER): WorkflowStatus.PENDING_HOS_REVIEW,
    (WorkflowStatus.PENDING_HOS_REVIEW.value, WorkflowAction.APPROVE, ActorRole.DEPARTMENT_HEAD): WorkflowStatus.PENDING_EXAM_UNIT,
    (WorkflowStatus.PENDING_HOS_REVIEW.value, WorkflowAction.REJECT, ActorRole.DEPARTMENT_HEAD): WorkflowStatus.NEEDS_REVISION,
    (WorkflowStatus.PENDING_EXAM_UNIT.value, WorkflowAction.APPROVE, ActorRole.CENTRAL_UNIT): WorkflowStatus.APPROVED,
    (WorkflowStatus.PENDING_EXAM_UNIT.value, WorkflowAction.REJECT, ActorRole.CENTRAL_UNIT): WorkflowStatus.NEEDS_REVISION,
    (WorkflowStatus.NEEDS_REVISION.value, WorkflowAction.UPLOAD_NEW_VERSION, ActorRole.OWNER): WorkflowStatus.DRAFT,
    (WorkflowStatus.DRAFT.value, WorkflowAction.UPLOAD_NEW_VERSION, ActorRole.OWNER): WorkflowStatus.DRAFT,
}


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def next_status(from_status, action: WorkflowAction, role: ActorRole) -> Optional[WorkflowStatus]:
    """Target status, or None if the action is not legal."""
    return _TRANSITIONS.get((_status_value(from_status), action, role))


def can_transition(from_status, action: WorkflowAction, role: ActorRole) -> bool:
    return next_status(from_status, action, role) is not None


def valid_actions(from_status) -> List[Tuple[WorkflowAction, ActorRole]]:
    """Every (action, role) pair legal from from_status."""
    current = _status_value(from_status)
    return [(action, role) for (f, action, role) in _TRANSITIONS if f == current]


def require_transition(from_status, action: WorkflowAction, role: ActorRole) -> WorkflowStatus:
    """Target status; raises InvalidTransitionError if the action is not legal."""
    target = next_status(from_status, action, role)
    if target is None:
        raise InvalidTransitionError(_status_value(from_status), action.value, role.value)
    return target

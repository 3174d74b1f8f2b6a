"""
Orchestration - approval workflow over exam files.
"""

from paperflow.orchestration.state_machine import (
    ActorRole,
    WorkflowAction,
    can_transition,
    next_status,
    require_transition,
    valid_actions,
)
from paperflow.orchestration.workflow_service import WorkflowService

__all__ = [
    "ActorRole",
    "WorkflowAction",
    "can_transition",
    "next_status",
    "require_transition",
    "valid_actions",
    "WorkflowService",
]

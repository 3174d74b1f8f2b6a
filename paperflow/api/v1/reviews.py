"""
Review workflow endpoints: submit, HOS review, exam unit review, queues.
"""

import uuid
from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from paperflow.api.deps import (
    Access,
    ExamUnitUser,
    Files,
    MemberUser,
    Workflow,
    get_client_ip,
    load_viewable_file,
)
from paperflow.api.v1.files import to_detail
from paperflow.kernel.permissions.permission_service import AccessControl
from paperflow.orchestration.state_machine import valid_actions
from paperflow.schemas.file import FileDetailResponse, FileResponse
from paperflow.schemas.workflow import (
    ApproveRequest,
    FeedbackResponse,
    RejectRequest,
    TransitionOption,
    WorkflowStateResponse,
)

router = APIRouter()


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def _require_department_head(user, file_id: uuid.UUID, files, access: AccessControl) -> None:
    record = await files.get_file(file_id)
    if not await access.is_hos_of_department(user, record.department_id):
        raise _forbidden("Only the head of this file's department can review it")


# ----------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------

@router.post("/files/{file_id}/submit", response_model=FileDetailResponse)
async def submit_for_review(
    request: Request,
    file_id: uuid.UUID,
    user: MemberUser,
    files: Files,
    workflow: Workflow,
):
    record = await files.get_file(file_id)
    if not AccessControl.is_owner(user, record):
        raise _forbidden("Only the owner can submit this file")
    record = await workflow.submit_for_review(file_id, user, ip_address=get_client_ip(request))
    return to_detail(record)


@router.post("/files/{file_id}/hos/approve", response_model=FileDetailResponse)
async def hos_approve(
    request: Request,
    file_id: uuid.UUID,
    data: ApproveRequest,
    user: MemberUser,
    files: Files,
    access: Access,
    workflow: Workflow,
):
    await _require_department_head(user, file_id, files, access)
    record = await workflow.hos_approve(
        file_id, user, comments=data.comments, ip_address=get_client_ip(request)
    )
    return to_detail(record)


@router.post("/files/{file_id}/hos/reject", response_model=FileDetailResponse)
async def hos_reject(
    request: Request,
    file_id: uuid.UUID,
    data: RejectRequest,
    user: MemberUser,
    files: Files,
    access: Access,
    workflow: Workflow,
):
    await _require_department_head(user, file_id, files, access)
    record = await workflow.hos_reject(
        file_id, user, reason=data.reason, ip_address=get_client_ip(request)
    )
    return to_detail(record)


@router.post("/files/{file_id}/exam-unit/approve", response_model=FileDetailResponse)
async def exam_unit_approve(
    request: Request,
    file_id: uuid.UUID,
    data: ApproveRequest,
    user: ExamUnitUser,
    workflow: Workflow,
):
    record = await workflow.exam_unit_approve(
        file_id, user, comments=data.comments, ip_address=get_client_ip(request)
    )
    return to_detail(record)


@router.post("/files/{file_id}/exam-unit/reject", response_model=FileDetailResponse)
async def exam_unit_reject(
    request: Request,
    file_id: uuid.UUID,
    data: RejectRequest,
    user: ExamUnitUser,
    workflow: Workflow,
):
    record = await workflow.exam_unit_reject(
        file_id, user, reason=data.reason, ip_address=get_client_ip(request)
    )
    return to_detail(record)


@router.get("/files/{file_id}/workflow", response_model=WorkflowStateResponse)
async def get_workflow_state(file_id: uuid.UUID, user: MemberUser, files: Files, access: Access):
    """Current status and the actions open to the current user."""
    record = await load_viewable_file(file_id, user, files, access)
    roles = await access.actor_roles(user, record)
    return WorkflowStateResponse(
        file_id=record.id,
        workflow_status=record.status_value,
        version=record.version,
        available=[
            TransitionOption(action=action.value, role=role.value)
            for action, role in valid_actions(record.status_value)
            if role in roles
        ],
    )


@router.get("/files/{file_id}/feedback", response_model=List[FeedbackResponse])
async def get_feedback(
    file_id: uuid.UUID,
    user: MemberUser,
    files: Files,
    access: Access,
    workflow: Workflow,
):
    """Review history, newest first."""
    await load_viewable_file(file_id, user, files, access)
    return await workflow.feedback_history(file_id)


# ----------------------------------------------------------------------
# Queues
# ----------------------------------------------------------------------

async def _headed_department(user, access: AccessControl) -> uuid.UUID:
    department_id = await access.headed_department_id(user)
    if department_id is None:
        raise _forbidden("You are not the head of any department")
    return department_id


@router.get("/reviews/hos/queue", response_model=List[FileResponse])
async def hos_review_queue(user: MemberUser, files: Files, access: Access):
    return await files.hos_review_queue(await _headed_department(user, access))


@router.get("/reviews/hos/overview", response_model=List[FileResponse])
async def hos_department_overview(user: MemberUser, files: Files, access: Access):
    return await files.hos_department_overview(await _headed_department(user, access))


@router.get("/reviews/exam-unit/queue", response_model=List[FileResponse])
async def exam_unit_review_queue(user: ExamUnitUser, files: Files):
    return await files.exam_unit_review_queue()


@router.get("/reviews/exam-unit/overview", response_model=List[FileResponse])
async def exam_unit_overview(user: ExamUnitUser, files: Files):
    return await files.exam_unit_overview()


@router.get("/reviews/approved", response_model=List[FileResponse])
async def approved_files(user: ExamUnitUser, files: Files):
    return await files.approved_files()

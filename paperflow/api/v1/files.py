"""
File endpoints: encrypted upload, versions, download and owner management.
"""

import uuid
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Request, Response, UploadFile, status

from paperflow.api.deps import (
    Access,
    Context,
    Files,
    MemberUser,
    get_client_ip,
    load_viewable_file,
)
from paperflow.kernel.models.file_record import FileCategory, FileRecord
from paperflow.kernel.models.user import User
from paperflow.schemas.file import (
    DownloadHistoryResponse,
    ExpirationUpdate,
    FileDetailResponse,
    FileMetadataUpdate,
    FileResponse,
    FileVersionResponse,
)

router = APIRouter()


def to_detail(record: FileRecord) -> FileDetailResponse:
    return FileDetailResponse.model_validate(record).model_copy(
        update={
            "expired": record.is_expired(),
            "days_remaining": record.days_until_expiration(),
        }
    )


def _require_owner(user: User, record: FileRecord) -> None:
    if record.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner can modify this file",
        )


async def _read_upload(upload: UploadFile, max_size: int) -> bytes:
    # One byte over the limit is enough for the service to reject it
    return await upload.read(max_size + 1)


@router.post("", response_model=FileDetailResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    user: MemberUser,
    files: Files,
    ctx: Context,
    file: UploadFile = File(...),
    category: str = Form(FileCategory.QUESTION_PAPER.value),
    subject_id: Optional[uuid.UUID] = Form(None),
):
    """Encrypt and store a new file. It starts as version 1 in DRAFT."""
    content = await _read_upload(file, ctx.settings.max_upload_size)
    record = await files.upload(
        owner=user,
        file_name=file.filename or "",
        content=content,
        content_type=file.content_type or "",
        category=category,
        subject_id=subject_id,
        ip_address=get_client_ip(request),
    )
    return to_detail(record)


@router.get("/mine", response_model=List[FileResponse])
async def list_my_files(user: MemberUser, files: Files):
    return await files.list_owner_files(user.id)


@router.get("/{file_id}", response_model=FileDetailResponse)
async def get_file(file_id: uuid.UUID, user: MemberUser, files: Files, access: Access):
    record = await load_viewable_file(file_id, user, files, access)
    return to_detail(record)


@router.patch("/{file_id}", response_model=FileDetailResponse)
async def update_file_metadata(
    request: Request,
    file_id: uuid.UUID,
    data: FileMetadataUpdate,
    user: MemberUser,
    files: Files,
):
    """Rename or recategorise. Only allowed while the file is a DRAFT."""
    _require_owner(user, await files.get_file(file_id))
    record = await files.update_metadata(
        file_id,
        user,
        file_name=data.file_name,
        category=data.category,
        ip_address=get_client_ip(request),
    )
    return to_detail(record)


@router.put("/{file_id}/expiration", response_model=FileDetailResponse)
async def set_file_expiration(
    request: Request,
    file_id: uuid.UUID,
    data: ExpirationUpdate,
    user: MemberUser,
    files: Files,
):
    _require_owner(user, await files.get_file(file_id))
    record = await files.set_expiration(
        file_id, user, data.expires_at, ip_address=get_client_ip(request)
    )
    return to_detail(record)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(request: Request, file_id: uuid.UUID, user: MemberUser, files: Files):
    _require_owner(user, await files.get_file(file_id))
    await files.delete(file_id, user, ip_address=get_client_ip(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{file_id}/versions", response_model=FileDetailResponse, status_code=status.HTTP_201_CREATED)
async def upload_new_version(
    request: Request,
    file_id: uuid.UUID,
    user: MemberUser,
    files: Files,
    ctx: Context,
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
):
    """Replace the content; the file goes back to DRAFT with version + 1."""
    _require_owner(user, await files.get_file(file_id))
    content = await _read_upload(file, ctx.settings.max_upload_size)
    record = await files.upload_new_version(
        file_id,
        user,
        file_name=file.filename or "",
        content=content,
        content_type=file.content_type or "",
        description=description,
        ip_address=get_client_ip(request),
    )
    return to_detail(record)


@router.get("/{file_id}/versions", response_model=List[FileVersionResponse])
async def list_versions(file_id: uuid.UUID, user: MemberUser, files: Files, access: Access):
    await load_viewable_file(file_id, user, files, access)
    return await files.list_versions(file_id)


@router.get("/{file_id}/download")
async def download_file(
    request: Request,
    file_id: uuid.UUID,
    user: MemberUser,
    files: Files,
    access: Access,
    version: Optional[int] = None,
):
    """Decrypted content of the latest version, or of ?version=n."""
    await load_viewable_file(file_id, user, files, access)
    result = await files.download(file_id, user, version=version, ip_address=get_client_ip(request))
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.file_name)}",
            "X-File-Version": str(result.version),
        },
    )


@router.get("/{file_id}/downloads", response_model=DownloadHistoryResponse)
async def get_download_history(file_id: uuid.UUID, user: MemberUser, files: Files, access: Access):
    record = await load_viewable_file(file_id, user, files, access)
    return DownloadHistoryResponse(
        file_id=record.id,
        downloads=record.downloads,
        history=await files.download_history(file_id),
    )

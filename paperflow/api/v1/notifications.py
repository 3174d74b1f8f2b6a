"""
Notification endpoints for the current user.
"""

import uuid
from typing import List

from fastapi import APIRouter, Response, status

from paperflow.api.deps import CurrentUser, Notifications
from paperflow.schemas.common import CountResponse
from paperflow.schemas.notification import NotificationResponse

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(user: CurrentUser, notifications: Notifications, limit: int = 50):
    return await notifications.list_for_user(user.id, limit=min(max(limit, 1), 200))


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(user: CurrentUser, notifications: Notifications):
    return CountResponse(count=await notifications.unread_count(user.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: uuid.UUID, user: CurrentUser, notifications: Notifications):
    return await notifications.mark_read(user.id, notification_id)


@router.post("/read-all", response_model=CountResponse)
async def mark_all_read(user: CurrentUser, notifications: Notifications):
    return CountResponse(count=await notifications.mark_all_read(user.id))


@router.delete("/read", response_model=CountResponse)
async def clear_read(user: CurrentUser, notifications: Notifications):
    return CountResponse(count=await notifications.clear_read(user.id))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: uuid.UUID, user: CurrentUser, notifications: Notifications):
    await notifications.delete(user.id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", response_model=CountResponse)
async def clear_all(user: CurrentUser, notifications: Notifications):
    return CountResponse(count=await notifications.clear_all(user.id))

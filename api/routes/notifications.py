"""API routes for the in-app notification center."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import AnyUser, get_notification_service
from api.models.responses import CountResponse, NotificationListResponse, NotificationResponse
from database.models import NotificationCategory
from homezy.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

Notifications = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    user: AnyUser,
    notifications: Notifications,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    is_read: bool | None = None,
    category: NotificationCategory | None = None,
):
    items, total, unread = await notifications.list_notifications(
        user.id, page=page, limit=limit, is_read=is_read, category=category
    )
    return {
        "items": items,
        "total": total,
        "unread_count": unread,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
    }


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(user: AnyUser, notifications: Notifications):
    return {"count": await notifications.unread_count(user.id)}


@router.patch("/read-all", response_model=CountResponse)
async def mark_all_read(user: AnyUser, notifications: Notifications):
    return {"count": await notifications.mark_all_as_read(user.id)}


@router.delete("/read", response_model=CountResponse)
async def delete_read(user: AnyUser, notifications: Notifications):
    return {"count": await notifications.delete_all_read(user.id)}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: UUID, user: AnyUser, notifications: Notifications):
    notification = await notifications.mark_as_read(notification_id, user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: UUID, user: AnyUser, notifications: Notifications):
    if not await notifications.delete_notification(notification_id, user.id):
        raise HTTPException(status_code=404, detail="Notification not found")

"""
DisasterHub Backend — Notification Inbox Routes
=================================================

What:  /api/notifications — the caller's own notifications.
How:   Every query is scoped to the caller; another user's notification id
       behaves exactly like an unknown one (404).

Route Inventory:
    GET    /notifications                 newest first, capped
    GET    /notifications/unread-count    → {count}
    PUT    /notifications/mark-all-read   → {message}
    PUT    /notifications/{id}/read       → {notification}
    DELETE /notifications/{id}            → {message}
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from disasterhub.database import get_db_session
from disasterhub.dependencies import get_current_user
from disasterhub.models.user import User
from disasterhub.schemas.common import CountResponse, ErrorResponse, MessageResponse
from disasterhub.schemas.notification import (
    NotificationEnvelope,
    NotificationListResponse,
    NotificationResponse,
)
from disasterhub.services.notification_service import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])

_ERRORS = {
    401: {"description": "Missing, invalid or expired token", "model": ErrorResponse},
    404: {"description": "Notification not found", "model": ErrorResponse},
}


@router.get("", response_model=NotificationListResponse, responses=_ERRORS, summary="Own notifications")
async def list_notifications(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    notifications = await notification_service.list_for(db, current_user.id)
    return NotificationListResponse(
        count=len(notifications),
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
    )


@router.get("/unread-count", response_model=CountResponse, responses=_ERRORS, summary="Unread count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> CountResponse:
    return CountResponse(count=await notification_service.unread_count(db, current_user.id))


@router.put("/mark-all-read", response_model=MessageResponse, responses=_ERRORS, summary="Mark all read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.mark_all_read(db, current_user.id)
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=NotificationEnvelope, responses=_ERRORS, summary="Mark read")
async def mark_read(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationEnvelope:
    notification = await notification_service.mark_read(db, current_user.id, notification_id)
    return NotificationEnvelope(notification=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=MessageResponse, responses=_ERRORS, summary="Delete")
async def delete_notification(
    notification_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.delete(db, current_user.id, notification_id)
    return MessageResponse(message="Notification deleted")

"""
Notification endpoints
======================

GET    /api/v1/notifications             -- list (unread count included)
PUT    /api/v1/notifications/{id}/read   -- mark one read
PUT    /api/v1/notifications/read-all    -- mark all read
DELETE /api/v1/notifications/{id}        -- delete one
POST   /api/v1/notifications/send        -- send to a user (admin)
GET    /api/v1/notifications/preferences -- channel preferences
PUT    /api/v1/notifications/preferences -- update channel preferences
POST   /api/v1/notifications/test        -- send a test email now
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from src.api.auth import get_identity, require_admin
from src.api.dependencies import get_notification_service
from src.api.middleware import limiter
from src.api.schemas import (
    MessageResponse,
    NotificationPage,
    NotificationPreferences,
    NotificationResponse,
    NotificationSendRequest,
    Page,
)
from src.config import settings
from src.domain.entities import Identity
from src.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _preferences(user) -> NotificationPreferences:
    return NotificationPreferences(
        email=user.notify_email, sms=user.notify_sms, push=user.notify_push
    )


@router.get("", response_model=NotificationPage, summary="List notifications")
@limiter.limit(settings.rate_limit)
async def list_notifications(
    request: Request,
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    items, total, unread = await notifications.list(
        identity, unread_only=unread_only, page=page, limit=limit
    )
    return NotificationPage(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        page=page,
        limit=limit,
        pages=Page.count_pages(total, limit),
        unread_count=unread,
    )


@router.put("/read-all", response_model=MessageResponse, summary="Mark all read")
@limiter.limit(settings.rate_limit)
async def mark_all_read(
    request: Request,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    count = await notifications.mark_all_read(identity)
    return MessageResponse(message=f"{count} notifications marked as read")


@router.put(
    "/{notification_id}/read", response_model=NotificationResponse, summary="Mark one read"
)
@limiter.limit(settings.rate_limit)
async def mark_read(
    request: Request,
    notification_id: int,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    return NotificationResponse.model_validate(
        await notifications.mark_read(identity, notification_id)
    )


@router.delete("/{notification_id}", response_model=MessageResponse, summary="Delete one")
@limiter.limit(settings.rate_limit)
async def delete_notification(
    request: Request,
    notification_id: int,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    await notifications.delete(identity, notification_id)
    return MessageResponse(message="Notification deleted successfully")


@router.post(
    "/send", status_code=201, response_model=NotificationResponse, summary="Send (admin)"
)
@limiter.limit(settings.rate_limit)
async def send_notification(
    request: Request,
    body: NotificationSendRequest,
    identity: Identity = Depends(require_admin),
    notifications: NotificationService = Depends(get_notification_service),
):
    notification, _user = await notifications.send(
        body.user_id, body.type, body.title, body.message, body.data
    )
    return NotificationResponse.model_validate(notification)


@router.get("/preferences", response_model=NotificationPreferences, summary="Channel preferences")
@limiter.limit(settings.rate_limit)
async def get_preferences(
    request: Request,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    return _preferences(await notifications.preferences(identity))


@router.put("/preferences", response_model=NotificationPreferences, summary="Update preferences")
@limiter.limit(settings.rate_limit)
async def update_preferences(
    request: Request,
    body: NotificationPreferences,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    user = await notifications.update_preferences(
        identity, email=body.email, sms=body.sms, push=body.push
    )
    return _preferences(user)


@router.post("/test", response_model=MessageResponse, summary="Send a test email")
@limiter.limit(settings.rate_limit)
async def test_email(
    request: Request,
    identity: Identity = Depends(get_identity),
    notifications: NotificationService = Depends(get_notification_service),
):
    email = await notifications.send_test_email(identity)
    return MessageResponse(message=f"Test email sent to {email}")

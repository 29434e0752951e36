"""
Persisted in-app notifications plus best-effort email fan-out.

Emails are queued on the request's ``BackgroundTasks`` so they run after
the response is sent and outside the database transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Identity
from src.domain.enums import NotificationType
from src.domain.errors import NotFound
from src.infrastructure.models import NotificationModel, UserModel
from src.infrastructure.repositories import NotificationRepository, UserRepository
from src.services.mailer import Mailer

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(
        self,
        session: AsyncSession,
        mailer: Mailer,
        background: BackgroundTasks,
    ):
        self.repo = NotificationRepository(session)
        self.users = UserRepository(session)
        self.mailer = mailer
        self.background = background

    def queue_email(self, to: str, template: str, data: dict[str, Any], subject: Optional[str] = None) -> None:
        self.background.add_task(self.mailer.send, to, template, data, subject)

    async def notify(
        self,
        user: UserModel,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> NotificationModel:
        notification = await self.repo.add(
            NotificationModel(
                user_id=user.id,
                type=type,
                title=title,
                message=message,
                data=data or {},
                is_read=False,
            )
        )
        if user.notify_email:
            self.queue_email(
                user.email,
                "notification",
                {"name": user.name, "message": message, "type": type.value, **(data or {})},
                subject=title,
            )
        return notification

    async def notify_user_id(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[NotificationModel]:
        user = await self.users.get_by_id(user_id)
        if user is None:
            logger.warning("Notification %s for missing user %s dropped", type.value, user_id)
            return None
        return await self.notify(user, type, title, message, data)


class NotificationService:
    def __init__(self, session: AsyncSession, notifier: Notifier):
        self.repo = NotificationRepository(session)
        self.users = UserRepository(session)
        self.notifier = notifier

    async def list(
        self, identity: Identity, *, unread_only: bool, page: int, limit: int
    ) -> tuple[list[NotificationModel], int, int]:
        items, total = await self.repo.list_for_user(
            identity.id, unread_only=unread_only, page=page, limit=limit
        )
        unread = await self.repo.unread_count(identity.id)
        return items, total, unread

    async def mark_read(self, identity: Identity, notification_id: int) -> NotificationModel:
        notification = await self.repo.get_for_user(identity.id, notification_id)
        if notification is None:
            raise NotFound("Notification not found")
        notification.is_read = True
        return notification

    async def mark_all_read(self, identity: Identity) -> int:
        return await self.repo.mark_all_read(identity.id)

    async def delete(self, identity: Identity, notification_id: int) -> None:
        if not await self.repo.delete(identity.id, notification_id):
            raise NotFound("Notification not found")

    async def send(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> tuple[NotificationModel, UserModel]:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        notification = await self.notifier.notify(user, type, title, message, data)
        return notification, user

    async def preferences(self, identity: Identity) -> UserModel:
        user = await self.users.get_by_id(identity.id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_preferences(
        self,
        identity: Identity,
        *,
        email: Optional[bool] = None,
        sms: Optional[bool] = None,
        push: Optional[bool] = None,
    ) -> UserModel:
        user = await self.preferences(identity)
        if email is not None:
            user.notify_email = email
        if sms is not None:
            user.notify_sms = sms
        if push is not None:
            user.notify_push = push
        return user

    async def send_test_email(self, identity: Identity) -> str:
        """Sent inline (not queued); raises ``UpstreamFailure`` on failure."""
        user = await self.preferences(identity)
        await self.notifier.mailer.send(
            user.email,
            "notification",
            {
                "name": user.name,
                "message": "This is a test notification to verify your email settings.",
                "type": "test",
            },
            subject="Test Notification",
            strict=True,
        )
        return user.email

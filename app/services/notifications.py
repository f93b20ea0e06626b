"""In-app notifications shown in the client's bell."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from app.application.interfaces import NotificationRepositoryInterface
from app.domain.models import Notification

logger = logging.getLogger(__name__)


class NotificationKind:
    PARTNER_INVITED = "partner_invited"
    ROOM_CREATED = "room_created"
    TAKE_APPROVED = "take_approved"
    TAKE_REJECTED = "take_rejected"


class NotificationService:
    def __init__(self, repository: NotificationRepositoryInterface):
        self.repository = repository

    async def notify(
        self,
        user_id: str,
        kind: str,
        message: str,
        link: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            id=str(uuid4()),
            user_id=user_id,
            kind=kind,
            message=message,
            link=link,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        stored = await self.repository.create(notification)
        logger.debug("Notified user=%s kind=%s", user_id, kind)
        return stored

    async def list_for_user(self, user_id: str) -> List[Notification]:
        return await self.repository.list_for_user(user_id)

    async def mark_read(self, user_id: str, notification_id: str) -> int:
        return await self.repository.mark_read(user_id, notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self.repository.mark_read(user_id)


__all__ = ["NotificationKind", "NotificationService"]

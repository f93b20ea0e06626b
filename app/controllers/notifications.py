"""In-app notification endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter

from app.controllers.dependencies import CurrentUserDep, NotificationServiceDep
from app.views import MarkReadResponse, NotificationResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
) -> List[NotificationResponse]:
    notifications = await service.list_for_user(current_user.id)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    notification_id: str,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
) -> MarkReadResponse:
    updated = await service.mark_read(current_user.id, notification_id)
    return MarkReadResponse(updated=updated)


@router.post("/read-all", response_model=MarkReadResponse)
async def mark_all_notifications_read(
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
) -> MarkReadResponse:
    updated = await service.mark_all_read(current_user.id)
    return MarkReadResponse(updated=updated)

"""Call room endpoints."""

from __future__ import annotations

from datetime import timezone

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Annotated

from app.application.interfaces import RoomProviderInterface
from app.controllers.dependencies import (
    CurrentUserDep,
    TaskSessionServiceDep,
    get_room_provider,
)
from app.domain.errors import ActorNotAllowed, RoomNotFound
from app.domain.models import Room, UserAccount
from app.views import MeetingTokenResponse, RoomResponse, TaskSessionResponse

router = APIRouter(prefix="/rooms", tags=["rooms"])


async def _room_for_party(
    room_id: str,
    user: UserAccount,
    service: TaskSessionServiceDep,
) -> Room:
    room = await service.rooms.get(room_id)
    if room is None:
        raise RoomNotFound()
    if room.created_by == user.id or user.is_admin:
        return room
    session = await service.find_by_room(room_id)
    if session is None or not session.is_party(user.id):
        raise ActorNotAllowed("You are not a participant in this room")
    return room


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> RoomResponse:
    room = await _room_for_party(room_id, current_user, service)
    return RoomResponse.model_validate(room)


@router.post("/{room_id}/token", response_model=MeetingTokenResponse)
async def create_meeting_token(
    room_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
    provider: Annotated[RoomProviderInterface, Depends(get_room_provider)],
) -> MeetingTokenResponse:
    room = await _room_for_party(room_id, current_user, service)
    token = await provider.create_meeting_token(
        room.provider_room_name,
        room.expires_at.replace(tzinfo=timezone.utc),
    )
    return MeetingTokenResponse(token=token, room_url=room.url)


@router.get("/{room_id}/task-session", response_model=TaskSessionResponse)
async def get_room_task_session(
    room_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.get_by_room(
        room_id, current_user.id, is_admin=current_user.is_admin
    )
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No task session uses this room",
        )
    return TaskSessionResponse.model_validate(session)

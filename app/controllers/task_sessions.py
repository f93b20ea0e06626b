"""Task session endpoints; every transition returns the full session."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, status

from app.controllers.dependencies import CurrentUserDep, TaskSessionServiceDep
from app.domain.catalog import TASK_TYPES
from app.views import (
    ErrorResponse,
    InvitePartnerRequest,
    TaskSessionCreateRequest,
    TaskSessionResponse,
    TaskTypeResponse,
)

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}

catalog_router = APIRouter(prefix="/task-types", tags=["task-sessions"])
router = APIRouter(prefix="/task-sessions", tags=["task-sessions"], responses=_ERRORS)


@catalog_router.get("", response_model=List[TaskTypeResponse])
async def list_task_types() -> List[TaskTypeResponse]:
    return [TaskTypeResponse.model_validate(task) for task in TASK_TYPES]


@router.post("", response_model=TaskSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_task_session(
    payload: TaskSessionCreateRequest,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    """Start a task; returns the active session of that type if one exists."""

    session = await service.create(
        payload.task_type,
        current_user.id,
        partner_email=payload.partner_email,
    )
    return TaskSessionResponse.model_validate(session)


@router.get("", response_model=List[TaskSessionResponse])
async def list_task_sessions(
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> List[TaskSessionResponse]:
    sessions = await service.list_for_user(current_user.id)
    return [TaskSessionResponse.model_validate(s) for s in sessions]


@router.get("/{session_id}", response_model=TaskSessionResponse)
async def get_task_session(
    session_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.get(session_id, current_user.id, is_admin=current_user.is_admin)
    return TaskSessionResponse.model_validate(session)


@router.post("/{session_id}/invite-partner", response_model=TaskSessionResponse)
async def invite_partner(
    session_id: str,
    payload: InvitePartnerRequest,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.invite_partner(session_id, payload.email, current_user.id)
    return TaskSessionResponse.model_validate(session)


@router.post("/{session_id}/create-room", response_model=TaskSessionResponse)
async def create_room(
    session_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.create_room(session_id, current_user.id)
    return TaskSessionResponse.model_validate(session)


@router.post("/{session_id}/start", response_model=TaskSessionResponse)
async def start_recording(
    session_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.start_recording(session_id, current_user.id)
    return TaskSessionResponse.model_validate(session)


@router.patch("/{session_id}/complete", response_model=TaskSessionResponse)
async def complete_task_session(
    session_id: str,
    current_user: CurrentUserDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.complete(session_id, current_user.id)
    return TaskSessionResponse.model_validate(session)

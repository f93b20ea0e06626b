"""Administrative endpoints: account approval and take review."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from app.controllers.dependencies import (
    AdminDep,
    RecordingServiceDep,
    SessionDep,
    TaskSessionServiceDep,
)
from app.models.user import User as UserModel
from app.views import (
    PaidRequest,
    ReconcileResponse,
    RecordingResponse,
    ReviewerStatusRequest,
    TaskSessionResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=List[UserResponse])
async def list_users(_: AdminDep, session: SessionDep) -> List[UserResponse]:
    result = await session.execute(select(UserModel).order_by(UserModel.created_at.desc()))
    return [UserResponse.model_validate(user) for user in result.scalars().all()]


@router.patch("/users/{user_id}/approve", response_model=UserResponse)
async def approve_user(
    user_id: str,
    admin: AdminDep,
    session: SessionDep,
    task_sessions: TaskSessionServiceDep,
) -> UserResponse:
    """Approve an account and advance the sessions waiting on it."""

    user = await session.get(UserModel, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if not user.approved:
        user.approved = True
        await session.commit()
        logger.info("Admin %s approved user %s", admin.id, user_id)
    await session.refresh(user)
    response = UserResponse.model_validate(user)

    await task_sessions.on_partner_approved(user_id)
    return response


@router.get("/task-sessions", response_model=List[TaskSessionResponse])
async def list_task_sessions(
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> List[TaskSessionResponse]:
    return [TaskSessionResponse.model_validate(s) for s in await service.list_all()]


@router.post("/task-sessions/reconcile", response_model=ReconcileResponse)
async def reconcile_task_sessions(
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> ReconcileResponse:
    return ReconcileResponse(advanced=await service.reconcile_pending())


@router.patch("/task-sessions/{session_id}/approve", response_model=TaskSessionResponse)
async def approve_task_session(
    session_id: str,
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    return TaskSessionResponse.model_validate(await service.admin_approve(session_id))


@router.patch("/task-sessions/{session_id}/reject", response_model=TaskSessionResponse)
async def reject_task_session(
    session_id: str,
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    """Send the session back to ``room_created`` for another take."""

    return TaskSessionResponse.model_validate(await service.admin_reject(session_id))


@router.patch("/task-sessions/{session_id}/reviewer-status", response_model=TaskSessionResponse)
async def set_reviewer_status(
    session_id: str,
    payload: ReviewerStatusRequest,
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.set_reviewer_status(session_id, payload.reviewer_status)
    return TaskSessionResponse.model_validate(session)


@router.patch("/task-sessions/{session_id}/paid", response_model=TaskSessionResponse)
async def set_paid(
    session_id: str,
    payload: PaidRequest,
    _: AdminDep,
    service: TaskSessionServiceDep,
) -> TaskSessionResponse:
    session = await service.set_paid(session_id, payload.paid)
    return TaskSessionResponse.model_validate(session)


@router.get("/recordings", response_model=List[RecordingResponse])
async def list_recordings(
    _: AdminDep,
    service: RecordingServiceDep,
) -> List[RecordingResponse]:
    return [RecordingResponse.model_validate(r) for r in await service.list_all()]

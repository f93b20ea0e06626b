"""Authentication controller providing registration and login endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select

from app.config.settings import settings
from app.controllers.dependencies import SessionDep, TaskSessionServiceDep
from app.domain.models import UserRole
from app.models.user import User as UserModel
from app.utils import create_access_token, hash_password, verify_password
from app.views import LoginRequest, RegisterRequest, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(user: UserModel) -> TokenResponse:
    role = user.role.value if isinstance(user.role, UserRole) else str(user.role)
    return TokenResponse(
        access_token=create_access_token(subject=str(user.id), role=role),
        expires_in=settings.security.access_token_expires_minutes * 60,
        user_id=str(user.id),
        role=role,
        approved=bool(user.approved),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    session: SessionDep,
    task_sessions: TaskSessionServiceDep,
) -> UserResponse:
    """Create an account and link any task sessions that invited this email."""

    email = payload.email.strip().lower()
    result = await session.execute(
        select(UserModel).where(func.lower(UserModel.email) == email)
    )
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = UserModel(
        email=email,
        password_hash=hash_password(payload.password),
        role=UserRole.USER,
        approved=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    linked = await task_sessions.on_partner_registered(email)
    if linked:
        logger.info("Linked %d task session(s) to new user %s", len(linked), user.id)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    session: SessionDep,
) -> TokenResponse:
    """Validate credentials and issue a JWT access token."""

    result = await session.execute(
        select(UserModel).where(func.lower(UserModel.email) == payload.email.lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return _token_for(user)

"""User controller."""

from __future__ import annotations

from fastapi import APIRouter

from app.controllers.dependencies import CurrentUserDep
from app.views import UserResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: CurrentUserDep) -> UserResponse:
    return UserResponse.model_validate(current_user)

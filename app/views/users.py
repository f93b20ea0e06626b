"""Pydantic schemas for user accounts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.domain.models import UserRole


class UserResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    approved: bool
    created_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = ["UserResponse"]

"""Pydantic schemas for in-app notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    id: str
    kind: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class MarkReadResponse(BaseModel):
    updated: int


__all__ = ["MarkReadResponse", "NotificationResponse"]

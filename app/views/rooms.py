"""Pydantic schemas for call rooms."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RoomResponse(BaseModel):
    id: str
    name: str
    provider_room_name: str = Field(
        validation_alias=AliasChoices("providerRoomName", "provider_room_name"),
        serialization_alias="providerRoomName",
    )
    url: str
    created_by: str = Field(
        validation_alias=AliasChoices("createdBy", "created_by"),
        serialization_alias="createdBy",
    )
    expires_at: datetime = Field(
        validation_alias=AliasChoices("expiresAt", "expires_at"),
        serialization_alias="expiresAt",
    )
    created_at: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class MeetingTokenResponse(BaseModel):
    token: str
    room_url: str = Field(
        validation_alias=AliasChoices("roomUrl", "room_url"),
        serialization_alias="roomUrl",
    )


__all__ = ["MeetingTokenResponse", "RoomResponse"]

"""Pydantic schemas for task sessions and the task catalog."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from app.domain.models import PartnerStatus, ReviewerStatus, SessionStatus


class TaskTypeResponse(BaseModel):
    id: str
    name: str
    requires_partner: bool = Field(
        validation_alias=AliasChoices("requiresPartner", "requires_partner"),
        serialization_alias="requiresPartner",
    )
    instructions: str

    model_config = ConfigDict(from_attributes=True)


class TaskSessionCreateRequest(BaseModel):
    task_type: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("taskType", "task_type", "taskTypeId"),
    )
    partner_email: Optional[EmailStr] = Field(
        None,
        validation_alias=AliasChoices("partnerEmail", "partner_email"),
    )


class InvitePartnerRequest(BaseModel):
    email: EmailStr


class ReviewerStatusRequest(BaseModel):
    reviewer_status: Optional[ReviewerStatus] = Field(
        None,
        validation_alias=AliasChoices("reviewerStatus", "reviewer_status"),
    )


class PaidRequest(BaseModel):
    paid: bool


class ReconcileResponse(BaseModel):
    advanced: int


class TaskSessionResponse(BaseModel):
    """Full session state, returned by every transition."""

    id: str
    task_type: str = Field(
        validation_alias=AliasChoices("taskType", "task_type"),
        serialization_alias="taskType",
    )
    user_id: str = Field(
        validation_alias=AliasChoices("userId", "user_id"),
        serialization_alias="userId",
    )
    partner_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("partnerId", "partner_id"),
        serialization_alias="partnerId",
    )
    partner_email: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("partnerEmail", "partner_email"),
        serialization_alias="partnerEmail",
    )
    partner_status: PartnerStatus = Field(
        validation_alias=AliasChoices("partnerStatus", "partner_status"),
        serialization_alias="partnerStatus",
    )
    status: SessionStatus
    room_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("roomId", "room_id"),
        serialization_alias="roomId",
    )
    reviewer_status: Optional[ReviewerStatus] = Field(
        None,
        validation_alias=AliasChoices("reviewerStatus", "reviewer_status"),
        serialization_alias="reviewerStatus",
    )
    paid: bool = False
    created_at: datetime = Field(
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )
    updated_at: datetime = Field(
        validation_alias=AliasChoices("updatedAt", "updated_at"),
        serialization_alias="updatedAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = [
    "InvitePartnerRequest",
    "PaidRequest",
    "ReconcileResponse",
    "ReviewerStatusRequest",
    "TaskSessionCreateRequest",
    "TaskSessionResponse",
    "TaskTypeResponse",
]

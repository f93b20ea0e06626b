"""Domain entities shared by the task-session and recording use cases."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class PartnerStatus(str, Enum):
    """Where the invited partner is in their own onboarding."""

    NONE = "none"
    INVITED = "invited"
    REGISTERED = "registered"
    APPROVED = "approved"
    READY = "ready"


class SessionStatus(str, Enum):
    """Lifecycle of a two-party recording task, in forward order."""

    INVITING_PARTNER = "inviting_partner"
    WAITING_APPROVAL = "waiting_approval"
    READY_TO_RECORD = "ready_to_record"
    ROOM_CREATED = "room_created"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    COMPLETED = "completed"


class ReviewerStatus(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    UNSURE = "unsure"


class RecordingType(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    CLOUD = "cloud"


class UserAccount(BaseModel):
    """The slice of identity this core consumes: an id, an email, an approval flag."""

    id: str
    email: str
    role: UserRole = UserRole.USER
    approved: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class TaskSession(BaseModel):
    """Domain model for a paired recording task."""

    id: str
    task_type: str
    user_id: str
    partner_id: Optional[str] = None
    partner_email: Optional[str] = None
    partner_status: PartnerStatus = PartnerStatus.NONE
    status: SessionStatus = SessionStatus.INVITING_PARTNER
    room_id: Optional[str] = None
    reviewer_status: Optional[ReviewerStatus] = None
    paid: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_party(self, user_id: str) -> bool:
        return user_id == self.user_id or (
            self.partner_id is not None and user_id == self.partner_id
        )


class Room(BaseModel):
    """A call room allocated from the conferencing provider."""

    id: str
    name: str
    provider_room_name: str
    url: str
    created_by: str
    expires_at: datetime
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Recording(BaseModel):
    """One captured track plus, once processed, its archival descriptor."""

    id: str
    room_id: str
    user_id: str
    recording_type: RecordingType
    speaker_id: Optional[str] = None
    storage_key: str
    storage_bucket: str
    file_name: str
    format: str = "webm"
    sample_rate: int = 48000
    channels: int = 1
    duration: Optional[int] = None
    file_size: Optional[int] = None
    reserved_folder: Optional[str] = None
    processed_folder: Optional[str] = None
    wav_key: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_processed(self) -> bool:
        return self.processed_folder is not None

    @property
    def raw_extension(self) -> str:
        """Extension of the raw artifact, from the file name or the declared format."""

        _, dot, suffix = self.file_name.rpartition(".")
        if dot and suffix and "/" not in suffix:
            return suffix.lower()
        return (self.format or "webm").lower()


class Notification(BaseModel):
    id: str
    user_id: str
    kind: str
    message: str
    link: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


__all__ = [
    "Notification",
    "PartnerStatus",
    "Recording",
    "RecordingType",
    "ReviewerStatus",
    "Room",
    "SessionStatus",
    "TaskSession",
    "UserAccount",
    "UserRole",
]

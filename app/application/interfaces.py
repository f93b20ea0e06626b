from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Mapping, Optional

from app.domain.models import (
    Notification,
    Recording,
    Room,
    SessionStatus,
    TaskSession,
    UserAccount,
)


class UserDirectoryInterface(ABC):
    """Read-only view of the identity collaborator"""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[UserAccount]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        ...


class TaskSessionRepositoryInterface(ABC):
    """Persistence contract for task sessions"""

    @abstractmethod
    async def create(self, session: TaskSession) -> TaskSession:
        """Insert the session, unless the initiator already has an unfinished one
        of the same task type; that existing session is returned instead.
        """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[TaskSession]:
        ...

    @abstractmethod
    def locked(self, session_id: str) -> AbstractAsyncContextManager[Optional[TaskSession]]:
        """Yield the session while holding an exclusive lock on it.

        Writes made through :meth:`save` inside the block are committed when
        the block exits normally and discarded when it raises.
        """

    @abstractmethod
    async def save(self, session: TaskSession) -> TaskSession:
        ...

    @abstractmethod
    async def find_active(self, user_id: str, task_type: str) -> Optional[TaskSession]:
        ...

    @abstractmethod
    async def get_by_room(self, room_id: str) -> Optional[TaskSession]:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[TaskSession]:
        ...

    @abstractmethod
    async def list_all(self) -> List[TaskSession]:
        ...

    @abstractmethod
    async def list_unlinked_by_partner_email(self, email: str) -> List[TaskSession]:
        ...

    @abstractmethod
    async def list_by_partner(self, partner_id: str) -> List[TaskSession]:
        ...

    @abstractmethod
    async def list_by_status(self, statuses: List[SessionStatus]) -> List[TaskSession]:
        ...


class RoomRepositoryInterface(ABC):
    """Persistence contract for call rooms"""

    @abstractmethod
    async def create(self, room: Room) -> Room:
        ...

    @abstractmethod
    async def get(self, room_id: str) -> Optional[Room]:
        ...


class RecordingRepositoryInterface(ABC):
    """Persistence contract for recordings"""

    @abstractmethod
    async def create(self, recording: Recording) -> Recording:
        ...

    @abstractmethod
    async def get(self, recording_id: str) -> Optional[Recording]:
        ...

    @abstractmethod
    async def reserve_folder(self, recording_id: str, folder: str) -> str:
        """Set ``reserved_folder`` unless already set; return the effective value."""

    @abstractmethod
    async def mark_processed(
        self,
        recording_id: str,
        folder: str,
        wav_key: str,
    ) -> Recording:
        """Set ``processed_folder``/``wav_key`` once; return the stored row."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Recording]:
        ...

    @abstractmethod
    async def list_for_room(self, room_id: str) -> List[Recording]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Recording]:
        ...


class FolderAllocatorInterface(ABC):
    """Single atomic counter handing out archival folder numbers"""

    @abstractmethod
    async def next_value(self) -> int:
        ...

    @abstractmethod
    async def ensure_at_least(self, value: int) -> None:
        ...


class NotificationRepositoryInterface(ABC):
    """Persistence contract for in-app notifications"""

    @abstractmethod
    async def create(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Notification]:
        ...

    @abstractmethod
    async def mark_read(self, user_id: str, notification_id: Optional[str] = None) -> int:
        ...


@dataclass(frozen=True)
class AllocatedRoom:
    name: str
    url: str
    expires_at: datetime


class RoomProviderInterface(ABC):
    """Conferencing collaborator that allocates joinable rooms"""

    @abstractmethod
    async def create_room(self, name: Optional[str] = None) -> AllocatedRoom:
        ...

    @abstractmethod
    async def create_meeting_token(self, room_name: str, expires_at: datetime) -> str:
        ...


class InvitationSenderInterface(ABC):
    """Out-of-band delivery of partner invitations"""

    @abstractmethod
    async def send_partner_invitation(
        self,
        *,
        recipient: str,
        inviter_email: str,
        task_name: str,
    ) -> None:
        ...


class ObjectStorageInterface(ABC):
    """Object storage contract consumed by the recording pipeline"""

    @abstractmethod
    async def presign_upload(
        self,
        key: str,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> str:
        ...

    @abstractmethod
    async def presign_download(self, key: str) -> str:
        ...

    @abstractmethod
    async def get_bytes(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def copy(self, src_key: str, dst_key: str) -> None:
        ...

    @property
    @abstractmethod
    def bucket(self) -> str:
        ...


class TranscoderInterface(ABC):
    """External transcoding process"""

    @abstractmethod
    async def to_canonical_wav(self, source: Path, destination: Path) -> None:
        ...

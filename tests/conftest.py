"""Shared in-memory doubles for the repositories and external collaborators."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Mapping, Optional

import pytest

from app.application.interfaces import (
    AllocatedRoom,
    FolderAllocatorInterface,
    InvitationSenderInterface,
    NotificationRepositoryInterface,
    ObjectStorageInterface,
    RecordingRepositoryInterface,
    RoomProviderInterface,
    RoomRepositoryInterface,
    TaskSessionRepositoryInterface,
    TranscoderInterface,
    UserDirectoryInterface,
)
from app.application.use_cases.recording_use_cases import RecordingService
from app.application.use_cases.task_session_use_cases import TaskSessionService
from app.domain.errors import TranscodeFailed, UploadIOError
from app.domain.models import (
    Notification,
    Recording,
    Room,
    SessionStatus,
    TaskSession,
    UserAccount,
    UserRole,
)
from app.services.notifications import NotificationService
from app.utils.retry import RetryPolicy

NO_BACKOFF = RetryPolicy(max_attempts=3, backoff_base_seconds=0)


class InMemoryUserDirectory(UserDirectoryInterface):
    def __init__(self) -> None:
        self._users: Dict[str, UserAccount] = {}

    def add(self, email: str, *, approved: bool = True, role: UserRole = UserRole.USER) -> UserAccount:
        account = UserAccount(id=str(uuid.uuid4()), email=email.lower(), approved=approved, role=role)
        self._users[account.id] = account
        return account

    def approve(self, user_id: str) -> None:
        self._users[user_id] = self._users[user_id].model_copy(update={"approved": True})

    async def get_by_id(self, user_id: str) -> Optional[UserAccount]:
        return self._users.get(user_id)

    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        wanted = email.strip().lower()
        return next((u for u in self._users.values() if u.email == wanted), None)


class InMemoryTaskSessionRepository(TaskSessionRepositoryInterface):
    """Row locks are per-id asyncio locks, held for the whole ``locked`` block."""

    def __init__(self) -> None:
        self._rows: Dict[str, TaskSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.saves = 0

    async def create(self, session: TaskSession) -> TaskSession:
        # check and insert with no await in between, like the partial unique index
        existing = self._active_row(session.user_id, session.task_type)
        if existing is not None:
            return existing.model_copy(deep=True)
        self._rows[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[TaskSession]:
        row = self._rows.get(session_id)
        return row.model_copy(deep=True) if row else None

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[Optional[TaskSession]]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        async with lock:
            yield await self.get(session_id)

    def locked(self, session_id: str):
        return self._locked(session_id)

    async def save(self, session: TaskSession) -> TaskSession:
        self.saves += 1
        self._rows[session.id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    def _active_row(self, user_id: str, task_type: str) -> Optional[TaskSession]:
        for row in self._rows.values():
            if (
                row.user_id == user_id
                and row.task_type == task_type
                and row.status != SessionStatus.COMPLETED
            ):
                return row
        return None

    async def find_active(self, user_id: str, task_type: str) -> Optional[TaskSession]:
        row = self._active_row(user_id, task_type)
        return row.model_copy(deep=True) if row else None

    async def get_by_room(self, room_id: str) -> Optional[TaskSession]:
        row = next((r for r in self._rows.values() if r.room_id == room_id), None)
        return row.model_copy(deep=True) if row else None

    async def list_for_user(self, user_id: str) -> List[TaskSession]:
        return [r.model_copy(deep=True) for r in self._rows.values() if r.is_party(user_id)]

    async def list_all(self) -> List[TaskSession]:
        return [r.model_copy(deep=True) for r in self._rows.values()]

    async def list_unlinked_by_partner_email(self, email: str) -> List[TaskSession]:
        wanted = email.strip().lower()
        return [
            r.model_copy(deep=True)
            for r in self._rows.values()
            if r.partner_email == wanted and r.partner_id is None
        ]

    async def list_by_partner(self, partner_id: str) -> List[TaskSession]:
        return [r.model_copy(deep=True) for r in self._rows.values() if r.partner_id == partner_id]

    async def list_by_status(self, statuses: List[SessionStatus]) -> List[TaskSession]:
        return [r.model_copy(deep=True) for r in self._rows.values() if r.status in statuses]


class InMemoryRoomRepository(RoomRepositoryInterface):
    def __init__(self) -> None:
        self.rooms: Dict[str, Room] = {}

    async def create(self, room: Room) -> Room:
        self.rooms[room.id] = room.model_copy(deep=True)
        return room

    async def get(self, room_id: str) -> Optional[Room]:
        room = self.rooms.get(room_id)
        return room.model_copy(deep=True) if room else None


class InMemoryRecordingRepository(RecordingRepositoryInterface):
    def __init__(self) -> None:
        self.rows: Dict[str, Recording] = {}

    async def create(self, recording: Recording) -> Recording:
        self.rows[recording.id] = recording.model_copy(deep=True)
        return recording.model_copy(deep=True)

    async def get(self, recording_id: str) -> Optional[Recording]:
        row = self.rows.get(recording_id)
        return row.model_copy(deep=True) if row else None

    async def reserve_folder(self, recording_id: str, folder: str) -> str:
        row = self.rows[recording_id]
        if row.reserved_folder is None:
            self.rows[recording_id] = row.model_copy(update={"reserved_folder": folder})
        return self.rows[recording_id].reserved_folder

    async def mark_processed(self, recording_id: str, folder: str, wav_key: str) -> Recording:
        row = self.rows[recording_id]
        if row.processed_folder is None:
            self.rows[recording_id] = row.model_copy(
                update={"processed_folder": folder, "wav_key": wav_key}
            )
        return self.rows[recording_id].model_copy(deep=True)

    async def list_for_user(self, user_id: str) -> List[Recording]:
        return [r.model_copy(deep=True) for r in self.rows.values() if r.user_id == user_id]

    async def list_for_room(self, room_id: str) -> List[Recording]:
        return [r.model_copy(deep=True) for r in self.rows.values() if r.room_id == room_id]

    async def list_all(self) -> List[Recording]:
        return [r.model_copy(deep=True) for r in self.rows.values()]


class InMemoryFolderAllocator(FolderAllocatorInterface):
    def __init__(self, start: int = 0) -> None:
        self.value = start
        self.handed_out: List[int] = []

    async def next_value(self) -> int:
        await asyncio.sleep(0)
        self.value += 1
        self.handed_out.append(self.value)
        return self.value

    async def ensure_at_least(self, value: int) -> None:
        self.value = max(self.value, value)


class InMemoryNotificationRepository(NotificationRepositoryInterface):
    def __init__(self) -> None:
        self.rows: Dict[str, Notification] = {}

    async def create(self, notification: Notification) -> Notification:
        self.rows[notification.id] = notification
        return notification

    async def list_for_user(self, user_id: str) -> List[Notification]:
        return [n for n in self.rows.values() if n.user_id == user_id]

    async def mark_read(self, user_id: str, notification_id: Optional[str] = None) -> int:
        updated = 0
        for key, row in self.rows.items():
            if row.user_id != user_id or row.read:
                continue
            if notification_id is not None and row.id != notification_id:
                continue
            self.rows[key] = row.model_copy(update={"read": True})
            updated += 1
        return updated


class FakeRoomProvider(RoomProviderInterface):
    def __init__(self) -> None:
        self.created: List[str] = []
        self.fail_with: Optional[Exception] = None

    async def create_room(self, name: Optional[str] = None) -> AllocatedRoom:
        # Yield so concurrent callers can interleave around the provider call.
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        room_name = name or f"room-{len(self.created)}"
        self.created.append(room_name)
        return AllocatedRoom(
            name=room_name,
            url=f"https://voice-atlas.daily.co/{room_name}",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=5),
        )

    async def create_meeting_token(self, room_name: str, expires_at: datetime) -> str:
        return f"token-{room_name}"


class FakeInvitationSender(InvitationSenderInterface):
    def __init__(self) -> None:
        self.sent: List[dict] = []

    async def send_partner_invitation(self, *, recipient: str, inviter_email: str, task_name: str) -> None:
        self.sent.append(
            {"recipient": recipient, "inviter_email": inviter_email, "task_name": task_name}
        )


class InMemoryObjectStorage(ObjectStorageInterface):
    """Dict-backed bucket; ``fail_puts`` makes the next N writes raise."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self._bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Mapping[str, str]] = {}
        self.fail_puts = 0

    @property
    def bucket(self) -> str:
        return self._bucket

    async def presign_upload(self, key: str, content_type: str, metadata: Mapping[str, str]) -> str:
        self.metadata[key] = dict(metadata)
        return f"https://storage.test/{self._bucket}/{key}?signature=put"

    async def presign_download(self, key: str) -> str:
        return f"https://storage.test/{self._bucket}/{key}?signature=get"

    async def get_bytes(self, key: str) -> bytes:
        if key not in self.objects:
            raise UploadIOError(f"missing object {key}")
        return self.objects[key]

    async def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_puts > 0:
            self.fail_puts -= 1
            raise UploadIOError(f"simulated failure writing {key}")
        self.objects[key] = data

    async def copy(self, src_key: str, dst_key: str) -> None:
        self.objects[dst_key] = await self.get_bytes(src_key)


class FakeTranscoder(TranscoderInterface):
    """Writes a tagged copy of the input; ``failures`` makes the next N calls fail."""

    def __init__(self) -> None:
        self.calls = 0
        self.failures = 0

    async def to_canonical_wav(self, source: Path, destination: Path) -> None:
        self.calls += 1
        await asyncio.sleep(0)
        if self.failures > 0:
            self.failures -= 1
            raise TranscodeFailed("simulated decoder crash", exit_code=1, stderr_tail="boom")
        destination.write_bytes(b"RIFF" + source.read_bytes())


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def session_repo() -> InMemoryTaskSessionRepository:
    return InMemoryTaskSessionRepository()


@pytest.fixture
def room_repo() -> InMemoryRoomRepository:
    return InMemoryRoomRepository()


@pytest.fixture
def recording_repo() -> InMemoryRecordingRepository:
    return InMemoryRecordingRepository()


@pytest.fixture
def allocator() -> InMemoryFolderAllocator:
    return InMemoryFolderAllocator()


@pytest.fixture
def notification_repo() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture
def room_provider() -> FakeRoomProvider:
    return FakeRoomProvider()


@pytest.fixture
def invitations() -> FakeInvitationSender:
    return FakeInvitationSender()


@pytest.fixture
def storage() -> InMemoryObjectStorage:
    return InMemoryObjectStorage()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def task_service(
    session_repo,
    room_repo,
    users,
    room_provider,
    invitations,
    notification_repo,
) -> TaskSessionService:
    return TaskSessionService(
        sessions=session_repo,
        rooms=room_repo,
        users=users,
        room_provider=room_provider,
        invitations=invitations,
        notifications=NotificationService(notification_repo),
    )


@pytest.fixture
def recording_service(
    recording_repo,
    room_repo,
    storage,
    transcoder,
    allocator,
    task_service,
    tmp_path,
) -> RecordingService:
    return RecordingService(
        recordings=recording_repo,
        rooms=room_repo,
        storage=storage,
        transcoder=transcoder,
        allocator=allocator,
        task_sessions=task_service,
        io_policy=NO_BACKOFF,
        transcode_policy=RetryPolicy(max_attempts=2, backoff_base_seconds=0),
        scratch_dir=str(tmp_path),
    )

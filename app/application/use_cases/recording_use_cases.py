"""Upload handoff, processing pipeline and downloads for recordings."""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union
from uuid import uuid4

from app.application.interfaces import (
    FolderAllocatorInterface,
    ObjectStorageInterface,
    RecordingRepositoryInterface,
    RoomRepositoryInterface,
    TranscoderInterface,
)
from app.application.use_cases.task_session_use_cases import TaskSessionService
from app.domain.errors import (
    ActorNotAllowed,
    InvalidFolderNumber,
    RecordingNotFound,
    RecordingNotProcessed,
    RoomNotFound,
    TranscodeFailed,
    UploadIOError,
)
from app.domain.models import Recording, RecordingType
from app.telemetry import (
    increment_folder_allocations,
    observe_transcode,
    record_processing,
)
from app.utils.retry import RetryPolicy, retry_async

logger = logging.getLogger("app.pipeline")

WAV_CONTENT_TYPE = "audio/wav"
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

FolderNumber = Union[int, str]


@dataclass(frozen=True)
class UploadTicket:
    upload_url: str
    recording_id: str
    storage_key: str


def format_folder(value: int, digits: int = 4) -> str:
    return str(value).zfill(digits)


def normalize_folder(value: FolderNumber, digits: int = 4) -> str:
    """Turn an override like ``7`` or ``"0007"`` into the padded folder name."""

    text = str(value).strip()
    if not text.isdigit() or int(text) <= 0:
        raise InvalidFolderNumber(f"Invalid folder number '{value}'")
    return format_folder(int(text), digits)


def archive_keys(folder: str, raw_extension: str, speaker_id: Optional[str] = None) -> tuple[str, str]:
    """Return ``(wav_key, raw_key)`` inside ``processed/{folder}/``.

    A raw upload that is already ``.wav`` is kept as ``{stem}_original.wav``
    so the copy never lands on the canonical key.
    """

    stem = f"{folder}_{speaker_id}" if speaker_id else folder
    raw_extension = raw_extension.lower()
    raw_stem = f"{stem}_original" if raw_extension == "wav" else stem
    return (
        f"processed/{folder}/{stem}.wav",
        f"processed/{folder}/{raw_stem}.{raw_extension}",
    )


def _safe_file_name(file_name: str) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("_", Path(file_name).name)
    return cleaned or "recording.webm"


class RecordingService:
    """Turns raw uploaded tracks into archived, sequentially numbered takes."""

    def __init__(
        self,
        recordings: RecordingRepositoryInterface,
        rooms: RoomRepositoryInterface,
        storage: ObjectStorageInterface,
        transcoder: TranscoderInterface,
        allocator: FolderAllocatorInterface,
        task_sessions: Optional[TaskSessionService] = None,
        *,
        io_policy: Optional[RetryPolicy] = None,
        transcode_policy: Optional[RetryPolicy] = None,
        scratch_dir: Optional[str] = None,
        folder_digits: int = 4,
    ):
        self.recordings = recordings
        self.rooms = rooms
        self.storage = storage
        self.transcoder = transcoder
        self.allocator = allocator
        self.task_sessions = task_sessions
        self.io_policy = io_policy or RetryPolicy()
        self.transcode_policy = transcode_policy or RetryPolicy(max_attempts=2)
        self.scratch_dir = scratch_dir
        self.folder_digits = folder_digits

    async def request_upload_url(
        self,
        *,
        user_id: str,
        room_id: str,
        file_name: str,
        recording_type: RecordingType,
        duration: Optional[int] = None,
        file_size: Optional[int] = None,
        format: str = "webm",
        sample_rate: int = 48000,
        channels: int = 1,
        speaker_id: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> UploadTicket:
        """Register the recording row and hand back a presigned PUT URL."""

        room = await self.rooms.get(room_id)
        if room is None:
            raise RoomNotFound()
        await self._ensure_room_party(room_id, room.created_by, user_id)

        recording_id = str(uuid4())
        timestamp = int(time.time() * 1000)
        safe_name = _safe_file_name(file_name)
        storage_key = f"recordings/{room_id}/{user_id}/{timestamp}-{safe_name}"
        metadata = {
            "room-id": room_id,
            "user-id": user_id,
            "recording-type": recording_type.value,
            "format": format,
            "sample-rate": str(sample_rate),
            "channels": str(channels),
            "duration": str(duration or 0),
            "file-size": str(file_size or 0),
            "recorded-at": datetime.now(timezone.utc).isoformat(),
        }
        if speaker_id:
            metadata["speaker-id"] = speaker_id

        upload_url = await retry_async(
            lambda: self.storage.presign_upload(
                storage_key, content_type or f"audio/{format}", metadata
            ),
            policy=self.io_policy,
            retry_on=(UploadIOError,),
            description=f"presign upload {storage_key}",
        )

        await self.recordings.create(
            Recording(
                id=recording_id,
                room_id=room_id,
                user_id=user_id,
                recording_type=recording_type,
                speaker_id=speaker_id,
                storage_key=storage_key,
                storage_bucket=self.storage.bucket,
                file_name=safe_name,
                format=format,
                sample_rate=sample_rate,
                channels=channels,
                duration=duration,
                file_size=file_size,
                created_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        logger.info(
            "Registered recording=%s room=%s type=%s speaker=%s key=%s",
            recording_id,
            room_id,
            recording_type.value,
            speaker_id or "-",
            storage_key,
        )

        if self.task_sessions is not None:
            await self.task_sessions.start_for_room(room_id, user_id)

        return UploadTicket(upload_url=upload_url, recording_id=recording_id, storage_key=storage_key)

    async def process_recording(
        self,
        recording_id: str,
        folder_override: Optional[FolderNumber] = None,
        *,
        actor_id: Optional[str] = None,
        is_admin: bool = False,
    ) -> Recording:
        """Download, transcode and archive one track; a no-op once processed.

        Storage and row updates only happen after the transcode succeeded, and
        the row is written last, so any failure leaves the recording
        unprocessed and the call can simply be repeated.
        """

        recording = await self._require(recording_id)
        if actor_id is not None:
            await self._ensure_access(recording, actor_id, is_admin)
        if recording.is_processed:
            record_processing("reused")
            logger.info(
                "Recording=%s already processed into folder=%s",
                recording_id,
                recording.processed_folder,
            )
            return recording

        override = (
            normalize_folder(folder_override, self.folder_digits)
            if folder_override is not None
            else None
        )

        try:
            stored = await self._run_pipeline(recording, override)
        except Exception:
            record_processing("failed")
            raise
        record_processing("processed")
        return stored

    async def _run_pipeline(self, recording: Recording, override: Optional[str]) -> Recording:
        extension = recording.raw_extension
        with tempfile.TemporaryDirectory(
            prefix=f"recording-{recording.id}-", dir=self.scratch_dir
        ) as scratch:
            source = Path(scratch) / f"source.{extension}"
            canonical = Path(scratch) / "canonical.wav"

            logger.info("recording=%s stage=download key=%s", recording.id, recording.storage_key)
            raw = await retry_async(
                lambda: self.storage.get_bytes(recording.storage_key),
                policy=self.io_policy,
                retry_on=(UploadIOError,),
                description=f"download {recording.storage_key}",
            )
            await asyncio.to_thread(source.write_bytes, raw)

            logger.info("recording=%s stage=transcode bytes=%d", recording.id, len(raw))
            started = time.perf_counter()
            try:
                await retry_async(
                    lambda: self.transcoder.to_canonical_wav(source, canonical),
                    policy=self.transcode_policy,
                    retry_on=(TranscodeFailed,),
                    description=f"transcode recording {recording.id}",
                )
            finally:
                observe_transcode(time.perf_counter() - started)
            wav = await asyncio.to_thread(canonical.read_bytes)

            folder = await self._resolve_folder(recording, override)
            wav_key, raw_key = archive_keys(folder, extension, recording.speaker_id)

            logger.info("recording=%s stage=upload folder=%s key=%s", recording.id, folder, wav_key)
            await retry_async(
                lambda: self.storage.put_bytes(wav_key, wav, WAV_CONTENT_TYPE),
                policy=self.io_policy,
                retry_on=(UploadIOError,),
                description=f"upload {wav_key}",
            )
            await retry_async(
                lambda: self.storage.copy(recording.storage_key, raw_key),
                policy=self.io_policy,
                retry_on=(UploadIOError,),
                description=f"copy {recording.storage_key}",
            )

            logger.info("recording=%s stage=persist folder=%s", recording.id, folder)
            stored = await self.recordings.mark_processed(recording.id, folder, wav_key)
            if stored.processed_folder != folder:
                logger.info(
                    "Recording=%s was processed concurrently into folder=%s",
                    recording.id,
                    stored.processed_folder,
                )
            return stored

    async def _resolve_folder(self, recording: Recording, override: Optional[str]) -> str:
        if override is not None:
            await self.allocator.ensure_at_least(int(override))
            return override
        if recording.reserved_folder is not None:
            return recording.reserved_folder

        allocated = format_folder(await self.allocator.next_value(), self.folder_digits)
        increment_folder_allocations()
        effective = await self.recordings.reserve_folder(recording.id, allocated)
        if effective != allocated:
            logger.warning(
                "Recording=%s already reserved folder=%s; dropping allocated=%s",
                recording.id,
                effective,
                allocated,
            )
        return effective

    async def request_download_url(
        self,
        recording_id: str,
        actor_id: str,
        *,
        is_admin: bool = False,
    ) -> str:
        recording = await self._require(recording_id)
        await self._ensure_access(recording, actor_id, is_admin)
        return await retry_async(
            lambda: self.storage.presign_download(recording.storage_key),
            policy=self.io_policy,
            retry_on=(UploadIOError,),
            description=f"presign download {recording.storage_key}",
        )

    async def request_wav_download_url(
        self,
        recording_id: str,
        actor_id: str,
        *,
        is_admin: bool = False,
    ) -> str:
        recording = await self._require(recording_id)
        await self._ensure_access(recording, actor_id, is_admin)
        if not recording.wav_key:
            raise RecordingNotProcessed()
        wav_key = recording.wav_key
        return await retry_async(
            lambda: self.storage.presign_download(wav_key),
            policy=self.io_policy,
            retry_on=(UploadIOError,),
            description=f"presign download {wav_key}",
        )

    async def get(self, recording_id: str, actor_id: str, *, is_admin: bool = False) -> Recording:
        recording = await self._require(recording_id)
        await self._ensure_access(recording, actor_id, is_admin)
        return recording

    async def list_for_user(self, user_id: str) -> List[Recording]:
        return await self.recordings.list_for_user(user_id)

    async def list_for_room(
        self,
        room_id: str,
        actor_id: str,
        *,
        is_admin: bool = False,
    ) -> List[Recording]:
        room = await self.rooms.get(room_id)
        if room is None:
            raise RoomNotFound()
        if not is_admin:
            await self._ensure_room_party(room_id, room.created_by, actor_id)
        return await self.recordings.list_for_room(room_id)

    async def list_all(self) -> List[Recording]:
        return await self.recordings.list_all()

    async def _require(self, recording_id: str) -> Recording:
        recording = await self.recordings.get(recording_id)
        if recording is None:
            raise RecordingNotFound()
        return recording

    async def _ensure_room_party(self, room_id: str, room_owner: str, user_id: str) -> None:
        if user_id == room_owner:
            return
        if self.task_sessions is not None:
            session = await self.task_sessions.find_by_room(room_id)
            if session is not None and session.is_party(user_id):
                return
        raise ActorNotAllowed("You are not a participant in this room")

    async def _ensure_access(self, recording: Recording, actor_id: str, is_admin: bool) -> None:
        if is_admin or recording.user_id == actor_id:
            return
        room = await self.rooms.get(recording.room_id)
        await self._ensure_room_party(
            recording.room_id, room.created_by if room else "", actor_id
        )


__all__ = [
    "RecordingService",
    "UploadTicket",
    "archive_keys",
    "format_folder",
    "normalize_folder",
]

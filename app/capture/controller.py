"""Dual-track capture controller.

Coordinates the local microphone recorder and, when the partner's audio is
present, a second recorder for the remote track. Both start together, both
must flush before the take is ready, and the captured blobs stay in memory
until the upload succeeds so a failed upload can be retried without
re-recording.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, NoReturn, Optional, Protocol, Tuple
from uuid import uuid4

from app.capture.recorders import (
    BufferedTrackRecorder,
    CaptureError,
    TrackRecorder,
    TrackSource,
)
from app.domain.models import RecordingType

logger = logging.getLogger(__name__)

LOCAL_SPEAKER_ID = "spk0"
REMOTE_SPEAKER_ID = "spk1"


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    READY_TO_UPLOAD = "ready_to_upload"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    UPLOAD_FAILED = "upload_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_STARTABLE = frozenset(
    {CaptureState.IDLE, CaptureState.UPLOADED, CaptureState.FAILED, CaptureState.CANCELLED}
)
_UPLOADABLE = frozenset({CaptureState.READY_TO_UPLOAD, CaptureState.UPLOAD_FAILED})


@dataclass(frozen=True)
class CapturedTrack:
    speaker_id: str
    recording_type: RecordingType
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CapturedTake:
    """One take: one blob per active track, sharing a single duration."""

    tracks: Tuple[CapturedTrack, ...]
    duration_seconds: float
    take_id: str = field(default_factory=lambda: uuid4().hex)
    format: str = "webm"
    sample_rate: int = 48000
    channels: int = 1

    @property
    def local(self) -> CapturedTrack:
        return self.tracks[0]

    @property
    def remote(self) -> Optional[CapturedTrack]:
        return self.tracks[1] if len(self.tracks) > 1 else None


ProgressCallback = Callable[[str, float], None]


class TakeUploader(Protocol):
    def upload_take(
        self,
        room_id: str,
        take: CapturedTake,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Awaitable[object]: ...


RecorderFactory = Callable[[TrackSource], TrackRecorder]


class DualTrackCaptureController:
    def __init__(
        self,
        uploader: TakeUploader,
        *,
        recorder_factory: RecorderFactory = BufferedTrackRecorder,
        flush_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.uploader = uploader
        self.recorder_factory = recorder_factory
        self.flush_timeout = flush_timeout
        self.clock = clock
        self._state = CaptureState.IDLE
        self._recorders: List[Tuple[str, RecordingType, TrackRecorder]] = []
        self._started_at: Optional[float] = None
        self._take: Optional[CapturedTake] = None
        self._room_id: Optional[str] = None
        self.progress: Dict[str, float] = {}
        self.last_error: Optional[BaseException] = None
        self.result: object = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def take(self) -> Optional[CapturedTake]:
        return self._take

    def start_capture(
        self,
        local_source: TrackSource,
        remote_source: Optional[TrackSource] = None,
    ) -> None:
        """Begin buffering; a missing remote source means a local-only take."""

        if self._state not in _STARTABLE:
            raise CaptureError(f"Cannot start capture while {self._state.value}")

        self._take = None
        self.result = None
        self.last_error = None
        self.progress = {}
        planned = [(LOCAL_SPEAKER_ID, RecordingType.LOCAL, local_source)]
        if remote_source is not None:
            planned.append((REMOTE_SPEAKER_ID, RecordingType.REMOTE, remote_source))
        else:
            logger.info("No remote track present; capturing local track only")

        recorders = [
            (speaker, kind, self.recorder_factory(source)) for speaker, kind, source in planned
        ]
        started: List[TrackRecorder] = []
        try:
            # no awaits between starts, so both tracks begin on the same tick
            for _, _, recorder in recorders:
                recorder.start()
                started.append(recorder)
        except CaptureError as exc:
            for recorder in started:
                recorder.abort()
            self._fail(exc)
            raise

        self._recorders = recorders
        self._started_at = self.clock()
        self._state = CaptureState.RECORDING

    async def stop_capture(self) -> CapturedTake:
        """Stop every active recorder and wait until all of them have flushed."""

        if self._state != CaptureState.RECORDING:
            raise CaptureError(f"Cannot stop capture while {self._state.value}")

        self._state = CaptureState.STOPPING
        duration = max(self.clock() - (self._started_at or self.clock()), 0.0)
        try:
            outcomes = await asyncio.wait_for(
                asyncio.gather(
                    *(recorder.stop() for _, _, recorder in self._recorders),
                    return_exceptions=True,
                ),
                timeout=self.flush_timeout,
            )
        except asyncio.TimeoutError:
            self._give_up(CaptureError("Recorders did not flush in time"))

        self._give_up_if_cancelled()
        for outcome in outcomes:
            if isinstance(outcome, CaptureError):
                self._give_up(outcome)
            if isinstance(outcome, BaseException):
                self._give_up(CaptureError(f"Recorder failed: {outcome}"))

        tracks: List[CapturedTrack] = []
        for (speaker, kind, _), data in zip(self._recorders, outcomes):
            if not data:
                if kind == RecordingType.LOCAL:
                    self._give_up(CaptureError("Local recorder produced no audio"))
                logger.warning("Remote track %s produced no audio; dropping it", speaker)
                continue
            tracks.append(CapturedTrack(speaker_id=speaker, recording_type=kind, data=data))

        self._recorders = []
        self._take = CapturedTake(tracks=tuple(tracks), duration_seconds=duration)
        self._state = CaptureState.READY_TO_UPLOAD
        logger.info(
            "Take %s ready: tracks=%s duration=%.1fs",
            self._take.take_id,
            ",".join(t.speaker_id for t in tracks),
            duration,
        )
        return self._take

    def cancel(self) -> None:
        """Close the capture without uploading; buffered audio is discarded.

        Cancelling while the recorders are flushing makes the pending
        ``stop_capture`` raise and the controller stays cancelled.
        """

        if self._state == CaptureState.UPLOADING:
            raise CaptureError("Cannot cancel while the take is uploading")
        if self._state in (CaptureState.IDLE, CaptureState.UPLOADED, CaptureState.CANCELLED):
            return
        self._abort_recorders()
        self._take = None
        self.progress = {}
        self._state = CaptureState.CANCELLED
        logger.info("Capture cancelled; buffers discarded")

    async def upload(self, room_id: str) -> object:
        if self._state not in _UPLOADABLE or self._take is None:
            raise CaptureError(f"Nothing to upload while {self._state.value}")

        self._room_id = room_id
        self._state = CaptureState.UPLOADING
        try:
            result = await self.uploader.upload_take(room_id, self._take, self._on_progress)
        except Exception as exc:
            self.last_error = exc
            self._state = CaptureState.UPLOAD_FAILED
            logger.warning("Upload of take %s failed: %s", self._take.take_id, exc)
            raise

        self.result = result
        self._take = None
        self._state = CaptureState.UPLOADED
        return result

    async def retry_upload(self) -> object:
        """Re-send the retained take after a failed upload."""

        if self._state != CaptureState.UPLOAD_FAILED or self._room_id is None:
            raise CaptureError(f"Nothing to retry while {self._state.value}")
        return await self.upload(self._room_id)

    def _on_progress(self, speaker_id: str, fraction: float) -> None:
        self.progress[speaker_id] = min(max(fraction, 0.0), 1.0)

    def _abort_recorders(self) -> None:
        for _, _, recorder in self._recorders:
            recorder.abort()
        self._recorders = []

    def _fail(self, error: BaseException) -> None:
        self.last_error = error
        self._take = None
        self._state = CaptureState.FAILED

    def _give_up_if_cancelled(self) -> None:
        if self._state == CaptureState.CANCELLED:
            raise CaptureError("Capture was cancelled while stopping")

    def _give_up(self, error: CaptureError) -> NoReturn:
        self._give_up_if_cancelled()
        self._abort_recorders()
        self._fail(error)
        raise error


__all__ = [
    "CaptureState",
    "CapturedTake",
    "CapturedTrack",
    "DualTrackCaptureController",
    "LOCAL_SPEAKER_ID",
    "REMOTE_SPEAKER_ID",
    "TakeUploader",
]

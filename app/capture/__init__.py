"""Client-side dual-track capture and upload handoff."""

from .client import RecordingApiClient, TakeUploadResult
from .controller import (
    CapturedTake,
    CapturedTrack,
    CaptureState,
    DualTrackCaptureController,
    LOCAL_SPEAKER_ID,
    REMOTE_SPEAKER_ID,
)
from .recorders import BufferedTrackRecorder, CaptureError, TrackRecorder, TrackSource

__all__ = [
    "BufferedTrackRecorder",
    "CaptureError",
    "CaptureState",
    "CapturedTake",
    "CapturedTrack",
    "DualTrackCaptureController",
    "LOCAL_SPEAKER_ID",
    "REMOTE_SPEAKER_ID",
    "RecordingApiClient",
    "TakeUploadResult",
    "TrackRecorder",
    "TrackSource",
]

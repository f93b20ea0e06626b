"""HTTP client that hands a captured take to the recording API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from app.capture.controller import CapturedTake, CapturedTrack, ProgressCallback
from app.domain.errors import UploadIOError
from app.utils.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


@dataclass
class _TrackProgress:
    recording_id: Optional[str] = None
    upload_url: Optional[str] = None
    uploaded: bool = False
    processed_folder: Optional[str] = None
    canonical_key: Optional[str] = None


@dataclass
class TakeUploadResult:
    processed_folder: str
    recording_ids: Dict[str, str] = field(default_factory=dict)
    canonical_keys: Dict[str, str] = field(default_factory=dict)


class RecordingApiClient:
    """Upload-URL request, direct PUT, then processing, per track.

    The local track is processed first and allocates the folder; the remote
    track follows with that folder as its override. Completed steps are
    remembered per take, so retrying after a failure resumes where it
    stopped instead of uploading a track twice.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        policy: Optional[RetryPolicy] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.transport = transport
        self._progress: Dict[tuple[str, str], _TrackProgress] = {}

    async def upload_take(
        self,
        room_id: str,
        take: CapturedTake,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TakeUploadResult:
        report = on_progress or (lambda speaker, fraction: None)
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            for track in take.tracks:
                await self._upload_track(client, room_id, take, track, report)

            local = self._state(take, take.local)
            await self._process(client, take, take.local, None)
            folder = local.processed_folder
            if folder is None:
                raise UploadIOError("Processing returned no folder for the local track")

            if take.remote is not None:
                await self._process(client, take, take.remote, folder)

        result = TakeUploadResult(processed_folder=folder)
        for track in take.tracks:
            state = self._state(take, track)
            result.recording_ids[track.speaker_id] = state.recording_id or ""
            result.canonical_keys[track.speaker_id] = state.canonical_key or ""
        logger.info("Take %s archived in folder %s", take.take_id, folder)
        return result

    def _state(self, take: CapturedTake, track: CapturedTrack) -> _TrackProgress:
        return self._progress.setdefault((take.take_id, track.speaker_id), _TrackProgress())

    async def _upload_track(
        self,
        client: httpx.AsyncClient,
        room_id: str,
        take: CapturedTake,
        track: CapturedTrack,
        report: ProgressCallback,
    ) -> None:
        state = self._state(take, track)
        if state.uploaded:
            report(track.speaker_id, 1.0)
            return

        if state.recording_id is None:
            body = {
                "roomId": room_id,
                "fileName": f"{take.take_id}_{track.speaker_id}.{take.format}",
                "duration": int(round(take.duration_seconds)),
                "fileSize": track.size,
                "format": take.format,
                "sampleRate": take.sample_rate,
                "channels": take.channels,
                "recordingType": track.recording_type.value,
                "speakerId": track.speaker_id,
            }
            ticket = await self._send(client, "POST", "/recordings/upload-url", json=body)
            state.recording_id = ticket["recordingId"]
            state.upload_url = ticket["uploadUrl"]
        report(track.speaker_id, 0.1)

        content_type = f"audio/{take.format}"
        await self._send(
            client,
            "PUT",
            state.upload_url,
            content=track.data,
            headers={"Content-Type": content_type},
            expect_json=False,
            authenticated=False,
        )
        state.uploaded = True
        report(track.speaker_id, 1.0)

    async def _process(
        self,
        client: httpx.AsyncClient,
        take: CapturedTake,
        track: CapturedTrack,
        folder: Optional[str],
    ) -> None:
        state = self._state(take, track)
        if state.processed_folder is not None:
            return
        body: Dict[str, Any] = {"folderNumber": folder} if folder else {}
        data = await self._send(
            client,
            "POST",
            f"/recordings/{state.recording_id}/process",
            json=body,
        )
        state.processed_folder = data["processedFolder"]
        state.canonical_key = data["canonicalKey"]

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        expect_json: bool = True,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Any:
        async def attempt() -> Any:
            request_kwargs = dict(kwargs)
            if authenticated:
                headers = dict(request_kwargs.pop("headers", None) or {})
                headers["Authorization"] = f"Bearer {self.access_token}"
                request_kwargs["headers"] = headers
            try:
                response = await client.request(method, url, **request_kwargs)
            except httpx.TransportError as exc:
                raise UploadIOError(f"{method} {url} failed: {exc}") from exc
            if response.status_code >= 500:
                raise UploadIOError(f"{method} {url} returned {response.status_code}")
            response.raise_for_status()
            return response.json() if expect_json else None

        return await retry_async(
            attempt,
            policy=self.policy,
            retry_on=(UploadIOError,),
            description=f"{method} {url}",
        )


__all__ = ["RecordingApiClient", "TakeUploadResult"]

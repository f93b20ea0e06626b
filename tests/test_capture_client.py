"""Upload handoff from a captured take to the recording API."""

from __future__ import annotations

import json

import httpx
import pytest

from app.capture import CapturedTake, CapturedTrack, RecordingApiClient
from app.domain.errors import UploadIOError
from app.domain.models import RecordingType
from app.utils.retry import RetryPolicy


class FakeRecordingApi:
    """Minimal stand-in for the backend plus the presigned storage host."""

    def __init__(self, *, failing_process: int = 0):
        self.requests: list[httpx.Request] = []
        self.failing_process = failing_process
        self.stored: dict[str, bytes] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/recordings/upload-url":
            body = json.loads(request.content)
            recording_id = f"rec-{body['speakerId']}"
            return httpx.Response(
                201,
                json={
                    "uploadUrl": f"https://storage.test/bucket/{recording_id}",
                    "recordingId": recording_id,
                    "storageKey": f"recordings/{body['roomId']}/{recording_id}",
                },
            )
        if request.method == "PUT" and request.url.host == "storage.test":
            self.stored[path] = request.content
            return httpx.Response(200)
        if request.method == "POST" and path.endswith("/process"):
            body = json.loads(request.content or b"{}")
            if body.get("folderNumber") and self.failing_process:
                self.failing_process -= 1
                return httpx.Response(503, json={"detail": "busy"})
            folder = body.get("folderNumber") or "0042"
            speaker = path.split("/")[2].removeprefix("rec-")
            return httpx.Response(
                200,
                json={
                    "recordingId": path.split("/")[2],
                    "processedFolder": folder,
                    "canonicalKey": f"processed/{folder}/{folder}_{speaker}.wav",
                },
            )
        return httpx.Response(404)

    def calls(self, method: str, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(suffix)]


def make_take() -> CapturedTake:
    return CapturedTake(
        tracks=(
            CapturedTrack("spk0", RecordingType.LOCAL, b"local-audio"),
            CapturedTrack("spk1", RecordingType.REMOTE, b"remote-audio"),
        ),
        duration_seconds=9.6,
        take_id="take-1",
    )


def make_client(api: FakeRecordingApi) -> RecordingApiClient:
    return RecordingApiClient(
        "https://api.test",
        "jwt-token",
        policy=RetryPolicy(max_attempts=2, backoff_base_seconds=0),
        transport=httpx.MockTransport(api),
    )


@pytest.mark.asyncio
async def test_remote_track_reuses_the_local_folder():
    api = FakeRecordingApi()
    progress: dict[str, float] = {}

    result = await make_client(api).upload_take(
        "room-9", make_take(), lambda speaker, fraction: progress.__setitem__(speaker, fraction)
    )

    assert result.processed_folder == "0042"
    assert result.canonical_keys == {
        "spk0": "processed/0042/0042_spk0.wav",
        "spk1": "processed/0042/0042_spk1.wav",
    }
    local_process, remote_process = api.calls("POST", "/process")
    assert local_process.content in (b"{}", b"")
    assert json.loads(remote_process.content) == {"folderNumber": "0042"}
    assert api.stored == {"/bucket/rec-spk0": b"local-audio", "/bucket/rec-spk1": b"remote-audio"}
    assert progress == {"spk0": 1.0, "spk1": 1.0}


@pytest.mark.asyncio
async def test_upload_url_request_carries_track_metadata_and_auth():
    api = FakeRecordingApi()

    await make_client(api).upload_take("room-9", make_take())

    first = api.calls("POST", "/upload-url")[0]
    body = json.loads(first.content)
    assert first.headers["Authorization"] == "Bearer jwt-token"
    assert body["speakerId"] == "spk0"
    assert body["recordingType"] == "local"
    assert body["duration"] == 10
    assert body["fileName"] == "take-1_spk0.webm"
    for put in api.calls("PUT", ""):
        assert "authorization" not in put.headers


@pytest.mark.asyncio
async def test_retry_after_failure_resumes_without_reuploading():
    api = FakeRecordingApi(failing_process=2)
    client = make_client(api)
    take = make_take()

    with pytest.raises(UploadIOError):
        await client.upload_take("room-9", take)

    result = await client.upload_take("room-9", take)

    assert result.processed_folder == "0042"
    assert len(api.calls("POST", "/upload-url")) == 2
    assert len(api.calls("PUT", "")) == 2
    assert len(api.calls("POST", "rec-spk0/process")) == 1

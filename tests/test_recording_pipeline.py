"""Upload handoff and the processing pipeline with in-memory collaborators."""

from __future__ import annotations

import asyncio

import pytest

from app.application.use_cases.recording_use_cases import archive_keys, normalize_folder
from app.domain.errors import (
    ActorNotAllowed,
    InvalidFolderNumber,
    RecordingNotProcessed,
    TranscodeFailed,
    UploadIOError,
)
from app.domain.models import RecordingType, SessionStatus

RAW = b"\x1aE\xdf\xa3webm-bytes"


async def open_room(task_service, users, email="alice@example.com"):
    owner = users.add(email)
    session = await task_service.create("storytelling", owner.id)
    session = await task_service.create_room(session.id, owner.id)
    return owner, session


async def upload(recording_service, storage, owner, room_id, *, speaker_id=None,
                 recording_type=RecordingType.LOCAL, name="take.webm"):
    ticket = await recording_service.request_upload_url(
        user_id=owner.id,
        room_id=room_id,
        file_name=name,
        recording_type=recording_type,
        duration=12,
        file_size=len(RAW),
        speaker_id=speaker_id,
    )
    # What the browser's presigned PUT would have stored.
    storage.objects[ticket.storage_key] = RAW
    return ticket


def test_archive_keys_follow_folder_layout():
    assert archive_keys("0007", "webm") == ("processed/0007/0007.wav", "processed/0007/0007.webm")
    assert archive_keys("0007", "ogg", "spk1") == (
        "processed/0007/0007_spk1.wav",
        "processed/0007/0007_spk1.ogg",
    )
    assert archive_keys("0007", "WAV") == ("processed/0007/0007.wav", "processed/0007/0007_original.wav")


@pytest.mark.parametrize("raw, expected", [(7, "0007"), ("0012", "0012"), (" 3 ", "0003"), (12345, "12345")])
def test_normalize_folder_pads_to_four_digits(raw, expected):
    assert normalize_folder(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "0", "-4", "1.5", ""])
def test_normalize_folder_rejects_garbage(raw):
    with pytest.raises(InvalidFolderNumber):
        normalize_folder(raw)


@pytest.mark.asyncio
async def test_upload_url_registers_recording_and_starts_session(
    recording_service, task_service, storage, users, recording_repo
):
    owner, session = await open_room(task_service, users)

    ticket = await upload(recording_service, storage, owner, session.room_id, speaker_id="spk0")

    assert ticket.storage_key.startswith(f"recordings/{session.room_id}/{owner.id}/")
    assert ticket.storage_key.endswith("-take.webm")
    assert "signature=put" in ticket.upload_url
    assert storage.metadata[ticket.storage_key]["speaker-id"] == "spk0"
    row = await recording_repo.get(ticket.recording_id)
    assert row.processed_folder is None
    refreshed = await task_service.get(session.id, owner.id)
    assert refreshed.status == SessionStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_outsider_cannot_request_upload(recording_service, task_service, storage, users):
    _, session = await open_room(task_service, users)
    mallory = users.add("mallory@example.com")

    with pytest.raises(ActorNotAllowed):
        await upload(recording_service, storage, mallory, session.room_id)


@pytest.mark.asyncio
async def test_process_archives_wav_and_raw_copy(recording_service, task_service, storage, users, tmp_path):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)

    processed = await recording_service.process_recording(ticket.recording_id)

    assert processed.processed_folder == "0001"
    assert processed.wav_key == "processed/0001/0001.wav"
    assert storage.objects["processed/0001/0001.wav"] == b"RIFF" + RAW
    assert storage.objects["processed/0001/0001.webm"] == RAW
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_wav_upload_keeps_canonical_and_original_apart(recording_service, task_service, storage, users):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id, name="take.wav")

    processed = await recording_service.process_recording(ticket.recording_id)

    assert processed.wav_key == "processed/0001/0001.wav"
    assert storage.objects["processed/0001/0001.wav"] == b"RIFF" + RAW
    assert storage.objects["processed/0001/0001_original.wav"] == RAW


@pytest.mark.asyncio
async def test_processing_twice_is_a_noop(recording_service, task_service, storage, users, transcoder, allocator):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)

    first = await recording_service.process_recording(ticket.recording_id)
    second = await recording_service.process_recording(ticket.recording_id)

    assert first.processed_folder == second.processed_folder == "0001"
    assert transcoder.calls == 1
    assert allocator.handed_out == [1]


@pytest.mark.asyncio
async def test_concurrent_recordings_get_distinct_contiguous_folders(
    recording_service, task_service, storage, users
):
    owner, session = await open_room(task_service, users)
    tickets = [
        await upload(recording_service, storage, owner, session.room_id, name=f"take-{i}.webm")
        for i in range(5)
    ]

    results = await asyncio.gather(
        *(recording_service.process_recording(t.recording_id) for t in tickets)
    )

    assert sorted(r.processed_folder for r in results) == ["0001", "0002", "0003", "0004", "0005"]


@pytest.mark.asyncio
@pytest.mark.parametrize("first_speaker", ["spk0", "spk1"])
async def test_two_track_take_shares_one_folder_in_either_order(
    recording_service, task_service, storage, users, allocator, first_speaker
):
    owner, session = await open_room(task_service, users)
    local = await upload(recording_service, storage, owner, session.room_id, speaker_id="spk0")
    remote = await upload(
        recording_service,
        storage,
        owner,
        session.room_id,
        speaker_id="spk1",
        recording_type=RecordingType.REMOTE,
    )
    by_speaker = {"spk0": local, "spk1": remote}
    second_speaker = "spk1" if first_speaker == "spk0" else "spk0"

    first = await recording_service.process_recording(by_speaker[first_speaker].recording_id)
    second = await recording_service.process_recording(
        by_speaker[second_speaker].recording_id, first.processed_folder
    )

    assert first.processed_folder == second.processed_folder == "0001"
    assert allocator.handed_out == [1]
    assert "processed/0001/0001_spk0.wav" in storage.objects
    assert "processed/0001/0001_spk1.wav" in storage.objects


@pytest.mark.asyncio
async def test_failed_transcode_leaves_recording_retryable(
    recording_service, task_service, storage, users, transcoder, allocator, recording_repo
):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)
    transcoder.failures = 2

    with pytest.raises(TranscodeFailed):
        await recording_service.process_recording(ticket.recording_id)

    row = await recording_repo.get(ticket.recording_id)
    assert row.processed_folder is None
    assert row.reserved_folder is None
    assert allocator.handed_out == []
    assert not any(key.startswith("processed/") for key in storage.objects)

    retried = await recording_service.process_recording(ticket.recording_id)
    assert retried.processed_folder == "0001"


@pytest.mark.asyncio
async def test_upload_failure_after_allocation_reuses_the_reserved_folder(
    recording_service, task_service, storage, users, allocator, recording_repo
):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)
    storage.fail_puts = 3

    with pytest.raises(UploadIOError):
        await recording_service.process_recording(ticket.recording_id)

    row = await recording_repo.get(ticket.recording_id)
    assert row.reserved_folder == "0001"
    assert row.processed_folder is None

    retried = await recording_service.process_recording(ticket.recording_id)
    assert retried.processed_folder == "0001"
    assert allocator.handed_out == [1]


@pytest.mark.asyncio
async def test_transient_storage_errors_are_retried(recording_service, task_service, storage, users):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)
    storage.fail_puts = 2

    processed = await recording_service.process_recording(ticket.recording_id)

    assert processed.processed_folder == "0001"


@pytest.mark.asyncio
async def test_override_raises_the_counter(recording_service, task_service, storage, users, allocator):
    owner, session = await open_room(task_service, users)
    pinned = await upload(recording_service, storage, owner, session.room_id, name="a.webm")
    fresh = await upload(recording_service, storage, owner, session.room_id, name="b.webm")

    first = await recording_service.process_recording(pinned.recording_id, 7)
    second = await recording_service.process_recording(fresh.recording_id)

    assert first.processed_folder == "0007"
    assert second.processed_folder == "0008"


@pytest.mark.asyncio
async def test_wav_download_requires_processing(recording_service, task_service, storage, users):
    owner, session = await open_room(task_service, users)
    ticket = await upload(recording_service, storage, owner, session.room_id)

    with pytest.raises(RecordingNotProcessed):
        await recording_service.request_wav_download_url(ticket.recording_id, owner.id)

    await recording_service.process_recording(ticket.recording_id)
    url = await recording_service.request_wav_download_url(ticket.recording_id, owner.id)
    assert "processed/0001/0001.wav" in url

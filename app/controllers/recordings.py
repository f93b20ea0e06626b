"""Recording upload handoff, processing trigger and downloads."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, status

from app.controllers.dependencies import CurrentUserDep, RecordingServiceDep
from app.views import (
    DownloadUrlResponse,
    ErrorResponse,
    ProcessRecordingRequest,
    ProcessRecordingResponse,
    RecordingResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)

router = APIRouter(
    prefix="/recordings",
    tags=["recordings"],
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.post("/upload-url", response_model=UploadUrlResponse, status_code=status.HTTP_201_CREATED)
async def request_upload_url(
    payload: UploadUrlRequest,
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
) -> UploadUrlResponse:
    """Register the recording and return a presigned PUT URL for its bytes."""

    ticket = await service.request_upload_url(
        user_id=current_user.id,
        room_id=payload.room_id,
        file_name=payload.file_name,
        recording_type=payload.recording_type,
        duration=payload.duration,
        file_size=payload.file_size,
        format=payload.format,
        sample_rate=payload.sample_rate,
        channels=payload.channels,
        speaker_id=payload.speaker_id,
        content_type=payload.content_type,
    )
    return UploadUrlResponse(
        upload_url=ticket.upload_url,
        recording_id=ticket.recording_id,
        storage_key=ticket.storage_key,
    )


@router.post("/{recording_id}/process", response_model=ProcessRecordingResponse)
async def process_recording(
    recording_id: str,
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
    payload: Optional[ProcessRecordingRequest] = Body(default=None),
) -> ProcessRecordingResponse:
    override = payload.folder_number if payload is not None else None
    recording = await service.process_recording(
        recording_id,
        override,
        actor_id=current_user.id,
        is_admin=current_user.is_admin,
    )
    return ProcessRecordingResponse(
        recording_id=recording.id,
        processed_folder=recording.processed_folder or "",
        canonical_key=recording.wav_key or "",
    )


@router.get("", response_model=List[RecordingResponse])
async def list_my_recordings(
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
) -> List[RecordingResponse]:
    recordings = await service.list_for_user(current_user.id)
    return [RecordingResponse.model_validate(r) for r in recordings]


@router.get("/room/{room_id}", response_model=List[RecordingResponse])
async def list_room_recordings(
    room_id: str,
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
) -> List[RecordingResponse]:
    recordings = await service.list_for_room(
        room_id, current_user.id, is_admin=current_user.is_admin
    )
    return [RecordingResponse.model_validate(r) for r in recordings]


@router.get("/{recording_id}/download", response_model=DownloadUrlResponse)
async def download_recording(
    recording_id: str,
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
) -> DownloadUrlResponse:
    url = await service.request_download_url(
        recording_id, current_user.id, is_admin=current_user.is_admin
    )
    return DownloadUrlResponse(download_url=url)


@router.get("/{recording_id}/download-wav", response_model=DownloadUrlResponse)
async def download_recording_wav(
    recording_id: str,
    current_user: CurrentUserDep,
    service: RecordingServiceDep,
) -> DownloadUrlResponse:
    url = await service.request_wav_download_url(
        recording_id, current_user.id, is_admin=current_user.is_admin
    )
    return DownloadUrlResponse(download_url=url)

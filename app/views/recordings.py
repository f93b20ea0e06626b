"""Pydantic schemas for the recording upload and processing handoff."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.domain.models import RecordingType


class UploadUrlRequest(BaseModel):
    room_id: str = Field(..., min_length=1, validation_alias=AliasChoices("roomId", "room_id"))
    file_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("fileName", "file_name"),
    )
    duration: Optional[int] = Field(None, ge=0)
    file_size: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("fileSize", "file_size"),
    )
    format: str = Field("webm", pattern=r"^[A-Za-z0-9]{1,10}$")
    sample_rate: int = Field(
        48000,
        gt=0,
        validation_alias=AliasChoices("sampleRate", "sample_rate"),
    )
    channels: int = Field(1, ge=1, le=8)
    recording_type: RecordingType = Field(
        ...,
        validation_alias=AliasChoices("recordingType", "recording_type"),
    )
    speaker_id: Optional[str] = Field(
        None,
        pattern=r"^[A-Za-z0-9_-]{1,32}$",
        validation_alias=AliasChoices("speakerId", "speaker_id"),
    )
    content_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("contentType", "content_type"),
    )


class UploadUrlResponse(BaseModel):
    upload_url: str = Field(
        validation_alias=AliasChoices("uploadUrl", "upload_url"),
        serialization_alias="uploadUrl",
    )
    recording_id: str = Field(
        validation_alias=AliasChoices("recordingId", "recording_id"),
        serialization_alias="recordingId",
    )
    storage_key: str = Field(
        validation_alias=AliasChoices("storageKey", "storage_key"),
        serialization_alias="storageKey",
    )


class ProcessRecordingRequest(BaseModel):
    folder_number: Optional[Union[int, str]] = Field(
        None,
        validation_alias=AliasChoices("folderNumber", "folder_number"),
    )


class ProcessRecordingResponse(BaseModel):
    recording_id: str = Field(
        validation_alias=AliasChoices("recordingId", "recording_id"),
        serialization_alias="recordingId",
    )
    processed_folder: str = Field(
        validation_alias=AliasChoices("processedFolder", "processed_folder"),
        serialization_alias="processedFolder",
    )
    canonical_key: str = Field(
        validation_alias=AliasChoices("canonicalKey", "canonical_key"),
        serialization_alias="canonicalKey",
    )


class DownloadUrlResponse(BaseModel):
    download_url: str = Field(
        validation_alias=AliasChoices("downloadUrl", "download_url"),
        serialization_alias="downloadUrl",
    )


class RecordingResponse(BaseModel):
    id: str
    room_id: str = Field(
        validation_alias=AliasChoices("roomId", "room_id"),
        serialization_alias="roomId",
    )
    user_id: str = Field(
        validation_alias=AliasChoices("userId", "user_id"),
        serialization_alias="userId",
    )
    recording_type: RecordingType = Field(
        validation_alias=AliasChoices("recordingType", "recording_type"),
        serialization_alias="recordingType",
    )
    speaker_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("speakerId", "speaker_id"),
        serialization_alias="speakerId",
    )
    storage_key: str = Field(
        validation_alias=AliasChoices("storageKey", "storage_key"),
        serialization_alias="storageKey",
    )
    storage_bucket: str = Field(
        validation_alias=AliasChoices("storageBucket", "storage_bucket"),
        serialization_alias="storageBucket",
    )
    file_name: str = Field(
        validation_alias=AliasChoices("fileName", "file_name"),
        serialization_alias="fileName",
    )
    format: str
    sample_rate: int = Field(
        validation_alias=AliasChoices("sampleRate", "sample_rate"),
        serialization_alias="sampleRate",
    )
    channels: int
    duration: Optional[int] = None
    file_size: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("fileSize", "file_size"),
        serialization_alias="fileSize",
    )
    processed_folder: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("processedFolder", "processed_folder"),
        serialization_alias="processedFolder",
    )
    wav_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("wavKey", "wav_key"),
        serialization_alias="wavKey",
    )
    created_at: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = [
    "DownloadUrlResponse",
    "ProcessRecordingRequest",
    "ProcessRecordingResponse",
    "RecordingResponse",
    "UploadUrlRequest",
    "UploadUrlResponse",
]

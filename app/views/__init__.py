"""Pydantic schemas used as views in the MVC architecture."""

from .auth import LoginRequest, RegisterRequest, TokenResponse
from .common import ErrorResponse
from .notifications import MarkReadResponse, NotificationResponse
from .recordings import (
    DownloadUrlResponse,
    ProcessRecordingRequest,
    ProcessRecordingResponse,
    RecordingResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from .rooms import MeetingTokenResponse, RoomResponse
from .task_sessions import (
    InvitePartnerRequest,
    PaidRequest,
    ReconcileResponse,
    ReviewerStatusRequest,
    TaskSessionCreateRequest,
    TaskSessionResponse,
    TaskTypeResponse,
)
from .users import UserResponse

__all__ = [
    "DownloadUrlResponse",
    "ErrorResponse",
    "InvitePartnerRequest",
    "LoginRequest",
    "MarkReadResponse",
    "MeetingTokenResponse",
    "NotificationResponse",
    "PaidRequest",
    "ProcessRecordingRequest",
    "ProcessRecordingResponse",
    "RecordingResponse",
    "ReconcileResponse",
    "RegisterRequest",
    "ReviewerStatusRequest",
    "RoomResponse",
    "TaskSessionCreateRequest",
    "TaskSessionResponse",
    "TaskTypeResponse",
    "TokenResponse",
    "UploadUrlRequest",
    "UploadUrlResponse",
    "UserResponse",
]

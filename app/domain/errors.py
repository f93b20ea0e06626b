"""Typed errors raised by the domain and application layers.

Each error carries the HTTP status and machine-readable code the API
exception handler renders, so routers never translate them by hand.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for every expected, user-explainable failure."""

    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class InvalidTaskType(DomainError):
    """The requested task type is not in the catalog."""

    code = "invalid_task_type"


class PartnerIsSelf(DomainError):
    """You cannot invite yourself as the partner."""

    code = "partner_is_self"


class PartnerNotApproved(DomainError):
    """The partner has not been approved yet."""

    status_code = 409
    code = "partner_not_approved"


class InvalidTransition(DomainError):
    """The requested change is not allowed from the session's current state."""

    status_code = 409
    code = "invalid_transition"


class ActorNotAllowed(InvalidTransition):
    """You are not allowed to perform this action on the session."""

    status_code = 403
    code = "actor_not_allowed"


class NotPendingReview(InvalidTransition):
    """The session is not pending review."""

    code = "not_pending_review"


class TaskSessionNotFound(DomainError):
    """Task session not found."""

    status_code = 404
    code = "task_session_not_found"


class RoomNotFound(DomainError):
    """Room not found."""

    status_code = 404
    code = "room_not_found"


class RecordingNotFound(DomainError):
    """Recording not found."""

    status_code = 404
    code = "recording_not_found"


class RecordingNotProcessed(DomainError):
    """WAV not available: the recording has not been processed yet."""

    status_code = 404
    code = "recording_not_processed"


class InvalidFolderNumber(DomainError):
    """Folder numbers must be positive decimal integers."""

    code = "invalid_folder_number"


class UploadIOError(DomainError):
    """Object storage request failed; the operation can be retried."""

    status_code = 502
    code = "upload_io_error"
    retryable = True


class TranscodeFailed(DomainError):
    """The transcoder exited with a non-zero status."""

    status_code = 502
    code = "transcode_failed"
    retryable = True

    def __init__(
        self,
        message: str | None = None,
        *,
        exit_code: int | None = None,
        stderr_tail: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class RoomProviderError(DomainError):
    """The conferencing provider could not allocate the room."""

    status_code = 502
    code = "room_provider_error"


__all__ = [
    "ActorNotAllowed",
    "DomainError",
    "InvalidFolderNumber",
    "InvalidTaskType",
    "InvalidTransition",
    "NotPendingReview",
    "PartnerIsSelf",
    "PartnerNotApproved",
    "RecordingNotFound",
    "RecordingNotProcessed",
    "RoomNotFound",
    "RoomProviderError",
    "TaskSessionNotFound",
    "TranscodeFailed",
    "UploadIOError",
]

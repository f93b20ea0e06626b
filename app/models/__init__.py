"""SQLAlchemy models for the recording backend."""

from .base import Base
from .folder_counter import RECORDING_FOLDER_COUNTER, FolderCounter  # noqa: F401
from .log import RequestLog  # noqa: F401
from .notification import NotificationRecord  # noqa: F401
from .recording import RecordingRecord  # noqa: F401
from .room import RoomRecord  # noqa: F401
from .task_session import ACTIVE_SESSION_PREDICATE, TaskSessionRecord  # noqa: F401
from .user import User  # noqa: F401

__all__ = [
    "Base",
    "User",
    "TaskSessionRecord",
    "ACTIVE_SESSION_PREDICATE",
    "RoomRecord",
    "RecordingRecord",
    "FolderCounter",
    "RECORDING_FOLDER_COUNTER",
    "NotificationRecord",
    "RequestLog",
]

"""Service layer helpers for external integrations."""

from .email import EmailServiceError, MailInvitationSender, send_email
from .notifications import NotificationKind, NotificationService
from .rooms import DailyRoomProvider, generate_room_name, sanitize_room_name
from .storage import S3StorageGateway, get_storage_gateway
from .transcoder import FfmpegTranscoder

__all__ = [
    "DailyRoomProvider",
    "EmailServiceError",
    "FfmpegTranscoder",
    "MailInvitationSender",
    "NotificationKind",
    "NotificationService",
    "S3StorageGateway",
    "generate_room_name",
    "get_storage_gateway",
    "sanitize_room_name",
    "send_email",
]

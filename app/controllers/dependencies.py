"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces import (
    FolderAllocatorInterface,
    InvitationSenderInterface,
    ObjectStorageInterface,
    RoomProviderInterface,
    TranscoderInterface,
)
from app.application.use_cases.recording_use_cases import RecordingService
from app.application.use_cases.task_session_use_cases import TaskSessionService
from app.config.settings import settings
from app.database import get_session, session_scope
from app.domain.models import UserAccount
from app.infrastructure.persistence.repositories_sqlalchemy import (
    SQLAlchemyFolderAllocator,
    SQLAlchemyNotificationRepository,
    SQLAlchemyRecordingRepository,
    SQLAlchemyRoomRepository,
    SQLAlchemyTaskSessionRepository,
    SQLAlchemyUserDirectory,
)
from app.models.user import User as UserModel
from app.services.email import MailInvitationSender
from app.services.notifications import NotificationService
from app.services.rooms import DailyRoomProvider
from app.services.storage import get_storage_gateway
from app.services.transcoder import FfmpegTranscoder
from app.utils import AuthenticationError, RetryPolicy, decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: SessionDep,
) -> UserAccount:
    """Resolve and validate the user referenced by the bearer token."""

    try:
        payload = decode_access_token(token)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None

    result = await session.execute(select(UserModel).where(UserModel.id == payload.sub))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return UserAccount.model_validate(user)


CurrentUserDep = Annotated[UserAccount, Depends(get_current_user)]


async def require_admin(user: CurrentUserDep) -> UserAccount:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


AdminDep = Annotated[UserAccount, Depends(require_admin)]


def get_storage() -> ObjectStorageInterface:
    return get_storage_gateway()


def get_transcoder() -> TranscoderInterface:
    return FfmpegTranscoder()


def get_room_provider() -> RoomProviderInterface:
    return DailyRoomProvider()


def get_invitation_sender() -> InvitationSenderInterface:
    return MailInvitationSender()


def get_folder_allocator() -> FolderAllocatorInterface:
    return SQLAlchemyFolderAllocator(session_scope)


def get_notification_service(session: SessionDep) -> NotificationService:
    return NotificationService(SQLAlchemyNotificationRepository(session))


def get_task_session_service(
    session: SessionDep,
    room_provider: Annotated[RoomProviderInterface, Depends(get_room_provider)],
    invitations: Annotated[InvitationSenderInterface, Depends(get_invitation_sender)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> TaskSessionService:
    return TaskSessionService(
        sessions=SQLAlchemyTaskSessionRepository(session),
        rooms=SQLAlchemyRoomRepository(session),
        users=SQLAlchemyUserDirectory(session),
        room_provider=room_provider,
        invitations=invitations,
        notifications=notifications,
    )


TaskSessionServiceDep = Annotated[TaskSessionService, Depends(get_task_session_service)]


def get_recording_service(
    session: SessionDep,
    task_sessions: TaskSessionServiceDep,
    storage: Annotated[ObjectStorageInterface, Depends(get_storage)],
    transcoder: Annotated[TranscoderInterface, Depends(get_transcoder)],
    allocator: Annotated[FolderAllocatorInterface, Depends(get_folder_allocator)],
) -> RecordingService:
    processing = settings.processing
    return RecordingService(
        recordings=SQLAlchemyRecordingRepository(session),
        rooms=SQLAlchemyRoomRepository(session),
        storage=storage,
        transcoder=transcoder,
        allocator=allocator,
        task_sessions=task_sessions,
        io_policy=RetryPolicy(
            max_attempts=processing.io_max_attempts,
            backoff_base_seconds=processing.backoff_base_seconds,
            backoff_max_seconds=processing.backoff_max_seconds,
        ),
        transcode_policy=RetryPolicy(
            max_attempts=processing.transcode_max_attempts,
            backoff_base_seconds=processing.backoff_base_seconds,
            backoff_max_seconds=processing.backoff_max_seconds,
        ),
        scratch_dir=processing.scratch_dir,
        folder_digits=processing.folder_digits,
    )


RecordingServiceDep = Annotated[RecordingService, Depends(get_recording_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


__all__ = [
    "AdminDep",
    "CurrentUserDep",
    "NotificationServiceDep",
    "RecordingServiceDep",
    "SessionDep",
    "TaskSessionServiceDep",
    "get_current_user",
    "get_recording_service",
    "get_task_session_service",
    "oauth2_scheme",
    "require_admin",
]

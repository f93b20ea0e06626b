from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional

from sqlalchemy import Insert, Select, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces import (
    FolderAllocatorInterface,
    NotificationRepositoryInterface,
    RecordingRepositoryInterface,
    RoomRepositoryInterface,
    TaskSessionRepositoryInterface,
    UserDirectoryInterface,
)
from app.domain.models import (
    Notification,
    Recording,
    Room,
    SessionStatus,
    TaskSession,
    UserAccount,
)
from app.models import (
    ACTIVE_SESSION_PREDICATE,
    RECORDING_FOLDER_COUNTER,
    FolderCounter,
    NotificationRecord,
    RecordingRecord,
    RoomRecord,
    TaskSessionRecord,
    User,
)

_LOCK_KEY = "row_lock_depth"


def insert_session_statement(task_session: TaskSession) -> Insert:
    """INSERT that yields no row when an unfinished session of that type exists."""

    return (
        pg_insert(TaskSessionRecord)
        .values(**task_session.model_dump())
        .on_conflict_do_nothing(
            index_elements=[TaskSessionRecord.user_id, TaskSessionRecord.task_type],
            index_where=ACTIVE_SESSION_PREDICATE,
        )
        .returning(TaskSessionRecord.id)
    )


def select_session_for_update(session_id: str) -> Select:
    return (
        select(TaskSessionRecord)
        .where(TaskSessionRecord.id == session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def next_folder_statement(counter_name: str) -> Insert:
    stmt = pg_insert(FolderCounter).values(name=counter_name, value=1)
    return stmt.on_conflict_do_update(
        index_elements=[FolderCounter.name],
        set_={"value": FolderCounter.value + 1},
    ).returning(FolderCounter.value)


def raise_folder_statement(counter_name: str, value: int) -> Insert:
    stmt = pg_insert(FolderCounter).values(name=counter_name, value=value)
    return stmt.on_conflict_do_update(
        index_elements=[FolderCounter.name],
        set_={"value": func.greatest(FolderCounter.value, stmt.excluded.value)},
    )


async def _commit(session: AsyncSession) -> None:
    """Commit unless a ``locked()`` block owns the transaction."""

    if session.info.get(_LOCK_KEY, 0):
        await session.flush()
        return
    await session.commit()


class SQLAlchemyUserDirectory(UserDirectoryInterface):
    """Reads accounts from the ``users`` table"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserAccount]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        db_user = result.scalar_one_or_none()
        return UserAccount.model_validate(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional[UserAccount]:
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        db_user = result.scalar_one_or_none()
        return UserAccount.model_validate(db_user) if db_user else None


class SQLAlchemyTaskSessionRepository(TaskSessionRepositoryInterface):
    """SQLAlchemy implementation of the task session repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, task_session: TaskSession) -> TaskSession:
        result = await self.session.execute(insert_session_statement(task_session))
        inserted_id = result.scalar_one_or_none()
        await _commit(self.session)
        if inserted_id is None:
            existing = await self.find_active(task_session.user_id, task_session.task_type)
            if existing is None:
                raise LookupError(task_session.id)
            return existing
        stored = await self.get(inserted_id)
        if stored is None:
            raise LookupError(inserted_id)
        return stored

    async def get(self, session_id: str) -> Optional[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord)
            .where(TaskSessionRecord.id == session_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        return TaskSession.model_validate(record) if record else None

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[Optional[TaskSession]]:
        # End any implicit read transaction so the lock and the writes share one.
        if self.session.in_transaction() and not self.session.info.get(_LOCK_KEY, 0):
            await self.session.commit()
        result = await self.session.execute(select_session_for_update(session_id))
        record = result.scalar_one_or_none()
        self.session.info[_LOCK_KEY] = self.session.info.get(_LOCK_KEY, 0) + 1
        try:
            yield TaskSession.model_validate(record) if record else None
        except BaseException:
            self.session.info[_LOCK_KEY] -= 1
            await self.session.rollback()
            raise
        self.session.info[_LOCK_KEY] -= 1
        if not self.session.info[_LOCK_KEY]:
            await self.session.commit()

    def locked(self, session_id: str) -> AbstractAsyncContextManager[Optional[TaskSession]]:
        return self._locked(session_id)

    async def save(self, task_session: TaskSession) -> TaskSession:
        record = await self.session.get(TaskSessionRecord, task_session.id)
        if record is None:
            return await self.create(task_session)
        for field, value in task_session.model_dump(exclude={"id", "created_at"}).items():
            setattr(record, field, value)
        await _commit(self.session)
        return TaskSession.model_validate(record)

    async def find_active(self, user_id: str, task_type: str) -> Optional[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord)
            .where(
                TaskSessionRecord.user_id == user_id,
                TaskSessionRecord.task_type == task_type,
                TaskSessionRecord.status != SessionStatus.COMPLETED,
            )
            .order_by(TaskSessionRecord.created_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        return TaskSession.model_validate(record) if record else None

    async def get_by_room(self, room_id: str) -> Optional[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord).where(TaskSessionRecord.room_id == room_id)
        )
        record = result.scalar_one_or_none()
        return TaskSession.model_validate(record) if record else None

    async def list_for_user(self, user_id: str) -> List[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord)
            .where(
                or_(
                    TaskSessionRecord.user_id == user_id,
                    TaskSessionRecord.partner_id == user_id,
                )
            )
            .order_by(TaskSessionRecord.created_at.desc())
        )
        return [TaskSession.model_validate(r) for r in result.scalars().all()]

    async def list_all(self) -> List[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord).order_by(TaskSessionRecord.created_at.desc())
        )
        return [TaskSession.model_validate(r) for r in result.scalars().all()]

    async def list_unlinked_by_partner_email(self, email: str) -> List[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord).where(
                TaskSessionRecord.partner_email == email.strip().lower(),
                TaskSessionRecord.partner_id.is_(None),
            )
        )
        return [TaskSession.model_validate(r) for r in result.scalars().all()]

    async def list_by_partner(self, partner_id: str) -> List[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord).where(TaskSessionRecord.partner_id == partner_id)
        )
        return [TaskSession.model_validate(r) for r in result.scalars().all()]

    async def list_by_status(self, statuses: List[SessionStatus]) -> List[TaskSession]:
        result = await self.session.execute(
            select(TaskSessionRecord).where(TaskSessionRecord.status.in_(statuses))
        )
        return [TaskSession.model_validate(r) for r in result.scalars().all()]


class SQLAlchemyRoomRepository(RoomRepositoryInterface):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, room: Room) -> Room:
        record = RoomRecord(**room.model_dump(exclude_none=True))
        self.session.add(record)
        await _commit(self.session)
        await self.session.refresh(record)
        return Room.model_validate(record)

    async def get(self, room_id: str) -> Optional[Room]:
        record = await self.session.get(RoomRecord, room_id)
        return Room.model_validate(record) if record else None


class SQLAlchemyRecordingRepository(RecordingRepositoryInterface):
    """Recording rows; folder fields are only ever written by conditional updates"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, recording: Recording) -> Recording:
        record = RecordingRecord(**recording.model_dump(exclude_none=True))
        self.session.add(record)
        await _commit(self.session)
        await self.session.refresh(record)
        return Recording.model_validate(record)

    async def get(self, recording_id: str) -> Optional[Recording]:
        result = await self.session.execute(
            select(RecordingRecord)
            .where(RecordingRecord.id == recording_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        return Recording.model_validate(record) if record else None

    async def reserve_folder(self, recording_id: str, folder: str) -> str:
        await self.session.execute(
            update(RecordingRecord)
            .where(
                RecordingRecord.id == recording_id,
                RecordingRecord.reserved_folder.is_(None),
            )
            .values(reserved_folder=folder)
            .execution_options(synchronize_session=False)
        )
        await _commit(self.session)
        stored = await self.get(recording_id)
        return stored.reserved_folder if stored and stored.reserved_folder else folder

    async def mark_processed(
        self,
        recording_id: str,
        folder: str,
        wav_key: str,
    ) -> Recording:
        await self.session.execute(
            update(RecordingRecord)
            .where(
                RecordingRecord.id == recording_id,
                RecordingRecord.processed_folder.is_(None),
            )
            .values(processed_folder=folder, wav_key=wav_key)
            .execution_options(synchronize_session=False)
        )
        await _commit(self.session)
        stored = await self.get(recording_id)
        if stored is None:
            raise LookupError(recording_id)
        return stored

    async def list_for_user(self, user_id: str) -> List[Recording]:
        result = await self.session.execute(
            select(RecordingRecord)
            .where(RecordingRecord.user_id == user_id)
            .order_by(RecordingRecord.created_at.desc())
        )
        return [Recording.model_validate(r) for r in result.scalars().all()]

    async def list_for_room(self, room_id: str) -> List[Recording]:
        result = await self.session.execute(
            select(RecordingRecord)
            .where(RecordingRecord.room_id == room_id)
            .order_by(RecordingRecord.created_at.asc())
        )
        return [Recording.model_validate(r) for r in result.scalars().all()]

    async def list_all(self) -> List[Recording]:
        result = await self.session.execute(
            select(RecordingRecord).order_by(RecordingRecord.created_at.desc())
        )
        return [Recording.model_validate(r) for r in result.scalars().all()]


class SQLAlchemyFolderAllocator(FolderAllocatorInterface):
    """Atomic upsert-increment on ``folder_counters``.

    Runs in its own short transaction so a slow caller never holds the
    counter row.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        counter_name: str = RECORDING_FOLDER_COUNTER,
    ):
        self._session_factory = session_factory
        self._counter_name = counter_name

    async def next_value(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(next_folder_statement(self._counter_name))
            value = result.scalar_one()
            await session.commit()
        return int(value)

    async def ensure_at_least(self, value: int) -> None:
        async with self._session_factory() as session:
            await session.execute(raise_folder_statement(self._counter_name, value))
            await session.commit()


class SQLAlchemyNotificationRepository(NotificationRepositoryInterface):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, notification: Notification) -> Notification:
        record = NotificationRecord(**notification.model_dump(exclude_none=True))
        self.session.add(record)
        await _commit(self.session)
        await self.session.refresh(record)
        return Notification.model_validate(record)

    async def list_for_user(self, user_id: str) -> List[Notification]:
        result = await self.session.execute(
            select(NotificationRecord)
            .where(NotificationRecord.user_id == user_id)
            .order_by(NotificationRecord.created_at.desc())
            .limit(100)
        )
        return [Notification.model_validate(r) for r in result.scalars().all()]

    async def mark_read(self, user_id: str, notification_id: Optional[str] = None) -> int:
        stmt = update(NotificationRecord).where(
            NotificationRecord.user_id == user_id,
            NotificationRecord.read.is_(False),
        )
        if notification_id is not None:
            stmt = stmt.where(NotificationRecord.id == notification_id)
        result = await self.session.execute(
            stmt.values(read=True).execution_options(synchronize_session=False)
        )
        await _commit(self.session)
        return result.rowcount or 0

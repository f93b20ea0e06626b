"""Task session use cases.

All status changes go through :func:`app.domain.state_machine.transition`
while the session row is locked, so two parties acting at the same time
see each other's writes instead of overwriting them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from app.application.interfaces import (
    InvitationSenderInterface,
    RoomProviderInterface,
    RoomRepositoryInterface,
    TaskSessionRepositoryInterface,
    UserDirectoryInterface,
)
from app.domain.catalog import TaskType, get_task_type
from app.domain.errors import (
    ActorNotAllowed,
    PartnerIsSelf,
    TaskSessionNotFound,
)
from app.domain.models import (
    PartnerStatus,
    ReviewerStatus,
    Room,
    SessionStatus,
    TaskSession,
)
from app.domain.state_machine import (
    ActorRole,
    PartnerRecord,
    SessionAction,
    ensure_consistent,
    is_frozen,
    reconcile,
    resolve_role,
    transition,
)
from app.services.notifications import NotificationKind, NotificationService
from app.telemetry import record_transition

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``DateTime`` columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def _normalise_email(email: str) -> str:
    return email.strip().lower()


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class TaskSessionService:
    """Explicit, actor-checked transition operations over task sessions."""

    def __init__(
        self,
        sessions: TaskSessionRepositoryInterface,
        rooms: RoomRepositoryInterface,
        users: UserDirectoryInterface,
        room_provider: RoomProviderInterface,
        invitations: Optional[InvitationSenderInterface] = None,
        notifications: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sessions = sessions
        self.rooms = rooms
        self.users = users
        self.room_provider = room_provider
        self.invitations = invitations
        self.notifications = notifications
        self.clock = clock

    # -- creation and partner resolution -------------------------------------------------

    async def create(
        self,
        task_type_id: str,
        initiator_id: str,
        partner_email: Optional[str] = None,
    ) -> TaskSession:
        """Start a task, or return the initiator's active session of that type."""

        task = get_task_type(task_type_id)
        existing = await self.sessions.find_active(initiator_id, task.id)
        if existing is not None:
            return await self.recompute_status(existing.id)

        email = _normalise_email(partner_email) if partner_email else None
        if email and task.requires_partner:
            await self._ensure_not_self(initiator_id, email)

        now = self.clock()
        session = TaskSession(
            id=str(uuid4()),
            task_type=task.id,
            user_id=initiator_id,
            status=(
                SessionStatus.INVITING_PARTNER
                if task.requires_partner
                else SessionStatus.READY_TO_RECORD
            ),
            partner_status=PartnerStatus.NONE,
            created_at=now,
            updated_at=now,
        )
        ensure_consistent(session)
        stored = await self.sessions.create(session)
        if stored.id != session.id:
            # a concurrent request created it first
            return await self.recompute_status(stored.id)
        session = stored
        logger.info(
            "Created task session=%s task=%s user=%s status=%s",
            session.id,
            task.id,
            initiator_id,
            session.status.value,
        )

        if email and task.requires_partner:
            return await self.invite_partner(session.id, email, initiator_id)
        return session

    async def invite_partner(
        self,
        session_id: str,
        email: str,
        actor_id: str,
    ) -> TaskSession:
        email = _normalise_email(email)
        session = await self._require(session_id)
        if resolve_role(session, actor_id) != ActorRole.INITIATOR:
            raise ActorNotAllowed("Only the initiator can invite a partner")
        await self._ensure_not_self(session.user_id, email)

        if session.partner_email == email:
            return await self.recompute_status(session_id)

        partner = await self.users.get_by_email(email)
        if partner is not None and partner.approved:
            target, partner_status = SessionStatus.READY_TO_RECORD, PartnerStatus.APPROVED
        elif partner is not None:
            target, partner_status = SessionStatus.WAITING_APPROVAL, PartnerStatus.REGISTERED
        else:
            target, partner_status = SessionStatus.INVITING_PARTNER, PartnerStatus.INVITED

        async with self.sessions.locked(session_id) as current:
            if current is None:
                raise TaskSessionNotFound()
            updated = transition(
                current,
                SessionAction.INVITE_PARTNER,
                resolve_role(current, actor_id),
                target,
                partner_email=email,
                partner_id=partner.id if partner else None,
                partner_status=partner_status,
                updated_at=self.clock(),
            )
            saved = await self.sessions.save(updated)
        self._log_transition(current, saved, SessionAction.INVITE_PARTNER)

        task = get_task_type(saved.task_type)
        if partner is None:
            await self._send_invitation(saved, email, task)
        else:
            await self._notify(
                partner.id,
                NotificationKind.PARTNER_INVITED,
                f"You were invited to record \"{task.name}\".",
                link=f"/task-sessions/{saved.id}",
            )
        return saved

    async def on_partner_registered(self, email: str) -> List[TaskSession]:
        """Link every session waiting on ``email`` to the new account."""

        account = await self.users.get_by_email(email)
        if account is None:
            return []
        record = PartnerRecord(user_id=account.id, email=account.email, approved=account.approved)
        pending = await self.sessions.list_unlinked_by_partner_email(email)
        return [await self._reconcile_locked(s.id, record) for s in pending]

    async def on_partner_approved(self, user_id: str) -> List[TaskSession]:
        """Advance every session whose partner just got approved."""

        account = await self.users.get_by_id(user_id)
        if account is None:
            return []
        record = PartnerRecord(user_id=account.id, email=account.email, approved=account.approved)
        linked = await self.sessions.list_by_partner(user_id)
        return [await self._reconcile_locked(s.id, record) for s in linked]

    async def recompute_status(self, session_id: str) -> TaskSession:
        """Lazy reconciliation against the partner's live account state."""

        session = await self._require(session_id)
        if is_frozen(session):
            return session
        record = await self._partner_record(session)
        if reconcile(session, record) == session:
            return session
        return await self._reconcile_locked(session_id, record)

    async def reconcile_pending(self) -> int:
        """Sweep every session still waiting on its partner; return how many moved."""

        waiting = await self.sessions.list_by_status(
            [SessionStatus.INVITING_PARTNER, SessionStatus.WAITING_APPROVAL]
        )
        moved = 0
        for session in waiting:
            updated = await self.recompute_status(session.id)
            if updated.status != session.status:
                moved += 1
        logger.info("Reconciliation sweep checked=%d advanced=%d", len(waiting), moved)
        return moved

    # -- room and recording lifecycle ----------------------------------------------------

    async def create_room(self, session_id: str, actor_id: str) -> TaskSession:
        """Allocate the call room once; repeated calls return the same room."""

        async with self.sessions.locked(session_id) as current:
            if current is None:
                raise TaskSessionNotFound()
            role = resolve_role(current, actor_id)
            if role != ActorRole.INITIATOR:
                raise ActorNotAllowed("Only the initiator can create the room")
            if current.room_id is not None:
                return current

            if not is_frozen(current):
                current = reconcile(current, await self._partner_record(current))

            room_id = str(uuid4())
            planned = transition(
                current,
                SessionAction.CREATE_ROOM,
                role,
                SessionStatus.ROOM_CREATED,
                room_id=room_id,
                updated_at=self.clock(),
            )

            task = get_task_type(current.task_type)
            allocated = await self.room_provider.create_room(f"{task.id}-{current.id[:8]}")
            await self.rooms.create(
                Room(
                    id=room_id,
                    name=task.name,
                    provider_room_name=allocated.name,
                    url=allocated.url,
                    created_by=actor_id,
                    expires_at=_naive_utc(allocated.expires_at),
                    created_at=self.clock(),
                )
            )
            saved = await self.sessions.save(planned)
        self._log_transition(current, saved, SessionAction.CREATE_ROOM)

        if saved.partner_id:
            await self._notify(
                saved.partner_id,
                NotificationKind.ROOM_CREATED,
                f"The room for \"{task.name}\" is ready to join.",
                link=f"/rooms/{room_id}",
            )
        return saved

    async def start_recording(self, session_id: str, actor_id: str) -> TaskSession:
        def changes(current: TaskSession) -> dict:
            if current.partner_status == PartnerStatus.NONE:
                return {}
            return {"partner_status": PartnerStatus.READY}

        return await self._apply(
            session_id,
            SessionAction.START_RECORDING,
            SessionStatus.IN_PROGRESS,
            actor_id=actor_id,
            changes=changes,
        )

    async def start_for_room(self, room_id: str, actor_id: str) -> Optional[TaskSession]:
        """Mark the room's session as recording, if it is still waiting to start."""

        session = await self.sessions.get_by_room(room_id)
        if session is None or session.status != SessionStatus.ROOM_CREATED:
            return session
        if not session.is_party(actor_id):
            return session
        return await self.start_recording(session.id, actor_id)

    async def complete(self, session_id: str, actor_id: str) -> TaskSession:
        return await self._apply(
            session_id,
            SessionAction.COMPLETE,
            SessionStatus.PENDING_REVIEW,
            actor_id=actor_id,
        )

    async def admin_approve(self, session_id: str) -> TaskSession:
        saved = await self._apply(
            session_id,
            SessionAction.ADMIN_APPROVE,
            SessionStatus.COMPLETED,
            role=ActorRole.ADMIN,
        )
        await self._notify_parties(
            saved, NotificationKind.TAKE_APPROVED, "Your recording was approved."
        )
        return saved

    async def admin_reject(self, session_id: str) -> TaskSession:
        saved = await self._apply(
            session_id,
            SessionAction.ADMIN_REJECT,
            SessionStatus.ROOM_CREATED,
            role=ActorRole.ADMIN,
        )
        await self._notify_parties(
            saved,
            NotificationKind.TAKE_REJECTED,
            "Your recording needs another take. The same room is ready for you.",
        )
        return saved

    async def set_reviewer_status(
        self,
        session_id: str,
        reviewer_status: Optional[ReviewerStatus],
    ) -> TaskSession:
        return await self._update_metadata(session_id, reviewer_status=reviewer_status)

    async def set_paid(self, session_id: str, paid: bool) -> TaskSession:
        return await self._update_metadata(session_id, paid=paid)

    # -- reads ---------------------------------------------------------------------------

    async def get(
        self,
        session_id: str,
        actor_id: str,
        *,
        is_admin: bool = False,
    ) -> TaskSession:
        session = await self._require(session_id)
        if not is_admin and not session.is_party(actor_id):
            raise ActorNotAllowed("You are not a participant in this session")
        return await self.recompute_status(session_id)

    async def get_by_room(
        self,
        room_id: str,
        actor_id: str,
        *,
        is_admin: bool = False,
    ) -> Optional[TaskSession]:
        session = await self.sessions.get_by_room(room_id)
        if session is None:
            return None
        if not is_admin and not session.is_party(actor_id):
            raise ActorNotAllowed("You are not a participant in this session")
        return session

    async def find_by_room(self, room_id: str) -> Optional[TaskSession]:
        return await self.sessions.get_by_room(room_id)

    async def list_for_user(self, user_id: str) -> List[TaskSession]:
        sessions = await self.sessions.list_for_user(user_id)
        return [
            s if is_frozen(s) else await self.recompute_status(s.id) for s in sessions
        ]

    async def list_all(self) -> List[TaskSession]:
        return await self.sessions.list_all()

    # -- helpers -------------------------------------------------------------------------

    async def _require(self, session_id: str) -> TaskSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise TaskSessionNotFound()
        return session

    async def _ensure_not_self(self, initiator_id: str, email: str) -> None:
        initiator = await self.users.get_by_id(initiator_id)
        if initiator is not None and _normalise_email(initiator.email) == email:
            raise PartnerIsSelf()

    async def _partner_record(self, session: TaskSession) -> Optional[PartnerRecord]:
        if session.partner_id is not None:
            account = await self.users.get_by_id(session.partner_id)
        elif session.partner_email is not None:
            account = await self.users.get_by_email(session.partner_email)
        else:
            return None
        if account is None:
            return None
        return PartnerRecord(user_id=account.id, email=account.email, approved=account.approved)

    async def _reconcile_locked(
        self,
        session_id: str,
        record: Optional[PartnerRecord],
    ) -> TaskSession:
        async with self.sessions.locked(session_id) as current:
            if current is None:
                raise TaskSessionNotFound()
            updated = reconcile(current, record)
            if updated == current:
                return current
            saved = await self.sessions.save(updated.model_copy(update={"updated_at": self.clock()}))
        action = (
            SessionAction.PARTNER_APPROVED
            if saved.status == SessionStatus.READY_TO_RECORD
            else SessionAction.PARTNER_REGISTERED
        )
        self._log_transition(current, saved, action)
        return saved

    async def _apply(
        self,
        session_id: str,
        action: SessionAction,
        target: SessionStatus,
        *,
        actor_id: Optional[str] = None,
        role: Optional[ActorRole] = None,
        changes: Optional[Callable[[TaskSession], dict]] = None,
    ) -> TaskSession:
        async with self.sessions.locked(session_id) as current:
            if current is None:
                raise TaskSessionNotFound()
            actor_role = role if role is not None else resolve_role(current, actor_id or "")
            extra = changes(current) if changes else {}
            updated = transition(current, action, actor_role, target, **extra)
            if updated == current:
                return current
            saved = await self.sessions.save(
                updated.model_copy(update={"updated_at": self.clock()})
            )
        self._log_transition(current, saved, action)
        return saved

    async def _update_metadata(self, session_id: str, **fields) -> TaskSession:
        async with self.sessions.locked(session_id) as current:
            if current is None:
                raise TaskSessionNotFound()
            updated = current.model_copy(update=fields)
            if updated == current:
                return current
            return await self.sessions.save(
                updated.model_copy(update={"updated_at": self.clock()})
            )

    def _log_transition(
        self,
        before: TaskSession,
        after: TaskSession,
        action: SessionAction,
    ) -> None:
        if before.status == after.status and before.partner_status == after.partner_status:
            return
        record_transition(action.value, after.status.value)
        logger.info(
            "session=%s action=%s from=%s to=%s partner_status=%s",
            after.id,
            action.value,
            before.status.value,
            after.status.value,
            after.partner_status.value,
        )

    async def _send_invitation(self, session: TaskSession, email: str, task: TaskType) -> None:
        if self.invitations is None:
            return
        initiator = await self.users.get_by_id(session.user_id)
        await self.invitations.send_partner_invitation(
            recipient=email,
            inviter_email=initiator.email if initiator else "A Voice Atlas user",
            task_name=task.name,
        )

    async def _notify(
        self,
        user_id: str,
        kind: str,
        message: str,
        link: Optional[str] = None,
    ) -> None:
        if self.notifications is None:
            return
        await self.notifications.notify(user_id, kind, message, link=link)

    async def _notify_parties(self, session: TaskSession, kind: str, message: str) -> None:
        link = f"/task-sessions/{session.id}"
        await self._notify(session.user_id, kind, message, link=link)
        if session.partner_id:
            await self._notify(session.partner_id, kind, message, link=link)


__all__ = ["TaskSessionService", "utcnow"]

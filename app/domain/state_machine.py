"""Transition table for task sessions.

Every status change of a ``TaskSession`` goes through :func:`transition`,
keyed by ``(current status, action)`` and checked against the actor's role.
The table only ever moves a session forward through ``SessionStatus``; the
single backward edge is ``ADMIN_REJECT`` from ``pending_review`` to
``room_created``. Anything not listed is rejected with a typed error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from app.domain.errors import (
    ActorNotAllowed,
    InvalidTransition,
    NotPendingReview,
    PartnerNotApproved,
)
from app.domain.models import PartnerStatus, SessionStatus, TaskSession


class SessionAction(str, Enum):
    INVITE_PARTNER = "invite_partner"
    PARTNER_REGISTERED = "partner_registered"
    PARTNER_APPROVED = "partner_approved"
    CREATE_ROOM = "create_room"
    START_RECORDING = "start_recording"
    COMPLETE = "complete"
    ADMIN_APPROVE = "admin_approve"
    ADMIN_REJECT = "admin_reject"


class ActorRole(str, Enum):
    INITIATOR = "initiator"
    PARTNER = "partner"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Transition:
    roles: frozenset[ActorRole]
    targets: frozenset[SessionStatus]


@dataclass(frozen=True)
class PartnerRecord:
    """Live view of the partner's account used for reconciliation."""

    user_id: str
    email: str
    approved: bool


STATUS_ORDER: Mapping[SessionStatus, int] = {
    status: index for index, status in enumerate(SessionStatus)
}

_S = SessionStatus
_PARTIES = frozenset({ActorRole.INITIATOR, ActorRole.PARTNER})

TRANSITIONS: Mapping[tuple[SessionStatus, SessionAction], Transition] = {
    (_S.INVITING_PARTNER, SessionAction.INVITE_PARTNER): Transition(
        frozenset({ActorRole.INITIATOR}),
        frozenset({_S.INVITING_PARTNER, _S.WAITING_APPROVAL, _S.READY_TO_RECORD}),
    ),
    (_S.INVITING_PARTNER, SessionAction.PARTNER_REGISTERED): Transition(
        frozenset({ActorRole.SYSTEM}),
        frozenset({_S.WAITING_APPROVAL}),
    ),
    (_S.WAITING_APPROVAL, SessionAction.PARTNER_APPROVED): Transition(
        frozenset({ActorRole.SYSTEM}),
        frozenset({_S.READY_TO_RECORD}),
    ),
    (_S.READY_TO_RECORD, SessionAction.CREATE_ROOM): Transition(
        frozenset({ActorRole.INITIATOR}),
        frozenset({_S.ROOM_CREATED}),
    ),
    (_S.ROOM_CREATED, SessionAction.START_RECORDING): Transition(
        _PARTIES,
        frozenset({_S.IN_PROGRESS}),
    ),
    (_S.IN_PROGRESS, SessionAction.START_RECORDING): Transition(
        _PARTIES,
        frozenset({_S.IN_PROGRESS}),
    ),
    (_S.ROOM_CREATED, SessionAction.COMPLETE): Transition(
        _PARTIES,
        frozenset({_S.PENDING_REVIEW}),
    ),
    (_S.IN_PROGRESS, SessionAction.COMPLETE): Transition(
        _PARTIES,
        frozenset({_S.PENDING_REVIEW}),
    ),
    (_S.PENDING_REVIEW, SessionAction.COMPLETE): Transition(
        _PARTIES,
        frozenset({_S.PENDING_REVIEW}),
    ),
    (_S.PENDING_REVIEW, SessionAction.ADMIN_APPROVE): Transition(
        frozenset({ActorRole.ADMIN}),
        frozenset({_S.COMPLETED}),
    ),
    (_S.PENDING_REVIEW, SessionAction.ADMIN_REJECT): Transition(
        frozenset({ActorRole.ADMIN}),
        frozenset({_S.ROOM_CREATED}),
    ),
}

# Which partner statuses may accompany each session status.
CONSISTENT_PARTNER_STATUSES: Mapping[SessionStatus, frozenset[PartnerStatus]] = {
    _S.INVITING_PARTNER: frozenset({PartnerStatus.NONE, PartnerStatus.INVITED}),
    _S.WAITING_APPROVAL: frozenset({PartnerStatus.REGISTERED}),
    _S.READY_TO_RECORD: frozenset({PartnerStatus.NONE, PartnerStatus.APPROVED}),
    _S.ROOM_CREATED: frozenset(
        {PartnerStatus.NONE, PartnerStatus.APPROVED, PartnerStatus.READY}
    ),
    _S.IN_PROGRESS: frozenset({PartnerStatus.NONE, PartnerStatus.READY}),
    _S.PENDING_REVIEW: frozenset(
        {PartnerStatus.NONE, PartnerStatus.APPROVED, PartnerStatus.READY}
    ),
    _S.COMPLETED: frozenset(
        {PartnerStatus.NONE, PartnerStatus.APPROVED, PartnerStatus.READY}
    ),
}

_BACKWARD_EDGES = frozenset(
    {(_S.PENDING_REVIEW, SessionAction.ADMIN_REJECT, _S.ROOM_CREATED)}
)


def resolve_role(session: TaskSession, actor_id: str) -> Optional[ActorRole]:
    """Map a user id onto the role it plays in ``session``."""

    if actor_id == session.user_id:
        return ActorRole.INITIATOR
    if session.partner_id is not None and actor_id == session.partner_id:
        return ActorRole.PARTNER
    return None


def is_allowed_move(
    current: SessionStatus,
    action: SessionAction,
    target: SessionStatus,
) -> bool:
    """Forward (or stationary) moves, plus the single reject edge."""

    if STATUS_ORDER[target] >= STATUS_ORDER[current]:
        return True
    return (current, action, target) in _BACKWARD_EDGES


def ensure_consistent(session: TaskSession) -> None:
    """Raise when ``partner_status``/``room_id`` disagree with ``status``."""

    allowed = CONSISTENT_PARTNER_STATUSES[session.status]
    if session.partner_status not in allowed:
        raise InvalidTransition(
            f"Partner status '{session.partner_status.value}' is inconsistent "
            f"with session status '{session.status.value}'"
        )
    needs_room = STATUS_ORDER[session.status] >= STATUS_ORDER[_S.ROOM_CREATED]
    if needs_room and session.room_id is None:
        raise InvalidTransition(
            f"Session status '{session.status.value}' requires a room"
        )
    if not needs_room and session.room_id is not None:
        raise InvalidTransition("A session with a room cannot move before room_created")


def _rejection(session: TaskSession, action: SessionAction) -> InvalidTransition:
    status = session.status
    if action in (SessionAction.ADMIN_APPROVE, SessionAction.ADMIN_REJECT):
        return NotPendingReview(
            f"Session is '{status.value}', review actions need 'pending_review'"
        )
    if action == SessionAction.CREATE_ROOM and status in (
        _S.INVITING_PARTNER,
        _S.WAITING_APPROVAL,
    ):
        if session.partner_id is None:
            return PartnerNotApproved("Invite a partner and wait for their approval first")
        return PartnerNotApproved("Partner not yet approved")
    if action in (SessionAction.COMPLETE, SessionAction.START_RECORDING) and (
        STATUS_ORDER[status] < STATUS_ORDER[_S.ROOM_CREATED]
    ):
        return InvalidTransition("No room has been created for this session yet")
    if action == SessionAction.INVITE_PARTNER:
        return InvalidTransition(
            f"A partner can only be invited while inviting; session is '{status.value}'"
        )
    return InvalidTransition(
        f"Action '{action.value}' is not allowed while session is '{status.value}'"
    )


def transition(
    session: TaskSession,
    action: SessionAction,
    role: Optional[ActorRole],
    target: SessionStatus,
    **changes: Any,
) -> TaskSession:
    """Apply ``action`` and return the updated copy, or raise a typed rejection.

    ``changes`` carries the field updates that accompany the move
    (``partner_status``, ``partner_id``, ``room_id``...). The input session
    is never mutated.
    """

    rule = TRANSITIONS.get((session.status, action))
    if rule is None:
        raise _rejection(session, action)
    if role is None or role not in rule.roles:
        raise ActorNotAllowed(
            f"Action '{action.value}' is not available to "
            f"{role.value if role else 'non-participants'}"
        )
    if target not in rule.targets or not is_allowed_move(session.status, action, target):
        raise InvalidTransition(
            f"Cannot move from '{session.status.value}' to '{target.value}' "
            f"via '{action.value}'"
        )

    updated = session.model_copy(update={"status": target, **changes})
    ensure_consistent(updated)
    return updated


def is_frozen(session: TaskSession) -> bool:
    """Reconciliation never touches a session once it is ready or has a room."""

    return session.room_id is not None or (
        STATUS_ORDER[session.status] >= STATUS_ORDER[_S.READY_TO_RECORD]
    )


def reconcile(session: TaskSession, partner: Optional[PartnerRecord]) -> TaskSession:
    """Re-derive partner progress from the partner's live account state.

    Pure: the result depends only on ``session`` and ``partner``. It only
    advances (``inviting_partner`` -> ``waiting_approval`` ->
    ``ready_to_record``) and is a no-op for frozen sessions.
    """

    if partner is None or is_frozen(session):
        return session

    current = session
    if current.partner_id is None:
        if (
            current.partner_email is None
            or partner.email.strip().lower() != current.partner_email
        ):
            return current
        current = transition(
            current,
            SessionAction.PARTNER_REGISTERED,
            ActorRole.SYSTEM,
            _S.WAITING_APPROVAL,
            partner_id=partner.user_id,
            partner_status=PartnerStatus.REGISTERED,
        )
    elif partner.user_id != current.partner_id:
        return current

    if partner.approved and current.status == _S.WAITING_APPROVAL:
        current = transition(
            current,
            SessionAction.PARTNER_APPROVED,
            ActorRole.SYSTEM,
            _S.READY_TO_RECORD,
            partner_status=PartnerStatus.APPROVED,
        )
    return current


__all__ = [
    "ActorRole",
    "CONSISTENT_PARTNER_STATUSES",
    "PartnerRecord",
    "STATUS_ORDER",
    "SessionAction",
    "TRANSITIONS",
    "Transition",
    "ensure_consistent",
    "is_allowed_move",
    "is_frozen",
    "reconcile",
    "resolve_role",
    "transition",
]

"""Unit tests for the task session transition table and reconciliation."""

from __future__ import annotations

from datetime import datetime

import pytest

from app.domain.errors import (
    ActorNotAllowed,
    InvalidTransition,
    NotPendingReview,
    PartnerNotApproved,
)
from app.domain.models import PartnerStatus, SessionStatus, TaskSession
from app.domain.state_machine import (
    TRANSITIONS,
    ActorRole,
    PartnerRecord,
    SessionAction,
    ensure_consistent,
    is_allowed_move,
    is_frozen,
    reconcile,
    resolve_role,
    transition,
)

NOW = datetime(2026, 1, 1, 12, 0, 0)


def make_session(**overrides) -> TaskSession:
    data = {
        "id": "session-1",
        "task_type": "interview",
        "user_id": "alice",
        "status": SessionStatus.INVITING_PARTNER,
        "partner_status": PartnerStatus.NONE,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return TaskSession(**data)


def test_resolve_role_distinguishes_parties():
    session = make_session(partner_id="bob", partner_email="bob@example.com",
                           partner_status=PartnerStatus.REGISTERED,
                           status=SessionStatus.WAITING_APPROVAL)

    assert resolve_role(session, "alice") == ActorRole.INITIATOR
    assert resolve_role(session, "bob") == ActorRole.PARTNER
    assert resolve_role(session, "mallory") is None


def test_invite_moves_to_inviting_with_invited_partner():
    session = make_session()

    updated = transition(
        session,
        SessionAction.INVITE_PARTNER,
        ActorRole.INITIATOR,
        SessionStatus.INVITING_PARTNER,
        partner_email="bob@example.com",
        partner_status=PartnerStatus.INVITED,
    )

    assert updated.partner_status == PartnerStatus.INVITED
    assert session.partner_email is None


def test_create_room_without_partner_reports_partner_not_approved():
    session = make_session()

    with pytest.raises(PartnerNotApproved):
        transition(
            session,
            SessionAction.CREATE_ROOM,
            ActorRole.INITIATOR,
            SessionStatus.ROOM_CREATED,
            room_id="room-1",
        )


def test_create_room_by_partner_is_rejected():
    session = make_session(
        status=SessionStatus.READY_TO_RECORD,
        partner_id="bob",
        partner_email="bob@example.com",
        partner_status=PartnerStatus.APPROVED,
    )

    with pytest.raises(ActorNotAllowed):
        transition(
            session,
            SessionAction.CREATE_ROOM,
            ActorRole.PARTNER,
            SessionStatus.ROOM_CREATED,
            room_id="room-1",
        )


def test_review_actions_need_pending_review():
    session = make_session(
        status=SessionStatus.IN_PROGRESS,
        room_id="room-1",
        partner_id="bob",
        partner_status=PartnerStatus.READY,
    )

    with pytest.raises(NotPendingReview):
        transition(session, SessionAction.ADMIN_APPROVE, ActorRole.ADMIN, SessionStatus.COMPLETED)


def test_admin_reject_is_the_only_backward_edge():
    pending = make_session(
        status=SessionStatus.PENDING_REVIEW,
        room_id="room-1",
        partner_id="bob",
        partner_status=PartnerStatus.READY,
    )

    rejected = transition(pending, SessionAction.ADMIN_REJECT, ActorRole.ADMIN, SessionStatus.ROOM_CREATED)

    assert rejected.status == SessionStatus.ROOM_CREATED
    assert rejected.room_id == "room-1"
    assert not is_allowed_move(SessionStatus.PENDING_REVIEW, SessionAction.COMPLETE, SessionStatus.IN_PROGRESS)
    assert is_allowed_move(SessionStatus.PENDING_REVIEW, SessionAction.ADMIN_REJECT, SessionStatus.ROOM_CREATED)


def test_table_never_moves_backward_except_reject():
    for (current, action), rule in TRANSITIONS.items():
        for target in rule.targets:
            if action == SessionAction.ADMIN_REJECT:
                continue
            assert is_allowed_move(current, action, target), (current, action, target)


def test_complete_before_room_is_invalid():
    session = make_session(status=SessionStatus.READY_TO_RECORD)

    with pytest.raises(InvalidTransition, match="No room"):
        transition(session, SessionAction.COMPLETE, ActorRole.INITIATOR, SessionStatus.PENDING_REVIEW)


def test_ensure_consistent_rejects_mismatched_partner_status():
    with pytest.raises(InvalidTransition):
        ensure_consistent(make_session(partner_status=PartnerStatus.APPROVED))


def test_ensure_consistent_requires_room_after_room_created():
    with pytest.raises(InvalidTransition):
        ensure_consistent(make_session(status=SessionStatus.ROOM_CREATED))


def test_reconcile_links_registered_partner_by_email():
    session = make_session(partner_email="bob@example.com", partner_status=PartnerStatus.INVITED)
    record = PartnerRecord(user_id="bob", email="Bob@Example.com", approved=False)

    updated = reconcile(session, record)

    assert updated.status == SessionStatus.WAITING_APPROVAL
    assert updated.partner_id == "bob"
    assert updated.partner_status == PartnerStatus.REGISTERED
    assert session.partner_id is None


def test_reconcile_advances_through_both_steps_for_approved_partner():
    session = make_session(partner_email="bob@example.com", partner_status=PartnerStatus.INVITED)
    record = PartnerRecord(user_id="bob", email="bob@example.com", approved=True)

    updated = reconcile(session, record)

    assert updated.status == SessionStatus.READY_TO_RECORD
    assert updated.partner_status == PartnerStatus.APPROVED
    assert reconcile(updated, record) == updated


def test_reconcile_ignores_other_accounts():
    session = make_session(partner_email="bob@example.com", partner_status=PartnerStatus.INVITED)
    record = PartnerRecord(user_id="carol", email="carol@example.com", approved=True)

    assert reconcile(session, record) == session


def test_reconcile_is_a_noop_once_frozen():
    session = make_session(
        status=SessionStatus.ROOM_CREATED,
        room_id="room-1",
        partner_id="bob",
        partner_email="bob@example.com",
        partner_status=PartnerStatus.APPROVED,
    )
    record = PartnerRecord(user_id="bob", email="bob@example.com", approved=False)

    assert is_frozen(session)
    assert reconcile(session, record) == session

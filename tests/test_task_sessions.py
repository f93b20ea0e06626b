"""Task session lifecycle against in-memory repositories."""

from __future__ import annotations

import asyncio

import pytest

from app.domain.errors import (
    ActorNotAllowed,
    InvalidTaskType,
    InvalidTransition,
    NotPendingReview,
    PartnerIsSelf,
    PartnerNotApproved,
    RoomProviderError,
)
from app.domain.models import PartnerStatus, SessionStatus
from app.services.notifications import NotificationKind


@pytest.mark.asyncio
async def test_partnerless_task_runs_straight_to_completion(task_service, users, room_provider):
    alice = users.add("alice@example.com")

    session = await task_service.create("storytelling", alice.id)
    assert session.status == SessionStatus.READY_TO_RECORD
    assert session.partner_status == PartnerStatus.NONE

    session = await task_service.create_room(session.id, alice.id)
    assert session.status == SessionStatus.ROOM_CREATED
    assert session.room_id is not None
    assert len(room_provider.created) == 1

    session = await task_service.start_recording(session.id, alice.id)
    assert session.status == SessionStatus.IN_PROGRESS
    assert session.partner_status == PartnerStatus.NONE

    session = await task_service.complete(session.id, alice.id)
    assert session.status == SessionStatus.PENDING_REVIEW

    session = await task_service.admin_approve(session.id)
    assert session.status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_invited_partner_registers_then_gets_approved(task_service, users, invitations):
    alice = users.add("alice@example.com")

    session = await task_service.create("interview", alice.id, partner_email="Bob@Example.com")
    assert session.status == SessionStatus.INVITING_PARTNER
    assert session.partner_status == PartnerStatus.INVITED
    assert session.partner_email == "bob@example.com"
    assert invitations.sent == [
        {"recipient": "bob@example.com", "inviter_email": "alice@example.com", "task_name": "Interview"}
    ]

    bob = users.add("bob@example.com", approved=False)
    [linked] = await task_service.on_partner_registered("bob@example.com")
    assert linked.status == SessionStatus.WAITING_APPROVAL
    assert linked.partner_id == bob.id
    assert linked.partner_status == PartnerStatus.REGISTERED

    with pytest.raises(PartnerNotApproved):
        await task_service.create_room(session.id, alice.id)

    users.approve(bob.id)
    [ready] = await task_service.on_partner_approved(bob.id)
    assert ready.status == SessionStatus.READY_TO_RECORD
    assert ready.partner_status == PartnerStatus.APPROVED

    with_room = await task_service.create_room(session.id, alice.id)
    assert with_room.status == SessionStatus.ROOM_CREATED

    started = await task_service.start_recording(session.id, bob.id)
    assert started.status == SessionStatus.IN_PROGRESS
    assert started.partner_status == PartnerStatus.READY


@pytest.mark.asyncio
async def test_inviting_an_approved_account_skips_straight_to_ready(task_service, users, invitations, notification_repo):
    alice = users.add("alice@example.com")
    bob = users.add("bob@example.com", approved=True)

    session = await task_service.create("interview", alice.id, partner_email="bob@example.com")

    assert session.status == SessionStatus.READY_TO_RECORD
    assert session.partner_id == bob.id
    assert invitations.sent == []
    [notice] = await notification_repo.list_for_user(bob.id)
    assert notice.kind == NotificationKind.PARTNER_INVITED


@pytest.mark.asyncio
async def test_create_returns_the_active_session_for_the_same_task(task_service, users, session_repo):
    alice = users.add("alice@example.com")

    first = await task_service.create("free-conversation", alice.id)
    second = await task_service.create("free-conversation", alice.id)

    assert first.id == second.id
    assert len(await session_repo.list_all()) == 1


@pytest.mark.asyncio
async def test_concurrent_creates_share_one_session(task_service, users, session_repo, monkeypatch):
    alice = users.add("alice@example.com")
    find_active = session_repo.find_active

    async def slow_find_active(user_id, task_type):
        found = await find_active(user_id, task_type)
        await asyncio.sleep(0)
        return found

    monkeypatch.setattr(session_repo, "find_active", slow_find_active)

    first, second = await asyncio.gather(
        task_service.create("free-conversation", alice.id),
        task_service.create("free-conversation", alice.id),
    )

    assert first.id == second.id
    assert len(await session_repo.list_all()) == 1


@pytest.mark.asyncio
async def test_unknown_task_type_is_rejected(task_service, users):
    alice = users.add("alice@example.com")

    with pytest.raises(InvalidTaskType):
        await task_service.create("karaoke", alice.id)


@pytest.mark.asyncio
async def test_inviting_yourself_is_rejected(task_service, users, session_repo):
    alice = users.add("alice@example.com")

    with pytest.raises(PartnerIsSelf):
        await task_service.create("interview", alice.id, partner_email="ALICE@example.com")
    assert await session_repo.list_all() == []


@pytest.mark.asyncio
async def test_reinviting_the_same_email_is_idempotent(task_service, users, invitations):
    alice = users.add("alice@example.com")
    session = await task_service.create("interview", alice.id, partner_email="bob@example.com")

    again = await task_service.invite_partner(session.id, "bob@example.com", alice.id)

    assert again.status == SessionStatus.INVITING_PARTNER
    assert len(invitations.sent) == 1


@pytest.mark.asyncio
async def test_only_the_initiator_can_invite(task_service, users):
    alice = users.add("alice@example.com")
    mallory = users.add("mallory@example.com")
    session = await task_service.create("interview", alice.id)

    with pytest.raises(ActorNotAllowed):
        await task_service.invite_partner(session.id, "bob@example.com", mallory.id)


@pytest.mark.asyncio
async def test_concurrent_create_room_allocates_a_single_room(task_service, users, room_provider, room_repo):
    alice = users.add("alice@example.com")
    session = await task_service.create("storytelling", alice.id)

    results = await asyncio.gather(
        *(task_service.create_room(session.id, alice.id) for _ in range(5))
    )

    assert len(room_provider.created) == 1
    assert len(room_repo.rooms) == 1
    assert {r.room_id for r in results} == {results[0].room_id}
    assert all(r.status == SessionStatus.ROOM_CREATED for r in results)


@pytest.mark.asyncio
async def test_provider_failure_leaves_session_without_room(task_service, users, room_provider, room_repo):
    alice = users.add("alice@example.com")
    session = await task_service.create("storytelling", alice.id)
    room_provider.fail_with = RoomProviderError("daily is down")

    with pytest.raises(RoomProviderError):
        await task_service.create_room(session.id, alice.id)

    stored = await task_service.get(session.id, alice.id)
    assert stored.status == SessionStatus.READY_TO_RECORD
    assert stored.room_id is None
    assert room_repo.rooms == {}


@pytest.mark.asyncio
async def test_reading_a_session_reconciles_out_of_band_changes(task_service, users):
    alice = users.add("alice@example.com")
    session = await task_service.create("interview", alice.id, partner_email="bob@example.com")

    users.add("bob@example.com", approved=True)
    refreshed = await task_service.get(session.id, alice.id)

    assert refreshed.status == SessionStatus.READY_TO_RECORD
    assert refreshed.partner_status == PartnerStatus.APPROVED


@pytest.mark.asyncio
async def test_reconcile_pending_reports_how_many_sessions_moved(task_service, users):
    alice = users.add("alice@example.com")
    carol = users.add("carol@example.com")
    await task_service.create("interview", alice.id, partner_email="bob@example.com")
    await task_service.create("interview", carol.id, partner_email="dave@example.com")

    users.add("bob@example.com", approved=False)

    assert await task_service.reconcile_pending() == 1
    assert await task_service.reconcile_pending() == 0


@pytest.mark.asyncio
async def test_admin_reject_reopens_the_same_room(task_service, users, notification_repo):
    alice = users.add("alice@example.com")
    session = await task_service.create("storytelling", alice.id)
    session = await task_service.create_room(session.id, alice.id)
    room_id = session.room_id
    await task_service.complete(session.id, alice.id)

    rejected = await task_service.admin_reject(session.id)

    assert rejected.status == SessionStatus.ROOM_CREATED
    assert rejected.room_id == room_id
    kinds = [n.kind for n in await notification_repo.list_for_user(alice.id)]
    assert NotificationKind.TAKE_REJECTED in kinds

    with pytest.raises(NotPendingReview):
        await task_service.admin_approve(session.id)


@pytest.mark.asyncio
async def test_complete_is_repeatable_but_not_before_a_room(task_service, users):
    alice = users.add("alice@example.com")
    session = await task_service.create("storytelling", alice.id)

    with pytest.raises(InvalidTransition):
        await task_service.complete(session.id, alice.id)

    await task_service.create_room(session.id, alice.id)
    first = await task_service.complete(session.id, alice.id)
    second = await task_service.complete(session.id, alice.id)
    assert first.status == second.status == SessionStatus.PENDING_REVIEW


@pytest.mark.asyncio
async def test_outsiders_cannot_read_a_session(task_service, users):
    alice = users.add("alice@example.com")
    mallory = users.add("mallory@example.com")
    session = await task_service.create("storytelling", alice.id)

    with pytest.raises(ActorNotAllowed):
        await task_service.get(session.id, mallory.id)

    admin_view = await task_service.get(session.id, mallory.id, is_admin=True)
    assert admin_view.id == session.id


@pytest.mark.asyncio
async def test_review_metadata_does_not_change_status(task_service, users):
    alice = users.add("alice@example.com")
    session = await task_service.create("storytelling", alice.id)

    paid = await task_service.set_paid(session.id, True)

    assert paid.paid is True
    assert paid.status == SessionStatus.READY_TO_RECORD

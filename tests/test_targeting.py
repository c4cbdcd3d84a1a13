from datetime import date

import pytest

from condo.core.permissions import FullAccess, LimitedAccess
from condo.models.admin import Admin
from condo.models.notification import NotificationType
from condo.services.errors import NoPermittedTargets
from condo.services.events import (
    AdminBroadcast,
    AssemblyScheduled,
    ComplaintSubmitted,
    CondominiumAudience,
    EveryAdmin,
    MemberAudience,
    OccurrenceCreated,
    RequestSubmitted,
    UserDeleted,
)
from condo.services.targeting import resolve_targets, restrict_broadcast_targets, select_admins
from tests.factories import make_admin, make_condominium, make_resident


def _admin(admin_id, scope="full", allowed=None):
    return Admin(id=admin_id, username=f"a{admin_id}", hashed_password="-", scope=scope, allowed_condominiums=allowed)


ADMINS = [
    _admin(1),
    _admin(2, "limited", "[3, 4]"),
    _admin(3, "limited", "[]"),
    _admin(4, "full", "not json at all"),
    _admin(5, "limited", '"7"'),
]


def test_condominium_rule_full_and_matching_limited():
    assert select_admins(ADMINS, {7}) == {1, 4, 5}
    assert select_admins(ADMINS, {4}) == {1, 2, 4}


def test_condominium_rule_any_overlap():
    assert select_admins(ADMINS, {4, 7}) == {1, 2, 4, 5}


def test_empty_allow_list_never_selected():
    for condominium_ids in ({1}, {3}, {3, 4, 7}, set()):
        assert 3 not in select_admins(ADMINS, condominium_ids)


def test_no_condominium_reaches_only_full_admins():
    assert select_admins(ADMINS, set()) == {1, 4}


def test_broadcast_targets_intersected_with_sender_scope():
    sender = LimitedAccess(frozenset({3, 4}))
    assert restrict_broadcast_targets(sender, {4, 5}) == {4}
    with pytest.raises(NoPermittedTargets):
        restrict_broadcast_targets(sender, {5})


def test_broadcast_targets_unrestricted_for_full_sender():
    assert restrict_broadcast_targets(FullAccess(), {4, 5}) == {4, 5}


def test_events_carry_their_origin():
    occurrence = OccurrenceCreated(occurrence_id=11, occurrence_condominium_id=7, occurrence_title="Leak")
    assert occurrence.type == NotificationType.OCCURRENCE
    assert occurrence.related_id == 11
    assert occurrence.condominium_id == 7
    assert occurrence.audience() == CondominiumAudience(frozenset({7}))

    assembly = AssemblyScheduled(assembly_id=2, assembly_condominium_id=3, meeting_date=date(2026, 5, 1), meeting_time="18:30")
    assert assembly.audience() == CondominiumAudience(frozenset({3}), include_residents=True)
    assert "2026-05-01" in assembly.message

    broadcast = AdminBroadcast(message_id=9, message_title="Water cut", target_condominium_ids=frozenset({5, 4}))
    assert broadcast.condominium_id == 4
    assert broadcast.push_payload(30) == {
        "notification_id": 30, "type": "admin_message", "related_id": 9, "title": "Water cut",
    }

    complaint = ComplaintSubmitted(message_id=1, resident_id=8, resident_name="Ana", subject="Noise", body="Loud")
    assert complaint.audience() == MemberAudience(8)
    assert complaint.user_id == 8
    request = RequestSubmitted(
        message_id=2, resident_id=8, resident_name="Ana", subject="Key", body="Copy", explicit_condominium_id=3,
    )
    assert request.type == NotificationType.REQUEST
    assert request.audience() == MemberAudience(8, 3)
    assert request.condominium_id == 3

    deleted = UserDeleted(resident_name="Ana")
    assert deleted.related_id is None
    assert deleted.audience() == EveryAdmin()


async def test_resolve_member_audience_uses_memberships(session):
    for condominium_id in (3, 4, 7):
        await make_condominium(session, condominium_id)
    full = await make_admin(session, "full")
    limited_3 = await make_admin(session, "l3", "limited", [3])
    limited_7 = await make_admin(session, "l7", "limited", [7])
    resident = await make_resident(session, "ana", [3, 4])

    targets = await resolve_targets(session, MemberAudience(resident.id))
    assert targets.admin_ids == {full.id, limited_3.id}
    assert targets.user_ids == frozenset()

    # An explicit condominium replaces the memberships
    targets = await resolve_targets(session, MemberAudience(resident.id, condominium_id=7))
    assert targets.admin_ids == {full.id, limited_7.id}


async def test_resolve_condominium_audience_with_residents(session):
    for condominium_id in (3, 4):
        await make_condominium(session, condominium_id)
    full = await make_admin(session, "full")
    await make_admin(session, "l3", "limited", [3])
    in_4 = await make_resident(session, "bia", [4])
    in_both = await make_resident(session, "rui", [3, 4])
    await make_resident(session, "eva", [3])

    targets = await resolve_targets(session, CondominiumAudience(frozenset({4}), include_residents=True))
    assert targets.admin_ids == {full.id}
    assert targets.user_ids == {in_4.id, in_both.id}

    targets = await resolve_targets(session, CondominiumAudience(frozenset({4})))
    assert targets.user_ids == frozenset()


async def test_resolve_every_admin_ignores_scope(session):
    full = await make_admin(session, "full")
    empty = await make_admin(session, "empty", "limited", [])
    limited = await make_admin(session, "l9", "limited", [9])

    targets = await resolve_targets(session, EveryAdmin())
    assert targets.admin_ids == {full.id, empty.id, limited.id}


async def test_resolver_with_no_eligible_admins_is_empty(session):
    await make_condominium(session, 7)
    await make_admin(session, "l3", "limited", [3])

    targets = await resolve_targets(session, CondominiumAudience(frozenset({7})))
    assert targets.is_empty

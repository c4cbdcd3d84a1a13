import json

from sqlalchemy.exc import OperationalError
from sqlmodel import select

from condo.models.admin import Admin
from condo.models.maintenance import MaintenanceUser
from condo.models.notification import AdminNotificationLink, Notification
from condo.models.occurrence import Occurrence
from condo.models.user import User
from condo.services import notification_service
from condo.services.errors import NotificationStoreError
from tests.factories import as_admin, make_admin, make_condominium, make_resident

API = "/api/v1"


async def _create_occurrence(client, admin, condominium_id, **extra):
    payload = {"condominium_id": condominium_id, "title": "Leak", "description": "Water in the garage"}
    payload.update(extra)
    response = await client.post(f"{API}/admin/occurrences", json=payload, headers=as_admin(admin))
    assert response.status_code == 200, response.text
    return response.json()


async def _notifications(client, admin, permissions=None):
    response = await client.get(f"{API}/notifications/", headers=as_admin(admin, permissions))
    assert response.status_code == 200, response.text
    return response.json()


async def _unread(client, admin, permissions=None):
    response = await client.get(f"{API}/notifications/unread-count", headers=as_admin(admin, permissions))
    assert response.status_code == 200, response.text
    return response.json()["count"]


async def test_full_admin_is_notified_of_occurrence_anywhere(client, session, main_admin):
    await make_condominium(session, 7, "Jardins")
    full = await make_admin(session, "full")
    before = await _unread(client, full)

    occurrence = await _create_occurrence(client, main_admin, 7)

    notifications = await _notifications(client, full)
    assert [n["type"] for n in notifications] == ["ocorrencia"]
    assert notifications[0]["related_id"] == occurrence["id"]
    assert notifications[0]["condominium_id"] == 7
    assert notifications[0]["read_status"] is False
    assert "Jardins" in notifications[0]["message"]
    assert await _unread(client, full) == before + 1


async def test_limited_admin_outside_the_condominium_is_not_notified(client, session, main_admin):
    await make_condominium(session, 7)
    limited = await make_admin(session, "limited", "limited", [3, 4])

    await _create_occurrence(client, main_admin, 7)

    assert await _notifications(client, limited) == []
    assert await _unread(client, limited) == 0
    links = await session.exec(select(AdminNotificationLink).where(AdminNotificationLink.admin_id == limited.id))
    assert links.all() == []


async def test_empty_allow_list_is_never_targeted(client, session, main_admin):
    await make_condominium(session, 3)
    empty = await make_admin(session, "empty", "limited", [])
    resident = await make_resident(session, "ana", [3])

    await _create_occurrence(client, main_admin, 3)
    await client.post(f"{API}/complaints", json={"user_id": resident.id, "subject": "Noise", "message": "Loud"})
    await client.put(f"{API}/users/{resident.id}/profile", json={"phone": "912000000"})

    links = await session.exec(select(AdminNotificationLink).where(AdminNotificationLink.admin_id == empty.id))
    assert links.all() == []
    assert await _unread(client, empty) == 0


async def test_allow_list_change_refilters_existing_links(client, session, main_admin):
    await make_condominium(session, 7)
    limited = await make_admin(session, "limited", "limited", [7])
    await _create_occurrence(client, main_admin, 7)
    assert await _unread(client, limited) == 1

    limited.allowed_condominiums = json.dumps([3])
    session.add(limited)
    await session.commit()

    assert await _notifications(client, limited) == []
    assert await _unread(client, limited) == 0
    # The link row itself is untouched
    links = await session.exec(select(AdminNotificationLink).where(AdminNotificationLink.admin_id == limited.id))
    assert len(links.all()) == 1

    limited.allowed_condominiums = json.dumps([3, 7])
    session.add(limited)
    await session.commit()
    assert await _unread(client, limited) == 1


async def test_permissions_header_narrows_the_stored_scope(client, session, main_admin):
    await make_condominium(session, 7)
    full = await make_admin(session, "full")
    await _create_occurrence(client, main_admin, 7)

    assert await _unread(client, full, {"scope": "limited", "allowed_condominiums": [3]}) == 0
    assert await _unread(client, full, {"scope": "full"}) == 1
    assert await _unread(client, full) == 1


async def test_limited_broadcast_is_cut_down_to_the_sender_scope(client, session):
    for condominium_id in (3, 4, 5):
        await make_condominium(session, condominium_id)
    sender = await make_admin(session, "sender", "limited", [3, 4])
    in_4 = await make_resident(session, "bia", [4])
    await make_resident(session, "eva", [5])

    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "Water cut", "body": "Tomorrow 9h", "condominium_ids": [4, 5]},
        headers=as_admin(sender),
    )
    assert response.status_code == 200, response.text
    sent = response.json()
    assert sent["message"]["condominium_ids"] == [4]
    assert sent["notification"]["linked_user_count"] == 1

    resident_view = await client.get(f"{API}/users/{in_4.id}/notifications")
    assert [n["type"] for n in resident_view.json()] == ["admin_message"]


async def test_broadcast_outside_the_sender_scope_is_refused(client, session):
    for condominium_id in (3, 4, 5):
        await make_condominium(session, condominium_id)
    sender = await make_admin(session, "sender", "limited", [3, 4])

    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "Water cut", "body": "Tomorrow 9h", "condominium_ids": "5"},
        headers=as_admin(sender),
    )

    assert response.status_code == 403
    notifications = await session.exec(select(Notification))
    assert notifications.all() == []


async def test_broadcast_rejects_empty_and_unknown_targets(client, session, main_admin):
    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "t", "body": "b", "condominium_ids": []},
        headers=as_admin(main_admin),
    )
    assert response.status_code == 400

    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "t", "body": "b", "condominium_ids": "[99]"},
        headers=as_admin(main_admin),
    )
    assert response.status_code == 404


async def test_only_connected_admin_gets_the_push(client, session, main_admin, broadcaster):
    await make_condominium(session, 7)
    online = await make_admin(session, "online")
    offline = await make_admin(session, "offline")
    live = broadcaster.register(online.id)

    await _create_occurrence(client, main_admin, 7)

    event, payload = live.queue.get_nowait()
    assert event == "notification_created"
    assert payload["type"] == "ocorrencia"
    assert not broadcaster.is_connected(offline.id)
    assert len(await _notifications(client, online)) == 1
    assert len(await _notifications(client, offline)) == 1
    broadcaster.deregister(live)


async def test_mark_read_and_read_all(client, session, main_admin, broadcaster):
    await make_condominium(session, 7)
    await _create_occurrence(client, main_admin, 7)
    await _create_occurrence(client, main_admin, 7)
    first, second = await _notifications(client, main_admin)

    response = await client.put(f"{API}/notifications/{first['id']}/read", headers=as_admin(main_admin))
    assert response.status_code == 200
    assert await _unread(client, main_admin) == 1

    response = await client.put(f"{API}/notifications/999999/read", headers=as_admin(main_admin))
    assert response.status_code == 404

    live = broadcaster.register(main_admin.id)
    response = await client.put(f"{API}/notifications/read-all", headers=as_admin(main_admin))
    assert response.json() == {"updated": 1}
    assert live.queue.get_nowait() == ("notifications_cleared", {"admin_id": main_admin.id})
    assert await _unread(client, main_admin) == 0
    broadcaster.deregister(live)


async def test_admin_identity_is_required(client):
    response = await client.get(f"{API}/notifications/")
    assert response.status_code == 400

    response = await client.get(f"{API}/notifications/", headers={"admin-id": "424242"})
    assert response.status_code == 404


async def test_admin_message_list_without_descriptor_shows_own_only(client, session, main_admin):
    await make_condominium(session, 4)
    other = await make_admin(session, "other", "limited", [4])
    await client.post(
        f"{API}/admin/messages",
        json={"title": "From main", "body": "b", "condominium_ids": [4]},
        headers=as_admin(main_admin),
    )

    own_only = await client.get(f"{API}/admin/messages", headers=as_admin(other))
    assert own_only.json() == []

    scoped = await client.get(
        f"{API}/admin/messages",
        headers=as_admin(other, {"scope": "limited", "allowed_condominiums": [4]}),
    )
    assert [m["title"] for m in scoped.json()] == ["From main"]


async def test_complaint_with_explicit_condominium(client, session):
    for condominium_id in (3, 4, 9):
        await make_condominium(session, condominium_id)
    admin_3 = await make_admin(session, "a3", "limited", [3])
    admin_4 = await make_admin(session, "a4", "limited", [4])
    resident = await make_resident(session, "ana", [3, 4])

    response = await client.post(
        f"{API}/complaints",
        json={"user_id": resident.id, "subject": "Lift", "message": "Broken", "condominium_id": 4},
    )
    assert response.status_code == 200, response.text

    assert await _unread(client, admin_3) == 0
    [notification] = await _notifications(client, admin_4)
    assert notification["type"] == "reclamacao"
    assert notification["user_id"] == resident.id
    assert notification["user_name"] == "ana"
    assert notification["condominium_id"] == 4

    response = await client.post(
        f"{API}/requests",
        json={"user_id": resident.id, "subject": "Key", "message": "Copy", "condominium_id": 9},
    )
    assert response.status_code == 403


async def test_request_without_condominium_reaches_every_membership(client, session):
    for condominium_id in (3, 4):
        await make_condominium(session, condominium_id)
    admin_3 = await make_admin(session, "a3", "limited", [3])
    admin_4 = await make_admin(session, "a4", "limited", [4])
    resident = await make_resident(session, "ana", [3, 4])

    await client.post(f"{API}/requests", json={"user_id": resident.id, "subject": "Key", "message": "Copy"})

    assert [n["type"] for n in await _notifications(client, admin_3)] == ["pedido"]
    assert [n["type"] for n in await _notifications(client, admin_4)] == ["pedido"]


async def test_resident_sees_broadcasts_sent_before_joining(client, session, main_admin):
    await make_condominium(session, 4, "Torre Norte")
    await client.post(
        f"{API}/admin/messages",
        json={"title": "Assembly soon", "body": "b", "condominium_ids": [4]},
        headers=as_admin(main_admin),
    )
    newcomer = await make_resident(session, "rui", [4])
    outsider = await make_resident(session, "eva")

    response = await client.get(f"{API}/users/{newcomer.id}/notifications")
    [notification] = response.json()
    assert notification["type"] == "admin_message"
    assert notification["condominium_name"] == "Torre Norte"
    assert notification["read_status"] is False

    count = await client.get(f"{API}/users/{newcomer.id}/notifications/unread-count")
    assert count.json() == {"count": 1}
    await client.put(f"{API}/users/{newcomer.id}/notifications/read-all")
    count = await client.get(f"{API}/users/{newcomer.id}/notifications/unread-count")
    assert count.json() == {"count": 0}

    response = await client.get(f"{API}/users/{outsider.id}/notifications")
    assert response.json() == []


async def test_user_deleted_reaches_every_admin(client, session, main_admin):
    await make_condominium(session, 3)
    limited = await make_admin(session, "l9", "limited", [9])
    empty = await make_admin(session, "empty", "limited", [])
    resident = await make_resident(session, "ana", [3])

    response = await client.delete(f"{API}/users/{resident.id}", headers=as_admin(main_admin))
    assert response.status_code == 200

    [notification] = await _notifications(client, limited)
    assert notification["type"] == "user_deleted"
    assert notification["related_id"] is None
    links = await session.exec(select(AdminNotificationLink).where(AdminNotificationLink.admin_id == empty.id))
    assert len(links.all()) == 1
    # No access at all still means nothing is shown
    assert await _unread(client, empty) == 0


async def test_main_admin_cannot_be_deleted(client, session, main_admin):
    response = await client.delete(f"{API}/admins/{main_admin.id}", headers=as_admin(main_admin))
    assert response.status_code == 403
    assert await session.get(Admin, main_admin.id) is not None


async def test_only_the_main_admin_manages_admins(client, session):
    other = await make_admin(session, "other")
    response = await client.get(f"{API}/admins/", headers=as_admin(other))
    assert response.status_code == 403


async def test_maintenance_report_and_verification(client, session, main_admin):
    await make_condominium(session, 7)
    worker = MaintenanceUser(username="joao", name="João", hashed_password="not-used")
    session.add(worker)
    await session.commit()
    await session.refresh(worker)
    occurrence = await _create_occurrence(client, main_admin, 7, assigned_to_maintenance=worker.id)
    worker_headers = {"maintenance-id": str(worker.id)}

    response = await client.put(
        f"{API}/maintenance/occurrences/{occurrence['id']}",
        json={"status": "completed"},
        headers=worker_headers,
    )
    assert response.status_code == 400

    response = await client.put(
        f"{API}/maintenance/occurrences/{occurrence['id']}",
        json={"status": "pending_verification", "maintenance_report": "Pipe replaced"},
        headers=worker_headers,
    )
    assert response.status_code == 200, response.text

    response = await client.put(
        f"{API}/admin/occurrences/{occurrence['id']}/verify",
        json={"approved": True, "admin_verification": "Looks good"},
        headers=as_admin(main_admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    types = [n["type"] for n in await _notifications(client, main_admin)]
    assert types == ["maintenance", "maintenance_completed", "ocorrencia"]


async def test_store_failure_does_not_fail_the_occurrence(client, session, main_admin, service, monkeypatch):
    await make_condominium(session, 7)

    async def failing_store(event):
        raise NotificationStoreError("disk full")

    monkeypatch.setattr(service, "_store", failing_store)

    await _create_occurrence(client, main_admin, 7)
    assert await _unread(client, main_admin) == 0

    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "t", "body": "b", "condominium_ids": [7]},
        headers=as_admin(main_admin),
    )
    assert response.status_code == 500


async def test_targeting_failure_does_not_fail_the_primary_action(client, session, main_admin, monkeypatch):
    await make_condominium(session, 7)
    resident = await make_resident(session, "ana", [7])

    async def locked(*args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    monkeypatch.setattr(notification_service, "resolve_targets", locked)

    occurrence = await _create_occurrence(client, main_admin, 7)
    assert await session.get(Occurrence, occurrence["id"]) is not None

    response = await client.post(f"{API}/complaints", json={"user_id": resident.id, "subject": "Noise", "message": "Loud"})
    assert response.status_code == 200

    response = await client.post(
        f"{API}/admin/messages",
        json={"title": "t", "body": "b", "condominium_ids": [7]},
        headers=as_admin(main_admin),
    )
    assert response.status_code == 500

    notifications = await session.exec(select(Notification))
    assert notifications.all() == []


async def test_resident_without_memberships_needs_full_access_to_delete(client, session, main_admin):
    await make_condominium(session, 3)
    empty = await make_admin(session, "empty", "limited", [])
    limited = await make_admin(session, "l3", "limited", [3])
    loner = await make_resident(session, "loner")

    for admin in (empty, limited):
        response = await client.delete(f"{API}/users/{loner.id}", headers=as_admin(admin))
        assert response.status_code == 403
    assert await session.get(User, loner.id) is not None

    response = await client.delete(f"{API}/users/{loner.id}", headers=as_admin(main_admin))
    assert response.status_code == 200

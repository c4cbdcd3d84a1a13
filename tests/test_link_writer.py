from sqlalchemy import func
from sqlmodel import select

from condo.models.notification import AdminNotificationLink, Notification, UserNotificationLink
from condo.services.link_writer import LinkWriter
from tests.factories import make_admin, make_condominium, make_resident


async def _notification(session) -> Notification:
    notification = Notification(type="ocorrencia", title="t", message="m", related_id=1, condominium_id=3)
    session.add(notification)
    await session.commit()
    await session.refresh(notification)
    return notification


async def _count(session, model, notification_id) -> int:
    result = await session.exec(
        select(func.count(model.id)).where(model.notification_id == notification_id)
    )
    return result.one()


class FlakyLinkWriter(LinkWriter):
    """Fails to link one admin, as a transient store error would."""

    def __init__(self, engine, failing_admin_id):
        super().__init__(engine)
        self.failing_admin_id = failing_admin_id

    async def _insert_admin_link(self, admin_id, notification_id):
        if admin_id == self.failing_admin_id:
            raise RuntimeError("database is locked")
        await super()._insert_admin_link(admin_id, notification_id)


async def test_writing_links_twice_creates_no_duplicates(db, session):
    await make_condominium(session, 3)
    admins = [await make_admin(session, f"admin{i}") for i in range(3)]
    residents = [await make_resident(session, f"res{i}", [3]) for i in range(2)]
    notification = await _notification(session)
    writer = LinkWriter(db)
    admin_ids = [a.id for a in admins]
    user_ids = [u.id for u in residents]

    first = await writer.write_links(notification.id, admin_ids, user_ids)
    second = await writer.write_links(notification.id, admin_ids, user_ids)

    assert first.as_result().linked_admin_count == 3
    assert first.as_result().linked_user_count == 2
    assert second.failures == 0
    assert await _count(session, AdminNotificationLink, notification.id) == 3
    assert await _count(session, UserNotificationLink, notification.id) == 2


async def test_duplicate_ids_in_one_call_are_linked_once(db, session):
    admin = await make_admin(session, "solo")
    notification = await _notification(session)

    outcome = await LinkWriter(db).write_links(notification.id, [admin.id, admin.id, admin.id])

    assert outcome.admin_ids == [admin.id]
    assert await _count(session, AdminNotificationLink, notification.id) == 1


async def test_partial_failure_keeps_the_successful_links(db, session):
    admins = [await make_admin(session, f"admin{i}") for i in range(4)]
    notification = await _notification(session)
    failing = admins[1].id

    outcome = await FlakyLinkWriter(db, failing).write_links(notification.id, [a.id for a in admins])

    assert outcome.failures == 1
    assert sorted(outcome.admin_ids) == sorted(a.id for a in admins if a.id != failing)
    assert outcome.as_result().linked_admin_count == 3
    assert await _count(session, AdminNotificationLink, notification.id) == 3
    assert await session.get(Notification, notification.id) is not None


async def test_no_targets_writes_nothing(db, session):
    notification = await _notification(session)

    outcome = await LinkWriter(db).write_links(notification.id)

    assert outcome.as_result().linked_admin_count == 0
    assert outcome.as_result().linked_user_count == 0
    assert await _count(session, AdminNotificationLink, notification.id) == 0


async def test_new_links_start_unread(db, session):
    admin = await make_admin(session, "reader")
    notification = await _notification(session)

    await LinkWriter(db).write_links(notification.id, [admin.id])

    result = await session.exec(select(AdminNotificationLink).where(AdminNotificationLink.admin_id == admin.id))
    assert result.one().read_status is False

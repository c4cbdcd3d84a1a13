import logging
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.core.config import settings
from condo.core.permissions import AccessScope
from condo.db.schema import run_with_schema_repair
from condo.models.condominium import Condominium
from condo.models.notification import (
    AdminNotificationLink,
    LinkResult,
    Notification,
    NotificationRead,
    UserNotificationLink,
    UserNotificationRead,
)
from condo.services.broadcaster import LiveBroadcaster
from condo.services.errors import NotificationError, NotificationStoreError, TargetingError
from condo.services.events import NotificationEvent
from condo.services.link_writer import LinkWriter
from condo.services.targeting import resolve_targets, user_condominium_ids
from condo.services.visibility import (
    RESIDENT_TYPES,
    admin_visibility_clause,
    message_targets_any,
    resident_visibility_clause,
)

logger = logging.getLogger(__name__)

NOTIFICATION_CREATED = "notification_created"
NOTIFICATIONS_CLEARED = "notifications_cleared"


class NotificationService:
    """
    Creates notifications for domain events and answers the admin and
    resident read queries.

    Creating one is three independent steps: store the row (failure raises
    NotificationStoreError), write the links (best effort), push to connected
    admins (fire and forget). The steps are not one transaction.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        broadcaster: LiveBroadcaster,
        link_writer: Optional[LinkWriter] = None,
        list_limit: int = settings.NOTIFICATION_LIST_LIMIT,
    ):
        self.engine = engine
        self.session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self.broadcaster = broadcaster
        self.link_writer = link_writer or LinkWriter(engine)
        self.list_limit = list_limit

    # --- Write path -----------------------------------------------------------

    async def _store(self, event: NotificationEvent) -> Notification:
        async def insert() -> Notification:
            async with self.session_factory() as session:
                notification = Notification(
                    type=event.type.value,
                    title=event.title,
                    message=event.message,
                    related_id=event.related_id,
                    condominium_id=event.condominium_id,
                    user_id=event.user_id,
                    user_name=event.user_name,
                )
                session.add(notification)
                await session.commit()
                await session.refresh(notification)
                return notification

        try:
            return await run_with_schema_repair(self.engine, insert)
        except SQLAlchemyError as e:
            logger.error("Could not store %s notification: %s", event.type.value, e)
            raise NotificationStoreError(str(e)) from e

    async def create_and_link(self, session: AsyncSession, event: NotificationEvent) -> LinkResult:
        """
        Store a notification for ``event``, link it to everyone entitled to it
        and push it to the linked admins that are online.
        ``session`` is only used to read the targeting data.
        """
        try:
            targets = await resolve_targets(session, event.audience())
        except SQLAlchemyError as e:
            logger.error("Could not resolve targets for %s notification: %s", event.type.value, e)
            raise TargetingError(str(e)) from e
        notification = await self._store(event)

        outcome = await self.link_writer.write_links(
            notification.id, targets.admin_ids, targets.user_ids
        )
        if targets.is_empty:
            logger.info("No eligible recipients for %s notification %s", event.type.value, notification.id)

        self.broadcaster.broadcast_many(
            outcome.admin_ids, NOTIFICATION_CREATED, event.push_payload(notification.id)
        )
        return outcome.as_result()

    async def notify(self, session: AsyncSession, event: NotificationEvent) -> Optional[LinkResult]:
        """
        ``create_and_link`` for callers whose own action is already committed:
        a failure is logged and None returned instead of failing that action.
        """
        try:
            return await self.create_and_link(session, event)
        except NotificationError as e:
            logger.warning("Notification for %s %s not created: %s", event.type.value, event.related_id, e)
            return None

    # --- Admin read path --------------------------------------------------------

    async def list_for_admin(
        self, session: AsyncSession, admin_id: int, access: AccessScope
    ) -> List[NotificationRead]:
        statement = (
            select(Notification, AdminNotificationLink.read_status)
            .join(AdminNotificationLink, AdminNotificationLink.notification_id == Notification.id)
            .where(AdminNotificationLink.admin_id == admin_id)
            .where(admin_visibility_clause(access))
            .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
            .limit(self.list_limit)
        )

        async def run():
            result = await session.exec(statement)
            return result.all()

        rows = await run_with_schema_repair(self.engine, run, session)
        return [
            NotificationRead(**notification.model_dump(), read_status=read_status)
            for notification, read_status in rows
        ]

    async def unread_count_for_admin(self, session: AsyncSession, admin_id: int, access: AccessScope) -> int:
        statement = (
            select(func.count(AdminNotificationLink.id))
            .join(Notification, AdminNotificationLink.notification_id == Notification.id)
            .where(AdminNotificationLink.admin_id == admin_id)
            .where(AdminNotificationLink.read_status == False)  # noqa: E712
            .where(admin_visibility_clause(access))
        )

        async def run():
            result = await session.exec(statement)
            return result.one()

        return await run_with_schema_repair(self.engine, run, session)

    async def mark_read_for_admin(self, session: AsyncSession, admin_id: int, notification_id: int) -> bool:
        result = await session.execute(
            update(AdminNotificationLink)
            .where(AdminNotificationLink.admin_id == admin_id)
            .where(AdminNotificationLink.notification_id == notification_id)
            .values(read_status=True)
        )
        await session.commit()
        return result.rowcount > 0

    async def mark_all_read_for_admin(self, session: AsyncSession, admin_id: int) -> int:
        result = await session.execute(
            update(AdminNotificationLink)
            .where(AdminNotificationLink.admin_id == admin_id)
            .where(AdminNotificationLink.read_status == False)  # noqa: E712
            .values(read_status=True)
        )
        await session.commit()
        self.broadcaster.broadcast(admin_id, NOTIFICATIONS_CLEARED, {"admin_id": admin_id})
        return result.rowcount or 0

    # --- Resident read path -----------------------------------------------------

    async def backfill_user_links(self, session: AsyncSession, user_id: int) -> int:
        """
        Link a resident to messages, assemblies and documents of their
        condominiums that were created without a link for them (legacy rows,
        or memberships added later). Returns how many links were written.
        """
        condominium_ids = await user_condominium_ids(session, user_id)
        if not condominium_ids:
            return 0

        already_linked = select(UserNotificationLink.notification_id).where(
            UserNotificationLink.user_id == user_id
        )
        statement = (
            select(Notification.id)
            .where(Notification.type.in_(RESIDENT_TYPES))
            .where(
                (col(Notification.condominium_id).in_(list(condominium_ids)))
                | message_targets_any(condominium_ids)
            )
            .where(col(Notification.id).not_in(already_linked))
        )

        async def run():
            result = await session.exec(statement)
            return list(result.all())

        missing = await run_with_schema_repair(self.engine, run, session)
        written = 0
        for notification_id in missing:
            outcome = await self.link_writer.write_links(notification_id, user_ids=[user_id])
            written += len(outcome.user_ids)
        if written:
            logger.info("Backfilled %d notification links for user %s", written, user_id)
        return written

    async def list_for_user(self, session: AsyncSession, user_id: int) -> List[UserNotificationRead]:
        await self.backfill_user_links(session, user_id)
        condominium_ids = await user_condominium_ids(session, user_id)

        statement = (
            select(Notification, UserNotificationLink.read_status, Condominium.name)
            .join(UserNotificationLink, UserNotificationLink.notification_id == Notification.id)
            .outerjoin(Condominium, Condominium.id == Notification.condominium_id)
            .where(UserNotificationLink.user_id == user_id)
            .where(resident_visibility_clause(user_id, condominium_ids))
            .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
            .limit(self.list_limit)
        )

        async def run():
            result = await session.exec(statement)
            return result.all()

        rows = await run_with_schema_repair(self.engine, run, session)
        return [
            UserNotificationRead(
                **notification.model_dump(), read_status=read_status, condominium_name=condominium_name
            )
            for notification, read_status, condominium_name in rows
        ]

    async def unread_count_for_user(self, session: AsyncSession, user_id: int) -> int:
        condominium_ids = await user_condominium_ids(session, user_id)
        statement = (
            select(func.count(UserNotificationLink.id))
            .join(Notification, UserNotificationLink.notification_id == Notification.id)
            .where(UserNotificationLink.user_id == user_id)
            .where(UserNotificationLink.read_status == False)  # noqa: E712
            .where(resident_visibility_clause(user_id, condominium_ids))
        )

        async def run():
            result = await session.exec(statement)
            return result.one()

        return await run_with_schema_repair(self.engine, run, session)

    async def mark_read_for_user(self, session: AsyncSession, user_id: int, notification_id: int) -> bool:
        result = await session.execute(
            update(UserNotificationLink)
            .where(UserNotificationLink.user_id == user_id)
            .where(UserNotificationLink.notification_id == notification_id)
            .values(read_status=True)
        )
        await session.commit()
        return result.rowcount > 0

    async def mark_all_read_for_user(self, session: AsyncSession, user_id: int) -> int:
        result = await session.execute(
            update(UserNotificationLink)
            .where(UserNotificationLink.user_id == user_id)
            .where(UserNotificationLink.read_status == False)  # noqa: E712
            .values(read_status=True)
        )
        await session.commit()
        return result.rowcount or 0

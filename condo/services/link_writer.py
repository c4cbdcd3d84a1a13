import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine

from condo.models.base import utcnow
from condo.models.notification import AdminNotificationLink, LinkResult, UserNotificationLink

logger = logging.getLogger(__name__)

_INSERT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class LinkOutcome:
    notification_id: int
    admin_ids: list[int] = field(default_factory=list)
    user_ids: list[int] = field(default_factory=list)
    failures: int = 0

    def as_result(self) -> LinkResult:
        return LinkResult(
            notification_id=self.notification_id,
            linked_admin_count=len(self.admin_ids),
            linked_user_count=len(self.user_ids),
        )


class LinkWriter:
    """
    Writes the admin/user link rows of a notification.

    Every link is its own insert in its own transaction, all issued
    concurrently. Existing pairs are skipped by the unique constraints, so
    writing the same targets twice leaves the rows unchanged. A failed link is
    logged and counted; it never raises and never undoes the others.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._insert = _INSERT[engine.dialect.name]

    async def _insert_ignore(self, model, values: dict, conflict_columns: list[str]) -> None:
        statement = (
            self._insert(model)
            .values(read_status=False, created_at=utcnow(), **values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        async with self.engine.begin() as conn:
            await conn.execute(statement)

    async def _insert_admin_link(self, admin_id: int, notification_id: int) -> None:
        await self._insert_ignore(
            AdminNotificationLink,
            {"admin_id": admin_id, "notification_id": notification_id},
            ["admin_id", "notification_id"],
        )

    async def _insert_user_link(self, user_id: int, notification_id: int) -> None:
        await self._insert_ignore(
            UserNotificationLink,
            {"user_id": user_id, "notification_id": notification_id},
            ["user_id", "notification_id"],
        )

    async def write_links(
        self,
        notification_id: int,
        admin_ids: Iterable[int] = (),
        user_ids: Iterable[int] = (),
    ) -> LinkOutcome:
        admin_ids = sorted(set(admin_ids))
        user_ids = sorted(set(user_ids))
        outcome = LinkOutcome(notification_id=notification_id)
        if not admin_ids and not user_ids:
            return outcome

        results = await asyncio.gather(
            *(self._insert_admin_link(a, notification_id) for a in admin_ids),
            *(self._insert_user_link(u, notification_id) for u in user_ids),
            return_exceptions=True,
        )
        admin_results = results[:len(admin_ids)]
        user_results = results[len(admin_ids):]

        for admin_id, result in zip(admin_ids, admin_results):
            if isinstance(result, Exception):
                outcome.failures += 1
                logger.warning("Failed to link notification %s to admin %s: %s", notification_id, admin_id, result)
            else:
                outcome.admin_ids.append(admin_id)
        for user_id, result in zip(user_ids, user_results):
            if isinstance(result, Exception):
                outcome.failures += 1
                logger.warning("Failed to link notification %s to user %s: %s", notification_id, user_id, result)
            else:
                outcome.user_ids.append(user_id)

        logger.info(
            "Notification %s linked to %d admins and %d users (%d failed)",
            notification_id, len(outcome.admin_ids), len(outcome.user_ids), outcome.failures,
        )
        return outcome

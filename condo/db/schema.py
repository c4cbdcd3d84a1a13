"""
Self-healing for databases created before the notification columns existed.

Older databases may lack some ``notifications`` columns or the
``admin_message_condominiums`` table. Startup adds them proactively; at run
time a query that fails on one of them repairs it and is retried once.
"""
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOTIFICATION_TABLE = "notifications"

# Columns added after the first release, with their DDL types
NOTIFICATION_COLUMNS = {
    "related_id": "INTEGER",
    "condominium_id": "INTEGER",
    "user_id": "INTEGER",
    "user_name": "VARCHAR",
}

REPAIRABLE_TABLES = ("admin_message_condominiums",)

_COLUMN_PATTERNS = (
    re.compile(r"no such column: (?:\w+\.)?(\w+)"),  # sqlite
    re.compile(r"has no column named (\w+)"),  # sqlite insert
    re.compile(r'column "?(?:\w+\.)?(\w+)"? (?:of relation "\w+" )?does not exist'),  # postgres
)
_TABLE_PATTERNS = (
    re.compile(r"no such table: (\w+)"),
    re.compile(r'relation "(\w+)" does not exist'),
)


@dataclass(frozen=True)
class SchemaGap:
    kind: str  # "column" or "table"
    name: str


def find_schema_gap(error: Exception) -> Optional[SchemaGap]:
    """The repairable column or table an error complains about, if any."""
    message = str(getattr(error, "orig", None) or error)
    for pattern in _COLUMN_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1) in NOTIFICATION_COLUMNS:
            return SchemaGap("column", match.group(1))
    for pattern in _TABLE_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1) in REPAIRABLE_TABLES:
            return SchemaGap("table", match.group(1))
    return None


def _existing_columns(sync_conn, table: str) -> set[str]:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table):
        return set()
    return {column["name"] for column in inspector.get_columns(table)}


def _has_table(sync_conn, table: str) -> bool:
    return inspect(sync_conn).has_table(table)


async def repair(engine: AsyncEngine, gap: SchemaGap) -> None:
    async with engine.begin() as conn:
        if gap.kind == "column":
            # A statement may touch several missing columns; add them all at once
            columns = await conn.run_sync(_existing_columns, NOTIFICATION_TABLE)
            for name, ddl in NOTIFICATION_COLUMNS.items():
                if name not in columns:
                    await conn.execute(text(f"ALTER TABLE {NOTIFICATION_TABLE} ADD COLUMN {name} {ddl}"))
                    logger.warning("Added missing column %s.%s", NOTIFICATION_TABLE, name)
        else:
            table = SQLModel.metadata.tables[gap.name]
            await conn.run_sync(table.create, checkfirst=True)
            logger.warning("Created missing table %s", gap.name)


async def ensure_notification_schema(engine: AsyncEngine) -> list[SchemaGap]:
    """Describe the notification tables and add whatever is missing."""
    async with engine.connect() as conn:
        columns = await conn.run_sync(_existing_columns, NOTIFICATION_TABLE)
        missing_tables = [
            table for table in REPAIRABLE_TABLES
            if not await conn.run_sync(_has_table, table)
        ]
    gaps = []
    if columns:
        gaps.extend(SchemaGap("column", name) for name in NOTIFICATION_COLUMNS if name not in columns)
    gaps.extend(SchemaGap("table", name) for name in missing_tables)
    for gap in gaps:
        await repair(engine, gap)
    return gaps


async def run_with_schema_repair(
    engine: AsyncEngine,
    operation: Callable[[], Awaitable[T]],
    session: Optional[AsyncSession] = None,
) -> T:
    """
    Run ``operation``; if it fails on a known missing column or table, repair
    it and run the operation exactly once more. A second failure propagates.
    """
    try:
        return await operation()
    except (OperationalError, ProgrammingError) as e:
        gap = find_schema_gap(e)
        if gap is None:
            raise
        logger.warning("Schema drift detected (%s %s), repairing and retrying", gap.kind, gap.name)
        if session is not None:
            await session.rollback()
        await repair(engine, gap)
    return await operation()

import asyncio
import sys
from sqlalchemy import inspect
from condo.db.session import engine
from condo.db.schema import NOTIFICATION_COLUMNS, NOTIFICATION_TABLE, REPAIRABLE_TABLES, ensure_notification_schema

def _describe(sync_conn):
    inspector = inspect(sync_conn)
    columns = []
    if inspector.has_table(NOTIFICATION_TABLE):
        columns = [column["name"] for column in inspector.get_columns(NOTIFICATION_TABLE)]
    tables = {table: inspector.has_table(table) for table in REPAIRABLE_TABLES}
    return columns, tables

async def inspect_db(fix: bool):
    print(f"Inspecting '{NOTIFICATION_TABLE}' table columns...")
    async with engine.connect() as conn:
        columns, tables = await conn.run_sync(_describe)
    print("Columns found:", columns)

    for name in NOTIFICATION_COLUMNS:
        print(f"{'OK' if name in columns else 'MISSING'}: column '{name}'")
    for table, exists in tables.items():
        print(f"{'OK' if exists else 'MISSING'}: table '{table}'")

    if fix:
        repaired = await ensure_notification_schema(engine)
        print("Repaired:", [f"{gap.kind} {gap.name}" for gap in repaired] or "nothing to do")
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(inspect_db("--fix" in sys.argv[1:]))

from sqlmodel import SQLModel
from condo.db.session import engine
from . import admin, maintenance, condominium, user, occurrence, assembly, message, notification # Import all models

async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

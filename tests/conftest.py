"""Pytest configuration: a throwaway SQLite database and an in-process client."""
import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment must be ready first
_db_dir = Path(tempfile.mkdtemp(prefix="condo-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir / 'test.db'}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel, select

from condo.db.session import engine, async_session_factory
from condo.main import app, lifespan
from condo.models.admin import Admin


@pytest.fixture
async def db():
    """Empty schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    # Pooled aiosqlite connections belong to this test's event loop
    await engine.dispose()


@pytest.fixture
async def session(db):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
async def client(db):
    async with lifespan(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def service(client):
    return app.state.notification_service


@pytest.fixture
def broadcaster(client):
    return app.state.broadcaster


@pytest.fixture
async def main_admin(client, session):
    result = await session.exec(select(Admin).where(Admin.is_main == True))  # noqa: E712
    return result.one()

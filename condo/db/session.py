from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from condo.core.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("postgresql+asyncpg"):
        return create_async_engine(
            database_url,
            echo=settings.SQL_ECHO,
            future=True,
            connect_args={"statement_cache_size": 0},
            pool_pre_ping=True,
            pool_recycle=1800
        )
    # SQLite: concurrent link writers wait on the database lock instead of failing
    return create_async_engine(
        database_url,
        echo=settings.SQL_ECHO,
        future=True,
        connect_args={"timeout": 30},
    )


engine = build_engine(settings.DATABASE_URL)

async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

async def get_session() -> AsyncSession:
    async with async_session_factory() as session:
        yield session

from contextlib import asynccontextmanager
import sys
import asyncio
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import select

from condo.core.config import settings
from condo.core.permissions import AdminScope
from condo.core.security import get_password_hash
from condo.db.schema import ensure_notification_schema
from condo.db.session import engine, async_session_factory
from condo.models import create_db_and_tables
from condo.models.admin import Admin
from condo.services.broadcaster import LiveBroadcaster
from condo.services.notification_service import NotificationService
from condo.api.v1.api import api_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Fix for asyncpg on Windows
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

async def ensure_main_admin():
    async with async_session_factory() as session:
        result = await session.exec(select(Admin).where(Admin.username == settings.MAIN_ADMIN_USERNAME))
        admin = result.first()
        if admin is None:
            admin = Admin(
                username=settings.MAIN_ADMIN_USERNAME,
                hashed_password=get_password_hash(settings.MAIN_ADMIN_PASSWORD),
                scope=AdminScope.FULL.value,
                is_main=True,
            )
            logger.info("Created main administrator %s", settings.MAIN_ADMIN_USERNAME)
        elif admin.is_main:
            return
        admin.is_main = True
        session.add(admin)
        await session.commit()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: tables, legacy schema repair, main admin, live push registry
    await create_db_and_tables()
    repaired = await ensure_notification_schema(engine)
    if repaired:
        logger.warning("Repaired notification schema: %s", repaired)
    await ensure_main_admin()

    app.state.broadcaster = LiveBroadcaster(queue_size=settings.SSE_QUEUE_SIZE)
    app.state.notification_service = NotificationService(engine, app.state.broadcaster)
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).strip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Condominium Management API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

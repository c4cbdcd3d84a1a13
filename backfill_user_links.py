import asyncio
import sys
from sqlmodel import select
from condo.db.session import engine, async_session_factory
from condo.models.user import User
from condo.services.broadcaster import LiveBroadcaster
from condo.services.notification_service import NotificationService

async def backfill_user_links():
    """Link every resident to the messages, assemblies and documents of their condominiums."""
    service = NotificationService(engine, LiveBroadcaster())
    total = 0
    async with async_session_factory() as session:
        result = await session.exec(select(User.id, User.name).order_by(User.id))
        for user_id, name in result.all():
            written = await service.backfill_user_links(session, user_id)
            if written:
                print(f"User {user_id} ({name}): {written} links added")
            total += written
    print(f"Backfill complete, {total} links added.")
    await engine.dispose()

if __name__ == "__main__":
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(backfill_user_links())

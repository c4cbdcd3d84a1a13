import asyncio
import sys
from sqlmodel import select
from condo.db.session import async_session_factory
from condo.models import create_db_and_tables
from condo.models.admin import Admin
from condo.core.permissions import AdminScope
from condo.core.security import get_password_hash

async def create_admin_user(username: str, password: str, make_main: bool):
    await create_db_and_tables()

    async with async_session_factory() as session:
        # Check if admin already exists
        result = await session.exec(select(Admin).where(Admin.username == username))
        admin = result.first()

        if admin:
            print(f"Admin {username} already exists.")
            admin.hashed_password = get_password_hash(password)
            if make_main:
                admin.is_main = True
                admin.scope = AdminScope.FULL.value
                admin.allowed_condominiums = None
            session.add(admin)
            await session.commit()
            print(f"Admin {username} updated{' to main administrator' if make_main else ''}.")
            return

        new_admin = Admin(
            username=username,
            hashed_password=get_password_hash(password),
            scope=AdminScope.FULL.value,
            is_main=make_main,
        )
        session.add(new_admin)
        await session.commit()
        print(f"Admin '{username}' created with full access.")

if __name__ == "__main__":
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    admin_username = input("Enter admin username: ")
    admin_password = input("Enter admin password: ")
    main = input("Make this the main administrator? [y/N]: ").strip().lower() == "y"

    asyncio.run(create_admin_user(admin_username, admin_password, main))
    print("Script finished.")

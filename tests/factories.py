"""Row builders shared by the tests."""
import json

from condo.models.admin import Admin
from condo.models.condominium import Condominium, Membership
from condo.models.user import User


async def make_admin(session, username, scope="full", allowed=None) -> Admin:
    admin = Admin(
        username=username,
        hashed_password="not-used",
        scope=scope,
        allowed_condominiums=None if allowed is None else json.dumps(allowed),
    )
    session.add(admin)
    await session.commit()
    await session.refresh(admin)
    return admin


async def make_condominium(session, condominium_id, name=None) -> Condominium:
    condominium = Condominium(id=condominium_id, name=name or f"Condominium {condominium_id}")
    session.add(condominium)
    await session.commit()
    await session.refresh(condominium)
    return condominium


async def make_resident(session, name, condominium_ids=()) -> User:
    user = User(name=name, nif=f"NIF-{name}", hashed_password="not-used")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    for condominium_id in condominium_ids:
        session.add(Membership(user_id=user.id, condominium_id=condominium_id, apartment="1A"))
    await session.commit()
    return user


def as_admin(admin, permissions=None) -> dict:
    headers = {"admin-id": str(admin.id)}
    if permissions is not None:
        headers["admin-permissions"] = json.dumps(permissions)
    return headers

from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.models.base import utcnow
from condo.core.permissions import AccessScope, FullAccess
from condo.core.security import get_password_hash
from condo.models.condominium import Membership
from condo.models.message import UserMessage
from condo.models.notification import UnreadCount, UserNotificationLink, UserNotificationRead
from condo.models.user import ProfileChange, User, UserCreate, UserProfileUpdate, UserRead
from condo.services.events import ProfileChanged, UserDeleted
from condo.services.notification_service import NotificationService
from condo.services.targeting import user_condominium_ids

router = APIRouter()

async def _get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

@router.post("/", response_model=UserRead)
async def create_user(
    *,
    session: AsyncSession = Depends(deps.get_session),
    user_in: UserCreate,
    access: AccessScope = Depends(deps.get_admin_scope),
):
    """
    Register a resident. Condominium memberships are added separately.
    """
    existing = await session.exec(select(User).where(User.nif == user_in.nif))
    if existing.first():
        raise HTTPException(status_code=400, detail="A resident with this NIF already exists")

    user = User(
        **user_in.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(user_in.password),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user

@router.get("/", response_model=List[UserRead])
async def list_users(
    session: AsyncSession = Depends(deps.get_session),
    access: AccessScope = Depends(deps.get_admin_scope),
):
    """
    Residents of the condominiums the calling admin may manage.
    """
    query = select(User).order_by(col(User.name))
    if not isinstance(access, FullAccess):
        members = select(Membership.user_id).where(
            col(Membership.condominium_id).in_(sorted(access.condominium_ids))
        )
        query = query.where(col(User.id).in_(members))
    result = await session.exec(query)
    return result.all()

@router.get("/{user_id}", response_model=UserRead)
async def read_user(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    return await _get_user(session, user_id)

@router.put("/{user_id}/profile", response_model=UserRead)
async def update_profile(
    *,
    session: AsyncSession = Depends(deps.get_session),
    user_id: int,
    profile_in: UserProfileUpdate,
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Resident edits their own contact details. Every changed field is logged
    and the administrators of their condominiums are notified.
    """
    user = await _get_user(session, user_id)

    changes = []
    for field, new_value in profile_in.model_dump(exclude_unset=True).items():
        old_value = getattr(user, field)
        if new_value == old_value:
            continue
        changes.append((field, old_value, new_value))
        setattr(user, field, new_value)
        session.add(ProfileChange(user_id=user.id, field_name=field, old_value=old_value, new_value=new_value))

    if not changes:
        return user

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    memberships = await session.exec(
        select(Membership.condominium_id).where(Membership.user_id == user.id).order_by(col(Membership.id))
    )
    await service.notify(session, ProfileChanged(
        resident_id=user.id,
        resident_name=user.name,
        changes=tuple(changes),
        primary_condominium_id=memberships.first(),
    ))
    return user

@router.delete("/{user_id}")
async def delete_user(
    *,
    session: AsyncSession = Depends(deps.get_session),
    user_id: int,
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Remove a resident with their memberships, messages and notification
    links. Every administrator is told about it.
    """
    user = await _get_user(session, user_id)
    condominium_ids = await user_condominium_ids(session, user_id)
    # A resident without memberships is only reachable with full access
    allowed = access.allows(condominium_ids) if condominium_ids else isinstance(access, FullAccess)
    if not allowed:
        raise HTTPException(status_code=403, detail="No access to this resident")

    user_name = user.name
    await session.execute(delete(UserNotificationLink).where(UserNotificationLink.user_id == user_id))
    await session.execute(delete(Membership).where(Membership.user_id == user_id))
    await session.execute(delete(UserMessage).where(UserMessage.user_id == user_id))
    await session.execute(delete(ProfileChange).where(ProfileChange.user_id == user_id))
    await session.delete(user)
    await session.commit()

    await service.notify(session, UserDeleted(resident_name=user_name))
    return {"message": "User deleted"}

# --- Resident notifications ---

@router.get("/{user_id}/notifications", response_model=List[UserNotificationRead])
async def list_user_notifications(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
    service: NotificationService = Depends(deps.get_notification_service),
):
    await _get_user(session, user_id)
    return await service.list_for_user(session, user_id)

@router.get("/{user_id}/notifications/unread-count", response_model=UnreadCount)
async def user_unread_count(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
    service: NotificationService = Depends(deps.get_notification_service),
):
    await _get_user(session, user_id)
    return UnreadCount(count=await service.unread_count_for_user(session, user_id))

@router.put("/{user_id}/notifications/read-all")
async def mark_all_user_notifications_read(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
    service: NotificationService = Depends(deps.get_notification_service),
):
    updated = await service.mark_all_read_for_user(session, user_id)
    return {"updated": updated}

@router.put("/{user_id}/notifications/{notification_id}/read")
async def mark_user_notification_read(
    user_id: int,
    notification_id: int,
    session: AsyncSession = Depends(deps.get_session),
    service: NotificationService = Depends(deps.get_notification_service),
):
    if not await service.mark_read_for_user(session, user_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}

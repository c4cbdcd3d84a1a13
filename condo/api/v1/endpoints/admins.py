import json
from typing import Any, List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.core.permissions import AdminScope, normalize_allowed_condominiums
from condo.core.security import get_password_hash
from condo.models.admin import Admin, AdminCreate, AdminRead, AdminUpdate
from condo.models.notification import AdminNotificationLink
from condo.models.maintenance import (
    MaintenanceUser,
    MaintenanceUserCreate,
    MaintenanceUserRead,
    MaintenanceUserUpdate,
)

router = APIRouter()

def _allow_list_text(raw: Any) -> str:
    return json.dumps(sorted(normalize_allowed_condominiums(raw)))

# --- Administrators ---

@router.get("/", response_model=List[AdminRead])
async def list_admins(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    result = await session.exec(select(Admin).order_by(col(Admin.username)))
    return [AdminRead.from_admin(admin) for admin in result.all()]

@router.post("/", response_model=AdminRead)
async def create_admin(
    *,
    session: AsyncSession = Depends(deps.get_session),
    admin_in: AdminCreate,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    """
    Create an administrator. Limited administrators keep their allow-list as
    canonical JSON; full administrators have none.
    """
    existing = await session.exec(select(Admin).where(Admin.username == admin_in.username))
    if existing.first():
        raise HTTPException(status_code=400, detail="Username already exists")

    admin = Admin(
        username=admin_in.username,
        hashed_password=get_password_hash(admin_in.password),
        scope=admin_in.scope.value,
        allowed_condominiums=None if admin_in.scope == AdminScope.FULL else _allow_list_text(admin_in.allowed_condominiums),
        is_main=False,
    )
    session.add(admin)
    await session.commit()
    await session.refresh(admin)
    return AdminRead.from_admin(admin)

@router.put("/{admin_id}", response_model=AdminRead)
async def update_admin(
    *,
    session: AsyncSession = Depends(deps.get_session),
    admin_id: int,
    admin_in: AdminUpdate,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    admin = await session.get(Admin, admin_id)
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    if admin.is_main and admin_in.scope == AdminScope.LIMITED:
        raise HTTPException(status_code=400, detail="The main administrator always has full access")

    if admin_in.username is not None:
        admin.username = admin_in.username
    if admin_in.password:
        admin.hashed_password = get_password_hash(admin_in.password)
    if admin_in.scope is not None:
        admin.scope = admin_in.scope.value
    if admin_in.allowed_condominiums is not None:
        admin.allowed_condominiums = _allow_list_text(admin_in.allowed_condominiums)
    if admin.scope == AdminScope.FULL.value:
        admin.allowed_condominiums = None

    session.add(admin)
    await session.commit()
    await session.refresh(admin)
    return AdminRead.from_admin(admin)

@router.delete("/{admin_id}")
async def delete_admin(
    *,
    session: AsyncSession = Depends(deps.get_session),
    admin_id: int,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    admin = await session.get(Admin, admin_id)
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    if admin.is_main:
        raise HTTPException(status_code=403, detail="The main administrator cannot be deleted")

    # Read state goes with the account; notifications themselves stay
    await session.execute(delete(AdminNotificationLink).where(AdminNotificationLink.admin_id == admin_id))
    await session.delete(admin)
    await session.commit()
    return {"message": "Admin deleted"}

# --- Maintenance accounts ---

@router.get("/maintenance-users", response_model=List[MaintenanceUserRead])
async def list_maintenance_users(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
):
    result = await session.exec(select(MaintenanceUser).order_by(col(MaintenanceUser.name)))
    return result.all()

@router.post("/maintenance-users", response_model=MaintenanceUserRead)
async def create_maintenance_user(
    *,
    session: AsyncSession = Depends(deps.get_session),
    user_in: MaintenanceUserCreate,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    existing = await session.exec(select(MaintenanceUser).where(MaintenanceUser.username == user_in.username))
    if existing.first():
        raise HTTPException(status_code=400, detail="Username already exists")

    maintenance_user = MaintenanceUser(
        **user_in.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(user_in.password),
    )
    session.add(maintenance_user)
    await session.commit()
    await session.refresh(maintenance_user)
    return maintenance_user

@router.put("/maintenance-users/{maintenance_id}", response_model=MaintenanceUserRead)
async def update_maintenance_user(
    *,
    session: AsyncSession = Depends(deps.get_session),
    maintenance_id: int,
    user_in: MaintenanceUserUpdate,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    maintenance_user = await session.get(MaintenanceUser, maintenance_id)
    if not maintenance_user:
        raise HTTPException(status_code=404, detail="Maintenance user not found")

    for field, value in user_in.model_dump(exclude_unset=True).items():
        setattr(maintenance_user, field, value)
    session.add(maintenance_user)
    await session.commit()
    await session.refresh(maintenance_user)
    return maintenance_user

@router.delete("/maintenance-users/{maintenance_id}")
async def delete_maintenance_user(
    *,
    session: AsyncSession = Depends(deps.get_session),
    maintenance_id: int,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    maintenance_user = await session.get(MaintenanceUser, maintenance_id)
    if not maintenance_user:
        raise HTTPException(status_code=404, detail="Maintenance user not found")
    await session.delete(maintenance_user)
    await session.commit()
    return {"message": "Maintenance user deleted"}

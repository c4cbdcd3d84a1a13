from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.core.permissions import AccessScope, FullAccess
from condo.models.admin import Admin
from condo.models.assembly import Assembly, AssemblyFile
from condo.models.condominium import (
    Condominium,
    CondominiumCreate,
    CondominiumRead,
    CondominiumUpdate,
    Membership,
    MembershipCreate,
    MembershipRead,
)
from condo.models.message import AdminMessageCondominium
from condo.models.occurrence import Occurrence
from condo.models.user import User
from condo.services.storage_service import StorageService

router = APIRouter()

@router.get("/", response_model=List[CondominiumRead])
async def list_condominiums(
    session: AsyncSession = Depends(deps.get_session),
    access: AccessScope = Depends(deps.get_admin_scope),
):
    """
    Condominiums the calling admin may manage.
    """
    query = select(Condominium).order_by(col(Condominium.name))
    if not isinstance(access, FullAccess):
        query = query.where(col(Condominium.id).in_(sorted(access.condominium_ids)))
    result = await session.exec(query)
    return result.all()

@router.post("/", response_model=CondominiumRead)
async def create_condominium(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_in: CondominiumCreate,
    current_admin: Admin = Depends(deps.get_current_main_admin),
):
    existing = await session.exec(select(Condominium).where(Condominium.name == condominium_in.name))
    if existing.first():
        raise HTTPException(status_code=400, detail="A condominium with this name already exists")

    condominium = Condominium.model_validate(condominium_in)
    session.add(condominium)
    await session.commit()
    await session.refresh(condominium)
    return condominium

@router.put("/{condominium_id}", response_model=CondominiumRead)
async def update_condominium(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_id: int,
    condominium_in: CondominiumUpdate,
    access: AccessScope = Depends(deps.get_admin_scope),
):
    deps.ensure_condominium_access(access, condominium_id)
    condominium = await session.get(Condominium, condominium_id)
    if not condominium:
        raise HTTPException(status_code=404, detail="Condominium not found")

    for field, value in condominium_in.model_dump(exclude_unset=True).items():
        setattr(condominium, field, value)
    session.add(condominium)
    await session.commit()
    await session.refresh(condominium)
    return condominium

@router.delete("/{condominium_id}")
async def delete_condominium(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_id: int,
    current_admin: Admin = Depends(deps.get_current_main_admin),
    storage: StorageService = Depends(deps.get_storage),
):
    """
    Delete a condominium with its memberships, occurrences, assemblies and
    message targets. Notifications about it are kept as history.
    """
    condominium = await session.get(Condominium, condominium_id)
    if not condominium:
        raise HTTPException(status_code=404, detail="Condominium not found")

    assembly_ids = select(Assembly.id).where(Assembly.condominium_id == condominium_id)
    stored_files = await session.exec(
        select(AssemblyFile.file_path).where(col(AssemblyFile.assembly_id).in_(assembly_ids))
    )
    for file_path in stored_files.all():
        storage.delete_file(file_path)
    await session.execute(delete(AssemblyFile).where(col(AssemblyFile.assembly_id).in_(assembly_ids)))
    await session.execute(delete(Assembly).where(Assembly.condominium_id == condominium_id))
    await session.execute(delete(Occurrence).where(Occurrence.condominium_id == condominium_id))
    await session.execute(delete(Membership).where(Membership.condominium_id == condominium_id))
    await session.execute(
        delete(AdminMessageCondominium).where(AdminMessageCondominium.condominium_id == condominium_id)
    )
    await session.delete(condominium)
    await session.commit()
    return {"message": "Condominium deleted"}

# --- Memberships ---

@router.get("/{condominium_id}/members", response_model=List[MembershipRead])
async def list_members(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_id: int,
    access: AccessScope = Depends(deps.get_admin_scope),
):
    deps.ensure_condominium_access(access, condominium_id)
    result = await session.exec(select(Membership).where(Membership.condominium_id == condominium_id))
    return result.all()

@router.post("/{condominium_id}/members", response_model=MembershipRead)
async def add_member(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_id: int,
    membership_in: MembershipCreate,
    access: AccessScope = Depends(deps.get_admin_scope),
):
    deps.ensure_condominium_access(access, condominium_id)
    if not await session.get(Condominium, condominium_id):
        raise HTTPException(status_code=404, detail="Condominium not found")
    if not await session.get(User, membership_in.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    existing = await session.exec(
        select(Membership).where(
            Membership.condominium_id == condominium_id,
            Membership.user_id == membership_in.user_id,
        )
    )
    if existing.first():
        raise HTTPException(status_code=400, detail="User is already a member of this condominium")

    membership = Membership(condominium_id=condominium_id, **membership_in.model_dump())
    session.add(membership)
    await session.commit()
    await session.refresh(membership)
    return membership

@router.delete("/{condominium_id}/members/{user_id}")
async def remove_member(
    *,
    session: AsyncSession = Depends(deps.get_session),
    condominium_id: int,
    user_id: int,
    access: AccessScope = Depends(deps.get_admin_scope),
):
    deps.ensure_condominium_access(access, condominium_id)
    result = await session.execute(
        delete(Membership).where(
            Membership.condominium_id == condominium_id,
            Membership.user_id == user_id,
        )
    )
    if not result.rowcount:
        raise HTTPException(status_code=404, detail="Membership not found")
    await session.commit()
    return {"message": "Membership removed"}

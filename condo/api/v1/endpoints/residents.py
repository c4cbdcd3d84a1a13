from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.models.assembly import (
    Assembly,
    AssemblyFile,
    AssemblyFileRead,
    ResidentAssemblyRead,
    ResidentDocumentRead,
)
from condo.models.condominium import Condominium
from condo.models.message import AdminMessage, AdminMessageCondominium, AdminMessageRead
from condo.models.user import User
from condo.services.storage_service import StorageService
from condo.services.targeting import user_condominium_ids

router = APIRouter()

COMPLETED = "completed"

async def _memberships(session: AsyncSession, user_id: int) -> frozenset[int]:
    if not await session.get(User, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await user_condominium_ids(session, user_id)

async def _targets_within(session: AsyncSession, message_ids: List[int], condominium_ids: frozenset[int]) -> dict[int, List[int]]:
    targets: dict[int, List[int]] = {message_id: [] for message_id in message_ids}
    if not message_ids:
        return targets
    result = await session.exec(
        select(AdminMessageCondominium)
        .where(col(AdminMessageCondominium.message_id).in_(message_ids))
        .where(col(AdminMessageCondominium.condominium_id).in_(sorted(condominium_ids)))
    )
    for row in result.all():
        targets[row.message_id].append(row.condominium_id)
    return {message_id: sorted(ids) for message_id, ids in targets.items()}

def _messages_for(condominium_ids: frozenset[int]):
    targeted = select(AdminMessageCondominium.message_id).where(
        col(AdminMessageCondominium.condominium_id).in_(sorted(condominium_ids))
    )
    return select(AdminMessage).where(col(AdminMessage.id).in_(targeted))

def _assemblies_of(condominium_ids: frozenset[int]):
    return (
        select(Assembly, Condominium.name)
        .join(Condominium, Condominium.id == Assembly.condominium_id)
        .where(col(Assembly.condominium_id).in_(sorted(condominium_ids)))
    )

async def _with_condominium_names(session: AsyncSession, query) -> List[ResidentAssemblyRead]:
    result = await session.exec(query)
    return [
        ResidentAssemblyRead(**assembly.model_dump(), condominium_name=name)
        for assembly, name in result.all()
    ]

def _upcoming(condominium_ids: frozenset[int]):
    return (
        _assemblies_of(condominium_ids)
        .where(Assembly.meeting_date >= date.today())
        .where(Assembly.status != COMPLETED)
        .order_by(col(Assembly.meeting_date), col(Assembly.meeting_time))
    )

# --- Administrator messages ---

@router.get("/{user_id}/admin-messages", response_model=List[AdminMessageRead])
async def list_resident_messages(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    """
    Messages sent to any condominium the resident belongs to, newest first.
    """
    condominium_ids = await _memberships(session, user_id)
    if not condominium_ids:
        return []
    result = await session.exec(
        _messages_for(condominium_ids).order_by(col(AdminMessage.created_at).desc(), col(AdminMessage.id).desc())
    )
    messages = result.all()
    targets = await _targets_within(session, [m.id for m in messages], condominium_ids)
    return [AdminMessageRead(**m.model_dump(), condominium_ids=targets[m.id]) for m in messages]

@router.get("/{user_id}/admin-messages/{message_id}", response_model=AdminMessageRead)
async def read_resident_message(
    user_id: int,
    message_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    condominium_ids = await _memberships(session, user_id)
    message = None
    if condominium_ids:
        result = await session.exec(_messages_for(condominium_ids).where(AdminMessage.id == message_id))
        message = result.first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    targets = await _targets_within(session, [message.id], condominium_ids)
    return AdminMessageRead(**message.model_dump(), condominium_ids=targets[message.id])

# --- Assemblies and their documents ---

@router.get("/{user_id}/assemblies", response_model=List[ResidentAssemblyRead])
async def list_resident_assemblies(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
    previous: bool = False,
):
    """
    Upcoming assemblies of the resident's condominiums, soonest first.
    With ``previous=true``: past or completed ones, most recent first.
    """
    condominium_ids = await _memberships(session, user_id)
    if not condominium_ids:
        return []
    if not previous:
        return await _with_condominium_names(session, _upcoming(condominium_ids))
    query = (
        _assemblies_of(condominium_ids)
        .where((Assembly.meeting_date < date.today()) | (Assembly.status == COMPLETED))
        .order_by(col(Assembly.meeting_date).desc(), col(Assembly.meeting_time).desc())
    )
    return await _with_condominium_names(session, query)

@router.get("/{user_id}/next-assembly", response_model=Optional[ResidentAssemblyRead])
async def read_next_assembly(
    user_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    condominium_ids = await _memberships(session, user_id)
    if not condominium_ids:
        return None
    upcoming = await _with_condominium_names(session, _upcoming(condominium_ids).limit(1))
    return upcoming[0] if upcoming else None

@router.get("/{user_id}/assemblies/{assembly_id}", response_model=ResidentAssemblyRead)
async def read_resident_assembly(
    user_id: int,
    assembly_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    condominium_ids = await _memberships(session, user_id)
    assembly = await session.get(Assembly, assembly_id)
    if not assembly or assembly.condominium_id not in condominium_ids:
        raise HTTPException(status_code=404, detail="Assembly not found")

    condominium = await session.get(Condominium, assembly.condominium_id)
    files = await session.exec(
        select(AssemblyFile).where(AssemblyFile.assembly_id == assembly.id).order_by(col(AssemblyFile.uploaded_at).desc())
    )
    return ResidentAssemblyRead(
        **assembly.model_dump(),
        condominium_name=condominium.name if condominium else None,
        files=[AssemblyFileRead.model_validate(f) for f in files.all()],
    )

@router.get("/{user_id}/documents/{file_id}", response_model=ResidentDocumentRead)
async def read_resident_document(
    user_id: int,
    file_id: int,
    session: AsyncSession = Depends(deps.get_session),
    storage: StorageService = Depends(deps.get_storage),
):
    """
    An assembly document of one of the resident's condominiums, with a
    signed download link when storage is available.
    """
    condominium_ids = await _memberships(session, user_id)
    assembly_file = await session.get(AssemblyFile, file_id)
    assembly = await session.get(Assembly, assembly_file.assembly_id) if assembly_file else None
    if not assembly or assembly.condominium_id not in condominium_ids:
        raise HTTPException(status_code=404, detail="Document not found")

    condominium = await session.get(Condominium, assembly.condominium_id)
    return ResidentDocumentRead(
        **AssemblyFileRead.model_validate(assembly_file).model_dump(),
        assembly_title=assembly.title,
        meeting_date=assembly.meeting_date,
        meeting_time=assembly.meeting_time,
        location=assembly.location,
        condominium_id=assembly.condominium_id,
        condominium_name=condominium.name if condominium else None,
        url=storage.get_signed_url(assembly_file.file_path) or None,
    )

from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.core.permissions import AccessScope, FullAccess
from condo.models.assembly import Assembly, AssemblyCreate, AssemblyFile, AssemblyFileRead, AssemblyRead
from condo.models.condominium import Condominium
from condo.services.events import AssemblyScheduled, DocumentAdded
from condo.services.notification_service import NotificationService
from condo.services.storage_service import StorageService

router = APIRouter()

MAX_FILE_SIZE = 20 * 1024 * 1024

@router.post("/", response_model=AssemblyRead)
async def create_assembly(
    *,
    session: AsyncSession = Depends(deps.get_session),
    assembly_in: AssemblyCreate,
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Schedule an assembly. Admins and residents of the condominium are notified.
    """
    deps.ensure_condominium_access(access, assembly_in.condominium_id)
    condominium = await session.get(Condominium, assembly_in.condominium_id)
    if not condominium:
        raise HTTPException(status_code=404, detail="Condominium not found")

    assembly = Assembly.model_validate(assembly_in)
    session.add(assembly)
    await session.commit()
    await session.refresh(assembly)

    await service.notify(session, AssemblyScheduled(
        assembly_id=assembly.id,
        assembly_condominium_id=assembly.condominium_id,
        meeting_date=assembly.meeting_date,
        meeting_time=assembly.meeting_time,
        condominium_name=condominium.name,
    ))
    return assembly

@router.get("/", response_model=List[AssemblyRead])
async def list_assemblies(
    session: AsyncSession = Depends(deps.get_session),
    access: AccessScope = Depends(deps.get_admin_scope),
    condominium_id: Optional[int] = None,
):
    query = select(Assembly).order_by(col(Assembly.meeting_date).desc())
    if not isinstance(access, FullAccess):
        query = query.where(col(Assembly.condominium_id).in_(sorted(access.condominium_ids)))
    if condominium_id is not None:
        query = query.where(Assembly.condominium_id == condominium_id)
    result = await session.exec(query)
    return result.all()

@router.post("/{assembly_id}/files", response_model=AssemblyFileRead)
async def upload_assembly_file(
    *,
    session: AsyncSession = Depends(deps.get_session),
    assembly_id: int,
    file: UploadFile = File(...),
    access: AccessScope = Depends(deps.get_admin_scope),
    storage: StorageService = Depends(deps.get_storage),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Attach a document (minutes, convocation, ...) to an assembly.
    """
    assembly = await session.get(Assembly, assembly_id)
    if not assembly:
        raise HTTPException(status_code=404, detail="Assembly not found")
    deps.ensure_condominium_access(access, assembly.condominium_id)

    content = await file.read()
    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File too large")
    await file.seek(0)

    file_path = await storage.upload_assembly_file(file, assembly.condominium_id, assembly.id)
    assembly_file = AssemblyFile(
        assembly_id=assembly.id,
        filename=file_path.rsplit("/", 1)[-1],
        original_filename=file.filename or "document",
        file_path=file_path,
        mime_type=file.content_type or "application/octet-stream",
        file_size=len(content),
    )
    session.add(assembly_file)
    await session.commit()
    await session.refresh(assembly_file)

    condominium = await session.get(Condominium, assembly.condominium_id)
    await service.notify(session, DocumentAdded(
        file_id=assembly_file.id,
        assembly_title=assembly.title,
        assembly_condominium_id=assembly.condominium_id,
        condominium_name=condominium.name if condominium else None,
    ))
    return assembly_file

@router.get("/{assembly_id}/files", response_model=List[AssemblyFileRead])
async def list_assembly_files(
    assembly_id: int,
    session: AsyncSession = Depends(deps.get_session),
):
    result = await session.exec(
        select(AssemblyFile).where(AssemblyFile.assembly_id == assembly_id).order_by(col(AssemblyFile.uploaded_at))
    )
    return result.all()

@router.get("/{assembly_id}/files/{file_id}/url")
async def assembly_file_url(
    assembly_id: int,
    file_id: int,
    session: AsyncSession = Depends(deps.get_session),
    storage: StorageService = Depends(deps.get_storage),
):
    assembly_file = await session.get(AssemblyFile, file_id)
    if not assembly_file or assembly_file.assembly_id != assembly_id:
        raise HTTPException(status_code=404, detail="File not found")
    url = storage.get_signed_url(assembly_file.file_path)
    if not url:
        raise HTTPException(status_code=503, detail="Storage unavailable")
    return {"url": url}

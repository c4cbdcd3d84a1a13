from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.models.base import utcnow
from condo.core.permissions import AccessScope, FullAccess
from condo.models.admin import Admin
from condo.models.condominium import Condominium
from condo.models.maintenance import MaintenanceUser
from condo.models.occurrence import (
    MaintenanceUpdate,
    Occurrence,
    OccurrenceComplete,
    OccurrenceCreate,
    OccurrenceRead,
    OccurrenceStatus,
    OccurrenceVerify,
)
from condo.services.events import MaintenanceCompleted, OccurrenceCreated, WorkVerified
from condo.services.notification_service import NotificationService

router = APIRouter()

async def _get_occurrence(session: AsyncSession, occurrence_id: int) -> Occurrence:
    occurrence = await session.get(Occurrence, occurrence_id)
    if not occurrence:
        raise HTTPException(status_code=404, detail="Occurrence not found")
    return occurrence

async def _condominium_name(session: AsyncSession, condominium_id: int) -> Optional[str]:
    condominium = await session.get(Condominium, condominium_id)
    return condominium.name if condominium else None

# --- Admin side ---

@router.post("/admin/occurrences", response_model=OccurrenceRead)
async def create_occurrence(
    *,
    session: AsyncSession = Depends(deps.get_session),
    occurrence_in: OccurrenceCreate,
    current_admin: Admin = Depends(deps.get_current_admin),
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Open an occurrence in a condominium the admin manages.
    """
    deps.ensure_condominium_access(access, occurrence_in.condominium_id)
    condominium_name = await _condominium_name(session, occurrence_in.condominium_id)
    if condominium_name is None:
        raise HTTPException(status_code=404, detail="Condominium not found")
    if occurrence_in.assigned_to_maintenance and not await session.get(MaintenanceUser, occurrence_in.assigned_to_maintenance):
        raise HTTPException(status_code=404, detail="Maintenance user not found")

    occurrence = Occurrence(
        **occurrence_in.model_dump(),
        created_by_admin=current_admin.id,
        status=OccurrenceStatus.PENDING.value,
    )
    session.add(occurrence)
    await session.commit()
    await session.refresh(occurrence)

    await service.notify(session, OccurrenceCreated(
        occurrence_id=occurrence.id,
        occurrence_condominium_id=occurrence.condominium_id,
        occurrence_title=occurrence.title,
        condominium_name=condominium_name,
    ))
    return occurrence

@router.get("/admin/occurrences", response_model=List[OccurrenceRead])
async def list_occurrences(
    session: AsyncSession = Depends(deps.get_session),
    access: AccessScope = Depends(deps.get_admin_scope),
    condominium_id: Optional[int] = None,
    status: Optional[OccurrenceStatus] = None,
):
    query = select(Occurrence).order_by(col(Occurrence.created_at).desc())
    if not isinstance(access, FullAccess):
        query = query.where(col(Occurrence.condominium_id).in_(sorted(access.condominium_ids)))
    if condominium_id is not None:
        query = query.where(Occurrence.condominium_id == condominium_id)
    if status is not None:
        query = query.where(Occurrence.status == status.value)
    result = await session.exec(query)
    return result.all()

@router.put("/admin/occurrences/{occurrence_id}/verify", response_model=OccurrenceRead)
async def verify_occurrence(
    *,
    session: AsyncSession = Depends(deps.get_session),
    occurrence_id: int,
    verify_in: OccurrenceVerify,
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Approve or reject work reported as done. Approval completes the
    occurrence; rejection sends it back to the maintenance user.
    """
    occurrence = await _get_occurrence(session, occurrence_id)
    deps.ensure_condominium_access(access, occurrence.condominium_id)
    if occurrence.status != OccurrenceStatus.PENDING_VERIFICATION.value:
        raise HTTPException(status_code=400, detail="Occurrence is not awaiting verification")

    now = utcnow()
    occurrence.admin_verification = verify_in.admin_verification
    occurrence.updated_at = now
    if verify_in.approved:
        occurrence.status = OccurrenceStatus.COMPLETED.value
        occurrence.completed_at = now
    else:
        occurrence.status = OccurrenceStatus.IN_PROGRESS.value
    session.add(occurrence)
    await session.commit()
    await session.refresh(occurrence)

    if occurrence.assigned_to_maintenance:
        await service.notify(session, WorkVerified(
            occurrence_id=occurrence.id,
            occurrence_condominium_id=occurrence.condominium_id,
            occurrence_title=occurrence.title,
            approved=verify_in.approved,
            feedback=verify_in.admin_verification,
        ))
    return occurrence

@router.put("/admin/occurrences/{occurrence_id}/complete", response_model=OccurrenceRead)
async def complete_occurrence(
    *,
    session: AsyncSession = Depends(deps.get_session),
    occurrence_id: int,
    complete_in: OccurrenceComplete,
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Close an occurrence directly, or set it back to another status.
    """
    occurrence = await _get_occurrence(session, occurrence_id)
    deps.ensure_condominium_access(access, occurrence.condominium_id)

    now = utcnow()
    new_status = complete_in.status or OccurrenceStatus.COMPLETED
    occurrence.status = new_status.value
    occurrence.admin_verification = complete_in.admin_response
    occurrence.updated_at = now
    occurrence.completed_at = now if new_status == OccurrenceStatus.COMPLETED else None
    session.add(occurrence)
    await session.commit()
    await session.refresh(occurrence)

    if occurrence.assigned_to_maintenance:
        await service.notify(session, WorkVerified(
            occurrence_id=occurrence.id,
            occurrence_condominium_id=occurrence.condominium_id,
            occurrence_title=occurrence.title,
            approved=new_status == OccurrenceStatus.COMPLETED,
            feedback=complete_in.admin_response,
        ))
    return occurrence

# --- Maintenance side ---

@router.get("/maintenance/occurrences", response_model=List[OccurrenceRead])
async def list_assigned_occurrences(
    session: AsyncSession = Depends(deps.get_session),
    maintenance_user: MaintenanceUser = Depends(deps.get_current_maintenance),
):
    result = await session.exec(
        select(Occurrence)
        .where(Occurrence.assigned_to_maintenance == maintenance_user.id)
        .order_by(col(Occurrence.created_at).desc())
    )
    return result.all()

@router.put("/maintenance/occurrences/{occurrence_id}", response_model=OccurrenceRead)
async def update_assigned_occurrence(
    *,
    session: AsyncSession = Depends(deps.get_session),
    occurrence_id: int,
    update_in: MaintenanceUpdate,
    maintenance_user: MaintenanceUser = Depends(deps.get_current_maintenance),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Progress report from the assigned maintenance user. Reporting the work
    as done (pending_verification with a report) notifies the admins.
    """
    occurrence = await _get_occurrence(session, occurrence_id)
    if occurrence.assigned_to_maintenance != maintenance_user.id:
        raise HTTPException(status_code=403, detail="Occurrence is not assigned to you")
    if update_in.status == OccurrenceStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Only an administrator can complete an occurrence")

    finished = (
        update_in.status == OccurrenceStatus.PENDING_VERIFICATION
        and bool(update_in.maintenance_report)
        and occurrence.status != OccurrenceStatus.PENDING_VERIFICATION.value
    )
    occurrence.status = update_in.status.value
    if update_in.maintenance_report is not None:
        occurrence.maintenance_report = update_in.maintenance_report
    occurrence.updated_at = utcnow()
    session.add(occurrence)
    await session.commit()
    await session.refresh(occurrence)

    if finished:
        await service.notify(session, MaintenanceCompleted(
            occurrence_id=occurrence.id,
            occurrence_condominium_id=occurrence.condominium_id,
            occurrence_title=occurrence.title,
            maintenance_name=maintenance_user.name,
            condominium_name=await _condominium_name(session, occurrence.condominium_id),
        ))
    return occurrence

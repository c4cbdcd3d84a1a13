import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import and_, or_
from sqlmodel import select, col
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.core.permissions import (
    AccessScope,
    FullAccess,
    narrow_scope,
    normalize_allowed_condominiums,
    scope_for_admin,
)
from condo.models.admin import Admin
from condo.models.condominium import Condominium, Membership
from condo.models.message import (
    AdminMessage,
    AdminMessageCondominium,
    AdminMessageCreate,
    AdminMessageRead,
    AdminMessageSent,
    UserMessage,
    UserMessageCreate,
    UserMessageRead,
    UserMessageType,
)
from condo.models.user import User
from condo.services.errors import NoPermittedTargets, NotificationError
from condo.services.events import AdminBroadcast, ComplaintSubmitted, RequestSubmitted
from condo.services.notification_service import NotificationService
from condo.services.targeting import restrict_broadcast_targets, user_condominium_ids

logger = logging.getLogger(__name__)

router = APIRouter()

async def _message_targets(session: AsyncSession, message_ids: List[int]) -> dict[int, List[int]]:
    targets: dict[int, List[int]] = {message_id: [] for message_id in message_ids}
    if not message_ids:
        return targets
    result = await session.exec(
        select(AdminMessageCondominium).where(col(AdminMessageCondominium.message_id).in_(message_ids))
    )
    for row in result.all():
        targets[row.message_id].append(row.condominium_id)
    return {message_id: sorted(ids) for message_id, ids in targets.items()}

# --- Administrator broadcasts ---

@router.post("/admin/messages", response_model=AdminMessageSent)
async def send_admin_message(
    *,
    session: AsyncSession = Depends(deps.get_session),
    message_in: AdminMessageCreate,
    current_admin: Admin = Depends(deps.get_current_admin),
    sender: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Send a message to the residents (and admins) of some condominiums.

    A limited sender's targets are cut down to their own condominiums; if
    none is left the message is refused instead of reaching nobody.
    """
    requested = normalize_allowed_condominiums(message_in.condominium_ids)
    if not requested:
        raise HTTPException(status_code=400, detail="At least one condominium is required")
    try:
        targets = restrict_broadcast_targets(sender, requested)
    except NoPermittedTargets:
        raise HTTPException(status_code=403, detail="No permission to message the selected condominiums")

    existing = await session.exec(select(Condominium.id).where(col(Condominium.id).in_(sorted(targets))))
    unknown = targets - set(existing.all())
    if unknown:
        raise HTTPException(status_code=404, detail=f"Unknown condominiums: {sorted(unknown)}")

    message = AdminMessage(
        admin_id=current_admin.id,
        title=message_in.title,
        body=message_in.body,
        type=message_in.type,
    )
    session.add(message)
    await session.flush()
    for condominium_id in sorted(targets):
        session.add(AdminMessageCondominium(message_id=message.id, condominium_id=condominium_id))
    await session.commit()
    await session.refresh(message)

    try:
        result = await service.create_and_link(session, AdminBroadcast(
            message_id=message.id,
            message_title=message.title,
            target_condominium_ids=targets,
        ))
    except NotificationError as e:
        logger.error("Admin message %s stored without notification: %s", message.id, e)
        raise HTTPException(status_code=500, detail="Message saved but its notification could not be created")

    return AdminMessageSent(
        message=AdminMessageRead(**message.model_dump(), condominium_ids=sorted(targets)),
        notification=result,
    )

@router.get("/admin/messages", response_model=List[AdminMessageRead])
async def list_admin_messages(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
    descriptor: Optional[AccessScope] = Depends(deps.get_permission_descriptor),
):
    """
    Messages visible to the calling admin. Without a permissions descriptor
    only the admin's own messages are listed.
    """
    query = select(AdminMessage).order_by(col(AdminMessage.created_at).desc(), col(AdminMessage.id).desc())
    own = AdminMessage.admin_id == current_admin.id
    if descriptor is None:
        query = query.where(own)
    else:
        access = narrow_scope(scope_for_admin(current_admin), descriptor)
        if not isinstance(access, FullAccess):
            targeted = select(AdminMessageCondominium.message_id).where(
                col(AdminMessageCondominium.condominium_id).in_(sorted(access.condominium_ids))
            )
            query = query.where(or_(own, col(AdminMessage.id).in_(targeted)))

    result = await session.exec(query)
    messages = result.all()
    targets = await _message_targets(session, [m.id for m in messages])
    return [AdminMessageRead(**m.model_dump(), condominium_ids=targets[m.id]) for m in messages]

# --- Resident complaints and requests ---

async def _submit(
    session: AsyncSession,
    service: NotificationService,
    message_in: UserMessageCreate,
    message_type: UserMessageType,
) -> UserMessage:
    user = await session.get(User, message_in.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    memberships = await user_condominium_ids(session, user.id)
    if message_in.condominium_id is not None and message_in.condominium_id not in memberships:
        raise HTTPException(status_code=403, detail="User is not a member of this condominium")

    message = UserMessage(
        user_id=user.id,
        condominium_id=message_in.condominium_id,
        type=message_type.value,
        subject=message_in.subject,
        message=message_in.message,
    )
    session.add(message)
    await session.commit()
    await session.refresh(message)

    event_type = ComplaintSubmitted if message_type == UserMessageType.COMPLAINT else RequestSubmitted
    await service.notify(session, event_type(
        message_id=message.id,
        resident_id=user.id,
        resident_name=user.name,
        subject=message.subject,
        body=message.message,
        explicit_condominium_id=message_in.condominium_id,
        fallback_condominium_id=min(memberships) if memberships else None,
    ))
    return message

@router.post("/complaints", response_model=UserMessageRead)
async def submit_complaint(
    *,
    session: AsyncSession = Depends(deps.get_session),
    message_in: UserMessageCreate,
    service: NotificationService = Depends(deps.get_notification_service),
):
    return await _submit(session, service, message_in, UserMessageType.COMPLAINT)

@router.post("/requests", response_model=UserMessageRead)
async def submit_request(
    *,
    session: AsyncSession = Depends(deps.get_session),
    message_in: UserMessageCreate,
    service: NotificationService = Depends(deps.get_notification_service),
):
    return await _submit(session, service, message_in, UserMessageType.REQUEST)

@router.get("/admin/user-messages", response_model=List[UserMessageRead])
async def list_user_messages(
    session: AsyncSession = Depends(deps.get_session),
    access: AccessScope = Depends(deps.get_admin_scope),
    message_type: Optional[UserMessageType] = None,
):
    """
    Complaints and requests from residents of the admin's condominiums.
    """
    query = select(UserMessage).order_by(col(UserMessage.created_at).desc())
    if not isinstance(access, FullAccess):
        allowed = sorted(access.condominium_ids)
        members = select(Membership.user_id).where(col(Membership.condominium_id).in_(allowed))
        query = query.where(or_(
            col(UserMessage.condominium_id).in_(allowed),
            and_(col(UserMessage.condominium_id).is_(None), col(UserMessage.user_id).in_(members)),
        ))
    if message_type is not None:
        query = query.where(UserMessage.type == message_type.value)
    result = await session.exec(query)
    return result.all()

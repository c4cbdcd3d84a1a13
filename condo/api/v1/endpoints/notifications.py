from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.api import deps
from condo.core.config import settings
from condo.core.permissions import AccessScope
from condo.models.admin import Admin
from condo.models.notification import NotificationRead, UnreadCount
from condo.services.broadcaster import LiveBroadcaster, stream_events
from condo.services.notification_service import NotificationService

router = APIRouter()

@router.get("/", response_model=List[NotificationRead])
async def read_notifications(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    """
    Notifications linked to the calling admin that their current
    permissions still cover, newest first.
    """
    return await service.list_for_admin(session, current_admin.id, access)

@router.get("/unread-count", response_model=UnreadCount)
async def read_unread_count(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
    access: AccessScope = Depends(deps.get_admin_scope),
    service: NotificationService = Depends(deps.get_notification_service),
):
    return UnreadCount(count=await service.unread_count_for_admin(session, current_admin.id, access))

@router.put("/read-all")
async def mark_all_notifications_read(
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
    service: NotificationService = Depends(deps.get_notification_service),
):
    updated = await service.mark_all_read_for_admin(session, current_admin.id)
    return {"updated": updated}

@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    session: AsyncSession = Depends(deps.get_session),
    current_admin: Admin = Depends(deps.get_current_admin),
    service: NotificationService = Depends(deps.get_notification_service),
):
    if not await service.mark_read_for_admin(session, current_admin.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification marked as read"}

@router.get("/stream")
async def stream_notifications(
    request: Request,
    current_admin: Admin = Depends(deps.get_current_admin),
    broadcaster: LiveBroadcaster = Depends(deps.get_broadcaster),
):
    """
    Server-sent events for the calling admin. The session is registered for
    as long as the client stays connected.
    """
    live_session = broadcaster.register(current_admin.id)

    async def event_generator():
        try:
            async for frame in stream_events(
                live_session, request.is_disconnected, settings.SSE_KEEPALIVE_SECONDS
            ):
                yield frame
        finally:
            broadcaster.deregister(live_session)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

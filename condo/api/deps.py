from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.core import security
from condo.core.config import settings
from condo.core.permissions import AccessScope, narrow_scope, parse_permission_descriptor, scope_for_admin
from condo.db.session import get_session
from condo.models.admin import Admin
from condo.models.maintenance import MaintenanceUser
from condo.services.broadcaster import LiveBroadcaster
from condo.services.notification_service import NotificationService
from condo.services.storage_service import get_storage

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/admin",
    auto_error=False,
)

def get_broadcaster(request: Request) -> LiveBroadcaster:
    return request.app.state.broadcaster

def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service

def _parse_id(raw: Optional[str], name: str) -> Optional[int]:
    if raw is None or not str(raw).strip():
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}")

def _token_subject(token: Optional[str], kind: str) -> Optional[int]:
    if not token:
        return None
    decoded = security.decode_access_token(token)
    if decoded is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    token_kind, account_id = decoded
    return account_id if token_kind == kind else None

async def get_admin_id(
    session: AsyncSession = Depends(get_session),
    token: Optional[str] = Depends(reusable_oauth2),
    admin_id_query: Optional[str] = Query(None, alias="admin_id"),
    admin_id_header: Optional[str] = Header(None, alias="admin-id"),
    admin_username: Optional[str] = Header(None, alias="admin-username"),
) -> Optional[int]:
    """
    Who "me" is on admin endpoints: admin_id query, admin-id header,
    a bearer admin token, then the admin-username header, in that order.
    """
    admin_id = _parse_id(admin_id_query, "admin_id")
    if admin_id is None:
        admin_id = _parse_id(admin_id_header, "admin-id")
    if admin_id is None:
        admin_id = _token_subject(token, "admin")
    if admin_id is None and admin_username:
        result = await session.exec(select(Admin.id).where(Admin.username == admin_username.strip()))
        admin_id = result.first()
    return admin_id

async def get_current_admin(
    session: AsyncSession = Depends(get_session),
    admin_id: Optional[int] = Depends(get_admin_id),
) -> Admin:
    if admin_id is None:
        raise HTTPException(status_code=400, detail="admin_id is required")
    admin = await session.get(Admin, admin_id)
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return admin

async def get_current_main_admin(
    current_admin: Admin = Depends(get_current_admin),
) -> Admin:
    if not current_admin.is_main:
        raise HTTPException(
            status_code=403, detail="Only the main administrator can manage accounts"
        )
    return current_admin

def get_permission_descriptor(
    admin_permissions: Optional[str] = Header(None, alias="admin-permissions"),
    permissions: Optional[str] = Query(None),
) -> Optional[AccessScope]:
    """The scope the client sent, or None when it sent none."""
    return parse_permission_descriptor(admin_permissions if admin_permissions is not None else permissions)

def get_admin_scope(
    current_admin: Admin = Depends(get_current_admin),
    descriptor: Optional[AccessScope] = Depends(get_permission_descriptor),
) -> AccessScope:
    """
    The admin's stored scope, narrowed by the descriptor when one was sent.
    A missing descriptor leaves the stored scope untouched.
    """
    return narrow_scope(scope_for_admin(current_admin), descriptor)

async def get_current_maintenance(
    session: AsyncSession = Depends(get_session),
    token: Optional[str] = Depends(reusable_oauth2),
    maintenance_id_header: Optional[str] = Header(None, alias="maintenance-id"),
) -> MaintenanceUser:
    maintenance_id = _parse_id(maintenance_id_header, "maintenance-id")
    if maintenance_id is None:
        maintenance_id = _token_subject(token, "maintenance")
    if maintenance_id is None:
        raise HTTPException(status_code=401, detail="Maintenance identity required")
    maintenance_user = await session.get(MaintenanceUser, maintenance_id)
    if not maintenance_user:
        raise HTTPException(status_code=404, detail="Maintenance user not found")
    return maintenance_user

def ensure_condominium_access(access: AccessScope, condominium_id: int) -> None:
    if not access.allows({condominium_id}):
        raise HTTPException(status_code=403, detail="No access to this condominium")

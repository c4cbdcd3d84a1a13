from datetime import timedelta
from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from condo.api import deps
from condo.core import security
from condo.core.config import settings
from condo.core.permissions import scope_for_admin
from condo.models.admin import Admin
from condo.models.maintenance import MaintenanceUser
from condo.models.token import AdminToken, AccountToken
from condo.models.user import User

router = APIRouter()

def _expires() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

@router.post("/login/admin", response_model=AdminToken)
async def login_admin(
    session: AsyncSession = Depends(deps.get_session),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """
    Administrator login. The returned permissions descriptor is what the
    frontend sends back in the admin-permissions header.
    """
    result = await session.exec(select(Admin).where(Admin.username == form_data.username.strip()))
    admin = result.first()

    if not admin or not security.verify_password(form_data.password, admin.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect username or password"
        )

    return AdminToken(
        access_token=security.create_access_token("admin", admin.id, expires_delta=_expires()),
        admin_id=admin.id,
        username=admin.username,
        is_main=admin.is_main,
        permissions=scope_for_admin(admin).as_descriptor(),
    )

@router.post("/login/user", response_model=AccountToken)
async def login_user(
    session: AsyncSession = Depends(deps.get_session),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """
    Resident login with their tax number (NIF) as username.
    """
    result = await session.exec(select(User).where(User.nif == form_data.username.strip()))
    user = result.first()

    if not user or not security.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect NIF or password"
        )

    return AccountToken(
        access_token=security.create_access_token("user", user.id, expires_delta=_expires()),
        account_id=user.id,
        name=user.name,
    )

@router.post("/login/maintenance", response_model=AccountToken)
async def login_maintenance(
    session: AsyncSession = Depends(deps.get_session),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    result = await session.exec(
        select(MaintenanceUser).where(MaintenanceUser.username == form_data.username.strip())
    )
    maintenance_user = result.first()

    if not maintenance_user or not security.verify_password(form_data.password, maintenance_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect username or password"
        )

    return AccountToken(
        access_token=security.create_access_token("maintenance", maintenance_user.id, expires_delta=_expires()),
        account_id=maintenance_user.id,
        name=maintenance_user.name,
    )

from typing import List, Optional, Union
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel, Column, String
from condo.core.permissions import AdminScope, scope_for_admin, FullAccess

class AdminBase(SQLModel):
    username: str = Field(unique=True, index=True)
    scope: AdminScope = Field(default=AdminScope.FULL, sa_column=Column(String, nullable=False, default=AdminScope.FULL.value))
    # Stored as JSON text; legacy rows may hold scalars or numeric strings
    allowed_condominiums: Optional[str] = Field(default=None)

class Admin(AdminBase, table=True):
    __tablename__ = "admins"

    id: Optional[int] = Field(default=None, primary_key=True)
    hashed_password: str
    is_main: bool = Field(default=False)
    created_at: datetime = timestamp_field()

class AdminCreate(SQLModel):
    username: str
    password: str
    scope: AdminScope = AdminScope.FULL
    allowed_condominiums: Optional[Union[List[Union[int, str]], str, int]] = None

class AdminUpdate(SQLModel):
    username: Optional[str] = None
    password: Optional[str] = None
    scope: Optional[AdminScope] = None
    allowed_condominiums: Optional[Union[List[Union[int, str]], str, int]] = None

class AdminRead(SQLModel):
    id: int
    username: str
    scope: AdminScope
    allowed_condominiums: List[int] = []
    is_main: bool = False
    created_at: datetime

    @classmethod
    def from_admin(cls, admin: Admin) -> "AdminRead":
        access = scope_for_admin(admin)
        return cls(
            id=admin.id,
            username=admin.username,
            scope=access.scope,
            allowed_condominiums=[] if isinstance(access, FullAccess) else sorted(access.condominium_ids),
            is_main=admin.is_main,
            created_at=admin.created_at,
        )

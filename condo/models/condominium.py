from typing import Optional
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel, UniqueConstraint

class CondominiumBase(SQLModel):
    name: str = Field(unique=True, index=True)
    nipc: Optional[str] = None # Tax id

class Condominium(CondominiumBase, table=True):
    __tablename__ = "condominiums"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = timestamp_field()

class CondominiumCreate(CondominiumBase):
    pass

class CondominiumRead(CondominiumBase):
    id: int
    created_at: datetime

class CondominiumUpdate(SQLModel):
    name: Optional[str] = None
    nipc: Optional[str] = None

class Membership(SQLModel, table=True):
    """A resident's unit in a condominium."""
    __tablename__ = "user_condominiums"
    __table_args__ = (UniqueConstraint("user_id", "condominium_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    condominium_id: int = Field(foreign_key="condominiums.id", index=True)
    apartment: Optional[str] = None
    role: str = Field(default="resident")
    created_at: datetime = timestamp_field()

class MembershipCreate(SQLModel):
    user_id: int
    apartment: Optional[str] = None
    role: str = "resident"

class MembershipRead(SQLModel):
    user_id: int
    condominium_id: int
    apartment: Optional[str] = None
    role: str

from typing import Optional
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel

class MaintenanceUserBase(SQLModel):
    username: str = Field(unique=True, index=True)
    name: str
    phone: Optional[str] = None

class MaintenanceUser(MaintenanceUserBase, table=True):
    __tablename__ = "maintenance_users"

    id: Optional[int] = Field(default=None, primary_key=True)
    hashed_password: str
    created_at: datetime = timestamp_field()

class MaintenanceUserCreate(MaintenanceUserBase):
    password: str

class MaintenanceUserRead(MaintenanceUserBase):
    id: int
    created_at: datetime

class MaintenanceUserUpdate(SQLModel):
    username: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None

from typing import Optional
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel

class UserBase(SQLModel):
    name: str
    nif: str = Field(unique=True, index=True) # Tax number, used as login
    email: Optional[str] = Field(default=None)
    mobile_phone: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)

class User(UserBase, table=True):
    """A resident."""
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    hashed_password: str
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()

class UserCreate(UserBase):
    password: str

class UserRead(UserBase):
    id: int
    created_at: datetime

class UserProfileUpdate(SQLModel):
    name: Optional[str] = None
    email: Optional[str] = None
    mobile_phone: Optional[str] = None
    phone: Optional[str] = None

class ProfileChange(SQLModel, table=True):
    __tablename__ = "profile_changes"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime = timestamp_field()

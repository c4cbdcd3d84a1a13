from typing import List, Optional
from enum import Enum
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel, Column, String
from condo.models.notification import LinkResult

class AdminMessage(SQLModel, table=True):
    """A broadcast from an administrator to the residents of some condominiums."""
    __tablename__ = "admin_messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admins.id")
    title: str
    body: str
    type: str = Field(default="general")
    created_at: datetime = timestamp_field()

class AdminMessageCondominium(SQLModel, table=True):
    __tablename__ = "admin_message_condominiums"

    id: Optional[int] = Field(default=None, primary_key=True)
    message_id: int = Field(foreign_key="admin_messages.id", index=True)
    condominium_id: int = Field(foreign_key="condominiums.id", index=True)

class AdminMessageCreate(SQLModel):
    title: str
    body: str
    type: str = "general"
    # Loosely typed on purpose: list, JSON text, or comma separated ids
    condominium_ids: List[int | str] | str | int

class AdminMessageRead(SQLModel):
    id: int
    admin_id: int
    title: str
    body: str
    type: str
    created_at: datetime
    condominium_ids: List[int] = []

class AdminMessageSent(SQLModel):
    message: AdminMessageRead
    notification: LinkResult

class UserMessageType(str, Enum):
    COMPLAINT = "complaint"
    REQUEST = "request"

class UserMessage(SQLModel, table=True):
    """A complaint or request sent by a resident."""
    __tablename__ = "user_messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    condominium_id: Optional[int] = Field(default=None, foreign_key="condominiums.id")
    type: UserMessageType = Field(sa_column=Column(String, nullable=False))
    subject: str
    message: str
    status: str = Field(default="open")
    admin_response: Optional[str] = None
    admin_id: Optional[int] = Field(default=None, foreign_key="admins.id")
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()

class UserMessageCreate(SQLModel):
    user_id: int
    subject: str
    message: str
    condominium_id: Optional[int] = None

class UserMessageRead(SQLModel):
    id: int
    user_id: int
    condominium_id: Optional[int] = None
    type: UserMessageType
    subject: str
    message: str
    status: str
    created_at: datetime

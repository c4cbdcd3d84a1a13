from typing import Optional
from enum import Enum
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel, Column, String, UniqueConstraint

class NotificationType(str, Enum):
    PROFILE_CHANGE = "profile_change"
    COMPLAINT = "reclamacao"
    REQUEST = "pedido"
    OCCURRENCE = "ocorrencia"
    MAINTENANCE_COMPLETED = "maintenance_completed"
    MAINTENANCE_VERIFICATION = "maintenance"
    ADMIN_MESSAGE = "admin_message"
    ASSEMBLY = "assembleia"
    DOCUMENT = "document"
    USER_DELETED = "user_deleted"

class Notification(SQLModel, table=True):
    """
    An event shown to administrators and residents. Never updated after
    insert; read state lives on the link rows.
    """
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(sa_column=Column(String, nullable=False, index=True))
    title: str
    message: str
    related_id: Optional[int] = None # Message, occurrence, assembly or file id depending on type
    condominium_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None # Cached for display
    created_at: datetime = timestamp_field()

class AdminNotificationLink(SQLModel, table=True):
    __tablename__ = "admin_notifications"
    __table_args__ = (UniqueConstraint("admin_id", "notification_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    admin_id: int = Field(foreign_key="admins.id", index=True)
    notification_id: int = Field(foreign_key="notifications.id", index=True)
    read_status: bool = Field(default=False)
    created_at: datetime = timestamp_field()

class UserNotificationLink(SQLModel, table=True):
    __tablename__ = "user_notifications"
    __table_args__ = (UniqueConstraint("user_id", "notification_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    notification_id: int = Field(foreign_key="notifications.id", index=True)
    read_status: bool = Field(default=False)
    created_at: datetime = timestamp_field()

class NotificationRead(SQLModel):
    id: int
    type: str
    title: str
    message: str
    related_id: Optional[int] = None
    condominium_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    created_at: datetime
    read_status: bool = False

class UserNotificationRead(NotificationRead):
    condominium_name: Optional[str] = None

class UnreadCount(SQLModel):
    count: int

class LinkResult(SQLModel):
    notification_id: int
    linked_admin_count: int = 0
    linked_user_count: int = 0

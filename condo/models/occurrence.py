from typing import Optional
from enum import Enum
from datetime import datetime
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel, Column, String

class OccurrenceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification" # Maintenance reported the work as done
    COMPLETED = "completed"

class OccurrencePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class OccurrenceBase(SQLModel):
    condominium_id: int = Field(foreign_key="condominiums.id", index=True)
    title: str
    description: str
    priority: OccurrencePriority = Field(default=OccurrencePriority.MEDIUM, sa_column=Column(String, default="medium"))
    reporter_user_id: Optional[int] = Field(default=None, foreign_key="users.id")
    reporter_note: Optional[str] = None
    assigned_to_maintenance: Optional[int] = Field(default=None, foreign_key="maintenance_users.id")

class Occurrence(OccurrenceBase, table=True):
    """A maintenance ticket raised against a condominium."""
    __tablename__ = "occurrences"

    id: Optional[int] = Field(default=None, primary_key=True)
    status: OccurrenceStatus = Field(default=OccurrenceStatus.PENDING, sa_column=Column(String, default="pending"))
    created_by_admin: int = Field(foreign_key="admins.id")
    maintenance_report: Optional[str] = None
    admin_verification: Optional[str] = None
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()
    completed_at: Optional[datetime] = timestamp_field(default=None)

class OccurrenceCreate(OccurrenceBase):
    pass

class OccurrenceRead(OccurrenceBase):
    id: int
    status: OccurrenceStatus
    created_by_admin: int
    maintenance_report: Optional[str] = None
    admin_verification: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = timestamp_field(default=None)

class MaintenanceUpdate(SQLModel):
    status: OccurrenceStatus
    maintenance_report: Optional[str] = None

class OccurrenceVerify(SQLModel):
    approved: bool
    admin_verification: Optional[str] = None

class OccurrenceComplete(SQLModel):
    admin_response: Optional[str] = None
    # "pending" sends the work back to maintenance
    status: Optional[OccurrenceStatus] = None

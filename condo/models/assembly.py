from typing import List, Optional
from datetime import datetime, date
from condo.models.base import timestamp_field
from sqlmodel import Field, SQLModel

class AssemblyBase(SQLModel):
    condominium_id: int = Field(foreign_key="condominiums.id", index=True)
    title: str
    description: Optional[str] = None
    meeting_date: date
    meeting_time: str # "HH:MM"
    location: Optional[str] = None

class Assembly(AssemblyBase, table=True):
    """A scheduled condominium meeting."""
    __tablename__ = "assemblies"

    id: Optional[int] = Field(default=None, primary_key=True)
    status: str = Field(default="scheduled")
    admin_notes: Optional[str] = None
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()

class AssemblyCreate(AssemblyBase):
    pass

class AssemblyRead(AssemblyBase):
    id: int
    status: str
    admin_notes: Optional[str] = None
    created_at: datetime

class AssemblyFile(SQLModel, table=True):
    __tablename__ = "assembly_files"

    id: Optional[int] = Field(default=None, primary_key=True)
    assembly_id: int = Field(foreign_key="assemblies.id", index=True)
    filename: str
    original_filename: str
    file_path: str # Storage key, not a URL
    mime_type: str
    file_size: int
    uploaded_at: datetime = timestamp_field()

class AssemblyFileRead(SQLModel):
    id: int
    assembly_id: int
    original_filename: str
    mime_type: str
    file_size: int
    uploaded_at: datetime

class ResidentAssemblyRead(AssemblyRead):
    condominium_name: Optional[str] = None
    files: List[AssemblyFileRead] = []

class ResidentDocumentRead(AssemblyFileRead):
    """A document as a resident sees it, with its assembly and a download link."""
    assembly_title: str
    meeting_date: date
    meeting_time: str
    location: Optional[str] = None
    condominium_id: int
    condominium_name: Optional[str] = None
    url: Optional[str] = None

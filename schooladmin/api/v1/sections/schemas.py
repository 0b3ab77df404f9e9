from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SectionCreate(BaseModel):
    class_id: UUID = Field(..., description="Class this section belongs to")
    name: str = Field(..., min_length=1, max_length=50)
    assigned_teacher_id: Optional[UUID] = None
    order: Optional[int] = None


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    assigned_teacher_id: Optional[UUID] = None
    order: Optional[int] = None


class SectionResponse(BaseModel):
    id: UUID
    class_id: UUID
    name: str
    assigned_teacher_id: Optional[UUID] = None
    order: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

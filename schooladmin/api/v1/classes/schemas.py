from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    order: Optional[int] = Field(None, description="Position in the class ladder; drives next-class promotion")


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    order: Optional[int] = None


class ClassResponse(BaseModel):
    id: UUID
    name: str
    order: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

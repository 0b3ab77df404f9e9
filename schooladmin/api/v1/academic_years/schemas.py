from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. name must be unique; defaults to "<start year>-<end year>"."""

    name: Optional[str] = Field(None, min_length=1, max_length=50, description="e.g. 2025-2026")
    start_date: date = Field(..., description="Academic year start date")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    order: Optional[int] = Field(None, ge=1, description="Sequence number; next year must be order + 1")
    is_active: bool = True
    set_as_current: bool = Field(
        False,
        description="Set this year as current? If true, all other years become non-current.",
    )


class AcademicYearUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    order: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class AcademicYearResponse(BaseModel):
    id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool
    is_current: bool
    order: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

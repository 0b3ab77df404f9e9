from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class StudentCreate(BaseModel):
    """Admit a student. class_id, section_id and academic_year_id go together: all or none."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    class_id: Optional[UUID] = None
    section_id: Optional[UUID] = None
    academic_year_id: Optional[UUID] = None


class StudentUpdate(BaseModel):
    """Profile fields only. Placement changes go through promotion or re-admission."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)


class StudentResponse(BaseModel):
    id: UUID
    unique_id: str
    name: str
    email: str
    class_id: Optional[UUID] = None
    section_id: Optional[UUID] = None
    academic_year_id: Optional[UUID] = None
    roll_number: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnrollmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    academic_year_id: UUID
    class_id: UUID
    section_id: UUID
    roll_number: str
    created_at: datetime

    class Config:
        from_attributes = True


class StudentPromote(BaseModel):
    """Promote one student into the next academic year. Roll number is carried forward."""

    class_id: UUID = Field(..., description="Class for the promoted year")
    section_id: UUID = Field(..., description="Section for the promoted year")
    academic_year_id: UUID = Field(..., description="Academic year to promote to (must follow the current year)")


class StudentBulkPromote(BaseModel):
    """Promote every student of a class (optionally one section, optionally listed ids) into the next year."""

    from_class_id: UUID
    from_section_id: Optional[UUID] = None
    from_academic_year_id: Optional[UUID] = Field(
        None,
        description="Defaults to the X-Academic-Year-Id header; must be the current year",
    )
    to_academic_year_id: UUID
    target_class_id: Optional[UUID] = Field(None, description="Defaults to the next class by order")
    target_section_id: Optional[UUID] = Field(
        None,
        description="Defaults to the target-class section with the same name as each student's section",
    )
    student_ids: Optional[List[UUID]] = Field(None, description="Only promote these students")


class StudentBulkPromoteResult(BaseModel):
    selected: int
    matched: int
    modified: int
    skipped: List[UUID] = Field(
        default_factory=list,
        description="Students left untouched because they already have an enrollment in the target year",
    )
    to_academic_year_id: UUID
    target_class_id: Optional[UUID] = None
    target_section_id: Optional[UUID] = None


class StudentReAdmit(BaseModel):
    """Enroll a student into any academic year with a fresh roll number."""

    class_id: UUID
    section_id: UUID
    academic_year_id: UUID


class StudentBulkReAdmit(BaseModel):
    student_ids: List[UUID]
    class_id: UUID
    section_id: UUID
    academic_year_id: UUID


class ReAdmitFailure(BaseModel):
    student_id: UUID
    name: Optional[str] = None
    error: str


class StudentBulkReAdmitResult(BaseModel):
    total: int
    successful: int
    failed: int
    errors: List[ReAdmitFailure] = Field(default_factory=list)

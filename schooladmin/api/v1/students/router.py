from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.rbac import require_roles
from schooladmin.auth.schemas import ROLE_ADMIN, ROLE_TEACHER, CurrentUser
from schooladmin.core.exceptions import ServiceError
from schooladmin.db.session import get_db

from . import promotion, service
from .schemas import (
    EnrollmentResponse,
    StudentBulkPromote,
    StudentBulkPromoteResult,
    StudentBulkReAdmit,
    StudentBulkReAdmitResult,
    StudentCreate,
    StudentPromote,
    StudentReAdmit,
    StudentResponse,
    StudentUpdate,
)

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentResponse:
    """Admit a student. Optional class/section/year places them and generates a roll number. Admin only."""
    try:
        return await service.create_student(db, payload, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def list_students(
    academic_year_id: Optional[UUID] = Query(None, description="List by enrollments of this year"),
    class_id: Optional[UUID] = Query(None),
    section_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(
        db, academic_year_id=academic_year_id, class_id=class_id, section_id=section_id
    )


@router.get(
    "/search",
    response_model=List[StudentResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def search_students(
    q: str = Query("", description="Matches name, email, roll number or unique id"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.search_students(db, q, limit=limit)


@router.post(
    "/promote-bulk",
    response_model=StudentBulkPromoteResult,
)
async def promote_students_bulk(
    payload: StudentBulkPromote,
    x_academic_year_id: Optional[UUID] = Header(None, alias="X-Academic-Year-Id"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentBulkPromoteResult:
    """
    Promote a class from the current academic year into the next one. Without
    target_class_id the next class by order is used; without target_section_id
    each student goes to the section of the same name in the target class.
    """
    try:
        return await promotion.promote_bulk(
            db,
            from_class_id=payload.from_class_id,
            from_academic_year_id=payload.from_academic_year_id or x_academic_year_id,
            to_academic_year_id=payload.to_academic_year_id,
            from_section_id=payload.from_section_id,
            target_class_id=payload.target_class_id,
            target_section_id=payload.target_section_id,
            student_ids=payload.student_ids,
            actor=current_user,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/promote/{student_id}",
    response_model=StudentResponse,
)
async def promote_student(
    student_id: UUID,
    payload: StudentPromote,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentResponse:
    """Promote one student into the next academic year. Roll number is kept."""
    try:
        student = await promotion.promote_one(
            db,
            student_id,
            payload.class_id,
            payload.section_id,
            payload.academic_year_id,
            actor=current_user,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return StudentResponse.model_validate(student)


@router.post(
    "/re-admit-bulk",
    response_model=StudentBulkReAdmitResult,
)
async def re_admit_students_bulk(
    payload: StudentBulkReAdmit,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentBulkReAdmitResult:
    """Re-admit several students. Per-student failures are reported, not raised."""
    try:
        return await promotion.re_admit_bulk(
            db,
            payload.student_ids,
            payload.class_id,
            payload.section_id,
            payload.academic_year_id,
            actor=current_user,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_student(
    student_id: UUID,
    academic_year_id: Optional[UUID] = Query(None, description="Placement for this year instead of the current one"),
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.get_student(db, student_id, academic_year_id=academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student_id}",
    response_model=StudentResponse,
)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentResponse:
    """Update profile fields. Placement is changed only by promotion or re-admission. Admin only."""
    try:
        return await service.update_student(db, student_id, payload, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/enrollments",
    response_model=List[EnrollmentResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_enrollment_history(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[EnrollmentResponse]:
    try:
        return await service.get_enrollment_history(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/re-admit",
    response_model=StudentResponse,
)
async def re_admit_student(
    student_id: UUID,
    payload: StudentReAdmit,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> StudentResponse:
    """Enroll the student into any academic year they are not enrolled in. A new roll number is generated."""
    try:
        student = await promotion.re_admit_one(
            db,
            student_id,
            payload.class_id,
            payload.section_id,
            payload.academic_year_id,
            actor=current_user,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return StudentResponse.model_validate(student)

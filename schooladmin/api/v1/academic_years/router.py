from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.rbac import require_roles
from schooladmin.auth.schemas import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, CurrentUser
from schooladmin.core.exceptions import ServiceError
from schooladmin.db.session import get_db

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate
from . import service

router = APIRouter(prefix="/api/v1/academic-years", tags=["academic-years"])


@router.post(
    "",
    response_model=AcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_academic_year(
    payload: AcademicYearCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    """Create academic year. Same name twice returns the existing year. Admin only."""
    try:
        return await service.create_academic_year(db, payload, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[AcademicYearResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def list_academic_years(
    include_inactive: bool = Query(True, description="Include soft-deleted (inactive) years"),
    db: AsyncSession = Depends(get_db),
) -> List[AcademicYearResponse]:
    return await service.list_academic_years(db, include_inactive=include_inactive)


@router.get(
    "/current",
    response_model=Optional[AcademicYearResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER, ROLE_STUDENT))],
)
async def get_current_academic_year(
    db: AsyncSession = Depends(get_db),
) -> Optional[AcademicYearResponse]:
    """Year flagged current; falls back to the most recently started active year."""
    ay = await service.get_current_academic_year(db)
    return AcademicYearResponse.model_validate(ay) if ay else None


@router.get(
    "/{academic_year_id}",
    response_model=AcademicYearResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_academic_year(
    academic_year_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AcademicYearResponse:
    try:
        ay = await service.get_academic_year_or_404(db, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    response.headers["ETag"] = service.etag_for(ay)
    return AcademicYearResponse.model_validate(ay)


@router.put(
    "/{academic_year_id}",
    response_model=AcademicYearResponse,
)
async def update_academic_year(
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    response: Response,
    if_match: Optional[str] = Header(None, alias="If-Match"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    """Update academic year. Send If-Match with the ETag from GET to guard against lost updates."""
    try:
        updated = await service.update_academic_year(
            db, academic_year_id, payload, if_match=if_match, actor=current_user
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    ay = await service.get_academic_year_by_id(db, academic_year_id)
    response.headers["ETag"] = service.etag_for(ay)
    return updated


@router.delete(
    "/{academic_year_id}",
    response_model=AcademicYearResponse,
)
async def delete_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    """Soft delete (is_active=false). The current year cannot be deleted."""
    try:
        return await service.delete_academic_year(db, academic_year_id, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{academic_year_id}/set-current",
    response_model=AcademicYearResponse,
)
async def set_academic_year_current(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    """Set this academic year as current. All others become non-current. Admin only."""
    try:
        return await service.set_academic_year_current(db, academic_year_id, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{academic_year_id}/activate",
    response_model=AcademicYearResponse,
)
async def activate_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    try:
        return await service.set_academic_year_active(db, academic_year_id, True, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{academic_year_id}/deactivate",
    response_model=AcademicYearResponse,
)
async def deactivate_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(ROLE_ADMIN)),
) -> AcademicYearResponse:
    try:
        return await service.set_academic_year_active(db, academic_year_id, False, actor=current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

import logging
from datetime import date
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.audit.service import log_audit
from schooladmin.auth.schemas import CurrentUser
from schooladmin.core.exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from schooladmin.core.models import AcademicYear
from schooladmin.db.unit_of_work import UnitOfWork

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate

logger = logging.getLogger(__name__)

ENTITY = "AcademicYear"


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse.model_validate(ay)


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date")


def default_year_name(start_date: date, end_date: date) -> str:
    return f"{start_date.year}-{end_date.year}"


def etag_for(ay: AcademicYear) -> str:
    """Version tag for optimistic concurrency on update (If-Match)."""
    return str(int(ay.updated_at.timestamp() * 1000))


def resolve_current_year(years: Sequence[AcademicYear]) -> Optional[AcademicYear]:
    """
    Current year over a snapshot of all years: the row flagged is_current,
    otherwise the active row with the latest start_date. None when neither exists.
    """
    for ay in years:
        if ay.is_current:
            return ay
    active = [ay for ay in years if ay.is_active]
    if not active:
        return None
    return max(active, key=lambda ay: ay.start_date)


async def _has_overlap(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    exclude_id: Optional[UUID] = None,
) -> bool:
    stmt = select(AcademicYear.id).where(
        AcademicYear.start_date <= end_date,
        AcademicYear.end_date >= start_date,
    )
    if exclude_id is not None:
        stmt = stmt.where(AcademicYear.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def get_academic_year_by_id(db: AsyncSession, academic_year_id: UUID) -> Optional[AcademicYear]:
    return await db.get(AcademicYear, academic_year_id)


async def get_academic_year_or_404(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    ay = await get_academic_year_by_id(db, academic_year_id)
    if not ay:
        raise NotFoundError("Academic year not found")
    return ay


async def create_academic_year(
    db: AsyncSession,
    payload: AcademicYearCreate,
    actor: Optional[CurrentUser] = None,
) -> AcademicYearResponse:
    """Create academic year. Idempotent by name: an existing year with the same name is returned as is."""
    _validate_dates(payload.start_date, payload.end_date)
    name = (payload.name or "").strip() or default_year_name(payload.start_date, payload.end_date)

    existing = await db.execute(select(AcademicYear).where(AcademicYear.name == name))
    found = existing.scalar_one_or_none()
    if found:
        return _to_response(found)

    if await _has_overlap(db, payload.start_date, payload.end_date):
        raise ConflictError("Date range overlaps")

    async with UnitOfWork(db, conflict_message="Academic year name, order or current flag already in use") as uow:
        if payload.set_as_current:
            await db.execute(
                update(AcademicYear).where(AcademicYear.is_current.is_(True)).values(is_current=False)
            )
        ay = AcademicYear(
            name=name,
            start_date=payload.start_date,
            end_date=payload.end_date,
            order=payload.order,
            is_active=payload.is_active or payload.set_as_current,
            is_current=payload.set_as_current,
        )
        uow.add(ay)
        await uow.flush()
        await log_audit(db, ENTITY, ay.id, "create", actor=actor, remarks=name)
    await db.refresh(ay)
    return _to_response(ay)


async def list_academic_years(
    db: AsyncSession,
    include_inactive: bool = True,
) -> List[AcademicYearResponse]:
    """All academic years, newest start date first."""
    stmt = select(AcademicYear)
    if not include_inactive:
        stmt = stmt.where(AcademicYear.is_active.is_(True))
    stmt = stmt.order_by(AcademicYear.start_date.desc())
    result = await db.execute(stmt)
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_current_academic_year(db: AsyncSession) -> Optional[AcademicYear]:
    result = await db.execute(select(AcademicYear))
    return resolve_current_year(result.scalars().all())


async def set_academic_year_current(
    db: AsyncSession,
    academic_year_id: UUID,
    actor: Optional[CurrentUser] = None,
) -> AcademicYearResponse:
    """Unset current on every year, then set it on this one, as one unit of work."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    if not ay.is_active:
        raise ValidationError("Cannot set current on an inactive year")
    async with UnitOfWork(db, conflict_message="Another request set current year. Refresh and try again."):
        await db.execute(
            update(AcademicYear)
            .where(AcademicYear.is_current.is_(True), AcademicYear.id != academic_year_id)
            .values(is_current=False)
        )
        ay.is_current = True
        await log_audit(db, ENTITY, ay.id, "set-current", actor=actor)
    await db.refresh(ay)
    logger.info("Academic year %s (%s) is now current", ay.name, ay.id)
    return _to_response(ay)


async def set_academic_year_active(
    db: AsyncSession,
    academic_year_id: UUID,
    active: bool,
    actor: Optional[CurrentUser] = None,
) -> AcademicYearResponse:
    ay = await get_academic_year_or_404(db, academic_year_id)
    if not active and ay.is_current:
        raise ValidationError("Cannot deactivate the current year")
    async with UnitOfWork(db):
        ay.is_active = active
        await log_audit(db, ENTITY, ay.id, "activate" if active else "deactivate", actor=actor)
    await db.refresh(ay)
    return _to_response(ay)


async def update_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    payload: AcademicYearUpdate,
    if_match: Optional[str] = None,
    actor: Optional[CurrentUser] = None,
) -> AcademicYearResponse:
    """Update academic year. When if_match is given it must equal the current ETag."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    if if_match and if_match.strip('"') != etag_for(ay):
        raise PreconditionFailedError("ETag mismatch")

    start_date = payload.start_date or ay.start_date
    end_date = payload.end_date or ay.end_date
    _validate_dates(start_date, end_date)
    if await _has_overlap(db, start_date, end_date, exclude_id=academic_year_id):
        raise ConflictError("Date range overlaps")
    if payload.is_active is False and ay.is_current:
        raise ValidationError("Cannot deactivate the current year")

    async with UnitOfWork(db, conflict_message=f"Academic year with name '{payload.name}' or order already exists"):
        ay.start_date = start_date
        ay.end_date = end_date
        if payload.name is not None:
            ay.name = payload.name.strip()
        if payload.order is not None:
            ay.order = payload.order
        if payload.is_active is not None:
            ay.is_active = payload.is_active
        await log_audit(db, ENTITY, ay.id, "update", actor=actor)
    await db.refresh(ay)
    return _to_response(ay)


async def delete_academic_year(
    db: AsyncSession,
    academic_year_id: UUID,
    actor: Optional[CurrentUser] = None,
) -> AcademicYearResponse:
    """Soft delete (is_active=false). The current year cannot be deleted."""
    ay = await get_academic_year_or_404(db, academic_year_id)
    if ay.is_current:
        raise ValidationError("Cannot delete the current year")
    async with UnitOfWork(db):
        ay.is_active = False
        await log_audit(db, ENTITY, ay.id, "delete", actor=actor)
    await db.refresh(ay)
    return _to_response(ay)

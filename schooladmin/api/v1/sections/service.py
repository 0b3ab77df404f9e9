from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.classes import service as class_service
from schooladmin.core.exceptions import NotFoundError, ValidationError
from schooladmin.core.models import Enrollment, Section, Student
from schooladmin.db.unit_of_work import UnitOfWork

from .schemas import SectionCreate, SectionResponse, SectionUpdate


def _section_to_response(s: Section) -> SectionResponse:
    return SectionResponse.model_validate(s)


async def create_section(db: AsyncSession, payload: SectionCreate) -> SectionResponse:
    await class_service.get_class_or_404(db, payload.class_id)
    async with UnitOfWork(db, conflict_message="Section already exists in this class") as uow:
        obj = Section(
            class_id=payload.class_id,
            name=class_service.normalize_name(payload.name),
            assigned_teacher_id=payload.assigned_teacher_id,
            order=payload.order,
        )
        uow.add(obj)
    await db.refresh(obj)
    return _section_to_response(obj)


async def list_sections(db: AsyncSession, class_id: Optional[UUID] = None) -> List[SectionResponse]:
    stmt = select(Section)
    if class_id is not None:
        stmt = stmt.where(Section.class_id == class_id)
    stmt = stmt.order_by(Section.order.nullslast(), Section.name)
    result = await db.execute(stmt)
    return [_section_to_response(s) for s in result.scalars().all()]


async def find_by_id(db: AsyncSession, section_id: UUID) -> Optional[Section]:
    return await db.get(Section, section_id)


async def get_section_or_404(db: AsyncSession, section_id: UUID) -> Section:
    obj = await find_by_id(db, section_id)
    if not obj:
        raise NotFoundError("Section not found")
    return obj


async def find_by_class(db: AsyncSession, class_id: UUID) -> List[Section]:
    result = await db.execute(
        select(Section).where(Section.class_id == class_id).order_by(Section.order.nullslast(), Section.name)
    )
    return list(result.scalars().all())


async def update_section(db: AsyncSession, section_id: UUID, payload: SectionUpdate) -> SectionResponse:
    obj = await get_section_or_404(db, section_id)
    async with UnitOfWork(db, conflict_message="Section already exists in this class"):
        if payload.name is not None:
            obj.name = class_service.normalize_name(payload.name)
        if payload.assigned_teacher_id is not None:
            obj.assigned_teacher_id = payload.assigned_teacher_id
        if payload.order is not None:
            obj.order = payload.order
    await db.refresh(obj)
    return _section_to_response(obj)


async def delete_section(db: AsyncSession, section_id: UUID) -> None:
    obj = await get_section_or_404(db, section_id)
    for model, label in ((Student, "students"), (Enrollment, "enrollments")):
        used = await db.execute(select(model.id).where(model.section_id == section_id).limit(1))
        if used.scalar_one_or_none() is not None:
            raise ValidationError(f"Cannot delete section: it is used by {label}")
    async with UnitOfWork(db):
        await db.delete(obj)

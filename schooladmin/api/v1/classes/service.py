from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.core.exceptions import ConflictError, NotFoundError, ValidationError
from schooladmin.core.models import Enrollment, SchoolClass, Section, Student
from schooladmin.db.unit_of_work import UnitOfWork

from .schemas import ClassCreate, ClassResponse, ClassUpdate


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse.model_validate(c)


async def _assert_unique(
    db: AsyncSession,
    name: Optional[str],
    order: Optional[int],
    exclude_id: Optional[UUID] = None,
) -> None:
    if name is not None:
        stmt = select(SchoolClass.id).where(SchoolClass.name == name)
        if exclude_id is not None:
            stmt = stmt.where(SchoolClass.id != exclude_id)
        if (await db.execute(stmt)).scalar_one_or_none() is not None:
            raise ConflictError("Class already exists")
    if order is not None:
        stmt = select(SchoolClass.id).where(SchoolClass.order == order)
        if exclude_id is not None:
            stmt = stmt.where(SchoolClass.id != exclude_id)
        if (await db.execute(stmt)).scalar_one_or_none() is not None:
            raise ConflictError("Class order already exists. Please choose a different order.")


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    name = normalize_name(payload.name)
    await _assert_unique(db, name, payload.order)
    async with UnitOfWork(db, conflict_message="Class name or order already exists") as uow:
        obj = SchoolClass(name=name, order=payload.order)
        uow.add(obj)
    await db.refresh(obj)
    return _class_to_response(obj)


async def list_classes(db: AsyncSession) -> List[ClassResponse]:
    """Ordered by order (unordered classes last), then name."""
    stmt = select(SchoolClass).order_by(SchoolClass.order.nullslast(), SchoolClass.name)
    result = await db.execute(stmt)
    return [_class_to_response(c) for c in result.scalars().all()]


async def get_by_id(db: AsyncSession, class_id: UUID) -> Optional[SchoolClass]:
    return await db.get(SchoolClass, class_id)


async def get_class_or_404(db: AsyncSession, class_id: UUID) -> SchoolClass:
    obj = await get_by_id(db, class_id)
    if not obj:
        raise NotFoundError("Class not found")
    return obj


async def update_class(db: AsyncSession, class_id: UUID, payload: ClassUpdate) -> ClassResponse:
    obj = await get_class_or_404(db, class_id)
    name = normalize_name(payload.name) if payload.name is not None else None
    await _assert_unique(db, name, payload.order, exclude_id=class_id)
    async with UnitOfWork(db, conflict_message="Class name or order already exists"):
        if name is not None:
            obj.name = name
        if payload.order is not None:
            obj.order = payload.order
    await db.refresh(obj)
    return _class_to_response(obj)


async def delete_class(db: AsyncSession, class_id: UUID) -> None:
    obj = await get_class_or_404(db, class_id)
    for model, label in ((Section, "sections"), (Student, "students"), (Enrollment, "enrollments")):
        used = await db.execute(select(model.id).where(model.class_id == class_id).limit(1))
        if used.scalar_one_or_none() is not None:
            raise ValidationError(f"Cannot delete class: it is used by {label}")
    async with UnitOfWork(db):
        await db.delete(obj)


async def find_next_by_order(db: AsyncSession, class_id: UUID) -> Optional[SchoolClass]:
    """Class with the smallest order strictly greater than this class's order. None if unordered or last."""
    current = await get_by_id(db, class_id)
    if not current or current.order is None:
        return None
    result = await db.execute(
        select(SchoolClass)
        .where(SchoolClass.order > current.order)
        .order_by(SchoolClass.order.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()

"""Enrollment ledger: one row per (student, academic year). Rows are only ever added."""
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.core.models import AcademicYear, Enrollment, Student
from schooladmin.db.unit_of_work import UnitOfWork


async def add_enrollment(
    uow: UnitOfWork,
    *,
    student_id: UUID,
    academic_year_id: UUID,
    class_id: UUID,
    section_id: UUID,
    roll_number: str,
) -> Enrollment:
    """Append a ledger row inside the caller's unit of work. Flushed so unique violations surface here."""
    enrollment = Enrollment(
        student_id=student_id,
        academic_year_id=academic_year_id,
        class_id=class_id,
        section_id=section_id,
        roll_number=roll_number,
    )
    uow.add(enrollment)
    await uow.flush()
    return enrollment


def apply_placement(student: Student, enrollment: Enrollment) -> None:
    """Copy the ledger row's placement onto the student snapshot."""
    student.class_id = enrollment.class_id
    student.section_id = enrollment.section_id
    student.academic_year_id = enrollment.academic_year_id
    student.roll_number = enrollment.roll_number


async def get_enrollment(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: UUID,
) -> Optional[Enrollment]:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.academic_year_id == academic_year_id,
        )
    )
    return result.scalar_one_or_none()


async def enrolled_student_ids(
    db: AsyncSession,
    academic_year_id: UUID,
    student_ids: Iterable[UUID],
) -> Set[UUID]:
    """Subset of student_ids that already hold a ledger row for the year."""
    ids = list(student_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(Enrollment.student_id).where(
            Enrollment.academic_year_id == academic_year_id,
            Enrollment.student_id.in_(ids),
        )
    )
    return set(result.scalars().all())


async def list_enrollment_history(db: AsyncSession, student_id: UUID) -> List[Enrollment]:
    """All ledger rows for a student, oldest academic year first."""
    result = await db.execute(
        select(Enrollment)
        .join(AcademicYear, Enrollment.academic_year_id == AcademicYear.id)
        .where(Enrollment.student_id == student_id)
        .order_by(AcademicYear.start_date.asc())
    )
    return list(result.scalars().all())

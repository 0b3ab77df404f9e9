import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.academic_years import service as academic_year_service
from schooladmin.api.v1.audit.service import log_audit
from schooladmin.api.v1.classes import service as class_service
from schooladmin.api.v1.sections import service as section_service
from schooladmin.auth.schemas import CurrentUser
from schooladmin.auth.security import hash_password
from schooladmin.core.exceptions import ConflictError, NotFoundError, ValidationError
from schooladmin.core.models import Enrollment, Student
from schooladmin.db.unit_of_work import UnitOfWork

from . import enrollments, rolls
from .schemas import EnrollmentResponse, StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)

ROLL_UNASSIGNED = "TBD"


async def get_student_or_404(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    return student


async def generate_student_unique_id(db: AsyncSession) -> str:
    """Next id of the form STU-<year>-NNNN for the current calendar year."""
    prefix = f"STU-{datetime.now(timezone.utc).year}-"
    result = await db.execute(
        select(Student.unique_id)
        .where(Student.unique_id.startswith(prefix, autoescape=True))
        .order_by(Student.unique_id.desc())
        .limit(1)
    )
    return rolls.next_in_sequence(prefix, result.scalar_one_or_none(), width=4)


async def create_student(
    db: AsyncSession,
    payload: StudentCreate,
    actor: Optional[CurrentUser] = None,
) -> StudentResponse:
    """
    Admit a student. With a class, section and academic year the student is
    placed right away: a roll number is generated and the first ledger row is
    written together with the snapshot. Without them the roll stays TBD.
    """
    email = payload.email.strip().lower()
    placement = (payload.class_id, payload.section_id, payload.academic_year_id)
    placed = all(v is not None for v in placement)
    if any(v is not None for v in placement) and not placed:
        raise ValidationError("class_id, section_id and academic_year_id must be given together")

    existing = await db.execute(select(Student.id).where(Student.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("A student with this email already exists")

    class_name = section_name = None
    if placed:
        await academic_year_service.get_academic_year_or_404(db, payload.academic_year_id)
        school_class = await class_service.get_class_or_404(db, payload.class_id)
        section = await section_service.get_section_or_404(db, payload.section_id)
        if section.class_id != school_class.id:
            raise ValidationError("Section does not belong to the selected class")
        class_name, section_name = school_class.name, section.name

    async with UnitOfWork(db, conflict_message="Student email, id or roll number already exists") as uow:
        student = Student(
            unique_id=await generate_student_unique_id(db),
            name=payload.name.strip(),
            email=email,
            password_hash=hash_password(payload.password),
            roll_number=ROLL_UNASSIGNED,
        )
        uow.add(student)
        await uow.flush()
        if placed:
            roll_number = await rolls.generate_roll_number(
                uow, class_name, section_name, payload.academic_year_id
            )
            enrollment = await enrollments.add_enrollment(
                uow,
                student_id=student.id,
                academic_year_id=payload.academic_year_id,
                class_id=payload.class_id,
                section_id=payload.section_id,
                roll_number=roll_number,
            )
            enrollments.apply_placement(student, enrollment)
        await log_audit(db, "Student", student.id, "create", actor=actor, remarks=student.unique_id)
    await db.refresh(student)
    logger.info("Admitted student %s (%s)", student.unique_id, student.id)
    return StudentResponse.model_validate(student)


async def get_student(
    db: AsyncSession,
    student_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> StudentResponse:
    """Current snapshot, or the placement recorded for academic_year_id."""
    student = await get_student_or_404(db, student_id)
    response = StudentResponse.model_validate(student)
    if academic_year_id is None:
        return response
    enrollment = await enrollments.get_enrollment(db, student_id, academic_year_id)
    if not enrollment:
        raise NotFoundError("Student has no enrollment for this academic year")
    return response.model_copy(
        update={
            "class_id": enrollment.class_id,
            "section_id": enrollment.section_id,
            "academic_year_id": enrollment.academic_year_id,
            "roll_number": enrollment.roll_number,
        }
    )


async def list_students(
    db: AsyncSession,
    academic_year_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    section_id: Optional[UUID] = None,
) -> List[StudentResponse]:
    """
    With academic_year_id, students enrolled in that year with the placement
    recorded for it. Otherwise students by their current snapshot.
    """
    if academic_year_id is None:
        stmt = select(Student)
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        if section_id is not None:
            stmt = stmt.where(Student.section_id == section_id)
        result = await db.execute(stmt.order_by(Student.name))
        return [StudentResponse.model_validate(s) for s in result.scalars().all()]

    stmt = (
        select(Student, Enrollment)
        .join(Enrollment, Enrollment.student_id == Student.id)
        .where(Enrollment.academic_year_id == academic_year_id)
    )
    if class_id is not None:
        stmt = stmt.where(Enrollment.class_id == class_id)
    if section_id is not None:
        stmt = stmt.where(Enrollment.section_id == section_id)
    result = await db.execute(stmt.order_by(Enrollment.roll_number))
    out = []
    for student, enrollment in result.all():
        out.append(
            StudentResponse.model_validate(student).model_copy(
                update={
                    "class_id": enrollment.class_id,
                    "section_id": enrollment.section_id,
                    "academic_year_id": enrollment.academic_year_id,
                    "roll_number": enrollment.roll_number,
                }
            )
        )
    return out


async def get_enrollment_history(db: AsyncSession, student_id: UUID) -> List[EnrollmentResponse]:
    await get_student_or_404(db, student_id)
    rows = await enrollments.list_enrollment_history(db, student_id)
    return [EnrollmentResponse.model_validate(e) for e in rows]


async def update_student(
    db: AsyncSession,
    student_id: UUID,
    payload: StudentUpdate,
    actor: Optional[CurrentUser] = None,
) -> StudentResponse:
    """Update name, email or password. Class, section, year and roll number are not editable here."""
    student = await get_student_or_404(db, student_id)
    email = payload.email.strip().lower() if payload.email is not None else None
    if email is not None:
        taken = await db.execute(select(Student.id).where(Student.email == email, Student.id != student_id))
        if taken.scalar_one_or_none() is not None:
            raise ConflictError("Email already exists")

    async with UnitOfWork(db, conflict_message="Email already exists"):
        if payload.name is not None:
            student.name = payload.name.strip()
        if email is not None:
            student.email = email
        if payload.password is not None:
            student.password_hash = hash_password(payload.password)
        await log_audit(db, "Student", student_id, "update", actor=actor)
    await db.refresh(student)
    return StudentResponse.model_validate(student)


async def search_students(db: AsyncSession, query: str, limit: int = 50) -> List[StudentResponse]:
    """Case-insensitive substring match on name, email, roll number or unique id. Blank query gives []."""
    term = (query or "").strip()
    if not term:
        return []
    stmt = (
        select(Student)
        .where(
            or_(
                Student.name.icontains(term, autoescape=True),
                Student.email.icontains(term, autoescape=True),
                Student.roll_number.icontains(term, autoescape=True),
                Student.unique_id.icontains(term, autoescape=True),
            )
        )
        .order_by(Student.name)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [StudentResponse.model_validate(s) for s in result.scalars().all()]

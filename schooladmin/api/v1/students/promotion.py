"""
Promotion and re-admission of students between academic years.

Promotion moves students from the current academic year into the year that
immediately follows it and keeps their roll numbers. Re-admission enrolls a
student into any year that they are not yet enrolled in, with a fresh roll
number. Every path validates before writing and writes the ledger row and the
student snapshot in one unit of work.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.api.v1.academic_years import service as academic_year_service
from schooladmin.api.v1.audit.service import log_audit
from schooladmin.api.v1.classes import service as class_service
from schooladmin.api.v1.sections import service as section_service
from schooladmin.auth.schemas import CurrentUser
from schooladmin.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from schooladmin.core.models import AcademicYear, SchoolClass, Section, Student
from schooladmin.db.unit_of_work import UnitOfWork

from . import enrollments, rolls
from .schemas import ReAdmitFailure, StudentBulkPromoteResult, StudentBulkReAdmitResult
from .service import get_student_or_404

logger = logging.getLogger(__name__)

ALREADY_ENROLLED = "Student already has an enrollment for this academic year"
DUPLICATE_ENROLLMENT = "Enrollment conflicts with an existing one for this academic year (student or roll number)"
NOT_NEXT_YEAR = "Target academic year must be the immediate next year."

_YEAR_NAME = re.compile(r"^(\d{4})\s*-\s*(\d{4})$")


# ----- Eligibility & sequence -----


def parse_year_name(name: Optional[str]) -> Optional[Tuple[int, int]]:
    match = _YEAR_NAME.match((name or "").strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def check_year_sequence(source: AcademicYear, target: AcademicYear) -> str:
    """
    Verify target is the year right after source. Evidence, in order of preference:
    order numbers, then "YYYY-YYYY" names, then dates (target starts after source ends).
    Returns which evidence was used: "order", "name" or "dates".
    """
    if source.id == target.id:
        raise ValidationError("Target academic year must be the next one (cannot use the same year).")

    if source.order is not None and target.order is not None:
        if target.order != source.order + 1:
            raise ValidationError(NOT_NEXT_YEAR)
        return "order"

    parsed_source = parse_year_name(source.name)
    parsed_target = parse_year_name(target.name)
    if parsed_source and parsed_target:
        if parsed_target[0] == parsed_source[0] + 1 and parsed_target[1] == parsed_source[1] + 1:
            return "name"
        raise ValidationError(NOT_NEXT_YEAR)

    if source.end_date and target.start_date:
        if target.start_date > source.end_date:
            # Only ordering is known here, not adjacency.
            logger.warning(
                "Year sequence %s -> %s accepted on dates only; adjacency not verified",
                source.name,
                target.name,
            )
            return "dates"

    raise ValidationError("Cannot verify academic year sequence; ensure the target is the next year.")


async def assert_is_current_year(db: AsyncSession, academic_year_id: UUID) -> AcademicYear:
    current = await academic_year_service.get_current_academic_year(db)
    if current is None:
        raise ValidationError("No current or active academic year is set. Please set a current year first.")
    if current.id != academic_year_id:
        raise ValidationError(
            "Promotion is only allowed from the current academic year. Please select the current academic year."
        )
    return current


async def assert_next_academic_year(db: AsyncSession, source_id: UUID, target_id: UUID) -> str:
    if source_id == target_id:
        raise ValidationError("Target academic year must be the next one (cannot use the same year).")
    source = await academic_year_service.get_academic_year_or_404(db, source_id)
    target = await academic_year_service.get_academic_year_or_404(db, target_id)
    return check_year_sequence(source, target)


# ----- Placement -----


async def resolve_target_class(
    db: AsyncSession,
    source_class_id: UUID,
    target_class_id: Optional[UUID] = None,
) -> SchoolClass:
    """Explicit target class, or the next class by order after the source class."""
    if target_class_id is not None:
        return await class_service.get_class_or_404(db, target_class_id)
    source = await class_service.get_by_id(db, source_class_id)
    if not source or source.order is None:
        raise ValidationError("Cannot infer next class: current class not found or has no order")
    nxt = await class_service.find_next_by_order(db, source_class_id)
    if not nxt:
        raise ValidationError("No next class configured after current class")
    return nxt


async def _section_in_class(db: AsyncSession, section_id: UUID, class_id: UUID) -> Section:
    section = await section_service.get_section_or_404(db, section_id)
    if section.class_id != class_id:
        raise ValidationError("Section does not belong to the selected class")
    return section


async def build_section_mapping(
    db: AsyncSession,
    source_section_ids: Iterable[UUID],
    target_class_id: UUID,
) -> Dict[UUID, UUID]:
    """Map each source section to the target-class section with the same name (case-insensitive)."""
    ids = list(source_section_ids)
    if not ids:
        return {}
    result = await db.execute(select(Section).where(Section.id.in_(ids)))
    source_sections = result.scalars().all()
    by_name = {s.name.lower(): s.id for s in await section_service.find_by_class(db, target_class_id)}
    mapping: Dict[UUID, UUID] = {}
    for src in source_sections:
        target_id = by_name.get(src.name.lower())
        if target_id is not None:
            mapping[src.id] = target_id
    return mapping


def target_section_for(
    source_section_id: Optional[UUID],
    target_section_id: Optional[UUID],
    mapping: Dict[UUID, UUID],
) -> UUID:
    if target_section_id is not None:
        return target_section_id
    mapped = mapping.get(source_section_id) if source_section_id is not None else None
    if mapped is None:
        raise ValidationError(
            f"No matching section found in target class for section ID: {source_section_id}. "
            "Please specify a target section explicitly."
        )
    return mapped


# ----- Promotion -----


async def promote_one(
    db: AsyncSession,
    student_id: UUID,
    target_class_id: UUID,
    target_section_id: UUID,
    target_academic_year_id: UUID,
    actor: Optional[CurrentUser] = None,
) -> Student:
    """Promote one student from the current year to the next; the roll number is carried forward."""
    student = await get_student_or_404(db, student_id)
    source_year_id = student.academic_year_id
    if source_year_id is None:
        raise ValidationError("Student has no current enrollment to promote from")

    await assert_is_current_year(db, source_year_id)
    await assert_next_academic_year(db, source_year_id, target_academic_year_id)
    await class_service.get_class_or_404(db, target_class_id)
    await _section_in_class(db, target_section_id, target_class_id)

    if await enrollments.get_enrollment(db, student_id, target_academic_year_id):
        raise ConflictError(ALREADY_ENROLLED)

    async with UnitOfWork(db, conflict_message=DUPLICATE_ENROLLMENT) as uow:
        enrollment = await enrollments.add_enrollment(
            uow,
            student_id=student_id,
            academic_year_id=target_academic_year_id,
            class_id=target_class_id,
            section_id=target_section_id,
            roll_number=student.roll_number,
        )
        enrollments.apply_placement(student, enrollment)
        await log_audit(
            db,
            "Student",
            student_id,
            "promote",
            actor=actor,
            remarks=f"{source_year_id} -> {target_academic_year_id}",
        )
    await db.refresh(student)
    logger.info("Promoted student %s to academic year %s", student_id, target_academic_year_id)
    return student


async def promote_bulk(
    db: AsyncSession,
    *,
    from_class_id: UUID,
    from_academic_year_id: Optional[UUID],
    to_academic_year_id: UUID,
    from_section_id: Optional[UUID] = None,
    target_class_id: Optional[UUID] = None,
    target_section_id: Optional[UUID] = None,
    student_ids: Optional[List[UUID]] = None,
    actor: Optional[CurrentUser] = None,
) -> StudentBulkPromoteResult:
    """
    Promote the students of a class in the current year into the next year.
    Placement for every student is resolved before anything is written, so a
    section without a same-named counterpart fails the whole batch. Students
    already enrolled in the target year are skipped.
    """
    if from_academic_year_id is None:
        raise ValidationError("from_academic_year_id (or X-Academic-Year-Id header) is required")

    await assert_is_current_year(db, from_academic_year_id)

    stmt = select(Student).where(
        Student.class_id == from_class_id,
        Student.academic_year_id == from_academic_year_id,
    )
    if from_section_id is not None:
        stmt = stmt.where(Student.section_id == from_section_id)
    if student_ids:
        stmt = stmt.where(Student.id.in_(student_ids))
    students = list((await db.execute(stmt.order_by(Student.name))).scalars().all())

    if not students:
        return StudentBulkPromoteResult(
            selected=len(student_ids or []),
            matched=0,
            modified=0,
            to_academic_year_id=to_academic_year_id,
            target_class_id=target_class_id,
            target_section_id=target_section_id,
        )

    await assert_next_academic_year(db, from_academic_year_id, to_academic_year_id)
    target_class = await resolve_target_class(db, from_class_id, target_class_id)
    mapping: Dict[UUID, UUID] = {}
    if target_section_id is not None:
        await _section_in_class(db, target_section_id, target_class.id)
    else:
        mapping = await build_section_mapping(
            db, {s.section_id for s in students if s.section_id is not None}, target_class.id
        )
    placements = [(s, target_section_for(s.section_id, target_section_id, mapping)) for s in students]

    already = await enrollments.enrolled_student_ids(db, to_academic_year_id, [s.id for s in students])
    target_class_id = target_class.id
    skipped: List[UUID] = []
    modified = 0
    async with UnitOfWork(db, conflict_message=DUPLICATE_ENROLLMENT) as uow:
        for student, section_id in placements:
            student_id, roll_number = student.id, student.roll_number
            if student_id in already:
                skipped.append(student_id)
                logger.info("Student %s already enrolled in %s; skipped", student_id, to_academic_year_id)
                continue
            try:
                # One savepoint per student: a ledger row written concurrently only drops that student.
                async with db.begin_nested():
                    enrollment = await enrollments.add_enrollment(
                        uow,
                        student_id=student_id,
                        academic_year_id=to_academic_year_id,
                        class_id=target_class_id,
                        section_id=section_id,
                        roll_number=roll_number,
                    )
                    enrollments.apply_placement(student, enrollment)
                    await uow.flush()
            except IntegrityError:
                if await enrollments.get_enrollment(db, student_id, to_academic_year_id) is None:
                    raise
                skipped.append(student_id)
                logger.info("Student %s enrolled in %s concurrently; skipped", student_id, to_academic_year_id)
                continue
            modified += 1
        await log_audit(
            db,
            "AcademicYear",
            to_academic_year_id,
            "promote-bulk",
            actor=actor,
            remarks=f"class {from_class_id}: {modified} promoted from {from_academic_year_id}",
        )

    logger.info(
        "Bulk promotion %s -> %s: %d of %d students promoted",
        from_academic_year_id,
        to_academic_year_id,
        modified,
        len(students),
    )
    return StudentBulkPromoteResult(
        selected=len(students),
        matched=len(students),
        modified=modified,
        skipped=skipped,
        to_academic_year_id=to_academic_year_id,
        target_class_id=target_class_id,
        target_section_id=target_section_id,
    )


# ----- Re-admission -----


async def _placement_names(
    db: AsyncSession,
    class_id: UUID,
    section_id: UUID,
    academic_year_id: UUID,
) -> Tuple[str, str]:
    await academic_year_service.get_academic_year_or_404(db, academic_year_id)
    school_class = await class_service.get_class_or_404(db, class_id)
    section = await _section_in_class(db, section_id, class_id)
    return school_class.name, section.name


async def re_admit_one(
    db: AsyncSession,
    student_id: UUID,
    class_id: UUID,
    section_id: UUID,
    academic_year_id: UUID,
    actor: Optional[CurrentUser] = None,
) -> Student:
    """Enroll a student into any year they are not enrolled in yet, with a newly generated roll number."""
    student = await get_student_or_404(db, student_id)
    class_name, section_name = await _placement_names(db, class_id, section_id, academic_year_id)
    if await enrollments.get_enrollment(db, student_id, academic_year_id):
        raise ConflictError(ALREADY_ENROLLED)

    async with UnitOfWork(db, conflict_message=DUPLICATE_ENROLLMENT) as uow:
        roll_number = await rolls.generate_roll_number(uow, class_name, section_name, academic_year_id)
        enrollment = await enrollments.add_enrollment(
            uow,
            student_id=student_id,
            academic_year_id=academic_year_id,
            class_id=class_id,
            section_id=section_id,
            roll_number=roll_number,
        )
        enrollments.apply_placement(student, enrollment)
        await log_audit(db, "Student", student_id, "re-admit", actor=actor, remarks=roll_number)
    await db.refresh(student)
    logger.info("Re-admitted student %s into %s as %s", student_id, academic_year_id, roll_number)
    return student


async def re_admit_bulk(
    db: AsyncSession,
    student_ids: List[UUID],
    class_id: UUID,
    section_id: UUID,
    academic_year_id: UUID,
    actor: Optional[CurrentUser] = None,
) -> StudentBulkReAdmitResult:
    """
    Re-admit students one by one, each in its own unit of work. A failing
    student is reported in errors and does not stop the others.
    """
    if not student_ids:
        raise ValidationError("Student IDs are required")
    class_name, section_name = await _placement_names(db, class_id, section_id, academic_year_id)

    requested = list(dict.fromkeys(student_ids))
    rows = (await db.execute(select(Student.id, Student.name).where(Student.id.in_(requested)))).all()
    if not rows:
        raise NotFoundError("No valid students found")
    names = {row.id: row.name for row in rows}

    successful = 0
    errors: List[ReAdmitFailure] = []
    for sid in requested:
        name = names.get(sid)
        if name is None:
            errors.append(ReAdmitFailure(student_id=sid, error="Student not found"))
            continue
        if await enrollments.get_enrollment(db, sid, academic_year_id):
            errors.append(ReAdmitFailure(student_id=sid, name=name, error="Already enrolled for this year"))
            continue
        try:
            async with UnitOfWork(db, conflict_message=DUPLICATE_ENROLLMENT) as uow:
                roll_number = await rolls.generate_roll_number(uow, class_name, section_name, academic_year_id)
                await enrollments.add_enrollment(
                    uow,
                    student_id=sid,
                    academic_year_id=academic_year_id,
                    class_id=class_id,
                    section_id=section_id,
                    roll_number=roll_number,
                )
                await db.execute(
                    update(Student)
                    .where(Student.id == sid)
                    .values(
                        class_id=class_id,
                        section_id=section_id,
                        academic_year_id=academic_year_id,
                        roll_number=roll_number,
                    )
                )
                await log_audit(db, "Student", sid, "re-admit", actor=actor, remarks=roll_number)
            successful += 1
        except (ServiceError, SQLAlchemyError) as e:
            message = e.message if isinstance(e, ServiceError) else str(e)
            logger.warning("Re-admission of student %s failed: %s", sid, message)
            errors.append(ReAdmitFailure(student_id=sid, name=name, error=message))

    return StudentBulkReAdmitResult(
        total=len(requested),
        successful=successful,
        failed=len(errors),
        errors=errors,
    )

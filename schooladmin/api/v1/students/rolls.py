"""
Roll numbers: "<CLASS>-<SECTION>-<NNN>", unique within an academic year.

The next number comes from the lexicographically greatest roll already in the
ledger for the same prefix and year. Nothing is reserved or locked: two
concurrent callers can compute the same value and the (academic_year_id,
roll_number) unique constraint rejects the second writer. Ordering is by string,
so a 4-digit suffix ("1000") sorts before "999".
"""
import re
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from schooladmin.core.models import Enrollment
from schooladmin.db.unit_of_work import UnitOfWork

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def roll_prefix(class_name: str, section_name: str) -> str:
    return f"{class_name.strip().upper()}-{section_name.strip().upper()}-"


def next_in_sequence(prefix: str, latest: Optional[str], width: int = 3) -> str:
    """prefix + (trailing number of latest, plus one), zero-padded. Starts at 1."""
    next_number = 1
    if latest:
        match = _TRAILING_DIGITS.search(latest)
        if match:
            next_number = int(match.group(1)) + 1
    return f"{prefix}{next_number:0{width}d}"


async def generate_roll_number(
    uow: UnitOfWork,
    class_name: str,
    section_name: str,
    academic_year_id: UUID,
) -> str:
    prefix = roll_prefix(class_name, section_name)
    result = await uow.db.execute(
        select(Enrollment.roll_number)
        .where(
            Enrollment.academic_year_id == academic_year_id,
            Enrollment.roll_number.startswith(prefix, autoescape=True),
        )
        .order_by(Enrollment.roll_number.desc())
        .limit(1)
    )
    return next_in_sequence(prefix, result.scalar_one_or_none())

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from schooladmin.db.session import Base


class Enrollment(Base):
    """
    Student placement per academic year. One row per (student, academic_year);
    roll_number unique within a year. Append-only: rows are never edited once written.
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "academic_year_id", name="uq_enrollment_student_year"),
        UniqueConstraint("academic_year_id", "roll_number", name="uq_enrollment_year_roll"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id = Column(
        Uuid,
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    class_id = Column(Uuid, ForeignKey("classes.id"), nullable=False, index=True)
    section_id = Column(Uuid, ForeignKey("sections.id"), nullable=False, index=True)
    roll_number = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

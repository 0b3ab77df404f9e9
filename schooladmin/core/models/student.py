import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid

from schooladmin.db.session import Base


class Student(Base):
    """
    Student account plus the current-placement snapshot (class, section, year, roll).
    The snapshot always mirrors the latest enrollment written for the student;
    history lives in enrollments.
    """

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    unique_id = Column(String(20), nullable=False, unique=True)  # STU-2025-0001
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)

    class_id = Column(Uuid, ForeignKey("classes.id"), nullable=True, index=True)
    section_id = Column(Uuid, ForeignKey("sections.id"), nullable=True, index=True)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id"), nullable=True, index=True)
    roll_number = Column(String(50), nullable=False, default="TBD")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

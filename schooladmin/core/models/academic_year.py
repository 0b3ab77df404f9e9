import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Uuid, text

from schooladmin.db.session import Base


class AcademicYear(Base):
    """
    One school year. At most one row can be is_current = true (partial unique index).
    is_active = false is the soft-deleted state; the current year can be neither deactivated nor deleted.
    order (optional) is the preferred evidence that one year follows another.
    """

    __tablename__ = "academic_years"
    __table_args__ = (
        Index(
            "uq_academic_year_single_current",
            "is_current",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, unique=True)  # e.g. "2025-2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_current = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

"""
Audit log for academic-year changes and student placement changes (promotion, re-admission).
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, Uuid

from schooladmin.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Uuid, nullable=False, index=True)
    action = Column(String(100), nullable=False)
    performed_by = Column(Uuid, nullable=True)
    performed_by_role = Column(String(50), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    remarks = Column(Text, nullable=True)

"""
Audit logging for academic-year and student placement changes. Call on every state change.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.schemas import CurrentUser
from schooladmin.core.models import AuditLog

from .schemas import AuditLogResponse


async def log_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: str,
    *,
    actor: Optional[CurrentUser] = None,
    remarks: Optional[str] = None,
) -> None:
    """Append one audit log entry. Caller must commit (usually by closing its UnitOfWork)."""
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        performed_by=actor.id if actor else None,
        performed_by_role=actor.role if actor else None,
        remarks=remarks,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)


async def list_audit_logs(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    limit: int = 100,
) -> List[AuditLogResponse]:
    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    stmt = stmt.order_by(AuditLog.timestamp.desc()).limit(limit)
    result = await db.execute(stmt)
    return [AuditLogResponse.model_validate(row) for row in result.scalars().all()]

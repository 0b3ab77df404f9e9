from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.rbac import require_roles
from schooladmin.auth.schemas import ROLE_ADMIN
from schooladmin.db.session import get_db

from .schemas import AuditLogResponse
from . import service

router = APIRouter(prefix="/api/v1/audit-logs", tags=["audit"])


@router.get(
    "",
    response_model=List[AuditLogResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="e.g. AcademicYear, Student"),
    entity_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> List[AuditLogResponse]:
    """Most recent audit entries first. Admin only."""
    return await service.list_audit_logs(db, entity_type=entity_type, entity_id=entity_id, limit=limit)

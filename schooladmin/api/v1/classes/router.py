from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.rbac import require_roles
from schooladmin.auth.schemas import ROLE_ADMIN, ROLE_TEACHER
from schooladmin.core.exceptions import ServiceError
from schooladmin.db.session import get_db

from .schemas import ClassCreate, ClassResponse, ClassUpdate
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        return await service.create_class(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ClassResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def list_classes(db: AsyncSession = Depends(get_db)) -> List[ClassResponse]:
    return await service.list_classes(db)


@router.get(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> ClassResponse:
    try:
        return ClassResponse.model_validate(await service.get_class_or_404(db, class_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{class_id}/next",
    response_model=Optional[ClassResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_next_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> Optional[ClassResponse]:
    """Class a promotion would move into by default (null if none configured)."""
    nxt = await service.find_next_by_order(db, class_id)
    return ClassResponse.model_validate(nxt) if nxt else None


@router.put(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    try:
        return await service.update_class(db, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def delete_class(class_id: UUID, db: AsyncSession = Depends(get_db)) -> None:
    try:
        await service.delete_class(db, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

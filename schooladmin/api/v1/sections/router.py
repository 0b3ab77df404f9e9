from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.rbac import require_roles
from schooladmin.auth.schemas import ROLE_ADMIN, ROLE_TEACHER
from schooladmin.core.exceptions import ServiceError
from schooladmin.db.session import get_db

from .schemas import SectionCreate, SectionResponse, SectionUpdate
from . import service

router = APIRouter(prefix="/api/v1/sections", tags=["sections"])


@router.post(
    "",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def create_section(
    payload: SectionCreate,
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    try:
        return await service.create_section(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[SectionResponse],
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def list_sections(
    class_id: Optional[UUID] = Query(None, description="Only sections of this class"),
    db: AsyncSession = Depends(get_db),
) -> List[SectionResponse]:
    return await service.list_sections(db, class_id=class_id)


@router.get(
    "/{section_id}",
    response_model=SectionResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))],
)
async def get_section(section_id: UUID, db: AsyncSession = Depends(get_db)) -> SectionResponse:
    try:
        return SectionResponse.model_validate(await service.get_section_or_404(db, section_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{section_id}",
    response_model=SectionResponse,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def update_section(
    section_id: UUID,
    payload: SectionUpdate,
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    try:
        return await service.update_section(db, section_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)
async def delete_section(section_id: UUID, db: AsyncSession = Depends(get_db)) -> None:
    try:
        await service.delete_section(db, section_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

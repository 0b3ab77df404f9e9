from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.core.exceptions import ConflictError


class UnitOfWork:
    """
    One atomic write scope over an AsyncSession.

        async with UnitOfWork(db, conflict_message="...") as uow:
            uow.add(obj)

    Commits on clean exit and rolls back on any error. Duplicate-key failures
    (IntegrityError from a unique constraint) surface as ConflictError carrying
    conflict_message, whether raised by a flush inside the block or by the commit.
    """

    def __init__(self, db: AsyncSession, conflict_message: str = "Duplicate key error") -> None:
        self.db = db
        self.conflict_message = conflict_message

    def add(self, obj: Any) -> None:
        self.db.add(obj)

    async def flush(self) -> None:
        await self.db.flush()

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc: Optional[BaseException], tb) -> bool:
        if exc_type is None:
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ConflictError(self.conflict_message) from e
            return False
        await self.db.rollback()
        if isinstance(exc, IntegrityError):
            raise ConflictError(self.conflict_message) from exc
        return False

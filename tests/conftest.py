import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import date
from typing import AsyncGenerator, Dict
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from schooladmin.api.v1.academic_years import service as academic_year_service
from schooladmin.api.v1.academic_years.schemas import AcademicYearCreate
from schooladmin.api.v1.classes import service as class_service
from schooladmin.api.v1.classes.schemas import ClassCreate
from schooladmin.api.v1.sections import service as section_service
from schooladmin.api.v1.sections.schemas import SectionCreate
from schooladmin.api.v1.students import service as student_service
from schooladmin.api.v1.students.schemas import StudentCreate
from schooladmin.auth.schemas import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, CurrentUser
from schooladmin.auth.security import create_access_token
from schooladmin.db.session import Base, get_db
from schooladmin.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; also overrides the FastAPI get_db dependency."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _auth_headers(role: str) -> Dict[str, str]:
    token = create_access_token(subject={"user_id": str(uuid4()), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return _auth_headers(ROLE_ADMIN)


@pytest.fixture()
def teacher_headers() -> Dict[str, str]:
    return _auth_headers(ROLE_TEACHER)


@pytest.fixture()
def student_headers() -> Dict[str, str]:
    return _auth_headers(ROLE_STUDENT)


@pytest.fixture()
def admin() -> CurrentUser:
    return CurrentUser(id=uuid4(), role=ROLE_ADMIN)


@pytest.fixture()
async def school(db_session: AsyncSession) -> Dict:
    """
    Two consecutive years (2024-2025 current, 2025-2026 next, ordered 1 and 2),
    classes 9 and 10 (orders 9, 10) with sections a and b each.
    """
    y1 = await academic_year_service.create_academic_year(
        db_session,
        AcademicYearCreate(
            start_date=date(2024, 6, 1),
            end_date=date(2025, 3, 31),
            order=1,
            set_as_current=True,
        ),
    )
    y2 = await academic_year_service.create_academic_year(
        db_session,
        AcademicYearCreate(start_date=date(2025, 6, 1), end_date=date(2026, 3, 31), order=2),
    )
    c9 = await class_service.create_class(db_session, ClassCreate(name="9", order=9))
    c10 = await class_service.create_class(db_session, ClassCreate(name="10", order=10))
    sections = {}
    for c in (c9, c10):
        for name in ("A", "B"):
            s = await section_service.create_section(db_session, SectionCreate(class_id=c.id, name=name))
            sections[(c.name, name.lower())] = s
    return {
        "y1": y1,
        "y2": y2,
        "c9": c9,
        "c10": c10,
        "sections": sections,
    }


@pytest.fixture()
def admit(db_session: AsyncSession, school: Dict):
    """Admit a student into class 9 of the current year, section a by default."""
    counter = {"n": 0}

    async def _admit(section: str = "a", name: str = None):
        counter["n"] += 1
        n = counter["n"]
        return await student_service.create_student(
            db_session,
            StudentCreate(
                name=name or f"Student {n}",
                email=f"student{n}@school.edu",
                password="Password123",
                class_id=school["c9"].id,
                section_id=school["sections"][("9", section)].id,
                academic_year_id=school["y1"].id,
            ),
        )

    return _admit

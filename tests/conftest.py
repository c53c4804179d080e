"""
Shared test fixtures for the HR Attendance test suite.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool),
seeded with roles, the default leave types and the work schedule.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.roles import RoleName
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.main import app
from app.models.employee import Department
from app.models.user import User
from app.services.bootstrap import seed_leave_types, seed_roles
from app.services.organisation_service import create_employee_profile, ensure_role
from app.services.work_schedule import get_or_create_settings

TEST_PASSWORD = "secret123"
# hashed once, shared by every fixture user
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@dataclass
class UserFixture:
    id: int
    username: str
    employee_id: int | None
    headers: dict = field(default_factory=dict)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database per test: create tables and seed reference data."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_roles(session)
        await seed_leave_types(session)
        await get_or_create_settings(session)
        await session.commit()

    yield factory

    # the in-memory database goes away with its only connection
    await engine.dispose()


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the per-test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Data factories ──────────────────────────────────────────────────
@pytest.fixture
def create_department(session_factory):
    async def _create(name: str = "Engineering") -> int:
        async with session_factory() as session:
            department = Department(dept_name=name)
            session.add(department)
            await session.commit()
            return department.id

    return _create


@pytest.fixture
def create_user(session_factory):
    """Insert a user with the given roles (and by default an employee profile)."""

    async def _create(
        username: str,
        *roles: RoleName,
        department_id: int | None = None,
        employee: bool = True,
        active: bool = True,
    ) -> UserFixture:
        async with session_factory() as session:
            user = User(
                username=username,
                email=f"{username}@example.com",
                hashed_password=_PASSWORD_HASH,
                full_name=username.replace("_", " ").title(),
                is_active=active,
            )
            session.add(user)
            await session.flush()
            for role in roles or (RoleName.EMPLOYEE,):
                await ensure_role(session, user, role)
            profile = None
            if employee:
                profile = await create_employee_profile(session, user, dept_id=department_id)
            await session.commit()
            return UserFixture(
                id=user.id,
                username=username,
                employee_id=profile.id if profile is not None else None,
                headers={"Authorization": f"Bearer {create_access_token(user.id)}"},
            )

    return _create


@pytest.fixture
async def admin(create_user) -> UserFixture:
    return await create_user("admin_user", RoleName.ADMIN, employee=False)

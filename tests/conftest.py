"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from payzenix.common.constants import (
    CalculationMethod,
    ComponentKind,
    EmployeeStatus,
    UserRole,
)
from payzenix.config import settings
from payzenix.database import Base, get_db
from payzenix.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import payzenix.common.audit  # noqa: F401
import payzenix.components.models  # noqa: F401
import payzenix.employees.models  # noqa: F401
import payzenix.loans.models  # noqa: F401
import payzenix.payroll.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    name: str = "Test User",
    email: str | None = None,
    base_salary: Decimal = Decimal("50000"),
    status: EmployeeStatus = EmployeeStatus.active,
    department: str = "Engineering",
) -> dict:
    code = f"PZ-{uuid.uuid4().hex[:6].upper()}"
    return dict(
        id=uuid.uuid4(),
        employee_code=code,
        name=name,
        email=email or f"{code.lower()}@payzenix.test",
        department=department,
        designation="Engineer",
        base_salary=base_salary,
        status=status,
        date_of_joining=date(2024, 1, 15),
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_component(
    *,
    code: str,
    kind: ComponentKind = ComponentKind.earning,
    method: CalculationMethod = CalculationMethod.percent_of_base,
    value: Decimal = Decimal("0.10"),
    is_basic: bool = False,
    is_active: bool = True,
    taxable: bool = True,
    sort_order: int = 0,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        code=code,
        name=code.upper(),
        kind=kind,
        method=method,
        value=value,
        is_basic=is_basic,
        is_active=is_active,
        taxable=taxable,
        sort_order=sort_order,
    )


async def _insert_employee(db: AsyncSession, **kwargs) -> dict:
    from payzenix.employees.models import Employee

    data = _make_employee(**kwargs)
    db.add(Employee(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_employee(db) -> dict:
    """Active employee on a 50,000 base salary."""
    return await _insert_employee(db, name="Asha Rao")


@pytest.fixture
async def hr_user(db) -> dict:
    """Employee who signs in with the ``hr`` role."""
    return await _insert_employee(db, name="HR Manager", department="People")


@pytest.fixture
async def standard_components(db) -> list[dict]:
    """HRA 10% earning and PF 12% deduction, no basic component."""
    from payzenix.components.models import SalaryComponent

    rows = [
        _make_component(code="hra", value=Decimal("0.10"), sort_order=10),
        _make_component(
            code="pf", kind=ComponentKind.deduction, value=Decimal("0.12"),
            taxable=False, sort_order=100,
        ),
    ]
    for row in rows:
        db.add(SalaryComponent(**row))
    await db.flush()
    return rows


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=8)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    """Bearer headers for ``test_employee`` as a plain employee."""
    return auth_headers_for(test_employee["id"])


@pytest.fixture
async def hr_headers(hr_user) -> dict[str, str]:
    return auth_headers_for(hr_user["id"], UserRole.hr)


@pytest.fixture
async def admin_headers(hr_user) -> dict[str, str]:
    return auth_headers_for(hr_user["id"], UserRole.admin)

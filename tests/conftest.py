"""Pytest fixtures for payroll core tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from hrms_payroll.config import StatutoryConfig
from hrms_payroll.database import make_session_factory
from hrms_payroll.models import Base, Employee, PayrollPeriod, Tenant
from hrms_payroll.services import PayrollProcessor

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass(frozen=True)
class Staff:
    """IDs of the seeded employees.

    Tests hold IDs, never ORM instances: a rollback inside the code under
    test expires every instance in the session.
    """

    basic: UUID  # E001, salary 30 000
    senior: UUID  # E002, salary 50 000
    unpaid: UUID  # E003, no salary configured
    inactive: UUID  # E004, INACTIVE


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with make_session_factory(engine)() as session:
        yield session


@pytest.fixture
def statutory_config() -> StatutoryConfig:
    """Built-in statutory tables."""
    return StatutoryConfig()


@pytest.fixture
def processor(session, statutory_config) -> PayrollProcessor:
    return PayrollProcessor(session, config=statutory_config, max_stub_attempts=3)


async def _create_tenant(session: AsyncSession, name: str) -> UUID:
    tenant = Tenant(name=name)
    session.add(tenant)
    await session.commit()
    return tenant.tenant_id


@pytest.fixture
async def tenant_id(session) -> UUID:
    return await _create_tenant(session, "Acme Ltd")


@pytest.fixture
async def other_tenant_id(session) -> UUID:
    return await _create_tenant(session, "Globex Ltd")


@pytest.fixture
async def staff(session, tenant_id) -> Staff:
    """Four employees: two payable, one without salary, one inactive."""
    rows = [
        Employee(
            tenant_id=tenant_id,
            employee_number="E001",
            first_name="Amina",
            last_name="Otieno",
            salary=Decimal("30000"),
        ),
        Employee(
            tenant_id=tenant_id,
            employee_number="E002",
            first_name="Brian",
            last_name="Kamau",
            salary=Decimal("50000"),
        ),
        Employee(
            tenant_id=tenant_id,
            employee_number="E003",
            first_name="Chebet",
            last_name="Mwangi",
            salary=None,
        ),
        Employee(
            tenant_id=tenant_id,
            employee_number="E004",
            first_name="David",
            last_name="Njoroge",
            salary=Decimal("40000"),
            status="INACTIVE",
        ),
    ]
    session.add_all(rows)
    await session.commit()
    return Staff(*(e.employee_id for e in rows))


async def _create_period(session: AsyncSession, tenant_id: UUID, name: str) -> UUID:
    period = PayrollPeriod(
        tenant_id=tenant_id,
        name=name,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
        pay_date=date(2024, 3, 28),
    )
    session.add(period)
    await session.commit()
    return period.payroll_period_id


@pytest.fixture
async def period_id(session, tenant_id) -> UUID:
    """March 2024 period for the main tenant."""
    return await _create_period(session, tenant_id, "March 2024")


@pytest.fixture
async def other_period_id(session, other_tenant_id) -> UUID:
    """March 2024 period for the other tenant."""
    return await _create_period(session, other_tenant_id, "March 2024")

"""Pytest fixtures for HR back-office tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hr_backoffice.database import create_engine_for, make_session_factory
from hr_backoffice.models import Base, Employee, EmployeeStatus

PROJECT_ID = "P-01"
PROJECT_NAME = "Alpha"
OTHER_PROJECT_ID = "P-02"


@dataclass
class Roster:
    """Seeded employees: three active across two projects, one inactive."""

    alice: Employee
    bob: Employee
    carol: Employee
    dave: Employee


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh file-backed SQLite database per test."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'hr.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def roster(session: AsyncSession) -> Roster:
    """Alice (P-01), Bob (stored under the project name), Carol (P-02), Dave (inactive)."""
    alice = Employee(
        full_name="Alice Adams",
        employee_code="1001",
        email="alice@example.com",
        project=PROJECT_ID,
        hire_date=date(2020, 1, 6),
        basic_salary=Decimal("3000.00"),
        variable_salary=Decimal("500.00"),
        leave_balance=Decimal("10"),
    )
    bob = Employee(
        full_name="Bob Brown",
        employee_code="1002",
        email="bob@example.com",
        project=PROJECT_NAME,
        hire_date=date(2021, 3, 1),
        basic_salary=Decimal("2400.00"),
        variable_salary=Decimal("0.00"),
        leave_balance=Decimal("5"),
    )
    carol = Employee(
        full_name="Carol Chen",
        employee_code="1003",
        email="carol@example.com",
        project=OTHER_PROJECT_ID,
        hire_date=date(2019, 9, 16),
        basic_salary=Decimal("4800.00"),
        variable_salary=Decimal("200.00"),
        leave_balance=Decimal("0"),
    )
    dave = Employee(
        full_name="Dave Diaz",
        employee_code="1004",
        email="dave@example.com",
        project=PROJECT_ID,
        hire_date=date(2018, 2, 1),
        status=EmployeeStatus.INACTIVE,
        basic_salary=Decimal("2000.00"),
        variable_salary=Decimal("0.00"),
        leave_balance=Decimal("12"),
    )
    session.add_all([alice, bob, carol, dave])
    await session.commit()
    return Roster(alice=alice, bob=bob, carol=carol, dave=dave)

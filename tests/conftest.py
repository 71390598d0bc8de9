"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hr_payroll.database import create_all, make_session_factory
from hr_payroll.models import Employee, PayrollComponent, PayrollPeriod

JANUARY_2024 = date(2024, 1, 1)


@pytest.fixture
def database_url(tmp_path) -> str:
    # One SQLite file per test: the orchestrator opens several sessions, which
    # an in-memory database would not share.
    return f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}"


@pytest.fixture
async def engine(database_url):
    """Create test database engine with all tables."""
    engine = create_async_engine(database_url, echo=False)
    await create_all(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_employee(session):
    """Factory creating a committed employee with recurring components.

    ``components`` is a list of (type, amount) pairs; by default a single base
    salary equal to ``salary``.
    """

    async def _make(
        salary: str = "3000.00",
        dependents: int = 0,
        status: str = "active",
        employment_type: str = "clt",
        components: list[tuple[str, str]] | None = None,
        effective_from: date = JANUARY_2024,
        name: str = "Test Employee",
    ) -> Employee:
        employee = Employee(
            full_name=name,
            status=status,
            employment_type=employment_type,
            salary=Decimal(salary),
            dependents_count=dependents,
            hire_date=effective_from,
        )
        session.add(employee)
        await session.flush()

        if components is None:
            components = [("base_salary", salary)]
        for component_type, amount in components:
            session.add(
                PayrollComponent(
                    employee_id=employee.id,
                    type=component_type,
                    description=component_type.replace("_", " ").capitalize(),
                    amount=Decimal(amount),
                    effective_from=effective_from,
                )
            )
        await session.commit()
        return employee

    return _make


@pytest.fixture
def make_period(session):
    """Factory creating a committed payroll period."""

    async def _make(month: int = 1, year: int = 2024, status: str = "open") -> PayrollPeriod:
        period = PayrollPeriod(reference_month=month, reference_year=year, status=status)
        session.add(period)
        await session.commit()
        return period

    return _make

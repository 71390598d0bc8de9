"""Load demo payroll data into the database.

Usage:
    python scripts/load_fixtures.py [--database-url URL] [--month M --year Y]

Creates a handful of employees with recurring components and stores the tax
tables, so that ``python -m hr_payroll calculate`` has something to work on.
Employees whose registration number already exists are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from hr_payroll.calculators.tax_tables import seed_tax_tables
from hr_payroll.config import get_settings
from hr_payroll.database import create_all, get_engine, make_session_factory
from hr_payroll.models import Employee, PayrollComponent

# registration, name, employment type, dependents, components (type, description, amount)
DEMO_EMPLOYEES = [
    ("EMP-001", "Ana Souza", "clt", 0, [("base_salary", "Base salary", "3000.00")]),
    (
        "EMP-002",
        "Bruno Lima",
        "clt",
        2,
        [
            ("base_salary", "Base salary", "5000.00"),
            ("fixed_bonus", "Team lead bonus", "800.00"),
        ],
    ),
    ("EMP-003", "Carla Mendes", "clt", 1, [("base_salary", "Base salary", "1412.00")]),
    ("EMP-004", "Diego Rocha", "pj", 0, [("base_salary", "Monthly fee", "12000.00")]),
    (
        "EMP-005",
        "Elisa Ferreira",
        "clt",
        0,
        [
            ("base_salary", "Base salary", "9500.00"),
            ("hazard_pay", "Hazard pay", "2850.00"),
        ],
    ),
]


async def load_fixtures(database_url: str, month: int, year: int) -> None:
    """Create tables and insert demo data."""
    print(f"Target database: {database_url.split('@')[1] if '@' in database_url else database_url}")

    engine = get_engine(database_url)
    try:
        await create_all(engine)
        factory = make_session_factory(engine)

        async with factory() as session:
            async with session.begin():
                await seed_tax_tables(session)

                created = 0
                hire_date = date(year, month, 1)
                for registration, name, employment_type, dependents, components in DEMO_EMPLOYEES:
                    existing = await session.scalar(
                        select(Employee).where(Employee.registration_number == registration)
                    )
                    if existing is not None:
                        continue

                    employee = Employee(
                        registration_number=registration,
                        full_name=name,
                        employment_type=employment_type,
                        dependents_count=dependents,
                        salary=Decimal(components[0][2]),
                        hire_date=hire_date,
                    )
                    session.add(employee)
                    await session.flush()

                    for component_type, description, amount in components:
                        session.add(
                            PayrollComponent(
                                employee_id=employee.id,
                                type=component_type,
                                description=description,
                                amount=Decimal(amount),
                                effective_from=hire_date,
                            )
                        )
                    created += 1

        print(f"Loaded {created} employee(s)")
        print(f"Open a period with: python -m hr_payroll create-period --month {month} --year {year}")
    finally:
        await engine.dispose()


def main() -> None:
    """Parse arguments and load fixtures."""
    parser = argparse.ArgumentParser(description="Load demo payroll data")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: DATABASE_URL from the environment)",
    )
    parser.add_argument("--month", type=int, default=1, help="Hire month of demo employees")
    parser.add_argument("--year", type=int, default=2024, help="Hire year of demo employees")
    args = parser.parse_args()

    asyncio.run(load_fixtures(args.database_url or get_settings().database_url, args.month, args.year))


if __name__ == "__main__":
    main()

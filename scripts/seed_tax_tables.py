"""Seed script for the INSS and IRRF tax tables.

Run with:
    python scripts/seed_tax_tables.py [EFFECTIVE_FROM]

This stores the built-in 2024 tables so they can be inspected and superseded
in the database. Running it twice leaves a single copy of each bracket.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date

from hr_payroll.calculators.tax_tables import FALLBACK_EFFECTIVE_FROM, seed_tax_tables
from hr_payroll.database import create_all, get_session, init_db


async def main(effective_from: date) -> None:
    """Run seed script."""
    print(f"Seeding tax tables effective from {effective_from.isoformat()}...")

    engine, _ = init_db()
    await create_all(engine)

    async with get_session() as session:
        count = await seed_tax_tables(session, effective_from)

    print(f"Seeded {count} brackets.")


if __name__ == "__main__":
    start = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else FALLBACK_EFFECTIVE_FROM
    asyncio.run(main(start))

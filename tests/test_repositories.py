"""Tests for repository statements that only matter on PostgreSQL."""

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from hr_payroll.models import PayrollPeriod, TaxTable
from hr_payroll.repositories import PayrollRepository, period_lock_statement


def compile_pg(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestPeriodLocks:
    """Row locks taken on the period row."""

    def test_close_takes_exclusive_lock(self):
        sql = compile_pg(period_lock_statement(1))

        assert sql.endswith("FOR UPDATE")

    def test_calculation_takes_shared_lock(self):
        sql = compile_pg(period_lock_statement(1, read=True))

        assert sql.endswith("FOR SHARE")

    async def test_share_lock_reads_committed_status(self, session, session_factory, make_period):
        period = await make_period()
        async with session_factory() as other:
            async with other.begin():
                closed = await other.get(PayrollPeriod, period.id)
                closed.status = "closed"

        loaded = await PayrollRepository(session).get_period_for_share(period.id)

        assert loaded is period
        assert loaded.status == "closed"

    async def test_missing_period(self, session):
        assert await PayrollRepository(session).get_period_for_share(404) is None


class TestEndTaxTables:
    """Ending open tables when a successor arrives."""

    async def test_only_earlier_open_rows_of_the_type_end(self, session):
        repo = PayrollRepository(session)
        rows = [
            ("inss", date(2023, 1, 1), date(2023, 12, 31)),
            ("inss", date(2024, 1, 1), None),
            ("irrf", date(2024, 1, 1), None),
            ("inss", date(2025, 1, 1), None),
        ]
        for tax_type, start, until in rows:
            await repo.upsert_tax_bracket(
                {
                    "type": tax_type,
                    "bracket_min": Decimal("0"),
                    "bracket_max": None,
                    "rate": Decimal("10"),
                    "deduction_value": Decimal("0"),
                    "effective_from": start,
                    "effective_until": until,
                }
            )
        await session.commit()

        ended = await repo.end_tax_tables("inss", date(2025, 1, 1))
        await session.commit()

        assert ended == 1
        result = await session.execute(
            select(TaxTable.type, TaxTable.effective_from, TaxTable.effective_until).order_by(
                TaxTable.type, TaxTable.effective_from
            )
        )
        assert result.all() == [
            ("inss", date(2023, 1, 1), date(2023, 12, 31)),
            ("inss", date(2024, 1, 1), date(2024, 12, 31)),
            ("inss", date(2025, 1, 1), None),
            ("irrf", date(2024, 1, 1), None),
        ]

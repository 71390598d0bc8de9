"""Effective-dated INSS and IRRF bracket tables."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.types import TaxBracket, TaxType
from hr_payroll.errors import ConfigurationError
from hr_payroll.models import TaxTable
from hr_payroll.repositories import PayrollRepository

logger = logging.getLogger(__name__)

ONE_CENT = Decimal("0.01")

# 2024 tables. Consecutive brackets share their boundary so no fractional
# amount falls between two ranges.
FALLBACK_BRACKETS: dict[TaxType, tuple[TaxBracket, ...]] = {
    TaxType.INSS: (
        TaxBracket(Decimal("0.00"), Decimal("1412.00"), Decimal("7.5")),
        TaxBracket(Decimal("1412.00"), Decimal("2666.68"), Decimal("9")),
        TaxBracket(Decimal("2666.68"), Decimal("4000.03"), Decimal("12")),
        TaxBracket(Decimal("4000.03"), Decimal("7786.02"), Decimal("14")),
    ),
    TaxType.IRRF: (
        TaxBracket(Decimal("0.00"), Decimal("2259.20"), Decimal("0")),
        TaxBracket(Decimal("2259.20"), Decimal("2826.65"), Decimal("7.5"), Decimal("169.44")),
        TaxBracket(Decimal("2826.65"), Decimal("3751.05"), Decimal("15"), Decimal("381.44")),
        TaxBracket(Decimal("3751.05"), Decimal("4664.68"), Decimal("22.5"), Decimal("662.77")),
        TaxBracket(Decimal("4664.68"), None, Decimal("27.5"), Decimal("896.00")),
    ),
}

FALLBACK_EFFECTIVE_FROM = date(2024, 1, 1)


def validate_brackets(tax_type: TaxType | str, brackets: Sequence[TaxBracket]) -> None:
    """Reject tables with gaps, overlaps or misplaced open ends.

    Brackets must be ascending. Each one either starts where the previous one
    ends or exactly one cent above it. Only the last bracket may omit its max.
    """
    name = TaxType(tax_type).value
    if not brackets:
        raise ConfigurationError(f"{name} table has no brackets")

    previous: TaxBracket | None = None
    for index, bracket in enumerate(brackets):
        if bracket.min_amount < 0:
            raise ConfigurationError(f"{name} bracket {index} starts below zero")
        if bracket.rate < 0:
            raise ConfigurationError(f"{name} bracket {index} has a negative rate")
        if bracket.max_amount is not None and bracket.max_amount < bracket.min_amount:
            raise ConfigurationError(f"{name} bracket {index} has max below min")
        if bracket.max_amount is None and index != len(brackets) - 1:
            raise ConfigurationError(f"{name} bracket {index} is open-ended but not last")

        if previous is not None:
            # previous.max_amount is not None, checked on the previous iteration
            step = bracket.min_amount - previous.max_amount
            if step < 0:
                raise ConfigurationError(
                    f"{name} bracket {index} overlaps bracket {index - 1}"
                )
            if step > ONE_CENT:
                raise ConfigurationError(
                    f"{name} table has a gap between {previous.max_amount} and {bracket.min_amount}"
                )
        previous = bracket


def _to_bracket(row: TaxTable) -> TaxBracket:
    return TaxBracket(
        min_amount=row.bracket_min,
        max_amount=row.bracket_max,
        rate=row.rate,
        deduction=row.deduction_value or Decimal("0"),
    )


class TaxTableProvider:
    """Supplies the bracket table effective on a date.

    Persisted tables win. When storage has nothing effective for the date the
    built-in 2024 table is used instead.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._cache: dict[tuple[TaxType, date], list[TaxBracket]] = {}

    async def get_brackets(self, tax_type: TaxType | str, as_of: date) -> list[TaxBracket]:
        """Get ordered brackets for a tax type effective on ``as_of``."""
        tax_type = TaxType(tax_type)
        cache_key = (tax_type, as_of)
        if cache_key in self._cache:
            return self._cache[cache_key]

        result = await self.session.execute(
            select(TaxTable)
            .where(
                TaxTable.type == tax_type.value,
                TaxTable.effective_from <= as_of,
                or_(TaxTable.effective_until.is_(None), TaxTable.effective_until >= as_of),
            )
            .order_by(TaxTable.effective_from.desc(), TaxTable.bracket_min)
        )
        rows = result.scalars().all()
        # Open-ended tables can overlap; the latest one in force wins.
        rows = [row for row in rows if row.effective_from == rows[0].effective_from]

        if rows:
            brackets = [_to_bracket(row) for row in rows]
        else:
            logger.warning(
                "No %s table effective on %s, using built-in table",
                tax_type.value,
                as_of.isoformat(),
            )
            brackets = list(FALLBACK_BRACKETS[tax_type])

        validate_brackets(tax_type, brackets)
        self._cache[cache_key] = brackets
        return brackets

    def clear_cache(self) -> None:
        self._cache.clear()


async def seed_tax_tables(
    session: AsyncSession,
    effective_from: date = FALLBACK_EFFECTIVE_FROM,
) -> int:
    """Store the built-in tables effective from a date. Safe to run repeatedly.

    Open tables that started earlier end the day before ``effective_from``.

    Returns the number of brackets written.
    """
    repo = PayrollRepository(session)
    count = 0
    for tax_type, brackets in FALLBACK_BRACKETS.items():
        validate_brackets(tax_type, brackets)
        ended = await repo.end_tax_tables(tax_type.value, effective_from)
        if ended:
            logger.info(
                "Ended %d %s brackets on %s",
                ended,
                tax_type.value,
                (effective_from - timedelta(days=1)).isoformat(),
            )
        for bracket in brackets:
            await repo.upsert_tax_bracket(
                {
                    "type": tax_type.value,
                    "bracket_min": bracket.min_amount,
                    "bracket_max": bracket.max_amount,
                    "rate": bracket.rate,
                    "deduction_value": bracket.deduction,
                    "effective_from": effective_from,
                    "effective_until": None,
                }
            )
            count += 1

    logger.info("Seeded %d tax brackets effective from %s", count, effective_from.isoformat())
    return count

"""Bracket-based tax calculation for INSS, IRRF and flat charges.

Two modes share the same bracket shape:

* cumulative progressive (INSS): each bracket taxes only the slice of the
  capped gross inside its own range, slices are summed unrounded and the
  total is rounded once;
* marginal with deduction (IRRF): the single bracket containing the taxable
  base applies its rate to the whole base, minus the bracket's fixed
  deduction.

All rates are percentages. All public results are rounded half-up to cents.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Sequence

from hr_payroll.calculators.types import TaxBracket, TaxType
from hr_payroll.errors import ConfigurationError

if TYPE_CHECKING:
    from hr_payroll.calculators.tax_tables import TaxTableProvider


CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# IRRF allowance per declared dependent (2024)
DEPENDENT_ALLOWANCE = Decimal("189.59")

FGTS_RATE = Decimal("8")
VT_RATE = Decimal("6")
VT_CAP = Decimal("200.00")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _ordered(brackets: Sequence[TaxBracket]) -> list[TaxBracket]:
    if not brackets:
        raise ConfigurationError("Bracket table is empty")
    return sorted(brackets, key=lambda b: b.min_amount)


def clamp_dependents(dependents: Any) -> int:
    """Coerce a dependents count to a non-negative int (malformed input is 0)."""
    if isinstance(dependents, bool):
        return 0
    try:
        count = int(dependents)
    except (TypeError, ValueError):
        return 0
    return max(0, count)


def calculate_cumulative_tax(gross: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Progressive contribution capped at the table ceiling (INSS)."""
    if gross <= 0:
        return ZERO

    ordered = _ordered(brackets)
    ceiling = ordered[-1].max_amount
    capped = gross if ceiling is None else min(gross, ceiling)

    total = Decimal("0")
    for bracket in ordered:
        if bracket.min_amount >= capped:
            break

        upper = capped if bracket.max_amount is None else min(capped, bracket.max_amount)
        portion = upper - bracket.min_amount
        if portion > 0:
            total += portion * bracket.rate / HUNDRED

        if bracket.max_amount is None or bracket.max_amount >= capped:
            break

    return round_to_cents(total)


def find_marginal_bracket(
    taxable_base: Decimal, brackets: Sequence[TaxBracket]
) -> TaxBracket | None:
    """Return the bracket applying to a taxable base.

    A base on a boundary belongs to the bracket whose max equals it. A base
    above the last finite max resolves to the last bracket. None means the
    base is below the table.
    """
    ordered = _ordered(brackets)
    if taxable_base < ordered[0].min_amount:
        return None

    for bracket in ordered:
        if bracket.max_amount is None or taxable_base <= bracket.max_amount:
            return bracket

    return ordered[-1]


def calculate_marginal_tax(taxable_base: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Marginal rate on the whole base minus the bracket deduction (IRRF)."""
    if taxable_base <= 0:
        return ZERO

    bracket = find_marginal_bracket(taxable_base, brackets)
    if bracket is None:
        return ZERO

    tax = taxable_base * bracket.rate / HUNDRED - bracket.deduction
    if tax <= 0:
        return ZERO
    return round_to_cents(tax)


def irrf_taxable_base(gross: Decimal, inss: Decimal, dependents: Any = 0) -> Decimal:
    """Gross minus INSS minus the per-dependent allowance."""
    allowance = DEPENDENT_ALLOWANCE * clamp_dependents(dependents)
    return gross - inss - allowance


def calculate_flat_charge(gross: Decimal, rate: Decimal) -> Decimal:
    """Flat percentage of gross with no bracket logic (e.g. FGTS)."""
    if gross <= 0:
        return ZERO
    return round_to_cents(gross * rate / HUNDRED)


def calculate_capped_deduction(gross: Decimal, rate: Decimal, cap: Decimal) -> Decimal:
    """Percentage of gross limited to a fixed cap (e.g. transport voucher)."""
    if gross <= 0:
        return ZERO
    return round_to_cents(min(gross * rate / HUNDRED, cap))


class TaxCalculator:
    """Binds the bracket functions to tables from a TaxTableProvider."""

    def __init__(self, provider: TaxTableProvider):
        self.provider = provider

    async def calculate_inss(self, gross: Decimal, as_of: date) -> Decimal:
        """Calculate the employee social-security contribution."""
        if gross <= 0:
            return ZERO
        brackets = await self.provider.get_brackets(TaxType.INSS, as_of)
        return calculate_cumulative_tax(gross, brackets)

    async def calculate_irrf(
        self,
        gross: Decimal,
        inss: Decimal,
        dependents: Any,
        as_of: date,
    ) -> Decimal:
        """Calculate income tax withholding on gross after INSS and dependents."""
        taxable_base = irrf_taxable_base(gross, inss, dependents)
        if taxable_base <= 0:
            return ZERO
        brackets = await self.provider.get_brackets(TaxType.IRRF, as_of)
        return calculate_marginal_tax(taxable_base, brackets)

    @staticmethod
    def calculate_fgts(gross: Decimal) -> Decimal:
        return calculate_flat_charge(gross, FGTS_RATE)

    @staticmethod
    def calculate_vt_discount(gross: Decimal) -> Decimal:
        return calculate_capped_deduction(gross, VT_RATE, VT_CAP)

"""Unit tests for the bracket engine.

Covers the cumulative (INSS) and marginal (IRRF) modes against the built-in
2024 tables, plus flat and capped charges.
"""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.calculators.tax_calculator import (
    DEPENDENT_ALLOWANCE,
    TaxCalculator,
    calculate_capped_deduction,
    calculate_cumulative_tax,
    calculate_flat_charge,
    calculate_marginal_tax,
    clamp_dependents,
    find_marginal_bracket,
    irrf_taxable_base,
    round_to_cents,
)
from hr_payroll.calculators.tax_tables import FALLBACK_BRACKETS
from hr_payroll.calculators.types import TaxBracket, TaxType
from hr_payroll.errors import ConfigurationError

INSS = FALLBACK_BRACKETS[TaxType.INSS]
IRRF = FALLBACK_BRACKETS[TaxType.IRRF]


class StaticTables:
    """Provider stand-in returning the built-in tables."""

    def __init__(self):
        self.calls = []

    async def get_brackets(self, tax_type, as_of):
        self.calls.append((TaxType(tax_type), as_of))
        return list(FALLBACK_BRACKETS[TaxType(tax_type)])


class TestCumulativeTax:
    """Test progressive INSS contribution."""

    @pytest.mark.parametrize(
        "gross,expected",
        [
            ("1000.00", "75.00"),
            ("1412.00", "105.90"),
            ("2666.68", "218.82"),
            ("3000.00", "258.82"),
            ("5000.00", "518.82"),
            ("7786.02", "908.86"),
            ("10000.00", "908.86"),
        ],
    )
    def test_reference_values(self, gross, expected):
        assert calculate_cumulative_tax(Decimal(gross), INSS) == Decimal(expected)

    def test_zero_and_negative_gross(self):
        """Non-positive gross returns 0 without touching brackets."""
        assert calculate_cumulative_tax(Decimal("0"), INSS) == Decimal("0")
        assert calculate_cumulative_tax(Decimal("-1000"), INSS) == Decimal("0")
        assert calculate_cumulative_tax(Decimal("-1"), []) == Decimal("0")

    @pytest.mark.parametrize("gross", ["7786.02", "7786.03", "8000", "25000", "1000000"])
    def test_ceiling_is_constant(self, gross):
        """Everything above the ceiling is taxed as the ceiling."""
        ceiling_tax = calculate_cumulative_tax(Decimal("7786.02"), INSS)
        assert calculate_cumulative_tax(Decimal(gross), INSS) == ceiling_tax

    def test_rounds_only_the_total(self):
        """Per-bracket amounts are summed unrounded."""
        brackets = [
            TaxBracket(Decimal("0"), Decimal("0.10"), Decimal("5")),
            TaxBracket(Decimal("0.10"), Decimal("0.20"), Decimal("5")),
        ]
        # 0.10 * 5% = 0.005 per bracket: rounding each would give 0.02
        assert calculate_cumulative_tax(Decimal("0.20"), brackets) == Decimal("0.01")

    def test_cent_step_table_matches_shared_boundaries(self):
        """A table whose brackets start one cent above the previous max."""
        cent_step = [
            TaxBracket(Decimal("0"), Decimal("1412.00"), Decimal("7.5")),
            TaxBracket(Decimal("1412.01"), Decimal("2666.68"), Decimal("9")),
            TaxBracket(Decimal("2666.69"), Decimal("4000.03"), Decimal("12")),
            TaxBracket(Decimal("4000.04"), Decimal("7786.02"), Decimal("14")),
        ]
        assert calculate_cumulative_tax(Decimal("3000.00"), cent_step) == Decimal("258.82")
        assert calculate_cumulative_tax(Decimal("1412.00"), cent_step) == Decimal("105.90")

    def test_unsorted_brackets(self):
        assert calculate_cumulative_tax(Decimal("3000.00"), list(reversed(INSS))) == Decimal(
            "258.82"
        )

    def test_empty_table_raises(self):
        with pytest.raises(ConfigurationError):
            calculate_cumulative_tax(Decimal("1000"), [])

    def test_open_ended_top_bracket_has_no_cap(self):
        brackets = [
            TaxBracket(Decimal("0"), Decimal("1000"), Decimal("10")),
            TaxBracket(Decimal("1000"), None, Decimal("20")),
        ]
        assert calculate_cumulative_tax(Decimal("3000"), brackets) == Decimal("500.00")


class TestMarginalTax:
    """Test IRRF withholding."""

    def test_below_exemption(self):
        assert calculate_marginal_tax(Decimal("1850.00"), IRRF) == Decimal("0")

    def test_reference_values(self):
        base = irrf_taxable_base(Decimal("3000"), Decimal("281.92"), 0)
        assert calculate_marginal_tax(base, IRRF) == Decimal("34.42")

        base = irrf_taxable_base(Decimal("5000"), Decimal("518.82"), 0)
        assert calculate_marginal_tax(base, IRRF) == Decimal("345.50")

    def test_boundary_belongs_to_lower_bracket(self):
        """A base equal to a bracket max uses that bracket."""
        assert calculate_marginal_tax(Decimal("2259.20"), IRRF) == Decimal("0")
        assert find_marginal_bracket(Decimal("2826.65"), IRRF).rate == Decimal("7.5")
        # 2826.65 * 7.5% - 169.44 = 42.55875
        assert calculate_marginal_tax(Decimal("2826.65"), IRRF) == Decimal("42.56")

    def test_top_bracket(self):
        # 10000 * 27.5% - 896.00
        assert calculate_marginal_tax(Decimal("10000.00"), IRRF) == Decimal("1854.00")

    def test_above_last_finite_max_uses_last_bracket(self):
        brackets = [
            TaxBracket(Decimal("0"), Decimal("1000"), Decimal("0")),
            TaxBracket(Decimal("1000"), Decimal("2000"), Decimal("10"), Decimal("100")),
        ]
        assert find_marginal_bracket(Decimal("5000"), brackets) is brackets[1]
        assert calculate_marginal_tax(Decimal("5000"), brackets) == Decimal("400.00")

    def test_below_lowest_min(self):
        brackets = [TaxBracket(Decimal("1000"), None, Decimal("10"))]
        assert find_marginal_bracket(Decimal("999.99"), brackets) is None
        assert calculate_marginal_tax(Decimal("999.99"), brackets) == Decimal("0")

    def test_negative_result_clamped(self):
        brackets = [TaxBracket(Decimal("0"), None, Decimal("1"), Decimal("500"))]
        assert calculate_marginal_tax(Decimal("1000"), brackets) == Decimal("0")

    def test_non_positive_base(self):
        assert calculate_marginal_tax(Decimal("0"), IRRF) == Decimal("0")
        assert calculate_marginal_tax(Decimal("-50"), IRRF) == Decimal("0")


class TestTaxableBase:
    """Test IRRF taxable base and dependents handling."""

    def test_dependent_allowance(self):
        base = irrf_taxable_base(Decimal("5000"), Decimal("518.82"), 2)
        assert base == Decimal("5000") - Decimal("518.82") - 2 * DEPENDENT_ALLOWANCE
        assert base == Decimal("4102.00")

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 0), (-3, 0), (0, 0), (2, 2), ("2", 2), ("abc", 0), (True, 0)],
    )
    def test_malformed_dependents_clamped(self, value, expected):
        assert clamp_dependents(value) == expected

    def test_negative_dependents_do_not_raise_base(self):
        assert irrf_taxable_base(Decimal("3000"), Decimal("281.92"), -2) == Decimal("2718.08")


class TestFlatAndCappedCharges:
    """Test FGTS and transport voucher style charges."""

    def test_fgts(self):
        assert TaxCalculator.calculate_fgts(Decimal("3000.00")) == Decimal("240.00")
        assert calculate_flat_charge(Decimal("0"), Decimal("8")) == Decimal("0")

    def test_vt_discount_below_cap(self):
        assert TaxCalculator.calculate_vt_discount(Decimal("3000.00")) == Decimal("180.00")

    def test_vt_discount_capped(self):
        assert TaxCalculator.calculate_vt_discount(Decimal("5000.00")) == Decimal("200.00")

    def test_capped_deduction_non_positive(self):
        assert calculate_capped_deduction(Decimal("-1"), Decimal("6"), Decimal("200")) == Decimal("0")

    def test_round_half_up(self):
        assert round_to_cents(Decimal("0.005")) == Decimal("0.01")
        assert round_to_cents(Decimal("2.675")) == Decimal("2.68")
        assert calculate_flat_charge(Decimal("0.0625"), Decimal("8")) == Decimal("0.01")


class TestTaxCalculator:
    """Test the provider-bound calculator."""

    async def test_inss(self):
        tables = StaticTables()
        calc = TaxCalculator(tables)
        assert await calc.calculate_inss(Decimal("3000.00"), date(2024, 1, 31)) == Decimal("258.82")
        assert tables.calls == [(TaxType.INSS, date(2024, 1, 31))]

    async def test_inss_skips_tables_for_zero_gross(self):
        tables = StaticTables()
        calc = TaxCalculator(tables)
        assert await calc.calculate_inss(Decimal("0"), date(2024, 1, 31)) == Decimal("0")
        assert tables.calls == []

    async def test_irrf(self):
        calc = TaxCalculator(StaticTables())
        as_of = date(2024, 1, 31)
        assert await calc.calculate_irrf(
            Decimal("3000"), Decimal("281.92"), 0, as_of
        ) == Decimal("34.42")
        assert await calc.calculate_irrf(
            Decimal("5000"), Decimal("518.82"), 0, as_of
        ) == Decimal("345.50")

    async def test_irrf_with_dependents(self):
        calc = TaxCalculator(StaticTables())
        # base 4102.00 * 22.5% - 662.77
        assert await calc.calculate_irrf(
            Decimal("5000"), Decimal("518.82"), 2, date(2024, 1, 31)
        ) == Decimal("260.18")

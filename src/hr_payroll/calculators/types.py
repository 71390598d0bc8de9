"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class TaxType(str, Enum):
    """Bracket table types."""

    INSS = "inss"
    IRRF = "irrf"


class ComponentKind(str, Enum):
    """Recurring component types. Each maps to the earning code of the same name."""

    BASE_SALARY = "base_salary"
    FIXED_BONUS = "fixed_bonus"
    HAZARD_PAY = "hazard_pay"
    UNHEALTHY_PAY = "unhealthy_pay"
    OTHER = "other"


class EntryType(str, Enum):
    """Ledger entry types."""

    EARNING = "earning"
    DEDUCTION = "deduction"
    EMPLOYER_CHARGE = "employer_charge"


class EntryCode(str, Enum):
    """Codes of entries produced by the engine for mandatory charges."""

    INSS = "inss"
    IRRF = "irrf"
    FGTS = "fgts"
    VT_DISCOUNT = "vt_discount"


class SlipStatus(str, Enum):
    """Pay slip status values."""

    DRAFT = "draft"
    FINAL = "final"


@dataclass(frozen=True)
class TaxBracket:
    """One bracket of a progressive table.

    ``rate`` is a percentage (7.5 means 7.5%). ``max_amount`` of None marks an
    open-ended top bracket.
    """

    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal
    deduction: Decimal = Decimal("0")


@dataclass
class EntryCandidate:
    """An entry before persistence."""

    component_type: EntryType
    code: str
    description: str
    amount: Decimal
    reference_value: Decimal | None = None
    quantity: Decimal | None = None

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.component_type.value, self.code)

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "component_type": self.component_type.value,
            "code": self.code,
            "amount": str(self.amount),
            "reference_value": str(self.reference_value) if self.reference_value is not None else None,
            "quantity": str(self.quantity) if self.quantity is not None else None,
        }


@dataclass
class SlipTotals:
    """Aggregated amounts written to a pay slip."""

    gross_salary: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    net_salary: Decimal = Decimal("0")
    inss_amount: Decimal = Decimal("0")
    irrf_amount: Decimal = Decimal("0")
    fgts_amount: Decimal = Decimal("0")
    vt_discount: Decimal = Decimal("0")


@dataclass
class PayrollComputation:
    """Result of computing one employee's payroll, before persistence."""

    entries: list[EntryCandidate]
    totals: SlipTotals
    taxable_income: Decimal
    dependents: int
    calculation_hash: str
    details: dict[str, Any] = field(default_factory=dict)

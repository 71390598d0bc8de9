"""Entry builder with deterministic totals and hashing."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol

from hr_payroll.calculators.tax_calculator import (
    ZERO,
    TaxCalculator,
    clamp_dependents,
    round_to_cents,
)
from hr_payroll.calculators.types import (
    ComponentKind,
    EntryCandidate,
    EntryCode,
    EntryType,
    PayrollComputation,
    SlipTotals,
)


class ComponentLike(Protocol):
    type: str
    description: str
    amount: Decimal


EARNING_LABELS = {
    ComponentKind.BASE_SALARY.value: "Base salary",
    ComponentKind.FIXED_BONUS.value: "Fixed bonus",
    ComponentKind.HAZARD_PAY.value: "Hazard pay",
    ComponentKind.UNHEALTHY_PAY.value: "Unhealthy work pay",
    ComponentKind.OTHER.value: "Other earnings",
}

CHARGE_LABELS = {
    EntryCode.INSS: "INSS contribution",
    EntryCode.IRRF: "IRRF withholding",
    EntryCode.FGTS: "FGTS deposit (employer)",
    EntryCode.VT_DISCOUNT: "Transport voucher discount",
}


class EntryBuilder:
    """Builds the entry set and pay slip totals for one employee.

    Amount conventions:
    - every entry amount is a non-negative value rounded to cents
    - EARNING entries add to gross pay
    - DEDUCTION entries are subtracted from gross to reach net pay
    - EMPLOYER_CHARGE entries are informational and never touch net pay
    """

    @staticmethod
    def gross_from_components(components: Iterable[ComponentLike]) -> Decimal:
        total = sum((Decimal(c.amount) for c in components), Decimal("0"))
        return round_to_cents(total)

    @staticmethod
    def create_earning_entries(components: Iterable[ComponentLike]) -> list[EntryCandidate]:
        """One earning per component type.

        Components sharing a type are summed into a single entry so that the
        (type, code) key stays unique.
        """
        grouped: dict[str, list[ComponentLike]] = {}
        for component in components:
            grouped.setdefault(component.type, []).append(component)

        entries: list[EntryCandidate] = []
        for code in sorted(grouped):
            members = grouped[code]
            if len(members) == 1:
                description = members[0].description
            else:
                description = EARNING_LABELS.get(code, code)
            amount = sum((Decimal(c.amount) for c in members), Decimal("0"))
            entries.append(
                EntryCandidate(
                    component_type=EntryType.EARNING,
                    code=code,
                    description=description[:200],
                    amount=round_to_cents(amount),
                    quantity=Decimal(len(members)) if len(members) > 1 else None,
                )
            )
        return entries

    @staticmethod
    def _checked_charge(code: EntryCode, amount: Decimal) -> Decimal:
        if amount < 0:
            raise ValueError(f"{code.value} amount must not be negative, got {amount}")
        return round_to_cents(amount)

    @staticmethod
    def create_deduction(
        code: EntryCode, amount: Decimal, reference_value: Decimal | None = None
    ) -> EntryCandidate:
        return EntryCandidate(
            component_type=EntryType.DEDUCTION,
            code=code.value,
            description=CHARGE_LABELS[code],
            amount=EntryBuilder._checked_charge(code, amount),
            reference_value=reference_value,
        )

    @staticmethod
    def create_employer_charge(
        code: EntryCode, amount: Decimal, reference_value: Decimal | None = None
    ) -> EntryCandidate:
        return EntryCandidate(
            component_type=EntryType.EMPLOYER_CHARGE,
            code=code.value,
            description=CHARGE_LABELS[code],
            amount=EntryBuilder._checked_charge(code, amount),
            reference_value=reference_value,
        )

    @staticmethod
    def calculate_totals(
        entries: Iterable[EntryCandidate],
        inss: Decimal,
        irrf: Decimal,
        fgts: Decimal,
        vt_discount: Decimal,
    ) -> SlipTotals:
        """Aggregate entries into slip totals.

        NET = Σ(EARNING) - Σ(DEDUCTION). EMPLOYER_CHARGE is excluded.
        """
        earnings = ZERO
        deductions = ZERO
        for entry in entries:
            if entry.component_type == EntryType.EARNING:
                earnings += entry.amount
            elif entry.component_type == EntryType.DEDUCTION:
                deductions += entry.amount

        return SlipTotals(
            gross_salary=round_to_cents(earnings),
            total_earnings=round_to_cents(earnings),
            total_deductions=round_to_cents(deductions),
            net_salary=round_to_cents(earnings - deductions),
            inss_amount=inss,
            irrf_amount=irrf,
            fgts_amount=fgts,
            vt_discount=vt_discount,
        )

    @staticmethod
    def compute_hash(entries: Iterable[EntryCandidate], totals: SlipTotals) -> str:
        """Deterministic hash of the entry set and totals.

        Identical inputs produce identical hashes, so an unchanged
        recomputation can be recognised from the slip alone.
        """
        canonical = {
            "entries": sorted(
                (e.to_canonical_dict() for e in entries),
                key=lambda d: (d["component_type"], d["code"]),
            ),
            "totals": {
                "gross_salary": str(totals.gross_salary),
                "total_deductions": str(totals.total_deductions),
                "net_salary": str(totals.net_salary),
                "fgts_amount": str(totals.fgts_amount),
            },
        }
        json_str = json.dumps(canonical, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    @staticmethod
    def build(
        components: Iterable[ComponentLike],
        inss: Decimal,
        irrf: Decimal,
        dependents: object = 0,
    ) -> PayrollComputation:
        """Assemble the full entry set from components and computed taxes.

        INSS and the transport voucher discount are always present. IRRF is
        only present when positive. FGTS is recorded as an employer charge.
        """
        components = list(components)
        earnings = EntryBuilder.create_earning_entries(components)
        gross = EntryBuilder.gross_from_components(components)
        inss = round_to_cents(inss)
        irrf = round_to_cents(irrf)
        fgts = TaxCalculator.calculate_fgts(gross)
        vt_discount = TaxCalculator.calculate_vt_discount(gross)
        taxable_income = round_to_cents(gross - inss)

        entries = list(earnings)
        entries.append(EntryBuilder.create_deduction(EntryCode.INSS, inss, reference_value=gross))
        if irrf > 0:
            entries.append(
                EntryBuilder.create_deduction(EntryCode.IRRF, irrf, reference_value=taxable_income)
            )
        entries.append(
            EntryBuilder.create_deduction(EntryCode.VT_DISCOUNT, vt_discount, reference_value=gross)
        )
        entries.append(
            EntryBuilder.create_employer_charge(EntryCode.FGTS, fgts, reference_value=gross)
        )

        totals = EntryBuilder.calculate_totals(entries, inss, irrf, fgts, vt_discount)
        calculation_hash = EntryBuilder.compute_hash(entries, totals)
        dependents_count = clamp_dependents(dependents)

        return PayrollComputation(
            entries=entries,
            totals=totals,
            taxable_income=taxable_income,
            dependents=dependents_count,
            calculation_hash=calculation_hash,
            details={
                "vt_discount": str(vt_discount),
                "taxable_income": str(taxable_income),
                "dependents": dependents_count,
                "calculation_hash": calculation_hash,
            },
        )

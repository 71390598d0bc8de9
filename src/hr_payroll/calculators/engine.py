"""Entry generation engine for one employee and period."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.component_resolver import ComponentResolver
from hr_payroll.calculators.entry_builder import EntryBuilder
from hr_payroll.calculators.tax_calculator import TaxCalculator
from hr_payroll.calculators.tax_tables import TaxTableProvider
from hr_payroll.calculators.types import EntryCandidate, PayrollComputation, SlipStatus
from hr_payroll.errors import NotFoundError
from hr_payroll.models import PayrollPeriod, PaySlip
from hr_payroll.repositories import PayrollRepository
from hr_payroll.state_machine import PeriodStateMachine

logger = logging.getLogger(__name__)


class EntryGenerationEngine:
    """Generates the entries and pay slip of one employee for one period.

    Generation pipeline (stable order):
    1) Resolve components effective during the period
    2) Sum them into gross pay
    3) Compute INSS, then IRRF on gross minus INSS and dependents
    4) Build earnings, deductions and the FGTS employer charge
    5) Upsert entries and delete entries no longer produced
    6) Upsert the pay slip summarising them

    Every write is keyed by its natural key, so calling ``generate`` twice with
    unchanged inputs leaves exactly the same rows behind.
    """

    def __init__(
        self,
        session: AsyncSession,
        tax_tables: TaxTableProvider | None = None,
    ):
        self.session = session
        self.repo = PayrollRepository(session)
        self.resolver = ComponentResolver(session)
        self.tax_tables = tax_tables or TaxTableProvider(session)
        self.tax_calculator = TaxCalculator(self.tax_tables)

    async def compute(self, period: PayrollPeriod, employee_id: int) -> PayrollComputation:
        """Compute an employee's entries without writing anything."""
        employee = await self.repo.get_employee(employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundError("Active employee", employee_id)

        as_of = period.reference_date
        components = await self.resolver.resolve(
            employee.id,
            as_of,
            window_start=period.start_date,
        )
        gross = EntryBuilder.gross_from_components(components)
        inss = await self.tax_calculator.calculate_inss(gross, as_of)
        irrf = await self.tax_calculator.calculate_irrf(
            gross, inss, employee.dependents_count, as_of
        )
        return EntryBuilder.build(components, inss, irrf, employee.dependents_count)

    async def generate(
        self,
        period: PayrollPeriod,
        employee_id: int,
        *,
        finalize: bool = False,
    ) -> PaySlip:
        """Compute and persist an employee's entries and pay slip.

        Entries are written before the slip. The caller owns the transaction.
        """
        PeriodStateMachine.ensure_mutable(period)

        computation = await self.compute(period, employee_id)

        for candidate in computation.entries:
            await self.repo.upsert_entry(self._entry_values(period.id, employee_id, candidate))

        removed = await self.repo.delete_stale_entries(
            period.id,
            employee_id,
            [entry.natural_key for entry in computation.entries],
        )
        if removed:
            logger.debug(
                "Removed %d stale entries for employee %s in period %s",
                removed,
                employee_id,
                period.label,
            )

        totals = computation.totals
        slip = await self.repo.upsert_pay_slip(
            {
                "payroll_period_id": period.id,
                "employee_id": employee_id,
                "gross_salary": totals.gross_salary,
                "total_earnings": totals.total_earnings,
                "total_deductions": totals.total_deductions,
                "net_salary": totals.net_salary,
                "inss_amount": totals.inss_amount,
                "irrf_amount": totals.irrf_amount,
                "fgts_amount": totals.fgts_amount,
                "details": computation.details,
                "status": (SlipStatus.FINAL if finalize else SlipStatus.DRAFT).value,
            }
        )

        logger.debug(
            "Generated slip for employee %s in period %s: gross=%s net=%s",
            employee_id,
            period.label,
            totals.gross_salary,
            totals.net_salary,
        )
        return slip

    @staticmethod
    def _entry_values(
        period_id: int, employee_id: int, candidate: EntryCandidate
    ) -> dict[str, Any]:
        return {
            "payroll_period_id": period_id,
            "employee_id": employee_id,
            "component_type": candidate.component_type.value,
            "code": candidate.code,
            "description": candidate.description,
            "reference_value": candidate.reference_value,
            "quantity": candidate.quantity,
            "amount": candidate.amount,
        }

"""One-off ledger entries posted to an open period."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.errors import NotFoundError, ValidationError
from hr_payroll.models import PayrollEntry
from hr_payroll.repositories import PayrollRepository
from hr_payroll.schemas import EntryCreate
from hr_payroll.state_machine import PeriodStateMachine

logger = logging.getLogger(__name__)


class ManualEntryService:
    """Posts entries such as overtime or an advance outside the calculation.

    Entries are keyed like calculated ones, so posting the same code twice for
    an employee replaces the earlier amount. A later calculation of the period
    rebuilds the employee's ledger from components and removes posted entries.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = PayrollRepository(session)

    async def create_entry(self, data: EntryCreate) -> PayrollEntry:
        period = await self.repo.get_period_for_share(data.payroll_period_id)
        if period is None:
            raise NotFoundError("Payroll period", data.payroll_period_id)
        PeriodStateMachine.ensure_mutable(period)

        employee = await self.repo.get_employee(data.employee_id)
        if employee is None:
            raise NotFoundError("Employee", data.employee_id)
        if not employee.is_active:
            raise ValidationError(f"Employee {data.employee_id} is {employee.status}")

        entry = await self.repo.upsert_entry(data.model_dump())
        logger.info(
            "Posted %s %s of %s for employee %s in period %s",
            data.component_type,
            data.code,
            data.amount,
            data.employee_id,
            period.label,
        )
        return entry

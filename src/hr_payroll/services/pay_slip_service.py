"""Pay slip queries."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.errors import NotFoundError
from hr_payroll.models import PayrollEntry, PaySlip
from hr_payroll.repositories import PayrollRepository


@dataclass
class PaySlipDetail:
    """A pay slip with its entries."""

    slip: PaySlip
    entries: list[PayrollEntry]


class PaySlipService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = PayrollRepository(session)

    async def list_for_period(self, period_id: int) -> list[PaySlip]:
        if await self.repo.get_period(period_id) is None:
            raise NotFoundError("Payroll period", period_id)
        return await self.repo.list_pay_slips(period_id=period_id)

    async def list_for_employee(
        self,
        employee_id: int,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[PaySlip]:
        page = max(page, 1)
        return await self.repo.list_pay_slips(
            employee_id=employee_id,
            status=status,
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def get_detail(self, slip_id: int) -> PaySlipDetail:
        slip = await self.repo.get_pay_slip_by_id(slip_id)
        if slip is None:
            raise NotFoundError("Pay slip", slip_id)
        entries = await self.repo.list_entries(slip.payroll_period_id, slip.employee_id)
        return PaySlipDetail(slip=slip, entries=entries)

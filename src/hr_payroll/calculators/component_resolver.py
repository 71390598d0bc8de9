"""Resolution of an employee's recurring components for a period."""

from __future__ import annotations

from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.models import PayrollComponent


class ComponentResolver:
    """Collects the active components effective for an employee.

    A component is effective when it is active, started on or before the
    reference date and has not ended before the window start. Without a
    window start the reference date itself is the window.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(
        self,
        employee_id: int,
        reference_date: date,
        window_start: date | None = None,
    ) -> list[PayrollComponent]:
        lower = window_start or reference_date
        result = await self.session.execute(
            select(PayrollComponent)
            .where(
                PayrollComponent.employee_id == employee_id,
                PayrollComponent.is_active.is_(True),
                PayrollComponent.effective_from <= reference_date,
                or_(
                    PayrollComponent.effective_until.is_(None),
                    PayrollComponent.effective_until >= lower,
                ),
            )
            .order_by(PayrollComponent.type, PayrollComponent.id)
        )
        return list(result.scalars().all())

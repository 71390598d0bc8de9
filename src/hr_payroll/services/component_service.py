"""Recurring component management."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.types import ComponentKind
from hr_payroll.errors import NotFoundError, ValidationError
from hr_payroll.models import Employee, PayrollComponent
from hr_payroll.repositories import PayrollRepository
from hr_payroll.schemas import ComponentCreate, ComponentPatch

logger = logging.getLogger(__name__)


class ComponentService:
    """Creates and updates the recurring earnings of employees."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = PayrollRepository(session)

    async def _active_employee(self, employee_id: int) -> Employee:
        employee = await self.repo.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        if not employee.is_active:
            raise ValidationError(f"Employee {employee_id} is {employee.status}")
        return employee

    async def list_for_employee(self, employee_id: int) -> list[PayrollComponent]:
        """Components of an employee, newest effective date first."""
        if await self.repo.get_employee(employee_id) is None:
            raise NotFoundError("Employee", employee_id)
        return await self.repo.list_components(employee_id)

    async def create(self, data: ComponentCreate) -> PayrollComponent:
        await self._active_employee(data.employee_id)

        component = PayrollComponent(
            employee_id=data.employee_id,
            type=data.type,
            description=data.description,
            amount=data.amount,
            is_active=True,
            effective_from=data.effective_from,
            effective_until=data.effective_until,
        )
        self.session.add(component)
        await self.session.flush()
        logger.info(
            "Added %s component %s for employee %s", data.type, component.id, data.employee_id
        )
        return component

    async def update(self, component_id: int, patch: ComponentPatch) -> PayrollComponent:
        """Apply only the fields explicitly present in the patch."""
        component = await self.repo.get_component(component_id)
        if component is None:
            raise NotFoundError("Payroll component", component_id)

        changes = patch.changes()
        for field_name, value in changes.items():
            if value is None and field_name != "effective_until":
                raise ValidationError(f"{field_name} cannot be null")
            setattr(component, field_name, value)

        if (
            component.effective_until is not None
            and component.effective_until < component.effective_from
        ):
            raise ValidationError("effective_until must not be before effective_from")

        await self.session.flush()
        return component

    async def change_base_salary(
        self,
        employee_id: int,
        amount: Decimal,
        effective_from: date,
    ) -> PayrollComponent:
        """Set a new base salary.

        The active base salary component is updated in place. One is created
        when the employee has none. The employee's salary field mirrors it.
        """
        employee = await self._active_employee(employee_id)
        try:
            amount = ComponentPatch(amount=amount).amount
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
        if amount is None:
            raise ValidationError("Base salary amount is required")

        component = await self.repo.find_active_component(
            employee_id, ComponentKind.BASE_SALARY.value
        )
        if component is None:
            component = PayrollComponent(
                employee_id=employee_id,
                type=ComponentKind.BASE_SALARY.value,
                description="Base salary",
                amount=amount,
                is_active=True,
                effective_from=effective_from,
            )
            self.session.add(component)
        else:
            component.amount = amount

        employee.salary = amount
        await self.session.flush()
        logger.info("Base salary of employee %s set to %s", employee_id, amount)
        return component

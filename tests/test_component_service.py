"""Tests for recurring component management."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.calculators.engine import EntryGenerationEngine
from hr_payroll.errors import NotFoundError, ValidationError
from hr_payroll.schemas import ComponentCreate, ComponentPatch
from hr_payroll.services.component_service import ComponentService


def bonus(employee_id, **overrides):
    data = {
        "employee_id": employee_id,
        "type": "fixed_bonus",
        "description": "Language bonus",
        "amount": Decimal("250.00"),
        "effective_from": date(2024, 1, 1),
    }
    data.update(overrides)
    return ComponentCreate(**data)


class TestCreate:
    """Test adding components."""

    async def test_create(self, session, make_employee):
        employee = await make_employee()

        component = await ComponentService(session).create(bonus(employee.id))

        assert component.id is not None
        assert component.is_active is True
        assert component.amount == Decimal("250.00")

    async def test_new_component_counts_in_next_calculation(
        self, session, make_employee, make_period
    ):
        employee = await make_employee(salary="3000.00")
        period = await make_period()
        await ComponentService(session).create(bonus(employee.id))
        await session.commit()

        slip = await EntryGenerationEngine(session).generate(period, employee.id)

        assert slip.gross_salary == Decimal("3250.00")

    async def test_missing_employee(self, session):
        with pytest.raises(NotFoundError):
            await ComponentService(session).create(bonus(404))

    async def test_inactive_employee(self, session, make_employee):
        employee = await make_employee(status="terminated")

        with pytest.raises(ValidationError):
            await ComponentService(session).create(bonus(employee.id))

    async def test_list_newest_first(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        later = await service.create(bonus(employee.id, effective_from=date(2024, 3, 1)))

        components = await service.list_for_employee(employee.id)

        assert components[0].id == later.id
        assert [c.type for c in components] == ["fixed_bonus", "base_salary"]


class TestUpdate:
    """Test partial updates."""

    async def test_only_set_fields_change(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        component = await service.create(
            bonus(employee.id, effective_until=date(2024, 12, 31))
        )

        updated = await service.update(component.id, ComponentPatch(amount=Decimal("300.00")))

        assert updated.amount == Decimal("300.00")
        assert updated.description == "Language bonus"
        assert updated.effective_until == date(2024, 12, 31)

    async def test_explicit_null_clears_end_date(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        component = await service.create(
            bonus(employee.id, effective_until=date(2024, 12, 31))
        )

        updated = await service.update(component.id, ComponentPatch(effective_until=None))

        assert updated.effective_until is None

    async def test_null_amount_rejected(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        component = await service.create(bonus(employee.id))

        with pytest.raises(ValidationError):
            await service.update(component.id, ComponentPatch(amount=None))

    async def test_end_before_start_rejected(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        component = await service.create(bonus(employee.id))

        with pytest.raises(ValidationError):
            await service.update(
                component.id, ComponentPatch(effective_until=date(2023, 12, 31))
            )

    async def test_deactivate(self, session, make_employee):
        employee = await make_employee()
        service = ComponentService(session)
        component = await service.create(bonus(employee.id))

        updated = await service.update(component.id, ComponentPatch(is_active=False))

        assert updated.is_active is False

    async def test_missing_component(self, session):
        with pytest.raises(NotFoundError):
            await ComponentService(session).update(404, ComponentPatch(amount=Decimal("1")))


class TestChangeBaseSalary:
    """Test base salary changes."""

    async def test_updates_existing_component(self, session, make_employee):
        employee = await make_employee(salary="3000.00")
        service = ComponentService(session)

        component = await service.change_base_salary(
            employee.id, Decimal("3500.00"), date(2024, 2, 1)
        )

        assert component.amount == Decimal("3500.00")
        assert employee.salary == Decimal("3500.00")
        components = await service.list_for_employee(employee.id)
        assert len(components) == 1

    async def test_creates_component_when_missing(self, session, make_employee):
        employee = await make_employee(components=[("fixed_bonus", "100.00")])

        component = await ComponentService(session).change_base_salary(
            employee.id, Decimal("2800.00"), date(2024, 2, 1)
        )

        assert component.type == "base_salary"
        assert component.effective_from == date(2024, 2, 1)
        assert employee.salary == Decimal("2800.00")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10.00")])
    async def test_non_positive_amount_rejected(self, session, make_employee, amount):
        employee = await make_employee()

        with pytest.raises(ValidationError):
            await ComponentService(session).change_base_salary(
                employee.id, amount, date(2024, 2, 1)
            )

    async def test_inactive_employee(self, session, make_employee):
        employee = await make_employee(status="inactive")

        with pytest.raises(ValidationError):
            await ComponentService(session).change_base_salary(
                employee.id, Decimal("3500.00"), date(2024, 2, 1)
            )

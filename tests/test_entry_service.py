"""Tests for posting one-off entries to a period."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from hr_payroll.calculators.engine import EntryGenerationEngine
from hr_payroll.errors import InvalidTransitionError, NotFoundError, ValidationError
from hr_payroll.repositories import PayrollRepository
from hr_payroll.schemas import EntryCreate
from hr_payroll.services.entry_service import ManualEntryService


def overtime(period_id, employee_id, **overrides):
    data = {
        "payroll_period_id": period_id,
        "employee_id": employee_id,
        "component_type": "earning",
        "code": "overtime_50",
        "description": "Overtime 50%",
        "amount": Decimal("150.00"),
        "reference_value": Decimal("20.45"),
        "quantity": Decimal("5"),
    }
    data.update(overrides)
    return EntryCreate(**data)


async def entry_keys(session, period_id, employee_id):
    entries = await PayrollRepository(session).list_entries(period_id, employee_id)
    return [(e.component_type, e.code) for e in entries]


class TestCreateEntry:
    """Test posting entries."""

    async def test_create(self, session, make_employee, make_period):
        employee = await make_employee()
        period = await make_period()

        entry = await ManualEntryService(session).create_entry(overtime(period.id, employee.id))
        await session.commit()

        assert entry.id is not None
        assert entry.amount == Decimal("150.00")
        assert entry.quantity == Decimal("5")
        assert await entry_keys(session, period.id, employee.id) == [("earning", "overtime_50")]

    async def test_same_code_replaces_amount(self, session, make_employee, make_period):
        employee = await make_employee()
        period = await make_period()
        service = ManualEntryService(session)

        first = await service.create_entry(overtime(period.id, employee.id))
        second = await service.create_entry(
            overtime(period.id, employee.id, amount=Decimal("90.00"))
        )
        await session.commit()

        assert second.id == first.id
        assert second.amount == Decimal("90.00")
        assert await entry_keys(session, period.id, employee.id) == [("earning", "overtime_50")]

    async def test_deduction(self, session, make_employee, make_period):
        employee = await make_employee()
        period = await make_period()

        entry = await ManualEntryService(session).create_entry(
            overtime(
                period.id,
                employee.id,
                component_type="deduction",
                code="advance",
                description="Salary advance",
                reference_value=None,
                quantity=None,
            )
        )

        assert (entry.component_type, entry.code) == ("deduction", "advance")


class TestGuards:
    """Closed periods and missing or inactive employees are rejected."""

    async def test_closed_period(self, session, make_employee, make_period):
        employee = await make_employee()
        period = await make_period(status="closed")

        with pytest.raises(InvalidTransitionError, match="no longer accepts changes"):
            await ManualEntryService(session).create_entry(overtime(period.id, employee.id))

        assert await entry_keys(session, period.id, employee.id) == []

    async def test_missing_period(self, session, make_employee):
        employee = await make_employee()

        with pytest.raises(NotFoundError):
            await ManualEntryService(session).create_entry(overtime(404, employee.id))

    async def test_missing_employee(self, session, make_period):
        period = await make_period()

        with pytest.raises(NotFoundError):
            await ManualEntryService(session).create_entry(overtime(period.id, 404))

    async def test_inactive_employee(self, session, make_employee, make_period):
        employee = await make_employee(status="inactive")
        period = await make_period()

        with pytest.raises(ValidationError, match="is inactive"):
            await ManualEntryService(session).create_entry(overtime(period.id, employee.id))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"code": "inss"},
            {"component_type": "employer_charge"},
            {"amount": Decimal("0")},
            {"amount": Decimal("10.001")},
            {"description": ""},
        ],
    )
    def test_invalid_input(self, overrides):
        with pytest.raises(PydanticValidationError):
            overtime(1, 1, **overrides)


class TestRecalculation:
    """Calculation rebuilds the ledger from components."""

    async def test_posted_entry_removed_by_recalculation(
        self, session, make_employee, make_period
    ):
        employee = await make_employee(salary="3000.00")
        period = await make_period()
        await ManualEntryService(session).create_entry(overtime(period.id, employee.id))
        await session.commit()

        slip = await EntryGenerationEngine(session).generate(period, employee.id)
        await session.commit()

        assert ("earning", "overtime_50") not in await entry_keys(
            session, period.id, employee.id
        )
        assert slip.gross_salary == Decimal("3000.00")

"""Storage access for periods, entries, pay slips and tax tables.

Writes keyed by a natural key go through ``upsert_by_key`` so that a
recomputation updates rows in place instead of inserting duplicates.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Any, TypeVar

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.errors import ConfigurationError
from hr_payroll.models import (
    Employee,
    PayrollComponent,
    PayrollEntry,
    PayrollPeriod,
    PaySlip,
    TaxTable,
)
from hr_payroll.models.base import TimestampMixin, utcnow
from hr_payroll.schemas import PeriodFilters

ModelT = TypeVar("ModelT")

ENTRY_KEY = ["payroll_period_id", "employee_id", "component_type", "code"]
PAY_SLIP_KEY = ["payroll_period_id", "employee_id"]
TAX_TABLE_KEY = ["type", "bracket_min", "effective_from"]

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def period_lock_statement(period_id: int, *, read: bool = False) -> Select:
    """SELECT ... FOR UPDATE, or FOR SHARE when ``read`` is set."""
    return (
        select(PayrollPeriod)
        .where(PayrollPeriod.id == period_id)
        .with_for_update(read=read)
        .execution_options(populate_existing=True)
    )


class PayrollRepository:
    """Query and write helpers bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== Upserts =====

    def _insert_for_dialect(self):
        dialect = self.session.bind.dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect]
        except KeyError:
            raise ConfigurationError(f"Upsert is not supported on {dialect}") from None

    async def upsert_by_key(
        self,
        model: type[ModelT],
        values: dict[str, Any],
        key_columns: Sequence[str],
    ) -> ModelT:
        """Insert a row or update the one sharing its natural key.

        Runs as a single INSERT ... ON CONFLICT DO UPDATE statement and
        returns the stored row with its current values.
        """
        insert = self._insert_for_dialect()
        stmt = insert(model).values(**values)

        set_ = {
            column: stmt.excluded[column]
            for column in values
            if column not in key_columns
        }
        if issubclass(model, TimestampMixin):
            set_["updated_at"] = utcnow()

        stmt = stmt.on_conflict_do_update(
            index_elements=list(key_columns),
            set_=set_,
        ).returning(model)

        result = await self.session.scalars(
            stmt,
            execution_options={"populate_existing": True},
        )
        return result.one()

    async def upsert_entry(self, values: dict[str, Any]) -> PayrollEntry:
        return await self.upsert_by_key(PayrollEntry, values, ENTRY_KEY)

    async def upsert_pay_slip(self, values: dict[str, Any]) -> PaySlip:
        return await self.upsert_by_key(PaySlip, values, PAY_SLIP_KEY)

    async def upsert_tax_bracket(self, values: dict[str, Any]) -> TaxTable:
        return await self.upsert_by_key(TaxTable, values, TAX_TABLE_KEY)

    async def end_tax_tables(self, tax_type: str, successor_from: date) -> int:
        """Close open brackets of a type that start before ``successor_from``.

        They end the day before the successor table takes effect. Returns the
        number of brackets ended.
        """
        result = await self.session.execute(
            update(TaxTable)
            .where(
                TaxTable.type == tax_type,
                TaxTable.effective_until.is_(None),
                TaxTable.effective_from < successor_from,
            )
            .values(effective_until=successor_from - timedelta(days=1), updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_stale_entries(
        self,
        period_id: int,
        employee_id: int,
        keep_keys: Iterable[tuple[str, str]],
    ) -> int:
        """Delete the pair's entries whose (component_type, code) is not kept.

        Returns the number of rows removed.
        """
        keep = set(keep_keys)
        result = await self.session.execute(
            select(PayrollEntry.id, PayrollEntry.component_type, PayrollEntry.code).where(
                PayrollEntry.payroll_period_id == period_id,
                PayrollEntry.employee_id == employee_id,
            )
        )
        stale_ids = [
            row.id for row in result if (row.component_type, row.code) not in keep
        ]
        if not stale_ids:
            return 0

        await self.session.execute(
            delete(PayrollEntry).where(PayrollEntry.id.in_(stale_ids))
        )
        return len(stale_ids)

    # ===== Periods =====

    async def get_period(self, period_id: int) -> PayrollPeriod | None:
        return await self.session.get(PayrollPeriod, period_id)

    async def get_period_for_update(self, period_id: int) -> PayrollPeriod | None:
        """Load a period holding an exclusive row lock until the transaction ends."""
        result = await self.session.execute(period_lock_statement(period_id))
        return result.scalar_one_or_none()

    async def get_period_for_share(self, period_id: int) -> PayrollPeriod | None:
        """Load a period holding a shared row lock.

        Calculations hold this while writing so a close waits for them, and a
        calculation started after a close reads the committed status.
        """
        result = await self.session.execute(period_lock_statement(period_id, read=True))
        return result.scalar_one_or_none()

    async def find_period(self, month: int, year: int) -> PayrollPeriod | None:
        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.reference_month == month,
                PayrollPeriod.reference_year == year,
            )
        )
        return result.scalar_one_or_none()

    async def list_periods(self, filters: PeriodFilters) -> tuple[list[PayrollPeriod], int]:
        """List periods newest first. Returns the page and the total count."""
        conditions = []
        if filters.year is not None:
            conditions.append(PayrollPeriod.reference_year == filters.year)
        if filters.status is not None:
            conditions.append(PayrollPeriod.status == filters.status)

        total = await self.session.scalar(
            select(func.count()).select_from(PayrollPeriod).where(*conditions)
        )
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(*conditions)
            .order_by(PayrollPeriod.reference_year.desc(), PayrollPeriod.reference_month.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        return list(result.scalars().all()), total or 0

    # ===== Employees & components =====

    async def get_employee(self, employee_id: int) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def list_employee_ids(
        self,
        statuses: Iterable[str],
        employment_types: Iterable[str],
    ) -> list[int]:
        result = await self.session.execute(
            select(Employee.id)
            .where(
                Employee.status.in_(list(statuses)),
                Employee.employment_type.in_(list(employment_types)),
            )
            .order_by(Employee.id)
        )
        return list(result.scalars().all())

    async def get_component(self, component_id: int) -> PayrollComponent | None:
        return await self.session.get(PayrollComponent, component_id)

    async def list_components(self, employee_id: int) -> list[PayrollComponent]:
        result = await self.session.execute(
            select(PayrollComponent)
            .where(PayrollComponent.employee_id == employee_id)
            .order_by(PayrollComponent.effective_from.desc(), PayrollComponent.id.desc())
        )
        return list(result.scalars().all())

    async def find_active_component(
        self, employee_id: int, component_type: str
    ) -> PayrollComponent | None:
        """Most recent active component of a type, or None."""
        result = await self.session.execute(
            select(PayrollComponent)
            .where(
                PayrollComponent.employee_id == employee_id,
                PayrollComponent.type == component_type,
                PayrollComponent.is_active.is_(True),
            )
            .order_by(PayrollComponent.effective_from.desc(), PayrollComponent.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # ===== Entries & pay slips =====

    async def list_entries(self, period_id: int, employee_id: int) -> list[PayrollEntry]:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(
                PayrollEntry.payroll_period_id == period_id,
                PayrollEntry.employee_id == employee_id,
            )
            .order_by(PayrollEntry.component_type, PayrollEntry.code)
        )
        return list(result.scalars().all())

    async def get_pay_slip_by_id(self, slip_id: int) -> PaySlip | None:
        return await self.session.get(PaySlip, slip_id)

    async def list_pay_slips(
        self,
        period_id: int | None = None,
        employee_id: int | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[PaySlip]:
        stmt = select(PaySlip)
        if period_id is not None:
            stmt = stmt.where(PaySlip.payroll_period_id == period_id)
        if employee_id is not None:
            stmt = stmt.where(PaySlip.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(PaySlip.status == status)

        stmt = stmt.order_by(PaySlip.payroll_period_id.desc(), PaySlip.employee_id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def finalize_pay_slips(self, period_id: int) -> int:
        """Mark every draft slip of a period final. Returns the count."""
        result = await self.session.execute(
            update(PaySlip)
            .where(PaySlip.payroll_period_id == period_id, PaySlip.status == "draft")
            .values(status="final", updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

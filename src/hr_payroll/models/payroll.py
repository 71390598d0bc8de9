"""Payroll period, component, entry, pay slip and tax table models."""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hr_payroll.models.employee import Employee


# ===== Periods =====


class PayrollPeriod(Base, TimestampMixin):
    """Monthly payroll period."""

    __tablename__ = "payroll_period"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_month: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    closed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "reference_month",
            "reference_year",
            name="payroll_period_month_year_unique",
        ),
        CheckConstraint(
            "reference_month BETWEEN 1 AND 12",
            name="payroll_period_month_check",
        ),
        CheckConstraint(
            "status IN ('open', 'closed')",
            name="payroll_period_status_check",
        ),
        Index("payroll_period_status_idx", "status"),
    )

    @property
    def start_date(self) -> date:
        """First day of the reference month."""
        return date(self.reference_year, self.reference_month, 1)

    @property
    def reference_date(self) -> date:
        """Last day of the reference month, used to resolve components."""
        last_day = calendar.monthrange(self.reference_year, self.reference_month)[1]
        return date(self.reference_year, self.reference_month, last_day)

    @property
    def label(self) -> str:
        return f"{self.reference_month:02d}/{self.reference_year}"


# ===== Recurring components =====


class PayrollComponent(Base, TimestampMixin):
    """Recurring earning assigned to an employee."""

    __tablename__ = "payroll_component"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('base_salary', 'fixed_bonus', 'hazard_pay', 'unhealthy_pay', 'other')",
            name="payroll_component_type_check",
        ),
        CheckConstraint(
            "effective_until IS NULL OR effective_until >= effective_from",
            name="payroll_component_dates_check",
        ),
        Index("payroll_component_employee_active_idx", "employee_id", "is_active"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="components")

    def is_effective_on(self, reference_date: date, window_start: date | None = None) -> bool:
        """Check if the component applies on a date.

        With ``window_start`` the component only has to overlap the window
        ``[window_start, reference_date]``.
        """
        if not self.is_active:
            return False
        if self.effective_from > reference_date:
            return False
        lower = window_start or reference_date
        if self.effective_until is not None and self.effective_until < lower:
            return False
        return True


# ===== Ledger entries & pay slips =====


class PayrollEntry(Base, TimestampMixin):
    """One earning, deduction or employer charge of a pay slip."""

    __tablename__ = "payroll_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_period_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_period.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    component_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    reference_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id",
            "employee_id",
            "component_type",
            "code",
            name="payroll_entry_natural_key_unique",
        ),
        CheckConstraint(
            "component_type IN ('earning', 'deduction', 'employer_charge')",
            name="payroll_entry_component_type_check",
        ),
        Index("payroll_entry_period_employee_idx", "payroll_period_id", "employee_id"),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship()
    employee: Mapped[Employee] = relationship()

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.component_type, self.code)


class PaySlip(Base, TimestampMixin):
    """Per-employee, per-period aggregate of entries."""

    __tablename__ = "pay_slip"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payroll_period_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payroll_period.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(nullable=False)
    inss_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    irrf_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    fgts_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id",
            "employee_id",
            name="pay_slip_period_employee_unique",
        ),
        CheckConstraint(
            "status IN ('draft', 'final')",
            name="pay_slip_status_check",
        ),
        Index("pay_slip_employee_idx", "employee_id"),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship()
    employee: Mapped[Employee] = relationship()


# ===== Tax tables =====


class TaxTable(Base, TimestampMixin):
    """One bracket of an INSS or IRRF table."""

    __tablename__ = "tax_table"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    bracket_min: Mapped[Decimal] = mapped_column(nullable=False)
    bracket_max: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    deduction_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "type",
            "bracket_min",
            "effective_from",
            name="tax_table_type_min_effective_unique",
        ),
        CheckConstraint("type IN ('inss', 'irrf')", name="tax_table_type_check"),
        CheckConstraint(
            "bracket_max IS NULL OR bracket_max >= bracket_min",
            name="tax_table_bounds_check",
        ),
        Index("tax_table_type_effective_idx", "type", "effective_from"),
    )

"""Employee record as exposed by the employee directory."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hr_payroll.models.payroll import PayrollComponent


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    registration_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    employment_type: Mapped[str] = mapped_column(String, nullable=False, default="clt")
    salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    dependents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employee_status_check",
        ),
        CheckConstraint(
            "employment_type IN ('clt', 'pj')",
            name="employee_employment_type_check",
        ),
    )

    # Relationships
    components: Mapped[list[PayrollComponent]] = relationship(back_populates="employee")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

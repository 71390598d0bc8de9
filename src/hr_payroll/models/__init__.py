"""ORM models."""

from hr_payroll.models.audit import AuditEvent
from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.employee import Employee
from hr_payroll.models.payroll import (
    PayrollComponent,
    PayrollEntry,
    PayrollPeriod,
    PaySlip,
    TaxTable,
)

__all__ = [
    "AuditEvent",
    "Base",
    "Employee",
    "PaySlip",
    "PayrollComponent",
    "PayrollEntry",
    "PayrollPeriod",
    "TaxTable",
    "TimestampMixin",
]

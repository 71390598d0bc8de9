"""Payroll services."""

from hr_payroll.services.audit import (
    DatabaseAuditLogger,
    LoggingAuditLogger,
    SessionAuditLogger,
    record_safely,
)
from hr_payroll.services.component_service import ComponentService
from hr_payroll.services.entry_service import ManualEntryService
from hr_payroll.services.pay_slip_service import PaySlipDetail, PaySlipService
from hr_payroll.services.payroll_service import PayrollBatchResult, PayrollOrchestrator
from hr_payroll.services.period_service import PeriodLifecycleManager

__all__ = [
    "ComponentService",
    "DatabaseAuditLogger",
    "LoggingAuditLogger",
    "ManualEntryService",
    "PaySlipDetail",
    "PaySlipService",
    "PayrollBatchResult",
    "PayrollOrchestrator",
    "PeriodLifecycleManager",
    "SessionAuditLogger",
    "record_safely",
]

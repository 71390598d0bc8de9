"""Payroll period lifecycle: create, close, query."""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.errors import DuplicatePeriodError, NotFoundError, ValidationError
from hr_payroll.models import PayrollPeriod
from hr_payroll.models.base import utcnow
from hr_payroll.repositories import PayrollRepository
from hr_payroll.schemas import PeriodCreate, PeriodFilters
from hr_payroll.services.audit import AuditLogger, SessionAuditLogger, record_safely
from hr_payroll.state_machine import PeriodStateMachine, PeriodStatus

logger = logging.getLogger(__name__)


class PeriodLifecycleManager:
    """Service for managing payroll period lifecycle.

    Operations:
    - create: open a period for a month/year (unique)
    - close: open -> closed, finalizing the period's draft slips
    - get / list_periods: queries
    - ensure_open: guard used before any recalculation

    All writes happen in the caller's session. The caller commits.
    """

    def __init__(self, session: AsyncSession, audit: AuditLogger | None = None):
        self.session = session
        self.repo = PayrollRepository(session)
        self.audit = audit if audit is not None else SessionAuditLogger(session)

    async def create(self, month: int, year: int) -> PayrollPeriod:
        """Open a new period. Raises DuplicatePeriodError if it already exists."""
        try:
            data = PeriodCreate(reference_month=month, reference_year=year)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        existing = await self.repo.find_period(data.reference_month, data.reference_year)
        if existing is not None:
            raise DuplicatePeriodError(data.reference_month, data.reference_year)

        period = PayrollPeriod(
            reference_month=data.reference_month,
            reference_year=data.reference_year,
            status=PeriodStatus.OPEN.value,
        )
        self.session.add(period)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent create
            raise DuplicatePeriodError(data.reference_month, data.reference_year) from exc

        logger.info("Opened payroll period %s (id=%s)", period.label, period.id)
        return period

    async def close(self, period_id: int, actor_id: int | None = None) -> PayrollPeriod:
        """Close a period.

        The period row stays locked until the caller's transaction ends, so a
        concurrent close or calculation serializes behind this one.
        """
        period = await self.repo.get_period_for_update(period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)

        PeriodStateMachine.validate_transition(period.status, PeriodStatus.CLOSED.value)

        period.status = PeriodStatus.CLOSED.value
        period.closed_by = actor_id
        period.closed_at = utcnow()
        await self.session.flush()

        finalized = await self.repo.finalize_pay_slips(period.id)
        logger.info(
            "Closed payroll period %s by actor %s, %d slip(s) finalized",
            period.label,
            actor_id,
            finalized,
        )

        await record_safely(
            self.audit,
            action="payroll_period.closed",
            entity_type="payroll_period",
            entity_id=period.id,
            actor_id=actor_id,
            description=f"Payroll period {period.label} closed",
            details={"finalized_slips": finalized},
        )
        return period

    async def get(self, period_id: int) -> PayrollPeriod:
        period = await self.repo.get_period(period_id)
        if period is None:
            raise NotFoundError("Payroll period", period_id)
        return period

    async def list_periods(
        self, filters: PeriodFilters | None = None
    ) -> tuple[list[PayrollPeriod], int]:
        """List periods newest first. Returns the page and the total count."""
        return await self.repo.list_periods(filters or PeriodFilters())

    @staticmethod
    def ensure_open(period: PayrollPeriod) -> None:
        """Raise InvalidTransitionError unless the period accepts calculation."""
        PeriodStateMachine.ensure_mutable(period)

"""Batch payroll calculation for a period."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.calculators.engine import EntryGenerationEngine
from hr_payroll.config import get_settings
from hr_payroll.errors import NotFoundError
from hr_payroll.models import PaySlip
from hr_payroll.repositories import PayrollRepository
from hr_payroll.services.audit import AuditLogger, DatabaseAuditLogger, record_safely
from hr_payroll.state_machine import PeriodStateMachine

logger = logging.getLogger(__name__)

# Employment types that go through payroll; contractors ("pj") are invoiced
PAYROLL_EMPLOYMENT_TYPES = ("clt",)
ELIGIBLE_STATUSES = ("active",)


@dataclass
class PayrollBatchResult:
    """Result of calculating an entire period."""

    period_id: int
    slips: list[PaySlip] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)  # employee_id -> error

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def total_gross(self) -> Decimal:
        return sum((s.gross_salary for s in self.slips), Decimal("0"))

    @property
    def total_net(self) -> Decimal:
        return sum((s.net_salary for s in self.slips), Decimal("0"))


class PayrollOrchestrator:
    """Drives entry generation for every eligible employee of a period.

    Each employee runs in its own session and transaction, at most
    ``max_workers`` at a time. A failing employee is rolled back alone and
    reported in ``failures``; the rest of the batch carries on. Every write is
    an upsert, so rerunning a partially failed batch converges on the same
    final state.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit: AuditLogger | None = None,
        max_workers: int | None = None,
    ):
        self.session_factory = session_factory
        self.audit = audit if audit is not None else DatabaseAuditLogger(session_factory)
        self.max_workers = max_workers or get_settings().max_workers
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    async def calculate(
        self,
        period_id: int,
        *,
        finalize: bool = False,
        actor_id: int | None = None,
    ) -> PayrollBatchResult:
        """Calculate all eligible employees of a period.

        Raises NotFoundError for an unknown period and InvalidTransitionError
        for a closed one, before any employee is touched.
        """
        async with self.session_factory() as session:
            repo = PayrollRepository(session)
            period = await repo.get_period(period_id)
            if period is None:
                raise NotFoundError("Payroll period", period_id)
            PeriodStateMachine.ensure_mutable(period)

            employee_ids = await repo.list_employee_ids(
                ELIGIBLE_STATUSES, PAYROLL_EMPLOYMENT_TYPES
            )
            label = period.label

        logger.info(
            "Calculating payroll period %s for %d employee(s)", label, len(employee_ids)
        )

        semaphore = asyncio.Semaphore(self.max_workers)

        async def run(employee_id: int) -> tuple[int, PaySlip | None, str | None]:
            async with semaphore:
                return await self._generate_one(period_id, employee_id, finalize)

        outcomes = await asyncio.gather(*(run(eid) for eid in employee_ids))

        result = PayrollBatchResult(period_id=period_id)
        for employee_id, slip, error in outcomes:
            if slip is not None:
                result.slips.append(slip)
            else:
                result.failures[employee_id] = error or "unknown error"

        logger.info(
            "Payroll period %s: %d slip(s) generated, %d failure(s)",
            label,
            len(result.slips),
            len(result.failures),
        )

        await record_safely(
            self.audit,
            action="payroll.calculated",
            entity_type="payroll_period",
            entity_id=period_id,
            actor_id=actor_id,
            description=(
                f"Payroll calculated for period {label}: "
                f"{len(result.slips)} generated, {len(result.failures)} failed"
            ),
            details={
                "employees": len(employee_ids),
                "generated": len(result.slips),
                "failed": len(result.failures),
                "finalize": finalize,
            },
        )
        return result

    async def _generate_one(
        self,
        period_id: int,
        employee_id: int,
        finalize: bool,
    ) -> tuple[int, PaySlip | None, str | None]:
        """Generate one employee in its own transaction."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    # Shared lock: a close waits for this write, and one that
                    # landed mid-batch is honoured
                    period = await PayrollRepository(session).get_period_for_share(period_id)
                    if period is None:
                        raise NotFoundError("Payroll period", period_id)
                    engine = EntryGenerationEngine(session)
                    slip = await engine.generate(period, employee_id, finalize=finalize)
            return employee_id, slip, None
        except Exception as e:
            logger.exception(
                "Payroll generation failed for employee %s in period %s",
                employee_id,
                period_id,
            )
            return employee_id, None, str(e)

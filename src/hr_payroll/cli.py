"""Payroll Command Line Interface.

Provides operational tools for:
- Schema creation and tax table seeding
- Opening and closing payroll periods
- Batch payroll calculation
- Pay slip listing and detail
- Manual entries and component listing

Usage:
    python -m hr_payroll init-db
    python -m hr_payroll seed-tax-tables --effective-from 2024-01-01
    python -m hr_payroll create-period --month 1 --year 2024
    python -m hr_payroll calculate --period-id 1
    python -m hr_payroll close-period --period-id 1 --actor-id 7
    python -m hr_payroll slips --period-id 1
    python -m hr_payroll slip-detail --slip-id 1
    python -m hr_payroll add-entry --period-id 1 --employee-id 3 --type earning \
        --code overtime_50 --description "Overtime" --amount 150.00
    python -m hr_payroll components --employee-id 3

Results are printed as JSON on stdout. Errors are printed as JSON on stderr
with a non-zero exit code.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.calculators.tax_tables import FALLBACK_EFFECTIVE_FROM, seed_tax_tables
from hr_payroll.config import get_settings
from hr_payroll.database import create_all, get_engine, make_session_factory
from hr_payroll.errors import PayrollError, ValidationError
from hr_payroll.schemas import (
    ComponentResponse,
    EntryCreate,
    EntryResponse,
    PaySlipResponse,
    PayrollBatchResponse,
    PeriodFilters,
    PeriodResponse,
)
from hr_payroll.services.component_service import ComponentService
from hr_payroll.services.entry_service import ManualEntryService
from hr_payroll.services.pay_slip_service import PaySlipService
from hr_payroll.services.payroll_service import PayrollOrchestrator
from hr_payroll.services.period_service import PeriodLifecycleManager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_decimal(s: str) -> Decimal:
    """Parse a money or quantity argument."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid decimal value: {s!r}") from None


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m hr_payroll",
            description="Payroll calculation and period lifecycle tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: DATABASE_URL from the environment)",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            help="Log level (default: LOG_LEVEL from the environment)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # init-db command
        subparsers.add_parser("init-db", help="Create all tables")

        # seed-tax-tables command
        seed = subparsers.add_parser(
            "seed-tax-tables",
            help="Store the built-in INSS and IRRF tables",
        )
        seed.add_argument(
            "--effective-from",
            type=parse_date,
            default=FALLBACK_EFFECTIVE_FROM,
            help="First day the tables apply (ISO format, default: 2024-01-01)",
        )

        # create-period command
        create = subparsers.add_parser("create-period", help="Open a payroll period")
        create.add_argument("--month", type=int, required=True, help="Reference month (1-12)")
        create.add_argument("--year", type=int, required=True, help="Reference year")

        # close-period command
        close = subparsers.add_parser("close-period", help="Close a payroll period")
        close.add_argument("--period-id", type=int, required=True, help="Period to close")
        close.add_argument("--actor-id", type=int, help="User closing the period")

        # periods command
        periods = subparsers.add_parser("periods", help="List payroll periods")
        periods.add_argument("--year", type=int, help="Filter by reference year")
        periods.add_argument("--status", choices=["open", "closed"], help="Filter by status")
        periods.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
        periods.add_argument("--limit", type=int, default=20, help="Page size (default: 20)")

        # calculate command
        calculate = subparsers.add_parser(
            "calculate",
            help="Generate entries and pay slips for every eligible employee",
        )
        calculate.add_argument("--period-id", type=int, required=True, help="Period to calculate")
        calculate.add_argument(
            "--finalize",
            action="store_true",
            help="Write slips as final instead of draft",
        )
        calculate.add_argument("--actor-id", type=int, help="User triggering the calculation")
        calculate.add_argument(
            "--max-workers",
            type=int,
            help="Employees processed concurrently (default: PAYROLL_MAX_WORKERS)",
        )

        # slips command
        slips = subparsers.add_parser("slips", help="List pay slips of a period")
        slips.add_argument("--period-id", type=int, required=True, help="Period to list")

        # slip-detail command
        detail = subparsers.add_parser("slip-detail", help="Show a pay slip with its entries")
        detail.add_argument("--slip-id", type=int, required=True, help="Pay slip to show")

        # add-entry command
        add_entry = subparsers.add_parser(
            "add-entry",
            help="Post a one-off earning or deduction to an open period",
        )
        add_entry.add_argument("--period-id", type=int, required=True, help="Target period")
        add_entry.add_argument("--employee-id", type=int, required=True, help="Target employee")
        add_entry.add_argument(
            "--type",
            dest="component_type",
            choices=["earning", "deduction"],
            required=True,
            help="Entry type",
        )
        add_entry.add_argument("--code", required=True, help="Entry code, e.g. overtime_50")
        add_entry.add_argument("--description", required=True, help="Text shown on the slip")
        add_entry.add_argument(
            "--amount", type=parse_decimal, required=True, help="Entry amount"
        )
        add_entry.add_argument(
            "--reference-value", type=parse_decimal, help="Base the amount came from"
        )
        add_entry.add_argument("--quantity", type=parse_decimal, help="Hours, days or units")

        # components command
        components = subparsers.add_parser(
            "components", help="List recurring components of an employee"
        )
        components.add_argument("--employee-id", type=int, required=True, help="Employee")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level or get_settings().log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "seed-tax-tables": self._cmd_seed_tax_tables,
            "create-period": self._cmd_create_period,
            "close-period": self._cmd_close_period,
            "periods": self._cmd_periods,
            "calculate": self._cmd_calculate,
            "slips": self._cmd_slips,
            "slip-detail": self._cmd_slip_detail,
            "add-entry": self._cmd_add_entry,
            "components": self._cmd_components,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(handler(parsed))
        except PayrollError as e:
            print(json.dumps(e.to_dict()), file=sys.stderr)
            return 1

    @asynccontextmanager
    async def _session_factory(
        self, args: argparse.Namespace
    ) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
        engine = get_engine(args.database_url)
        try:
            yield make_session_factory(engine)
        finally:
            await engine.dispose()

    @staticmethod
    def _emit(payload: Any) -> None:
        print(json.dumps(payload, indent=2))

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        engine = get_engine(args.database_url)
        try:
            await create_all(engine)
        finally:
            await engine.dispose()
        self._emit({"status": "ok"})
        return 0

    async def _cmd_seed_tax_tables(self, args: argparse.Namespace) -> int:
        """Store the built-in tax tables."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                async with session.begin():
                    count = await seed_tax_tables(session, args.effective_from)
        self._emit({"brackets": count, "effective_from": args.effective_from.isoformat()})
        return 0

    async def _cmd_create_period(self, args: argparse.Namespace) -> int:
        """Open a payroll period."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                async with session.begin():
                    period = await PeriodLifecycleManager(session).create(args.month, args.year)
                self._emit(PeriodResponse.model_validate(period).model_dump(mode="json"))
        return 0

    async def _cmd_close_period(self, args: argparse.Namespace) -> int:
        """Close a payroll period."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                async with session.begin():
                    period = await PeriodLifecycleManager(session).close(
                        args.period_id, args.actor_id
                    )
                self._emit(PeriodResponse.model_validate(period).model_dump(mode="json"))
        return 0

    async def _cmd_periods(self, args: argparse.Namespace) -> int:
        """List payroll periods."""
        try:
            filters = PeriodFilters(
                year=args.year, status=args.status, page=args.page, limit=args.limit
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
        async with self._session_factory(args) as factory:
            async with factory() as session:
                periods, total = await PeriodLifecycleManager(session).list_periods(filters)
                self._emit(
                    {
                        "items": [
                            PeriodResponse.model_validate(p).model_dump(mode="json")
                            for p in periods
                        ],
                        "total": total,
                        "page": filters.page,
                        "limit": filters.limit,
                    }
                )
        return 0

    async def _cmd_calculate(self, args: argparse.Namespace) -> int:
        """Calculate payroll for a period.

        Exits with 2 when some employees failed, so schedulers can alert
        without treating the whole batch as lost.
        """
        async with self._session_factory(args) as factory:
            orchestrator = PayrollOrchestrator(factory, max_workers=args.max_workers)
            result = await orchestrator.calculate(
                args.period_id,
                finalize=args.finalize,
                actor_id=args.actor_id,
            )
        response = PayrollBatchResponse(
            period_id=result.period_id,
            slips=[PaySlipResponse.model_validate(s) for s in result.slips],
            failures=result.failures,
        )
        self._emit(response.model_dump(mode="json"))
        return 0 if result.success else 2

    async def _cmd_slips(self, args: argparse.Namespace) -> int:
        """List pay slips of a period."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                slips = await PaySlipService(session).list_for_period(args.period_id)
                self._emit(
                    [PaySlipResponse.model_validate(s).model_dump(mode="json") for s in slips]
                )
        return 0

    async def _cmd_slip_detail(self, args: argparse.Namespace) -> int:
        """Show a pay slip and its entries."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                detail = await PaySlipService(session).get_detail(args.slip_id)
                payload = PaySlipResponse.model_validate(detail.slip).model_dump(mode="json")
                payload["entries"] = [
                    EntryResponse.model_validate(e).model_dump(mode="json")
                    for e in detail.entries
                ]
        self._emit(payload)
        return 0

    async def _cmd_add_entry(self, args: argparse.Namespace) -> int:
        """Post a one-off entry."""
        try:
            data = EntryCreate(
                payroll_period_id=args.period_id,
                employee_id=args.employee_id,
                component_type=args.component_type,
                code=args.code,
                description=args.description,
                amount=args.amount,
                reference_value=args.reference_value,
                quantity=args.quantity,
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
        async with self._session_factory(args) as factory:
            async with factory() as session:
                async with session.begin():
                    entry = await ManualEntryService(session).create_entry(data)
                self._emit(EntryResponse.model_validate(entry).model_dump(mode="json"))
        return 0

    async def _cmd_components(self, args: argparse.Namespace) -> int:
        """List recurring components of an employee."""
        async with self._session_factory(args) as factory:
            async with factory() as session:
                components = await ComponentService(session).list_for_employee(args.employee_id)
                self._emit(
                    [
                        ComponentResponse.model_validate(c).model_dump(mode="json")
                        for c in components
                    ]
                )
        return 0


def main() -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())

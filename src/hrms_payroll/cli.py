"""Payroll Command Line Interface.

Provides operational tools for:
- Schema creation
- Stateless pay calculation preview
- Single-employee and whole-period payroll processing
- Period-scoped deletion for reprocessing

Usage:
    python -m hrms_payroll init-db
    python -m hrms_payroll calculate --salary 30000 --allowance Housing=5000
    python -m hrms_payroll process-period --tenant-id X --period-id Y
    python -m hrms_payroll process-employee --tenant-id X --period-id Y --employee-id Z
    python -m hrms_payroll delete-period-payrolls --tenant-id X --period-id Y
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable
from uuid import UUID

from hrms_payroll.calculators import (
    Allowance,
    OtherDeduction,
    Overtime,
    PayrollCalculationInput,
    calculate_payroll,
)
from hrms_payroll.config import (
    StatutoryConfig,
    get_settings,
    get_statutory_config,
    load_statutory_config,
)
from hrms_payroll.database import get_engine, init_models, make_session_factory
from hrms_payroll.errors import PayrollError
from hrms_payroll.services import PayrollProcessor

logger = logging.getLogger(__name__)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def parse_decimal(s: str) -> Decimal:
    """Parse a money amount."""
    try:
        return Decimal(s)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}") from exc


def parse_named_amount(s: str) -> tuple[str, Decimal]:
    """Parse NAME=AMOUNT."""
    name, sep, amount = s.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=AMOUNT, got {s!r}")
    return name.strip(), parse_decimal(amount.strip())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m hrms_payroll",
            description="Payroll core operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Override DATABASE_URL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # init-db command
        subparsers.add_parser("init-db", help="Create the payroll tables")

        # calculate command
        calc = subparsers.add_parser(
            "calculate",
            help="Preview a pay calculation with the default tax table (no database)",
        )
        calc.add_argument(
            "--salary",
            type=parse_decimal,
            required=True,
            help="Monthly basic salary",
        )
        calc.add_argument(
            "--allowance",
            type=parse_named_amount,
            action="append",
            default=[],
            help="Allowance as NAME=AMOUNT (repeatable)",
        )
        calc.add_argument(
            "--deduction",
            type=parse_named_amount,
            action="append",
            default=[],
            help="Other deduction as NAME=AMOUNT (repeatable)",
        )
        calc.add_argument("--overtime-hours", type=parse_decimal, help="Overtime hours")
        calc.add_argument("--overtime-rate", type=parse_decimal, help="Overtime hourly rate")
        calc.add_argument(
            "--config",
            type=str,
            help="Statutory tables JSON file (default: STATUTORY_CONFIG_PATH or built-in)",
        )

        # process-period command
        period = subparsers.add_parser(
            "process-period",
            help="Process payroll for every active employee in a period",
        )
        period.add_argument("--tenant-id", type=parse_uuid, required=True, help="Tenant ID")
        period.add_argument("--period-id", type=parse_uuid, required=True, help="Payroll period ID")

        # process-employee command
        employee = subparsers.add_parser(
            "process-employee",
            help="Process payroll for one employee in a period",
        )
        employee.add_argument("--tenant-id", type=parse_uuid, required=True, help="Tenant ID")
        employee.add_argument(
            "--period-id", type=parse_uuid, required=True, help="Payroll period ID"
        )
        employee.add_argument("--employee-id", type=parse_uuid, required=True, help="Employee ID")

        # delete-period-payrolls command
        delete = subparsers.add_parser(
            "delete-period-payrolls",
            help="Delete a period's payrolls, items and stubs so it can be reprocessed",
        )
        delete.add_argument("--tenant-id", type=parse_uuid, required=True, help="Tenant ID")
        delete.add_argument("--period-id", type=parse_uuid, required=True, help="Payroll period ID")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        logging.basicConfig(
            level=get_settings().log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "init-db": self._cmd_init_db,
            "calculate": self._cmd_calculate,
            "process-period": self._cmd_process_period,
            "process-employee": self._cmd_process_employee,
            "delete-period-payrolls": self._cmd_delete_period_payrolls,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except PayrollError as exc:
            logger.debug("Command %s failed", parsed.command, exc_info=True)
            print(f"error [{exc.code}]: {exc}", file=sys.stderr)
            return 2

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""

        async def _init() -> None:
            engine = get_engine(args.database_url)
            try:
                await init_models(engine)
            finally:
                await engine.dispose()

        asyncio.run(_init())
        print("Payroll tables created.")
        return 0

    def _cmd_calculate(self, args: argparse.Namespace) -> int:
        """Stateless calculation preview."""
        config: StatutoryConfig = (
            load_statutory_config(args.config) if args.config else get_statutory_config()
        )

        overtime = None
        if args.overtime_hours is not None or args.overtime_rate is not None:
            if args.overtime_hours is None or args.overtime_rate is None:
                print("--overtime-hours and --overtime-rate go together", file=sys.stderr)
                return 1
            overtime = Overtime(hours=args.overtime_hours, rate=args.overtime_rate)

        result = calculate_payroll(
            PayrollCalculationInput(
                employee_id=None,
                payroll_period_id=None,
                basic_salary=args.salary,
                tenant_id=None,
                allowances=[Allowance(name, amount) for name, amount in args.allowance],
                overtime=overtime,
                deductions=[OtherDeduction(name, amount) for name, amount in args.deduction],
            ),
            brackets=None,
            config=config,
        )
        _print_json(result.to_dict())
        return 0

    def _cmd_process_period(self, args: argparse.Namespace) -> int:
        """Bulk-process a period."""

        async def _process(processor: PayrollProcessor) -> int:
            batch = await processor.process_all(args.period_id, args.tenant_id)
            _print_json(batch.to_dict())
            return 0 if batch.errors == 0 else 3

        return self._with_processor(args, _process)

    def _cmd_process_employee(self, args: argparse.Namespace) -> int:
        """Process one employee."""

        async def _process(processor: PayrollProcessor) -> int:
            payroll = await processor.process_one(args.period_id, args.employee_id, args.tenant_id)
            _print_json(
                {
                    "payroll_id": payroll.payroll_id,
                    "gross_salary": payroll.gross_salary,
                    "total_deductions": payroll.total_deductions,
                    "net_salary": payroll.net_salary,
                    "stub_number": payroll.pay_stub.stub_number if payroll.pay_stub else None,
                    "items": [
                        {
                            "type": item.item_type,
                            "category": item.category,
                            "name": item.name,
                            "amount": item.amount,
                        }
                        for item in payroll.items
                    ],
                }
            )
            return 0

        return self._with_processor(args, _process)

    def _cmd_delete_period_payrolls(self, args: argparse.Namespace) -> int:
        """Delete a period's payroll output."""

        async def _delete(processor: PayrollProcessor) -> int:
            deleted = await processor.delete_for_period(args.period_id, args.tenant_id)
            _print_json(deleted.to_dict())
            return 0

        return self._with_processor(args, _delete)

    def _with_processor(
        self,
        args: argparse.Namespace,
        action: Callable[[PayrollProcessor], Awaitable[int]],
    ) -> int:
        async def _run() -> int:
            engine = get_engine(args.database_url)
            try:
                async with make_session_factory(engine)() as session:
                    return await action(PayrollProcessor(session))
            finally:
                await engine.dispose()

        return asyncio.run(_run())


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    cli = PayrollCli()
    return cli.run(argv)

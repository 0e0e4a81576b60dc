"""HR back-office command line interface.

Provides operational tools for:
- Schema bootstrap
- Spreadsheet imports
- Payroll generation and finalization

Usage:
    python -m hr_backoffice.cli init-db
    python -m hr_backoffice.cli import --kind attendance --file march.xlsx
    python -m hr_backoffice.cli import --kind payroll --file adjustments.csv --period 2024-03
    python -m hr_backoffice.cli generate-payroll --month 2024-03
    python -m hr_backoffice.cli finalize --month 2024-03 --project P-01
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hr_backoffice.calculators.kinds import RecordKind
from hr_backoffice.config import get_settings
from hr_backoffice.database import create_all, init_db, make_session_factory
from hr_backoffice.errors import HRBackofficeError
from hr_backoffice.importers import read_rows
from hr_backoffice.services.import_pipeline import MAPPINGS, ImportPipeline, ImportReport
from hr_backoffice.services.payroll_service import PayrollService
from hr_backoffice.services.scope import Scope

EMPLOYEES = "employees"


def _scope(project: str | None) -> Scope:
    return Scope.for_project(project) if project else Scope.everything()


class HRCli:
    """HR back-office command line interface."""

    def __init__(self, engine: AsyncEngine | None = None) -> None:
        self.parser = self._build_parser()
        self._engine = engine
        self._session_factory = make_session_factory(engine) if engine is not None else None

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m hr_backoffice.cli",
            description="HR back-office operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create missing tables")

        imports = subparsers.add_parser("import", help="Import an .xlsx or .csv file")
        imports.add_argument(
            "--kind",
            required=True,
            choices=[kind.value for kind in RecordKind] + [EMPLOYEES],
            help="What the file contains",
        )
        imports.add_argument("--file", required=True, type=Path, help="Spreadsheet to import")
        imports.add_argument(
            "--period",
            help="Month (YYYY-MM) for KPI/payroll rows without a month column",
        )

        for name, help_text in (
            ("generate-payroll", "Recompute draft overtime/late amounts from attendance"),
            ("finalize", "Finalize every draft payroll row of a month"),
        ):
            command = subparsers.add_parser(name, help=help_text)
            command.add_argument("--month", required=True, help="Month (YYYY-MM)")
            command.add_argument("--project", help="Limit to one project (default: all)")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "import": self._cmd_import,
            "generate-payroll": self._cmd_generate_payroll,
            "finalize": self._cmd_finalize,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return asyncio.run(self._execute(handler, parsed))
        except HRBackofficeError as exc:
            print(f"Error [{exc.code}]: {exc}", file=sys.stderr)
            return 1

    async def _execute(
        self,
        handler: Callable[[argparse.Namespace], Awaitable[int]],
        args: argparse.Namespace,
    ) -> int:
        # Pooled connections belong to this event loop; release them before it closes
        try:
            return await handler(args)
        finally:
            if self._engine is not None:
                await self._engine.dispose()

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._engine, self._session_factory = init_db()
        return self._session_factory

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""
        self._factory()
        await create_all(self._engine)
        print("Schema is up to date.")
        return 0

    async def _cmd_import(self, args: argparse.Namespace) -> int:
        """Import a spreadsheet and print exact counts."""
        rows = read_rows(args.file.name, args.file.read_bytes())
        print(f"Importing {len(rows)} {args.kind} row(s) from {args.file}")

        async with self._factory()() as session:
            pipeline = ImportPipeline(session)
            if args.kind == EMPLOYEES:
                report = await pipeline.import_employees(rows)
            else:
                report = await pipeline.run(rows, MAPPINGS[RecordKind(args.kind)], args.period)
            await session.commit()

        self._print_report(report)
        return 0 if report.failed == 0 else 2

    async def _cmd_generate_payroll(self, args: argparse.Namespace) -> int:
        """Recompute draft payroll from attendance."""
        async with self._factory()() as session:
            result = await PayrollService(session).generate_from_attendance(
                _scope(args.project), args.month
            )
            await session.commit()

        print(f"Payroll {result.month}: {result.report.succeeded_count} row(s) updated")
        if result.skipped_finalized:
            print(f"  Skipped {result.skipped_finalized} finalized row(s)")
        for failure in result.report.failed:
            print(f"  - {failure.employee_id}: [{failure.code}] {failure.message}")
        return 0 if result.report.ok else 2

    async def _cmd_finalize(self, args: argparse.Namespace) -> int:
        """Finalize a month."""
        async with self._factory()() as session:
            result = await PayrollService(session).finalize(_scope(args.project), args.month)
            await session.commit()

        print(f"Payroll {result.month}: finalized {len(result.finalized)} row(s)")
        if result.already_finalized:
            print(f"  {result.already_finalized} row(s) were already finalized")
        print(f"  Total net: {result.total_net:,.2f}")
        return 0

    @staticmethod
    def _print_report(report: ImportReport) -> None:
        print(f"Succeeded: {report.succeeded}, failed: {report.failed}")
        for failure in report.failures:
            print(f"  - row {failure.row}: [{failure.code}] {failure.message}")


def main() -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = HRCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())

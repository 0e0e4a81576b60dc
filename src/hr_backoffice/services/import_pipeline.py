"""Bulk import of spreadsheet rows into period records and the roster.

Every row is attempted in its own savepoint. A row that cannot be resolved
to an employee, or whose date cannot be read, is counted as failed and
writes nothing; numeric cells are best effort and fall back to zero.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.attendance import AttendancePolicy
from hr_backoffice.calculators.dates import (
    coerce_decimal,
    coerce_int,
    is_blank,
    normalize_date,
    normalize_month,
    normalize_time,
)
from hr_backoffice.calculators.kinds import AttendanceFields, KindSpec, RecordKind, get_spec
from hr_backoffice.config import get_settings
from hr_backoffice.errors import HRBackofficeError, NotFoundError, ParseFailureError
from hr_backoffice.models import PeriodRecord
from hr_backoffice.services.employee_service import EmployeeInput, EmployeeService
from hr_backoffice.services.identifier import IdentifierMatcher
from hr_backoffice.services.reconciler import RowFailure, UpsertReconciler
from hr_backoffice.services.scope import Scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMapping:
    """Which sheet columns feed which fields of a record kind."""

    kind: RecordKind
    date_column: str | None = None
    month_column: str | None = None
    time_columns: tuple[str, ...] = ()
    int_columns: tuple[str, ...] = ()
    decimal_columns: tuple[str, ...] = ()
    text_columns: tuple[str, ...] = ()
    code_keys: tuple[str, ...] = ("employee_code", "code")
    email_keys: tuple[str, ...] = ("email",)
    id_keys: tuple[str, ...] = ("employee_id",)


ATTENDANCE_MAPPING = FieldMapping(
    kind=RecordKind.ATTENDANCE,
    date_column="date",
    time_columns=("check_in", "check_out"),
    int_columns=("late_minutes", "overtime_minutes"),
)

KPI_MAPPING = FieldMapping(
    kind=RecordKind.KPI,
    month_column="month",
    int_columns=("productivity_score", "quality_score", "attendance_score", "commitment_score"),
    text_columns=("notes",),
)

PAYROLL_MAPPING = FieldMapping(
    kind=RecordKind.PAYROLL,
    month_column="month",
    decimal_columns=("overtime_amount", "late_deduction"),
)

MAPPINGS: dict[RecordKind, FieldMapping] = {
    RecordKind.ATTENDANCE: ATTENDANCE_MAPPING,
    RecordKind.KPI: KPI_MAPPING,
    RecordKind.PAYROLL: PAYROLL_MAPPING,
}


@dataclass
class ImportReport:
    """Exact per-batch counts plus the reason for each failed row."""

    succeeded: int = 0
    failed: int = 0
    failures: list[RowFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def fail(self, row: int, error: HRBackofficeError, employee_id: UUID | None = None) -> None:
        self.failed += 1
        self.failures.append(RowFailure.from_error(error, employee_id=employee_id, row=row))


class ImportPipeline:
    """Resolve, normalize and upsert imported rows, tolerating partial failure.

    Rows are only written for employees inside ``scope``; a row that resolves
    to an employee outside it fails as not found.
    """

    def __init__(
        self,
        session: AsyncSession,
        matcher: IdentifierMatcher | None = None,
        policy: AttendancePolicy | None = None,
        scope: Scope | None = None,
    ):
        self.session = session
        self.scope = scope or Scope.everything()
        self.matcher = matcher
        self.policy = policy or get_settings().attendance_policy
        self.reconciler = UpsertReconciler(session)

    async def run(
        self,
        rows: Iterable[Mapping[str, Any]],
        mapping: FieldMapping,
        period: Any = None,
    ) -> ImportReport:
        """Import period-record rows.

        ``period`` is the month for KPI and payroll rows that carry no month
        column of their own; attendance rows always carry their date.
        """
        matcher = await self._matcher()
        report = ImportReport()

        for index, row in enumerate(rows, start=1):
            employee_id: UUID | None = None
            try:
                async with self.session.begin_nested():
                    resolved = matcher.resolve(
                        row, mapping.code_keys, mapping.email_keys, mapping.id_keys
                    )
                    if not self.scope.contains(matcher.employee(resolved)):
                        raise NotFoundError("employee in scope", resolved)
                    employee_id = resolved
                    await self._import_row(employee_id, row, mapping, period)
            except HRBackofficeError as exc:
                logger.warning("Import row %d (%s) failed: %s", index, mapping.kind.value, exc)
                report.fail(index, exc, employee_id)
            else:
                report.succeeded += 1

        logger.info(
            "Imported %s rows: %d succeeded, %d failed",
            mapping.kind.value,
            report.succeeded,
            report.failed,
        )
        return report

    async def import_employees(self, rows: Iterable[Mapping[str, Any]]) -> ImportReport:
        """Create or update roster entries from sheet rows."""
        matcher = await self._matcher()
        service = EmployeeService(self.session, matcher)
        report = ImportReport()

        for index, row in enumerate(rows, start=1):
            try:
                async with self.session.begin_nested():
                    data = EmployeeInput.from_row(row)
                    self._check_employee_scope(matcher, data)
                    await service.save(data)
            except HRBackofficeError as exc:
                logger.warning("Employee import row %d failed: %s", index, exc)
                report.fail(index, exc)
            else:
                report.succeeded += 1

        logger.info(
            "Imported employees: %d succeeded, %d failed",
            report.succeeded,
            report.failed,
        )
        return report

    def _check_employee_scope(self, matcher: IdentifierMatcher, data: EmployeeInput) -> None:
        """A scoped caller may only touch employees of its own project."""
        if self.scope.is_all:
            return
        if not self.scope.covers(data.project):
            raise ParseFailureError("project", data.project, "outside the importing project")
        existing = matcher.match(code=data.employee_code, email=data.email)
        if existing is not None and not self.scope.contains(matcher.employee(existing)):
            raise NotFoundError("employee in scope", data.employee_code or data.email)

    async def _matcher(self) -> IdentifierMatcher:
        if self.matcher is None:
            self.matcher = await IdentifierMatcher.load(self.session)
        return self.matcher

    async def _import_row(
        self,
        employee_id: UUID,
        row: Mapping[str, Any],
        mapping: FieldMapping,
        period: Any,
    ) -> None:
        spec = get_spec(mapping.kind)
        period_key = self._period(row, mapping, period)
        values = spec.clamp(self._values(row, mapping))

        base = await self._existing(employee_id, spec, period_key)
        if base is None:
            assert self.matcher is not None
            base = spec.defaults(self.matcher.employee(employee_id))

        if spec.kind == RecordKind.ATTENDANCE and not any(c in row for c in mapping.int_columns):
            values.update(self._derived_minutes(values, base))

        fields = spec.build(values, base=base)
        await self.reconciler.upsert(employee_id, spec.kind, period_key, fields)

    def _period(self, row: Mapping[str, Any], mapping: FieldMapping, period: Any) -> str:
        if mapping.date_column is not None:
            raw = row.get(mapping.date_column)
            if is_blank(raw):
                raise ParseFailureError(mapping.date_column, raw, "date is required")
            return normalize_date(raw, mapping.date_column).isoformat()

        raw = row.get(mapping.month_column) if mapping.month_column else None
        if is_blank(raw):
            raw = period
        if is_blank(raw):
            raise ParseFailureError(mapping.month_column or "month", None, "month is required")
        return normalize_month(raw, mapping.month_column or "month")

    @staticmethod
    def _values(row: Mapping[str, Any], mapping: FieldMapping) -> dict[str, Any]:
        """Coerce the mapped columns present in ``row``; absent columns keep their value."""
        values: dict[str, Any] = {}
        for column in mapping.time_columns:
            if column in row:
                values[column] = normalize_time(row[column])
        for column in mapping.int_columns:
            if column in row:
                values[column] = coerce_int(row[column])
        for column in mapping.decimal_columns:
            if column in row:
                values[column] = coerce_decimal(row[column])
        for column in mapping.text_columns:
            if column in row:
                values[column] = "" if is_blank(row[column]) else str(row[column]).strip()
        return values

    def _derived_minutes(self, values: dict[str, Any], base: BaseModel) -> dict[str, int]:
        assert isinstance(base, AttendanceFields)
        check_in = values.get("check_in", base.check_in)
        check_out = values.get("check_out", base.check_out)
        late, overtime = self.policy.derive(check_in, check_out)
        return {"late_minutes": late, "overtime_minutes": overtime}

    async def _existing(self, employee_id: UUID, spec: KindSpec, period: str) -> BaseModel | None:
        payload = await self.session.scalar(
            select(PeriodRecord.payload).where(
                PeriodRecord.employee_id == employee_id,
                PeriodRecord.period == period,
                PeriodRecord.kind == spec.kind.value,
            )
        )
        return None if payload is None else spec.load(payload)

"""Payroll service: draft edits, period lock, finalize, and attendance-driven generation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.dates import month_bounds, normalize_month
from hr_backoffice.calculators.kinds import (
    AttendanceFields,
    PayrollFields,
    PayrollStatus,
    RecordKind,
    get_spec,
)
from hr_backoffice.calculators.payroll import ZERO, PayRates
from hr_backoffice.config import get_settings
from hr_backoffice.errors import InvalidStateError, NotFoundError, UpsertConflictError
from hr_backoffice.models import PeriodRecord
from hr_backoffice.models.base import utcnow
from hr_backoffice.services.projection import ProjectionRow, RosterProjection
from hr_backoffice.services.reconciler import ReconcileReport, RowFailure, UpsertReconciler
from hr_backoffice.services.scope import Scope
from hr_backoffice.services.state_machine import PayrollStateMachine

logger = logging.getLogger(__name__)


@dataclass
class PayrollLockState:
    """Aggregate lock for one month and scope."""

    month: str
    total: int
    finalized: int

    @property
    def drafts(self) -> int:
        return self.total - self.finalized

    @property
    def is_locked(self) -> bool:
        return self.total > 0 and self.finalized == self.total


@dataclass
class FinalizeResult:
    """Rows moved to finalized by one finalize call."""

    month: str
    finalized: list[UUID] = field(default_factory=list)
    already_finalized: int = 0
    total_net: Decimal = ZERO


@dataclass
class GenerateResult:
    """Outcome of recomputing adjustments from attendance."""

    month: str
    report: ReconcileReport
    skipped_finalized: int = 0


class PayrollService:
    """Service for the monthly payroll lifecycle.

    Operations:
    - load: projection of payroll rows for a month
    - lock_state: aggregate finalized/draft counts (the edit lock)
    - save_draft: persist edits while the month is unlocked
    - finalize: draft -> finalized for every draft row, as one unit
    - generate_from_attendance: overtime/late amounts from attendance minutes
    """

    def __init__(self, session: AsyncSession, rates: PayRates | None = None):
        self.session = session
        self.rates = rates or get_settings().pay_rates
        self.projection = RosterProjection(session)
        self.reconciler = UpsertReconciler(session)

    async def load(self, scope: Scope, month: Any) -> list[ProjectionRow]:
        """Payroll projection for ``month`` (one row per active employee)."""
        return await self.projection.project(scope, month, RecordKind.PAYROLL)

    async def lock_state(self, scope: Scope, month: Any) -> PayrollLockState:
        """Derive the period lock from every row, never from a single one."""
        month_key = normalize_month(month)
        return self._lock_state(month_key, await self.load(scope, month_key))

    @staticmethod
    def _lock_state(month: str, rows: Sequence[ProjectionRow]) -> PayrollLockState:
        finalized = sum(1 for row in rows if row.status == PayrollStatus.FINALIZED)
        return PayrollLockState(month=month, total=len(rows), finalized=finalized)

    async def save_draft(
        self,
        scope: Scope,
        month: Any,
        rows: Sequence[ProjectionRow],
    ) -> ReconcileReport:
        """Persist edited payroll rows.

        Only the overtime amount and late deduction are taken from ``rows``;
        the baseline salaries, the backing and the status come from a fresh
        projection. Rows for employees outside the scope are reported as
        failed.

        Raises:
            InvalidStateError: If the month is already fully finalized
        """
        month_key = normalize_month(month)
        current = await self.load(scope, month_key)
        if self._lock_state(month_key, current).is_locked:
            raise InvalidStateError(
                PayrollStatus.FINALIZED.value,
                PayrollStatus.DRAFT.value,
                f"payroll for {month_key} is finalized",
            )

        for row in rows:
            if row.kind != RecordKind.PAYROLL or row.period != month_key:
                raise InvalidStateError(
                    row.status,
                    PayrollStatus.DRAFT.value,
                    f"row for {row.kind.value} {row.period} does not belong to payroll {month_key}",
                )

        by_employee = {row.employee_id: row for row in current}
        editable = get_spec(RecordKind.PAYROLL).editable_fields or frozenset()
        rebased: list[ProjectionRow] = []
        failures: list[RowFailure] = []
        for row in rows:
            fresh = by_employee.get(row.employee_id)
            if fresh is None:
                error = NotFoundError("employee in scope", row.employee_id)
                failures.append(RowFailure.from_error(error, employee_id=row.employee_id))
                continue
            rebased.append(fresh.edit(**{name: getattr(row.fields, name) for name in editable}))

        report = await self.reconciler.save(rebased)
        report.failed.extend(failures)
        return report

    async def finalize(self, scope: Scope, month: Any) -> FinalizeResult:
        """Finalize every draft row of the month.

        Net salary is recomputed for each row at transition time. All rows are
        written inside one savepoint: if any write fails, none is finalized.

        Raises:
            NotFoundError: If the scope has no active employees
            InvalidStateError: If every row is already finalized
            UpsertConflictError: If a placeholder row was created concurrently
        """
        month_key = normalize_month(month)
        rows = await self.load(scope, month_key)
        if not rows:
            raise NotFoundError("payroll roster", month_key)

        statuses = [row.status for row in rows]
        if PayrollStateMachine.is_period_locked(statuses):
            raise InvalidStateError(
                PayrollStatus.FINALIZED.value,
                PayrollStatus.FINALIZED.value,
                f"payroll for {month_key} is already finalized",
            )

        drafts = [row for row in rows if row.status != PayrollStatus.FINALIZED]
        for row in drafts:
            PayrollStateMachine.validate_transition(row.status, PayrollStatus.FINALIZED)

        result = FinalizeResult(month=month_key, already_finalized=len(rows) - len(drafts))
        current: ProjectionRow | None = None
        try:
            async with self.session.begin_nested():
                for current in drafts:
                    fields = get_spec(RecordKind.PAYROLL).prepare(current.fields)
                    assert isinstance(fields, PayrollFields)
                    result.finalized.append(await self._finalize_row(current, fields))
                    result.total_net += fields.net_salary
        except IntegrityError as exc:
            assert current is not None
            raise UpsertConflictError(current.employee_id, month_key, RecordKind.PAYROLL.value) from exc

        logger.info(
            "Finalized payroll %s: %d rows (%d already final), total net %s",
            month_key,
            len(result.finalized),
            result.already_finalized,
            result.total_net,
        )
        return result

    async def generate_from_attendance(self, scope: Scope, month: Any) -> GenerateResult:
        """Set overtime and late amounts from the month's attendance minutes.

        Finalized rows are left alone and counted as skipped.
        """
        month_key = normalize_month(month)
        rows = await self.load(scope, month_key)
        totals = await self._attendance_totals([row.employee_id for row in rows], month_key)

        edited: list[ProjectionRow] = []
        skipped = 0
        for row in rows:
            if not PayrollStateMachine.can_modify_inputs(row.status):
                skipped += 1
                continue
            assert isinstance(row.fields, PayrollFields)
            late, overtime = totals.get(row.employee_id, (0, 0))
            overtime_amount, late_deduction = self.rates.adjustments(
                row.fields.basic_salary, late, overtime
            )
            edited.append(row.edit(overtime_amount=overtime_amount, late_deduction=late_deduction))

        report = await self.reconciler.save(edited)
        logger.info(
            "Generated payroll %s from attendance: %d updated, %d finalized rows skipped",
            month_key,
            report.succeeded_count,
            skipped,
        )
        return GenerateResult(month=month_key, report=report, skipped_finalized=skipped)

    async def _attendance_totals(
        self,
        employee_ids: list[UUID],
        month: str,
    ) -> dict[UUID, tuple[int, int]]:
        """Sum (late_minutes, overtime_minutes) per employee over the month."""
        if not employee_ids:
            return {}
        first, last = month_bounds(month)
        result = await self.session.execute(
            select(PeriodRecord.employee_id, PeriodRecord.payload).where(
                PeriodRecord.kind == RecordKind.ATTENDANCE.value,
                PeriodRecord.period >= first,
                PeriodRecord.period <= last,
                PeriodRecord.employee_id.in_(employee_ids),
            )
        )
        spec = get_spec(RecordKind.ATTENDANCE)
        totals: dict[UUID, tuple[int, int]] = {}
        for employee_id, payload in result.all():
            fields = spec.load(payload)
            assert isinstance(fields, AttendanceFields)
            late, overtime = totals.get(employee_id, (0, 0))
            totals[employee_id] = (late + fields.late_minutes, overtime + fields.overtime_minutes)
        return totals

    async def _finalize_row(self, row: ProjectionRow, fields: PayrollFields) -> UUID:
        spec = get_spec(RecordKind.PAYROLL)
        if row.record_id is None:
            record_id = uuid4()
            await self.session.execute(
                insert(PeriodRecord).values(
                    record_id=record_id,
                    employee_id=row.employee_id,
                    kind=RecordKind.PAYROLL.value,
                    period=row.period,
                    payload=spec.dump(fields),
                    status=PayrollStatus.FINALIZED.value,
                )
            )
            return record_id

        # Conditional update: a row finalized since the projection was read aborts the batch
        result = await self.session.execute(
            update(PeriodRecord)
            .where(
                PeriodRecord.record_id == row.record_id,
                PeriodRecord.status == PayrollStatus.DRAFT.value,
            )
            .values(
                payload=spec.dump(fields),
                status=PayrollStatus.FINALIZED.value,
                updated_at=utcnow(),
            )
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                row.status,
                PayrollStatus.FINALIZED.value,
                f"payroll row {row.record_id} changed while finalizing",
            )
        return row.record_id

"""Persist edited projection rows as inserts or updates, never duplicating."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.kinds import KindSpec, PayrollStatus, RecordKind, get_spec
from hr_backoffice.database import upsert_insert
from hr_backoffice.errors import (
    HRBackofficeError,
    InvalidStateError,
    NotFoundError,
    UpsertConflictError,
)
from hr_backoffice.models import PeriodRecord
from hr_backoffice.models.base import utcnow
from hr_backoffice.services.projection import ProjectionRow

logger = logging.getLogger(__name__)


@dataclass
class RowFailure:
    """Why one row of a batch was not written."""

    code: str
    message: str
    employee_id: UUID | None = None
    row: int | None = None

    @classmethod
    def from_error(
        cls,
        error: HRBackofficeError,
        employee_id: UUID | None = None,
        row: int | None = None,
    ) -> RowFailure:
        return cls(code=error.code, message=str(error), employee_id=employee_id, row=row)


@dataclass
class ReconcileReport:
    """Outcome of a batch save.

    ``succeeded`` holds the written record ids; ``skipped`` holds employees
    whose placeholder rows carried no edit and were left unpersisted.
    """

    succeeded: list[UUID] = field(default_factory=list)
    failed: list[RowFailure] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed


class UpsertReconciler:
    """Route projection rows to UPDATE (persisted) or INSERT (placeholder).

    Key invariants:
    1. At most one record per (employee, period, kind), enforced by the store
    2. Persisted vs placeholder comes only from the row's backing tag
    3. A placeholder that lost an insert race is retried as an update by key
    4. Finalized payroll records are never rewritten
    5. Each row is written in its own savepoint; failures are reported, not raised
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, rows: Sequence[ProjectionRow]) -> ReconcileReport:
        """Persist a batch of edited rows and report per-row outcomes."""
        report = ReconcileReport()
        updates = [row for row in rows if row.is_persisted]
        inserts = [row for row in rows if not row.is_persisted]

        for row in updates:
            try:
                async with self.session.begin_nested():
                    record_id = await self._update(row)
            except HRBackofficeError as exc:
                self._record_failure(report, row, exc)
            else:
                report.succeeded.append(record_id)

        for row in inserts:
            if not get_spec(row.kind).is_meaningful(row.fields):
                report.skipped.append(row.employee_id)
                continue
            try:
                record_id = await self._insert(row)
            except HRBackofficeError as exc:
                self._record_failure(report, row, exc)
            else:
                report.succeeded.append(record_id)

        logger.info(
            "Saved %s rows: %d succeeded, %d failed, %d skipped",
            rows[0].kind.value if rows else "no",
            report.succeeded_count,
            report.failed_count,
            len(report.skipped),
        )
        return report

    async def upsert(
        self,
        employee_id: UUID,
        kind: RecordKind | str,
        period: str,
        fields: BaseModel,
    ) -> UUID:
        """Insert-or-update one record by its composite key.

        Raises:
            InvalidStateError: If the existing record is a finalized payroll row
        """
        spec = get_spec(kind)
        period_key = spec.canonical_period(period)
        fields = spec.prepare(fields)
        table = PeriodRecord.__table__
        now = utcnow()

        stmt = upsert_insert(self.session, table).values(
            record_id=uuid4(),
            employee_id=employee_id,
            kind=spec.kind.value,
            period=period_key,
            payload=spec.dump(fields),
            status=spec.initial_status(),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["employee_id", "period", "kind"],
            set_={"payload": stmt.excluded.payload, "updated_at": stmt.excluded.updated_at},
            where=or_(
                table.c.status.is_(None),
                table.c.status != PayrollStatus.FINALIZED.value,
            ),
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise InvalidStateError(
                PayrollStatus.FINALIZED.value,
                PayrollStatus.DRAFT.value,
                f"{spec.kind.value} record for {period_key} is finalized",
            )

        record_id = await self.session.scalar(
            select(PeriodRecord.record_id).where(*self._key(employee_id, spec, period_key))
        )
        assert record_id is not None
        return record_id

    async def _update(self, row: ProjectionRow) -> UUID:
        spec = get_spec(row.kind)
        fields = spec.prepare(row.fields)
        record_id = row.record_id
        assert record_id is not None

        stmt = (
            update(PeriodRecord)
            .where(
                PeriodRecord.record_id == record_id,
                PeriodRecord.kind == spec.kind.value,
            )
            .values(payload=spec.dump(fields), updated_at=utcnow())
        )
        if spec.tracks_status:
            stmt = stmt.where(PeriodRecord.status == PayrollStatus.DRAFT.value)

        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            existing = (
                await self.session.execute(
                    select(PeriodRecord.status).where(PeriodRecord.record_id == record_id)
                )
            ).first()
            if existing is None:
                raise NotFoundError("period record", record_id)
            raise InvalidStateError(existing.status, PayrollStatus.DRAFT.value, "record is finalized")
        return record_id

    async def _insert(self, row: ProjectionRow) -> UUID:
        spec = get_spec(row.kind)
        fields = spec.prepare(row.fields)
        record_id = uuid4()

        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    insert(PeriodRecord).values(
                        record_id=record_id,
                        employee_id=row.employee_id,
                        kind=spec.kind.value,
                        period=row.period,
                        payload=spec.dump(fields),
                        status=spec.initial_status(),
                    )
                )
            return record_id
        except IntegrityError:
            logger.info(
                "%s record for %s/%s was created concurrently; retrying as update",
                spec.kind.value,
                row.employee_id,
                row.period,
            )

        async with self.session.begin_nested():
            return await self._update_by_key(row.employee_id, spec, row.period, fields)

    async def _update_by_key(
        self,
        employee_id: UUID,
        spec: KindSpec,
        period: str,
        fields: BaseModel,
    ) -> UUID:
        key = self._key(employee_id, spec, period)
        stmt = update(PeriodRecord).where(*key).values(payload=spec.dump(fields), updated_at=utcnow())
        if spec.tracks_status:
            stmt = stmt.where(PeriodRecord.status == PayrollStatus.DRAFT.value)

        result = await self.session.execute(stmt)
        existing = (
            await self.session.execute(select(PeriodRecord.record_id, PeriodRecord.status).where(*key))
        ).first()
        if existing is None:
            raise UpsertConflictError(employee_id, period, spec.kind.value)
        if result.rowcount == 0:
            raise InvalidStateError(existing.status, PayrollStatus.DRAFT.value, "record is finalized")
        return existing.record_id

    @staticmethod
    def _key(employee_id: UUID, spec: KindSpec, period: str) -> tuple:
        return (
            PeriodRecord.employee_id == employee_id,
            PeriodRecord.period == period,
            PeriodRecord.kind == spec.kind.value,
        )

    @staticmethod
    def _record_failure(report: ReconcileReport, row: ProjectionRow, error: HRBackofficeError) -> None:
        logger.warning(
            "Could not save %s row for employee %s (%s): %s",
            row.kind.value,
            row.employee_id,
            row.period,
            error,
        )
        report.failed.append(RowFailure.from_error(error, employee_id=row.employee_id))

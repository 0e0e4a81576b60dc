"""Roster projection: one editable row per active employee for a period."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Union
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.kinds import KindSpec, RecordKind, get_spec
from hr_backoffice.models import Employee, EmployeeStatus, PeriodRecord
from hr_backoffice.services.scope import Scope


@dataclass(frozen=True)
class Placeholder:
    """Row not yet backed by a persisted record."""


@dataclass(frozen=True)
class Persisted:
    """Row backed by the record with this id."""

    record_id: UUID


Backing = Union[Placeholder, Persisted]


@dataclass
class ProjectionRow:
    """Ephemeral editable view of one employee's record slot."""

    employee_id: UUID
    employee_name: str
    kind: RecordKind
    period: str
    fields: BaseModel
    backing: Backing = field(default_factory=Placeholder)
    status: str | None = None
    employee_code: str | None = None

    @property
    def is_persisted(self) -> bool:
        return isinstance(self.backing, Persisted)

    @property
    def record_id(self) -> UUID | None:
        return self.backing.record_id if isinstance(self.backing, Persisted) else None

    def edit(self, **changes: Any) -> ProjectionRow:
        """Copy of this row with field values changed (validated).

        Raises:
            ParseFailureError: If a value is invalid or the field is read-only
        """
        spec = get_spec(self.kind)
        spec.check_editable(changes)
        return replace(self, fields=spec.build(changes, base=self.fields))


class RosterProjection:
    """Merge the active roster with sparse period records.

    Row count always equals the number of active employees in scope; an
    employee without a record gets a placeholder row with kind defaults.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def active_employees(self, scope: Scope) -> list[Employee]:
        """Active employees in scope, in roster order."""
        query = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE)
        query = scope.apply(query).order_by(Employee.full_name, Employee.employee_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def records_for(
        self,
        employee_ids: list[UUID],
        kind: RecordKind,
        period: str,
    ) -> dict[UUID, PeriodRecord]:
        """Existing records for the given employees, keyed by employee."""
        if not employee_ids:
            return {}
        result = await self.session.execute(
            select(PeriodRecord)
            .where(
                PeriodRecord.kind == kind.value,
                PeriodRecord.period == period,
                PeriodRecord.employee_id.in_(employee_ids),
            )
            .execution_options(populate_existing=True)
        )
        return {record.employee_id: record for record in result.scalars().all()}

    async def project(
        self,
        scope: Scope,
        period: Any,
        kind: RecordKind | str,
    ) -> list[ProjectionRow]:
        """Build the editable view for ``kind`` in ``period``.

        The roster must be fetched first: the record query is restricted to
        the employees it returns.
        """
        spec = get_spec(kind)
        period_key = spec.canonical_period(period)

        employees = await self.active_employees(scope)
        records = await self.records_for([e.employee_id for e in employees], spec.kind, period_key)

        return [
            self._row(spec, employee, period_key, records.get(employee.employee_id))
            for employee in employees
        ]

    def _row(
        self,
        spec: KindSpec,
        employee: Employee,
        period: str,
        record: PeriodRecord | None,
    ) -> ProjectionRow:
        if record is None:
            return ProjectionRow(
                employee_id=employee.employee_id,
                employee_name=employee.full_name,
                employee_code=employee.employee_code,
                kind=spec.kind,
                period=period,
                fields=spec.defaults(employee),
                backing=Placeholder(),
                status=spec.initial_status(),
            )
        return ProjectionRow(
            employee_id=employee.employee_id,
            employee_name=employee.full_name,
            employee_code=employee.employee_code,
            kind=spec.kind,
            period=period,
            fields=spec.load(record.payload),
            backing=Persisted(record.record_id),
            status=record.status,
        )

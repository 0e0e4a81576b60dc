"""Roster projection and batch save endpoints for attendance, KPI and payroll."""

from fastapi import APIRouter

from hr_backoffice.api.dependencies import CurrentScope, DbSession
from hr_backoffice.api.schemas import (
    ErrorResponse,
    ProjectionResponse,
    ProjectionRowResponse,
    ReconcileResponse,
    RowEdit,
    SaveRowsRequest,
)
from hr_backoffice.calculators.kinds import RecordKind, get_spec
from hr_backoffice.errors import HRBackofficeError, NotFoundError
from hr_backoffice.services.payroll_service import PayrollService
from hr_backoffice.services.projection import ProjectionRow, RosterProjection
from hr_backoffice.services.reconciler import RowFailure, UpsertReconciler

router = APIRouter(prefix="/periods", tags=["periods"])


def apply_edits(
    rows: list[ProjectionRow],
    edits: list[RowEdit],
) -> tuple[list[ProjectionRow], list[RowFailure]]:
    """Overlay client edits on the server's projection.

    Whether a row is persisted always comes from the projection, never from
    the client.
    """
    by_employee = {row.employee_id: row for row in rows}
    edited: list[ProjectionRow] = []
    failures: list[RowFailure] = []
    for edit in edits:
        row = by_employee.get(edit.employee_id)
        try:
            if row is None:
                raise NotFoundError("employee in scope", edit.employee_id)
            edited.append(row.edit(**edit.fields))
        except HRBackofficeError as exc:
            failures.append(RowFailure.from_error(exc, employee_id=edit.employee_id))
    return edited, failures


@router.get(
    "/{kind}/{period}",
    response_model=ProjectionResponse,
    responses={422: {"model": ErrorResponse}},
)
async def get_period(
    db: DbSession,
    scope: CurrentScope,
    kind: RecordKind,
    period: str,
) -> ProjectionResponse:
    """One row per active employee in scope for the period."""
    rows = await RosterProjection(db).project(scope, period, kind)
    return ProjectionResponse(
        kind=kind,
        period=get_spec(kind).canonical_period(period),
        rows=[ProjectionRowResponse.from_row(row) for row in rows],
    )


@router.put(
    "/{kind}/{period}",
    response_model=ReconcileResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def save_period(
    db: DbSession,
    scope: CurrentScope,
    kind: RecordKind,
    period: str,
    payload: SaveRowsRequest,
) -> ReconcileResponse:
    """Save edited rows; placeholders are inserted, persisted rows updated."""
    rows = await RosterProjection(db).project(scope, period, kind)
    edited, failures = apply_edits(rows, payload.rows)

    if kind == RecordKind.PAYROLL:
        report = await PayrollService(db).save_draft(scope, period, edited)
    else:
        report = await UpsertReconciler(db).save(edited)
    report.failed.extend(failures)

    await db.commit()
    return ReconcileResponse.from_report(report)

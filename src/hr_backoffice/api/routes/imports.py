"""Bulk import endpoints (rows as JSON, or a raw .xlsx/.csv body)."""

from typing import Annotated

from fastapi import APIRouter, Query, Request

from hr_backoffice.api.dependencies import CurrentScope, DbSession
from hr_backoffice.api.schemas import ErrorResponse, ImportRequest, ImportResponse
from hr_backoffice.calculators.kinds import RecordKind
from hr_backoffice.importers import read_rows
from hr_backoffice.services.import_pipeline import MAPPINGS, ImportPipeline

router = APIRouter(prefix="/imports", tags=["imports"])


@router.post(
    "/employees",
    response_model=ImportResponse,
    responses={422: {"model": ErrorResponse}},
)
async def import_employees(db: DbSession, scope: CurrentScope, payload: ImportRequest) -> ImportResponse:
    """Create or update employees from sheet rows; scoped callers stay in their project."""
    report = await ImportPipeline(db, scope=scope).import_employees(payload.rows)
    await db.commit()
    return ImportResponse.from_report(report)


@router.post(
    "/{kind}",
    response_model=ImportResponse,
    responses={422: {"model": ErrorResponse}},
)
async def import_records(
    db: DbSession,
    scope: CurrentScope,
    kind: RecordKind,
    payload: ImportRequest,
) -> ImportResponse:
    """Import attendance, KPI or payroll rows; failed rows are counted, not fatal."""
    report = await ImportPipeline(db, scope=scope).run(payload.rows, MAPPINGS[kind], payload.period)
    await db.commit()
    return ImportResponse.from_report(report)


@router.post(
    "/{kind}/file",
    response_model=ImportResponse,
    responses={422: {"model": ErrorResponse}},
)
async def import_file(
    request: Request,
    db: DbSession,
    scope: CurrentScope,
    kind: RecordKind,
    filename: Annotated[str, Query()],
    period: Annotated[str | None, Query()] = None,
) -> ImportResponse:
    """Import an uploaded spreadsheet sent as the raw request body."""
    rows = read_rows(filename, await request.body())
    report = await ImportPipeline(db, scope=scope).run(rows, MAPPINGS[kind], period)
    await db.commit()
    return ImportResponse.from_report(report)

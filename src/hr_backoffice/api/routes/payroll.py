"""Payroll lock, finalize and generation endpoints."""

from fastapi import APIRouter

from hr_backoffice.api.dependencies import CurrentScope, DbSession
from hr_backoffice.api.schemas import (
    ErrorResponse,
    FinalizeResponse,
    GenerateResponse,
    PayrollLockResponse,
    RowFailureResponse,
)
from hr_backoffice.services.payroll_service import PayrollService

router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.get(
    "/{month}/lock",
    response_model=PayrollLockResponse,
    responses={422: {"model": ErrorResponse}},
)
async def get_lock_state(db: DbSession, scope: CurrentScope, month: str) -> PayrollLockResponse:
    """Whether every payroll row of the month is finalized."""
    state = await PayrollService(db).lock_state(scope, month)
    return PayrollLockResponse(
        month=state.month,
        total=state.total,
        finalized=state.finalized,
        drafts=state.drafts,
        is_locked=state.is_locked,
    )


@router.post(
    "/{month}/finalize",
    response_model=FinalizeResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def finalize_month(db: DbSession, scope: CurrentScope, month: str) -> FinalizeResponse:
    """Finalize every draft row of the month as one unit."""
    result = await PayrollService(db).finalize(scope, month)
    await db.commit()
    return FinalizeResponse(
        month=result.month,
        finalized=result.finalized,
        already_finalized=result.already_finalized,
        total_net=result.total_net,
    )


@router.post(
    "/{month}/generate",
    response_model=GenerateResponse,
    responses={422: {"model": ErrorResponse}},
)
async def generate_month(db: DbSession, scope: CurrentScope, month: str) -> GenerateResponse:
    """Recompute overtime and late amounts of draft rows from attendance."""
    result = await PayrollService(db).generate_from_attendance(scope, month)
    await db.commit()
    return GenerateResponse(
        month=result.month,
        updated=result.report.succeeded_count,
        skipped_finalized=result.skipped_finalized,
        failed=[RowFailureResponse.model_validate(f) for f in result.report.failed],
    )

"""Leave request endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from hr_backoffice.api.dependencies import CurrentScope, DbSession
from hr_backoffice.api.schemas import (
    ErrorResponse,
    LeaveRequestCreate,
    LeaveRequestListResponse,
    LeaveRequestResponse,
)
from hr_backoffice.errors import NotFoundError
from hr_backoffice.models import Employee
from hr_backoffice.services.leave_service import LeaveService
from hr_backoffice.services.scope import Scope
from hr_backoffice.services.state_machine import LeaveStatus

router = APIRouter(prefix="/leave-requests", tags=["leave"])


async def _ensure_in_scope(db: DbSession, scope: Scope, employee_id: UUID) -> None:
    employee = await db.get(Employee, employee_id)
    if employee is None or not scope.contains(employee):
        raise NotFoundError("employee", employee_id)


@router.post(
    "",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def submit_leave(
    db: DbSession,
    scope: CurrentScope,
    payload: LeaveRequestCreate,
) -> LeaveRequestResponse:
    """Submit a pending request (annual leave is checked against the balance)."""
    await _ensure_in_scope(db, scope, payload.employee_id)
    request = await LeaveService(db).submit(
        payload.employee_id,
        payload.leave_type,
        payload.start_date,
        payload.end_date,
    )
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.get("", response_model=LeaveRequestListResponse)
async def list_leave(
    db: DbSession,
    scope: CurrentScope,
    status_filter: Annotated[LeaveStatus | None, Query(alias="status")] = None,
) -> LeaveRequestListResponse:
    """Requests of employees in scope, newest first."""
    requests = await LeaveService(db).list_requests(scope, status_filter)
    return LeaveRequestListResponse(
        items=[LeaveRequestResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.post(
    "/{request_id}/approve",
    response_model=LeaveRequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_leave(db: DbSession, scope: CurrentScope, request_id: UUID) -> LeaveRequestResponse:
    """Approve a pending request, deducting annual leave atomically."""
    service = LeaveService(db)
    request = await service.get(request_id)
    await _ensure_in_scope(db, scope, request.employee_id)
    request = await service.approve(request_id)
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.post(
    "/{request_id}/reject",
    response_model=LeaveRequestResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_leave(db: DbSession, scope: CurrentScope, request_id: UUID) -> LeaveRequestResponse:
    """Reject a pending request."""
    service = LeaveService(db)
    request = await service.get(request_id)
    await _ensure_in_scope(db, scope, request.employee_id)
    request = await service.reject(request_id)
    await db.commit()
    return LeaveRequestResponse.model_validate(request)

"""Leave requests: submission with an advisory balance check, atomic approval."""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hr_backoffice.calculators.dates import normalize_date
from hr_backoffice.errors import (
    InsufficientBalanceError,
    InvalidRangeError,
    InvalidStateError,
    NotFoundError,
    ParseFailureError,
)
from hr_backoffice.models import Employee, LeaveRequest
from hr_backoffice.models.base import utcnow
from hr_backoffice.services.scope import Scope
from hr_backoffice.services.state_machine import LeaveStateMachine, LeaveStatus

logger = logging.getLogger(__name__)


class LeaveType(str, Enum):
    """Leave kinds; only annual leave draws on the balance."""

    ANNUAL = "annual"
    SICK = "sick"
    UNPAID = "unpaid"

    @classmethod
    def parse(cls, value: Any) -> LeaveType:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ParseFailureError("leave_type", value, "unknown leave type") from None


def count_days(start: date, end: date) -> int:
    """Inclusive day count; a same-day request is one day.

    Raises:
        InvalidRangeError: If ``end`` is before ``start``
    """
    if end < start:
        raise InvalidRangeError(start, end)
    return (end - start).days + 1


class LeaveService:
    """Service for the leave request lifecycle.

    The employee's ``leave_balance`` is changed in exactly one place:
    ``approve``, by a conditional decrement that the database evaluates
    against the current balance. Nothing here reads the balance and writes
    it back.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, request_id: UUID) -> LeaveRequest:
        result = await self.session.execute(
            select(LeaveRequest)
            .where(LeaveRequest.request_id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("leave request", request_id)
        return request

    async def submit(
        self,
        employee_id: UUID,
        leave_type: LeaveType | str,
        start: Any,
        end: Any,
    ) -> LeaveRequest:
        """Create a pending request.

        The annual balance check here is advisory; ``approve`` re-checks.

        Raises:
            NotFoundError: If the employee does not exist
            InvalidStateError: If the employee is inactive
            InvalidRangeError: If the range ends before it starts
            InsufficientBalanceError: If annual leave exceeds the current balance
        """
        leave_type = LeaveType.parse(leave_type)
        start_date = normalize_date(start, "start_date")
        end_date = normalize_date(end, "end_date")
        total_days = count_days(start_date, end_date)

        employee = await self.session.get(Employee, employee_id, populate_existing=True)
        if employee is None:
            raise NotFoundError("employee", employee_id)
        if not employee.is_active:
            raise InvalidStateError(employee.status, LeaveStatus.PENDING.value, "employee is not active")

        if leave_type == LeaveType.ANNUAL and total_days > employee.leave_balance:
            raise InsufficientBalanceError(employee_id, total_days, employee.leave_balance)

        request = LeaveRequest(
            employee_id=employee_id,
            leave_type=leave_type.value,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            status=LeaveStatus.PENDING.value,
        )
        self.session.add(request)
        await self.session.flush()

        logger.info(
            "Submitted %s leave %s for employee %s: %s..%s (%d days)",
            leave_type.value,
            request.request_id,
            employee_id,
            start_date,
            end_date,
            total_days,
        )
        return request

    async def approve(self, request_id: UUID) -> LeaveRequest:
        """Approve a pending request, deducting annual leave from the balance.

        The balance check, the deduction and the status change run in one
        savepoint. On failure the request stays pending and the balance is
        unchanged.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the request is not pending
            InsufficientBalanceError: If the current balance is too low
        """
        request = await self.get(request_id)
        LeaveStateMachine.validate_transition(
            request.status, LeaveStatus.APPROVED, "only pending requests can be approved"
        )

        async with self.session.begin_nested():
            if request.leave_type == LeaveType.ANNUAL:
                await self._deduct_balance(request)
            await self._transition(request, LeaveStatus.APPROVED)

        await self.session.refresh(request)
        await self.session.get(Employee, request.employee_id, populate_existing=True)
        logger.info(
            "Approved leave %s for employee %s (%d days)",
            request_id,
            request.employee_id,
            request.total_days,
        )
        return request

    async def reject(self, request_id: UUID) -> LeaveRequest:
        """Reject a pending request. The balance is never touched.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the request is not pending
        """
        request = await self.get(request_id)
        LeaveStateMachine.validate_transition(
            request.status, LeaveStatus.REJECTED, "only pending requests can be rejected"
        )

        async with self.session.begin_nested():
            await self._transition(request, LeaveStatus.REJECTED)

        await self.session.refresh(request)
        logger.info("Rejected leave %s for employee %s", request_id, request.employee_id)
        return request

    async def list_requests(
        self,
        scope: Scope,
        status: LeaveStatus | str | None = None,
    ) -> list[LeaveRequest]:
        """Requests of employees in scope, newest first."""
        query = (
            select(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.employee_id)
            .options(selectinload(LeaveRequest.employee))
        )
        query = scope.apply(query)
        if status is not None:
            query = query.where(LeaveRequest.status == LeaveStatus(status).value)
        query = query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.request_id)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _deduct_balance(self, request: LeaveRequest) -> None:
        # Check and decrement in one statement, against the committed balance
        result = await self.session.execute(
            update(Employee)
            .where(
                Employee.employee_id == request.employee_id,
                Employee.leave_balance >= request.total_days,
            )
            .values(leave_balance=Employee.leave_balance - request.total_days)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            available = await self.session.scalar(
                select(Employee.leave_balance).where(Employee.employee_id == request.employee_id)
            )
            logger.warning(
                "Leave %s not approved: employee %s has %s days, needs %d",
                request.request_id,
                request.employee_id,
                available,
                request.total_days,
            )
            raise InsufficientBalanceError(request.employee_id, request.total_days, available)

    async def _transition(self, request: LeaveRequest, to_status: LeaveStatus) -> None:
        result = await self.session.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.request_id == request.request_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
            .values(status=to_status.value, decided_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                request.status,
                to_status.value,
                "request was decided concurrently",
            )

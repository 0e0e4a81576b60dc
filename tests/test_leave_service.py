"""Tests for leave submission, approval and the balance invariant."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.errors import (
    InsufficientBalanceError,
    InvalidRangeError,
    InvalidStateError,
    NotFoundError,
    ParseFailureError,
)
from hr_backoffice.models import Employee, LeaveRequest
from hr_backoffice.services.leave_service import LeaveService, count_days
from hr_backoffice.services.scope import Scope

pytestmark = pytest.mark.asyncio


async def balance(session: AsyncSession, employee_id) -> Decimal:
    return await session.scalar(select(Employee.leave_balance).where(Employee.employee_id == employee_id))


class TestCountDays:
    async def test_same_day_is_one_day(self):
        assert count_days(date(2024, 3, 20), date(2024, 3, 20)) == 1

    async def test_inclusive_range(self):
        assert count_days(date(2024, 3, 20), date(2024, 3, 22)) == 3

    async def test_end_before_start(self):
        with pytest.raises(InvalidRangeError):
            count_days(date(2024, 3, 22), date(2024, 3, 20))


class TestSubmit:
    async def test_submit_computes_total_days(self, session: AsyncSession, roster):
        request = await LeaveService(session).submit(
            roster.alice.employee_id, "annual", "2024-03-20", "2024-03-22"
        )
        assert request.total_days == 3
        assert request.status == "pending"
        assert request.leave_type == "annual"

    async def test_single_day(self, session: AsyncSession, roster):
        request = await LeaveService(session).submit(
            roster.alice.employee_id, "sick", "2024-03-20", "2024-03-20"
        )
        assert request.total_days == 1

    async def test_invalid_range_is_not_persisted(self, session: AsyncSession, roster):
        with pytest.raises(InvalidRangeError):
            await LeaveService(session).submit(roster.alice.employee_id, "annual", "2024-03-22", "2024-03-20")
        assert await session.scalar(select(func.count()).select_from(LeaveRequest)) == 0

    async def test_advisory_balance_check(self, session: AsyncSession, roster):
        # Bob has 5 days
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await LeaveService(session).submit(roster.bob.employee_id, "annual", "2024-03-01", "2024-03-06")
        assert exc_info.value.requested == 6
        assert await session.scalar(select(func.count()).select_from(LeaveRequest)) == 0

    async def test_non_annual_leave_ignores_balance(self, session: AsyncSession, roster):
        request = await LeaveService(session).submit(
            roster.carol.employee_id, "unpaid", "2024-03-01", "2024-03-10"
        )
        assert request.total_days == 10

    async def test_inactive_employee(self, session: AsyncSession, roster):
        with pytest.raises(InvalidStateError):
            await LeaveService(session).submit(roster.dave.employee_id, "sick", "2024-03-01", "2024-03-01")

    async def test_unknown_employee_and_type(self, session: AsyncSession, roster):
        service = LeaveService(session)
        with pytest.raises(NotFoundError):
            await service.submit(uuid4(), "sick", "2024-03-01", "2024-03-01")
        with pytest.raises(ParseFailureError):
            await service.submit(roster.alice.employee_id, "sabbatical", "2024-03-01", "2024-03-01")


class TestDecide:
    async def test_approve_deducts_annual_balance(self, session: AsyncSession, roster):
        service = LeaveService(session)
        request = await service.submit(roster.alice.employee_id, "annual", "2024-03-20", "2024-03-22")

        approved = await service.approve(request.request_id)

        assert approved.status == "approved"
        assert approved.decided_at is not None
        assert await balance(session, roster.alice.employee_id) == Decimal("7")

    async def test_approve_sick_leave_keeps_balance(self, session: AsyncSession, roster):
        service = LeaveService(session)
        request = await service.submit(roster.alice.employee_id, "sick", "2024-03-20", "2024-03-22")

        await service.approve(request.request_id)

        assert await balance(session, roster.alice.employee_id) == Decimal("10")

    async def test_reject_never_touches_balance(self, session: AsyncSession, roster):
        service = LeaveService(session)
        request = await service.submit(roster.alice.employee_id, "annual", "2024-03-20", "2024-03-22")

        rejected = await service.reject(request.request_id)

        assert rejected.status == "rejected"
        assert await balance(session, roster.alice.employee_id) == Decimal("10")

    async def test_decided_requests_are_terminal(self, session: AsyncSession, roster):
        service = LeaveService(session)
        request = await service.submit(roster.alice.employee_id, "annual", "2024-03-20", "2024-03-22")
        await service.approve(request.request_id)

        with pytest.raises(InvalidStateError):
            await service.approve(request.request_id)
        with pytest.raises(InvalidStateError):
            await service.reject(request.request_id)

        assert await balance(session, roster.alice.employee_id) == Decimal("7")
        assert (await service.get(request.request_id)).status == "approved"

    async def test_unknown_request(self, session: AsyncSession, roster):
        with pytest.raises(NotFoundError):
            await LeaveService(session).approve(uuid4())

    async def test_stale_balance_cannot_double_spend(self, session_factory, roster):
        """Balance 5, two 3-day requests: exactly one is approved, balance ends at 2."""
        employee_id = roster.bob.employee_id

        async with session_factory() as setup:
            service = LeaveService(setup)
            first = await service.submit(employee_id, "annual", "2024-04-01", "2024-04-03")
            second = await service.submit(employee_id, "annual", "2024-04-08", "2024-04-10")
            await setup.commit()

        async with session_factory() as reviewer_a, session_factory() as reviewer_b:
            # Reviewer B reads the employee (balance 5) before A approves
            stale = await reviewer_b.get(Employee, employee_id)
            assert stale.leave_balance == Decimal("5")
            await reviewer_b.commit()

            await LeaveService(reviewer_a).approve(first.request_id)
            await reviewer_a.commit()

            with pytest.raises(InsufficientBalanceError) as exc_info:
                await LeaveService(reviewer_b).approve(second.request_id)
            assert exc_info.value.available == Decimal("2")
            await reviewer_b.rollback()

        async with session_factory() as check:
            assert await balance(check, employee_id) == Decimal("2")
            statuses = {
                request.request_id: request.status
                for request in (await check.execute(select(LeaveRequest))).scalars()
            }
            assert statuses == {first.request_id: "approved", second.request_id: "pending"}

            # Retrying still fails and still leaves the balance alone
            with pytest.raises(InsufficientBalanceError):
                await LeaveService(check).approve(second.request_id)
            assert await balance(check, employee_id) == Decimal("2")


class TestListRequests:
    async def test_scope_and_status_filter(self, session: AsyncSession, roster):
        service = LeaveService(session)
        alice_request = await service.submit(roster.alice.employee_id, "sick", "2024-03-01", "2024-03-01")
        bob_request = await service.submit(roster.bob.employee_id, "sick", "2024-03-02", "2024-03-02")
        await service.submit(roster.carol.employee_id, "sick", "2024-03-03", "2024-03-03")
        await service.approve(bob_request.request_id)

        team = Scope.for_project("P-01", "Alpha")
        listed = await service.list_requests(team)
        assert {r.request_id for r in listed} == {alice_request.request_id, bob_request.request_id}
        # Newest first
        assert listed[0].request_id == bob_request.request_id

        approved = await service.list_requests(Scope.everything(), "approved")
        assert [r.request_id for r in approved] == [bob_request.request_id]

        assert await service.list_requests(Scope.nothing()) == []

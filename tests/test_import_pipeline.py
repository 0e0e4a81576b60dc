"""Tests for bulk imports: identifier resolution, dates and partial failure."""

from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.attendance import AttendancePolicy
from hr_backoffice.models import Employee, PeriodRecord
from hr_backoffice.services.import_pipeline import (
    ATTENDANCE_MAPPING,
    KPI_MAPPING,
    PAYROLL_MAPPING,
    ImportPipeline,
)
from hr_backoffice.services.payroll_service import PayrollService
from hr_backoffice.services.projection import RosterProjection
from hr_backoffice.services.scope import Scope

pytestmark = pytest.mark.asyncio


@pytest.fixture
def pipeline(session: AsyncSession) -> ImportPipeline:
    return ImportPipeline(session, policy=AttendancePolicy())


async def count_records(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(PeriodRecord))


async def payload_for(session: AsyncSession, employee_id, kind: str, period: str) -> dict:
    return await session.scalar(
        select(PeriodRecord.payload).where(
            PeriodRecord.employee_id == employee_id,
            PeriodRecord.kind == kind,
            PeriodRecord.period == period,
        )
    )


class TestAttendanceImport:
    async def test_mixed_batch_counts_every_row(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {"employee_code": 1001.0, "date": 45285, "check_in": "09:30", "check_out": "18:00"},
            {"email": "BOB@example.com", "date": "2023-12-25", "late_minutes": "15", "overtime_minutes": "abc"},
            {"employee_code": "9999", "date": "2023-12-25"},
            {"employee_code": "1003", "date": "not a date"},
            {"employee_code": "1003"},
        ]

        report = await pipeline.run(rows, ATTENDANCE_MAPPING)

        assert (report.succeeded, report.failed) == (2, 3)
        assert [(f.row, f.code) for f in report.failures] == [
            (3, "NOT_FOUND"),
            (4, "PARSE_FAILURE"),
            (5, "PARSE_FAILURE"),
        ]

        alice = await payload_for(session, roster.alice.employee_id, "attendance", "2023-12-25")
        assert alice["check_in"] == "09:30:00"
        assert (alice["late_minutes"], alice["overtime_minutes"]) == (30, 60)

        bob = await payload_for(session, roster.bob.employee_id, "attendance", "2023-12-25")
        assert (bob["late_minutes"], bob["overtime_minutes"]) == (15, 0)

        assert await payload_for(session, roster.carol.employee_id, "attendance", "2023-12-25") is None

    async def test_serial_and_iso_dates_land_on_the_same_record(
        self, pipeline: ImportPipeline, session: AsyncSession, roster
    ):
        await pipeline.run([{"employee_code": "1001", "date": 45285, "late_minutes": 5}], ATTENDANCE_MAPPING)
        await pipeline.run([{"employee_code": "1001", "date": "2023-12-25", "late_minutes": 7}], ATTENDANCE_MAPPING)

        assert await count_records(session) == 1
        payload = await payload_for(session, roster.alice.employee_id, "attendance", "2023-12-25")
        assert payload["late_minutes"] == 7

    async def test_workbook_cell_types(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [{"employee_code": 1002, "date": datetime(2024, 3, 4), "check_in": time(9, 5), "check_out": ""}]

        report = await pipeline.run(rows, ATTENDANCE_MAPPING)

        assert report.succeeded == 1
        payload = await payload_for(session, roster.bob.employee_id, "attendance", "2024-03-04")
        assert payload["check_out"] is None
        assert payload["late_minutes"] == 0

    async def test_unresolved_row_writes_nothing(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        report = await pipeline.run(
            [{"employee_code": "nope", "email": "ghost@example.com", "date": "2023-12-25", "late_minutes": 9}],
            ATTENDANCE_MAPPING,
        )

        assert (report.succeeded, report.failed) == (0, 1)
        assert await count_records(session) == 0

    async def test_reimport_is_idempotent(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {"employee_code": "1001", "date": "2024-03-04", "check_in": "09:00"},
            {"employee_code": "1002", "date": "2024-03-04", "check_in": "09:20"},
        ]
        await pipeline.run(rows, ATTENDANCE_MAPPING)
        report = await pipeline.run(rows, ATTENDANCE_MAPPING)

        assert report.succeeded == 2
        assert await count_records(session) == 2

    async def test_time_fraction_just_below_midnight(
        self, pipeline: ImportPipeline, session: AsyncSession, roster
    ):
        rows = [
            {"employee_code": "1001", "date": "2024-03-04", "check_in": 0.9999999},
            {"employee_code": "1002", "date": "2024-03-04", "check_in": "09:30"},
        ]

        report = await pipeline.run(rows, ATTENDANCE_MAPPING)

        assert (report.succeeded, report.failed) == (2, 0)
        alice = await payload_for(session, roster.alice.employee_id, "attendance", "2024-03-04")
        assert alice["check_in"] == "23:59:59"
        bob = await payload_for(session, roster.bob.employee_id, "attendance", "2024-03-04")
        assert bob["check_in"] == "09:30:00"

    async def test_out_of_range_minutes_are_clamped(
        self, pipeline: ImportPipeline, session: AsyncSession, roster
    ):
        rows = [
            {"employee_code": "1001", "date": "2024-03-04", "late_minutes": "-5", "overtime_minutes": "5000"},
            {"employee_code": "1002", "date": "2024-03-04", "late_minutes": "1e30"},
        ]

        report = await pipeline.run(rows, ATTENDANCE_MAPPING)

        assert (report.succeeded, report.failed) == (2, 0)
        alice = await payload_for(session, roster.alice.employee_id, "attendance", "2024-03-04")
        assert (alice["late_minutes"], alice["overtime_minutes"]) == (0, 1440)
        bob = await payload_for(session, roster.bob.employee_id, "attendance", "2024-03-04")
        assert bob["late_minutes"] == 1440


class TestMonthlyImports:
    async def test_kpi_import(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {
                "employee_code": "1001",
                "month": "2024-03",
                "productivity_score": "80",
                "quality_score": 90,
                "attendance_score": 75.0,
                "commitment_score": "70",
                "notes": "  steady ",
            },
            {"employee_code": "1002", "quality_score": 101},
        ]

        report = await pipeline.run(rows, KPI_MAPPING, period="2024-03")

        assert (report.succeeded, report.failed) == (2, 0)
        rows = await RosterProjection(session).project(Scope.everything(), "2024-03", "kpi")
        assert rows[0].fields.average_score == Decimal("78.8")
        assert rows[0].fields.notes == "steady"
        # out-of-range scores are pulled to the nearest bound
        assert rows[1].is_persisted
        assert rows[1].fields.quality_score == 100

    async def test_month_is_required(self, pipeline: ImportPipeline, roster):
        report = await pipeline.run([{"employee_code": "1001", "quality_score": 50}], KPI_MAPPING)
        assert report.failures[0].code == "PARSE_FAILURE"

    async def test_payroll_adjustments_merge_over_baseline(
        self, pipeline: ImportPipeline, session: AsyncSession, roster
    ):
        report = await pipeline.run(
            [
                {"employee_code": "1001", "overtime_amount": "120.5"},
                {"employee_id": str(roster.bob.employee_id), "late_deduction": "oops"},
            ],
            PAYROLL_MAPPING,
            period="2024-03",
        )
        assert report.succeeded == 2

        await pipeline.run([{"employee_code": "1001", "late_deduction": "20"}], PAYROLL_MAPPING, period="2024-03")

        rows = await RosterProjection(session).project(Scope.everything(), "2024-03", "payroll")
        alice, bob, _ = rows
        assert alice.fields.overtime_amount == Decimal("120.50")
        assert alice.fields.late_deduction == Decimal("20.00")
        assert alice.fields.net_salary == Decimal("3600.50")
        assert alice.status == "draft"
        assert bob.fields.late_deduction == Decimal("0.00")
        assert bob.fields.net_salary == Decimal("2400.00")

    async def test_unstorable_amount_does_not_abort_the_batch(
        self, pipeline: ImportPipeline, session: AsyncSession, roster
    ):
        report = await pipeline.run(
            [
                {"employee_code": "1001", "overtime_amount": "1e30"},
                {"employee_code": "1002", "overtime_amount": "10"},
            ],
            PAYROLL_MAPPING,
            period="2024-03",
        )

        assert (report.succeeded, report.failed) == (2, 0)
        alice, bob, _ = await RosterProjection(session).project(Scope.everything(), "2024-03", "payroll")
        assert alice.fields.overtime_amount == Decimal("0.00")
        assert alice.fields.net_salary == Decimal("3500.00")
        assert bob.fields.overtime_amount == Decimal("10.00")

    async def test_finalized_payroll_rows_fail(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        await PayrollService(session).finalize(Scope.everything(), "2024-03")

        report = await pipeline.run(
            [{"employee_code": "1001", "overtime_amount": "50"}], PAYROLL_MAPPING, period="2024-03"
        )

        assert (report.succeeded, report.failed) == (0, 1)
        assert report.failures[0].code == "INVALID_STATE"
        assert report.failures[0].employee_id == roster.alice.employee_id


class TestEmployeeImport:
    async def test_create_update_and_reject(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {
                "employee_code": 2001.0,
                "full_name": "Erin Evans",
                "email": "Erin@Example.com",
                "hire_date": 45285,
                "basic_salary": "2800",
                "project": "P-02",
                "leave_balance": "14",
            },
            {
                "employee_code": "1001",
                "full_name": "Alice Adams",
                "email": "alice@example.com",
                "hire_date": "2020-01-06",
                "basic_salary": 3100,
                "job_title": "Lead",
            },
            {"employee_code": "2002", "full_name": "No Email", "hire_date": "2024-01-01", "basic_salary": 1000},
            {
                "employee_code": "2003",
                "full_name": "Zero Pay",
                "email": "zero@example.com",
                "hire_date": "2024-01-01",
                "basic_salary": "0",
            },
            {"employee_code": "2004", "full_name": "No Hire Date", "email": "x@example.com", "basic_salary": 900},
        ]

        report = await pipeline.import_employees(rows)

        assert (report.succeeded, report.failed) == (2, 3)
        assert [f.row for f in report.failures] == [3, 4, 5]
        assert {f.code for f in report.failures} == {"PARSE_FAILURE"}

        erin = await session.scalar(select(Employee).where(Employee.employee_code == "2001"))
        assert erin.email == "erin@example.com"
        assert erin.hire_date == date(2023, 12, 25)
        assert erin.leave_balance == Decimal("14")

        alice = await session.scalar(
            select(Employee)
            .where(Employee.employee_id == roster.alice.employee_id)
            .execution_options(populate_existing=True)
        )
        assert alice.basic_salary == Decimal("3100")
        assert alice.job_title == "Lead"
        assert alice.leave_balance == Decimal("10")

        assert await session.scalar(select(func.count()).select_from(Employee)) == 5

    async def test_code_and_email_of_different_employees(self, pipeline: ImportPipeline, roster):
        report = await pipeline.import_employees(
            [
                {
                    "employee_code": "1001",
                    "full_name": "Alice Adams",
                    "email": "bob@example.com",
                    "hire_date": "2020-01-06",
                    "basic_salary": 3000,
                }
            ]
        )
        assert report.failed == 1
        assert report.failures[0].code == "PARSE_FAILURE"

    async def test_unstorable_salary_fails_only_its_row(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {
                "employee_code": "2001",
                "full_name": "Erin Evans",
                "email": "erin@example.com",
                "hire_date": "2024-01-15",
                "basic_salary": "1e30",
            },
            {
                "employee_code": "2002",
                "full_name": "Frank Ford",
                "email": "frank@example.com",
                "hire_date": "2024-01-15",
                "basic_salary": "2600",
            },
        ]

        report = await pipeline.import_employees(rows)

        assert (report.succeeded, report.failed) == (1, 1)
        assert (report.failures[0].row, report.failures[0].code) == (1, "PARSE_FAILURE")
        assert await session.scalar(select(Employee).where(Employee.employee_code == "2001")) is None


class TestScopedImport:
    @pytest.fixture
    def pipeline(self, session: AsyncSession) -> ImportPipeline:
        return ImportPipeline(session, policy=AttendancePolicy(), scope=Scope.for_project("P-01", "Alpha"))

    async def test_rows_outside_the_project_fail(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {"employee_code": "1001", "quality_score": 80},
            {"employee_code": "1002", "quality_score": 70},
            {"employee_code": "1003", "quality_score": 60},
        ]

        report = await pipeline.run(rows, KPI_MAPPING, period="2024-03")

        assert (report.succeeded, report.failed) == (2, 1)
        assert (report.failures[0].row, report.failures[0].code) == (3, "NOT_FOUND")
        assert await payload_for(session, roster.carol.employee_id, "kpi", "2024-03") is None

    async def test_employees_stay_in_the_project(self, pipeline: ImportPipeline, session: AsyncSession, roster):
        rows = [
            {
                "employee_code": "2001",
                "full_name": "Erin Evans",
                "email": "erin@example.com",
                "hire_date": "2024-01-15",
                "basic_salary": "2800",
                "project": "P-01",
            },
            {
                "employee_code": "2002",
                "full_name": "Frank Ford",
                "email": "frank@example.com",
                "hire_date": "2024-01-15",
                "basic_salary": "2600",
                "project": "P-02",
            },
            {
                "employee_code": "1003",
                "full_name": "Carol Chen",
                "email": "carol@example.com",
                "hire_date": "2019-09-16",
                "basic_salary": "9000",
                "project": "P-01",
            },
        ]

        report = await pipeline.import_employees(rows)

        assert (report.succeeded, report.failed) == (1, 2)
        assert [(f.row, f.code) for f in report.failures] == [(2, "PARSE_FAILURE"), (3, "NOT_FOUND")]
        carol = await session.scalar(
            select(Employee)
            .where(Employee.employee_id == roster.carol.employee_id)
            .execution_options(populate_existing=True)
        )
        assert (carol.project, carol.basic_salary) == ("P-02", Decimal("4800.00"))

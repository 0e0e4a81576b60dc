"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hr_backoffice.calculators.kinds import RecordKind, get_spec
from hr_backoffice.services.import_pipeline import ImportReport
from hr_backoffice.services.projection import ProjectionRow
from hr_backoffice.services.reconciler import ReconcileReport

# ============================================================================
# Common
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None


class RowFailureResponse(BaseModel):
    """One failed row of a batch."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    employee_id: UUID | None = None
    row: int | None = None


# ============================================================================
# Period projection schemas
# ============================================================================


class ProjectionRowResponse(BaseModel):
    """One editable row; ``persisted`` is false for placeholders."""

    employee_id: UUID
    employee_name: str
    employee_code: str | None = None
    kind: RecordKind
    period: str
    persisted: bool
    record_id: UUID | None = None
    status: str | None = None
    fields: dict[str, Any]

    @classmethod
    def from_row(cls, row: ProjectionRow) -> ProjectionRowResponse:
        return cls(
            employee_id=row.employee_id,
            employee_name=row.employee_name,
            employee_code=row.employee_code,
            kind=row.kind,
            period=row.period,
            persisted=row.is_persisted,
            record_id=row.record_id,
            status=row.status,
            fields=get_spec(row.kind).dump(row.fields),
        )


class ProjectionResponse(BaseModel):
    """Full roster view for one kind and period."""

    kind: RecordKind
    period: str
    rows: list[ProjectionRowResponse]


class RowEdit(BaseModel):
    """Changed field values for one employee's row."""

    employee_id: UUID
    fields: dict[str, Any] = Field(default_factory=dict)


class SaveRowsRequest(BaseModel):
    """Batch of row edits."""

    rows: list[RowEdit]


class ReconcileResponse(BaseModel):
    """Per-row outcome of a batch save."""

    succeeded: list[UUID]
    failed: list[RowFailureResponse]
    skipped: list[UUID]

    @classmethod
    def from_report(cls, report: ReconcileReport) -> ReconcileResponse:
        return cls(
            succeeded=report.succeeded,
            failed=[RowFailureResponse.model_validate(f) for f in report.failed],
            skipped=report.skipped,
        )


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollLockResponse(BaseModel):
    """Aggregate finalize state of a month."""

    month: str
    total: int
    finalized: int
    drafts: int
    is_locked: bool


class FinalizeResponse(BaseModel):
    """Rows finalized by one call."""

    month: str
    finalized: list[UUID]
    already_finalized: int
    total_net: Decimal


class GenerateResponse(BaseModel):
    """Outcome of attendance-driven payroll generation."""

    month: str
    updated: int
    skipped_finalized: int
    failed: list[RowFailureResponse]


# ============================================================================
# Leave schemas
# ============================================================================


class LeaveRequestCreate(BaseModel):
    """Schema for submitting a leave request."""

    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date


class LeaveRequestResponse(BaseModel):
    """Schema for leave request response."""

    model_config = ConfigDict(from_attributes=True)

    request_id: UUID
    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    total_days: int
    status: str
    created_at: datetime
    decided_at: datetime | None = None


class LeaveRequestListResponse(BaseModel):
    """Schema for leave request list."""

    items: list[LeaveRequestResponse]
    total: int


# ============================================================================
# Import schemas
# ============================================================================


class ImportRequest(BaseModel):
    """Rows already read from a sheet, keyed by lower-case column name."""

    rows: list[dict[str, Any]]
    period: str | None = None


class ImportResponse(BaseModel):
    """Exact batch counts."""

    succeeded: int
    failed: int
    failures: list[RowFailureResponse]

    @classmethod
    def from_report(cls, report: ImportReport) -> ImportResponse:
        return cls(
            succeeded=report.succeeded,
            failed=report.failed,
            failures=[RowFailureResponse.model_validate(f) for f in report.failures],
        )

"""Typed failures raised by the reconciliation and state-machine services.

Every failure carries a stable machine ``code`` so batch reports and the HTTP
layer can surface the reason without parsing messages.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any


class HRBackofficeError(Exception):
    """Base class for all domain failures."""

    code = "HR_ERROR"


class NotFoundError(HRBackofficeError):
    """Raised when an identifier cannot be resolved."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier!r}")


class InvalidRangeError(HRBackofficeError):
    """Raised when a date range ends before it starts."""

    code = "INVALID_RANGE"

    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end
        super().__init__(f"End date {end.isoformat()} is before start date {start.isoformat()}")


class InsufficientBalanceError(HRBackofficeError):
    """Raised when annual leave exceeds the employee's remaining days."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, employee_id: Any, requested: int | Decimal, available: Decimal | None):
        self.employee_id = employee_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient leave balance for employee {employee_id}. "
            f"Available: {available}, requested: {requested}"
        )


class InvalidStateError(HRBackofficeError):
    """Raised when a transition or edit is attempted from a non-eligible state."""

    code = "INVALID_STATE"

    def __init__(self, from_status: str | None, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UpsertConflictError(HRBackofficeError):
    """Raised when a composite-key write lost a race and could not be retried."""

    code = "UPSERT_CONFLICT"

    def __init__(self, employee_id: Any, period: str, kind: str):
        self.employee_id = employee_id
        self.period = period
        self.kind = kind
        super().__init__(
            f"Conflicting {kind} record for employee {employee_id} in period {period}"
        )


class ParseFailureError(HRBackofficeError):
    """Raised when a row-scoped date or required field cannot be parsed."""

    code = "PARSE_FAILURE"

    def __init__(self, field: str, value: Any, reason: str | None = None):
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"Cannot parse {field}: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)

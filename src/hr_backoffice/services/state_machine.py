"""Payroll and leave state machines with transition validation."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from hr_backoffice.calculators.kinds import PayrollStatus
from hr_backoffice.errors import InvalidStateError


class LeaveStatus(str, Enum):
    """Leave request status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StateMachine:
    """Table-driven transition checks; subclasses provide the table."""

    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str, reason: str | None = None) -> None:
        """Validate a transition, raising InvalidStateError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateError(_value(from_status), _value(to_status), reason)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Terminal statuses have no outgoing transitions."""
        return not cls.get_next_statuses(status)


class PayrollStateMachine(StateMachine):
    """State machine for payroll rows.

    Allowed transitions:
    - draft → finalized

    Un-finalizing is an administrative action outside this engine.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.DRAFT: [PayrollStatus.FINALIZED],
        PayrollStatus.FINALIZED: [],  # Terminal state
    }

    # Statuses where overtime/deduction edits are accepted
    INPUTS_MUTABLE = {PayrollStatus.DRAFT}

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        """Check if a payroll row can still be edited."""
        return status in cls.INPUTS_MUTABLE

    @classmethod
    def is_period_locked(cls, statuses: Iterable[str]) -> bool:
        """A period is locked only when it has rows and every row is finalized."""
        statuses = list(statuses)
        return bool(statuses) and all(s == PayrollStatus.FINALIZED for s in statuses)


class LeaveStateMachine(StateMachine):
    """State machine for leave requests.

    Allowed transitions:
    - pending → approved
    - pending → rejected
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        LeaveStatus.PENDING: [LeaveStatus.APPROVED, LeaveStatus.REJECTED],
        LeaveStatus.APPROVED: [],
        LeaveStatus.REJECTED: [],
    }


def _value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status

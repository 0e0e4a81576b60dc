"""Late and overtime minute derivation from clock times."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class AttendancePolicy:
    """Working-hours policy.

    A check-in later than ``work_start`` + ``grace_minutes`` is late, and the
    late minutes are counted from ``work_start`` (the grace period is not
    subtracted). Any check-out after ``work_end`` counts as overtime.
    """

    work_start: time = time(9, 0)
    grace_minutes: int = 10
    work_end: time = time(17, 0)

    def late_minutes(self, check_in: time | None) -> int:
        """Minutes late for a check-in time (0 when on time or missing)."""
        if check_in is None:
            return 0
        start = _minutes(self.work_start)
        arrived = _minutes(check_in)
        if arrived > start + self.grace_minutes:
            return arrived - start
        return 0

    def overtime_minutes(self, check_out: time | None) -> int:
        """Minutes worked past the end of the day (0 when missing)."""
        if check_out is None:
            return 0
        return max(0, _minutes(check_out) - _minutes(self.work_end))

    def derive(self, check_in: time | None, check_out: time | None) -> tuple[int, int]:
        """Return (late_minutes, overtime_minutes)."""
        return self.late_minutes(check_in), self.overtime_minutes(check_out)

"""Pure calculation helpers: record kinds, dates, attendance and payroll math."""

from hr_backoffice.calculators.attendance import AttendancePolicy
from hr_backoffice.calculators.kinds import (
    AttendanceFields,
    KindSpec,
    KpiFields,
    PayrollFields,
    PayrollStatus,
    RecordKind,
    get_spec,
)
from hr_backoffice.calculators.payroll import PayRates, compute_net

__all__ = [
    "AttendancePolicy",
    "AttendanceFields",
    "KindSpec",
    "KpiFields",
    "PayrollFields",
    "PayrollStatus",
    "RecordKind",
    "get_spec",
    "PayRates",
    "compute_net",
]

"""ORM models."""

from hr_backoffice.models.base import Base, TimestampMixin
from hr_backoffice.models.employee import Employee, EmployeeStatus
from hr_backoffice.models.leave import LeaveRequest
from hr_backoffice.models.records import PeriodRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "EmployeeStatus",
    "LeaveRequest",
    "PeriodRecord",
]

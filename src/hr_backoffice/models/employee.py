"""Employee roster model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_backoffice.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hr_backoffice.models.leave import LeaveRequest
    from hr_backoffice.models.records import PeriodRecord


class EmployeeStatus:
    """Employee lifecycle values."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Employee(Base, TimestampMixin):
    """Employee record: the authoritative roster entry."""

    __tablename__ = "hr_employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    # Project id or project display name; both are accepted by scope filters.
    project: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=EmployeeStatus.ACTIVE)
    basic_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    variable_salary: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    leave_balance: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="hr_employee_status_check"),
        CheckConstraint("leave_balance >= 0", name="hr_employee_leave_balance_check"),
        CheckConstraint("basic_salary >= 0", name="hr_employee_basic_salary_check"),
    )

    # Relationships
    period_records: Mapped[list[PeriodRecord]] = relationship(back_populates="employee")
    leave_requests: Mapped[list[LeaveRequest]] = relationship(back_populates="employee")

    @property
    def is_active(self) -> bool:
        """Check if the employee is on the active roster."""
        return self.status == EmployeeStatus.ACTIVE

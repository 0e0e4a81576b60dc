"""Leave request model."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_backoffice.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hr_backoffice.models.employee import Employee


class LeaveRequest(Base, TimestampMixin):
    """A leave request moving pending -> approved | rejected."""

    __tablename__ = "hr_leave_request"

    request_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("hr_employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "leave_type IN ('annual', 'sick', 'unpaid')",
            name="hr_leave_request_type_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="hr_leave_request_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="hr_leave_request_dates_check"),
        CheckConstraint("total_days >= 1", name="hr_leave_request_days_check"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="leave_requests")

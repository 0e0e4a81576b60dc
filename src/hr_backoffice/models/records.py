"""Period-scoped records shared by attendance, KPI and payroll."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_backoffice.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from hr_backoffice.models.employee import Employee


class PeriodRecord(Base, TimestampMixin):
    """One record slot per (employee, period, kind).

    ``payload`` holds the kind-specific field set as JSON; ``status`` is only
    used by payroll rows (draft/finalized).
    """

    __tablename__ = "hr_period_record"

    record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("hr_employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String, nullable=False)
    period: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "period", "kind", name="hr_period_record_key_unique"),
        CheckConstraint(
            "kind IN ('attendance', 'kpi', 'payroll')",
            name="hr_period_record_kind_check",
        ),
        CheckConstraint(
            "status IS NULL OR status IN ('draft', 'finalized')",
            name="hr_period_record_status_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="period_records")

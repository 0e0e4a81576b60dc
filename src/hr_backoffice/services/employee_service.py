"""Employee roster maintenance: validated create/update by code or email."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.dates import coerce_decimal, is_blank, normalize_date
from hr_backoffice.calculators.payroll import MONEY_LIMIT
from hr_backoffice.errors import NotFoundError, ParseFailureError
from hr_backoffice.models import Employee, EmployeeStatus
from hr_backoffice.services.identifier import IdentifierMatcher, normalize_code, normalize_email

logger = logging.getLogger(__name__)

# leave_balance is stored as Numeric(6, 2)
LEAVE_BALANCE_LIMIT = Decimal("10000")


class EmployeeInput(BaseModel):
    """Validated employee fields.

    ``basic_salary`` must be positive and ``full_name``, ``email`` and
    ``hire_date`` are required. ``leave_balance`` only applies when the
    employee is created; afterwards it changes through leave approval.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    full_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    hire_date: date
    basic_salary: Decimal = Field(gt=0, lt=MONEY_LIMIT)
    variable_salary: Decimal = Field(default=Decimal("0"), ge=0, lt=MONEY_LIMIT)
    employee_code: str | None = None
    phone: str | None = None
    job_title: str | None = None
    department: str | None = None
    project: str | None = None
    status: str = EmployeeStatus.ACTIVE
    leave_balance: Decimal | None = Field(default=None, ge=0, lt=LEAVE_BALANCE_LIMIT)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("not an email address")
        return value.lower()

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        value = value.lower()
        if value not in (EmployeeStatus.ACTIVE, EmployeeStatus.INACTIVE):
            raise ValueError("status must be active or inactive")
        return value

    @classmethod
    def parse(cls, values: Mapping[str, Any]) -> EmployeeInput:
        """Validate, turning pydantic errors into ParseFailureError."""
        try:
            return cls.model_validate(dict(values))
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "employee"
            raise ParseFailureError(field, first.get("input"), first.get("msg")) from exc

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> EmployeeInput:
        """Build from a loosely typed sheet row (serial dates, numeric codes)."""
        raw_hire = row.get("hire_date")
        values = {
            "full_name": _text(row.get("full_name") or row.get("name")),
            "email": normalize_email(row.get("email")),
            "hire_date": None if is_blank(raw_hire) else normalize_date(raw_hire, "hire_date"),
            "basic_salary": coerce_decimal(row.get("basic_salary")),
            "variable_salary": coerce_decimal(row.get("variable_salary")),
            "employee_code": normalize_code(row.get("employee_code")),
            "phone": normalize_code(row.get("phone")),
            "job_title": _text(row.get("job_title")),
            "department": _text(row.get("department")),
            "project": _text(row.get("project")),
            "status": _text(row.get("status")) or EmployeeStatus.ACTIVE,
        }
        if not is_blank(row.get("leave_balance")):
            values["leave_balance"] = coerce_decimal(row.get("leave_balance"))
        return cls.parse(values)


def _text(value: Any) -> str | None:
    return None if is_blank(value) else str(value).strip()


class EmployeeService:
    """Create or update roster entries."""

    def __init__(self, session: AsyncSession, matcher: IdentifierMatcher | None = None):
        self.session = session
        self.matcher = matcher

    async def get(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("employee", employee_id)
        return employee

    async def save(self, data: EmployeeInput, employee_id: UUID | None = None) -> tuple[Employee, bool]:
        """Insert or update an employee; returns (employee, created).

        Without ``employee_id`` an existing employee is found by code, then
        email.

        Raises:
            NotFoundError: If ``employee_id`` is given and unknown
            ParseFailureError: If code and email point at different employees,
                or the code/email is already taken
        """
        if self.matcher is None:
            self.matcher = await IdentifierMatcher.load(self.session)

        if employee_id is not None:
            employee: Employee | None = await self.get(employee_id)
        else:
            employee = self._existing(data)

        values = data.model_dump(exclude={"leave_balance"})
        created = employee is None
        try:
            async with self.session.begin_nested():
                if employee is None:
                    employee = Employee(**values, leave_balance=data.leave_balance or Decimal("0"))
                    self.session.add(employee)
                else:
                    for key, value in values.items():
                        setattr(employee, key, value)
                await self.session.flush()
        except IntegrityError as exc:
            if not created:
                await self.session.refresh(employee)
            raise ParseFailureError(
                "employee",
                data.employee_code or data.email,
                "employee code or email already belongs to another employee",
            ) from exc

        self.matcher.add(employee)
        logger.info(
            "%s employee %s (%s)",
            "Created" if created else "Updated",
            employee.employee_id,
            employee.email,
        )
        return employee, created

    def _existing(self, data: EmployeeInput) -> Employee | None:
        assert self.matcher is not None
        by_code = self.matcher.match(code=data.employee_code)
        by_email = self.matcher.match(email=data.email)
        if by_code and by_email and by_code != by_email:
            raise ParseFailureError(
                "email",
                data.email,
                f"belongs to a different employee than code {data.employee_code}",
            )
        match = by_code or by_email
        return self.matcher.employee(match) if match else None

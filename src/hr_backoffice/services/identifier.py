"""Resolve imported rows to roster employees."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_backoffice.calculators.dates import is_blank
from hr_backoffice.errors import NotFoundError
from hr_backoffice.models import Employee


def normalize_code(value: Any) -> str | None:
    """Employee codes compare as trimmed text; ``1001.0`` from a sheet is ``1001``."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, Decimal) and value == value.to_integral_value():
        value = int(value)
    return str(value).strip()


def normalize_email(value: Any) -> str | None:
    """Emails compare trimmed and lower-cased."""
    if is_blank(value):
        return None
    return str(value).strip().lower()


def _first_present(row: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = row.get(key)
        if not is_blank(value):
            return value
    return None


class IdentifierMatcher:
    """In-memory index of the roster by code, email and id.

    Lookups try, in order: exact employee code, lower-cased email, and
    finally the raw employee id. The first hit wins.
    """

    def __init__(self, employees: Iterable[Employee] = ()):
        self._by_code: dict[str, UUID] = {}
        self._by_email: dict[str, UUID] = {}
        self._employees: dict[UUID, Employee] = {}
        for employee in employees:
            self.add(employee)

    @classmethod
    async def load(cls, session: AsyncSession) -> IdentifierMatcher:
        """Index every employee, active or not."""
        result = await session.execute(select(Employee))
        return cls(result.scalars().all())

    def add(self, employee: Employee) -> None:
        """Index (or re-index) one employee."""
        self._employees[employee.employee_id] = employee
        code = normalize_code(employee.employee_code)
        if code:
            self._by_code[code] = employee.employee_id
        email = normalize_email(employee.email)
        if email:
            self._by_email[email] = employee.employee_id

    def __len__(self) -> int:
        return len(self._employees)

    def employee(self, employee_id: UUID) -> Employee:
        return self._employees[employee_id]

    def match(
        self,
        code: Any = None,
        email: Any = None,
        employee_id: Any = None,
    ) -> UUID | None:
        """Return the matching employee id, or None."""
        normalized_code = normalize_code(code)
        if normalized_code and normalized_code in self._by_code:
            return self._by_code[normalized_code]

        normalized_email = normalize_email(email)
        if normalized_email and normalized_email in self._by_email:
            return self._by_email[normalized_email]

        if not is_blank(employee_id):
            try:
                candidate = employee_id if isinstance(employee_id, UUID) else UUID(str(employee_id).strip())
            except ValueError:
                return None
            if candidate in self._employees:
                return candidate
        return None

    def resolve(
        self,
        row: Mapping[str, Any],
        code_keys: Sequence[str] = ("employee_code",),
        email_keys: Sequence[str] = ("email",),
        id_keys: Sequence[str] = ("employee_id",),
    ) -> UUID:
        """Resolve an import row to an employee id.

        Raises:
            NotFoundError: If no key matches a roster employee
        """
        code = _first_present(row, code_keys)
        email = _first_present(row, email_keys)
        raw_id = _first_present(row, id_keys)
        employee_id = self.match(code=code, email=email, employee_id=raw_id)
        if employee_id is None:
            raise NotFoundError("employee", code or email or raw_id)
        return employee_id

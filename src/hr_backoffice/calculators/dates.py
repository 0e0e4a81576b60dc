"""Normalization of loosely-typed spreadsheet cells.

Dates arrive as spreadsheet serial numbers (days since 1899-12-30), as
``datetime`` objects from openpyxl, or as strings in a handful of locale
formats. Dates and periods are hard failures when they cannot be read;
numbers and clock times are best-effort.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from hr_backoffice.calculators.payroll import MONEY_LIMIT
from hr_backoffice.errors import ParseFailureError

logger = logging.getLogger(__name__)

SPREADSHEET_EPOCH = date(1899, 12, 30)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%d %b %Y",
    "%d %B %Y",
)

TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p")

_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


def is_blank(value: Any) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def from_serial(serial: float) -> date:
    """Convert a spreadsheet serial day number to a calendar date."""
    if serial < 0:
        raise ParseFailureError("date", serial, "negative serial")
    try:
        return SPREADSHEET_EPOCH + timedelta(days=int(serial))
    except (OverflowError, ValueError):
        raise ParseFailureError("date", serial, "serial out of range") from None


def normalize_date(value: Any, field: str = "date") -> date:
    """Convert a serial number, datetime or date string to a ``date``.

    Raises:
        ParseFailureError: If the value is missing or unreadable
    """
    if is_blank(value):
        raise ParseFailureError(field, value, "missing")
    if isinstance(value, bool):
        raise ParseFailureError(field, value, "not a date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)):
        return from_serial(float(value))

    text = str(value).strip()
    if _SERIAL_RE.match(text):
        return from_serial(float(text))

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ParseFailureError(field, value, "unrecognized date format")


def normalize_month(value: Any, field: str = "month") -> str:
    """Canonical ``YYYY-MM`` period key for month-scoped records."""
    if isinstance(value, str):
        match = _MONTH_RE.match(value.strip())
        if match:
            year, month = int(match.group(1)), int(match.group(2))
            if not 1 <= month <= 12:
                raise ParseFailureError(field, value, "month out of range")
            return f"{year:04d}-{month:02d}"
    day = normalize_date(value, field)
    return f"{day.year:04d}-{day.month:02d}"


def month_bounds(month: str) -> tuple[str, str]:
    """First and last ISO day keys for a ``YYYY-MM`` month (inclusive)."""
    year, mon = (int(part) for part in normalize_month(month).split("-"))
    first = date(year, mon, 1)
    following = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    return first.isoformat(), (following - timedelta(days=1)).isoformat()


def normalize_time(value: Any) -> time | None:
    """Best-effort clock time; unreadable values become ``None``."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, time):
        return value.replace(microsecond=0)
    if isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value < 1:
        # Spreadsheet time-of-day fraction
        seconds = min(round(float(value) * 86400), 86399)
        return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)

    text = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    logger.warning("Ignoring unreadable time value %r", value)
    return None


def coerce_int(value: Any, default: int = 0) -> int:
    """Best-effort integer; parse failures fall back to ``default``."""
    if is_blank(value) or isinstance(value, bool):
        return default
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return default


def coerce_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Best-effort decimal; parse failures and unstorable magnitudes fall back to ``default``."""
    if is_blank(value) or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return default
    if not result.is_finite() or abs(result) >= MONEY_LIMIT:
        return default
    return result

"""Payroll arithmetic: net salary and attendance-driven adjustments."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Amounts must stay below this magnitude to fit a Numeric(12, 2) column
MONEY_LIMIT = Decimal("10000000000")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round a value to cents (half-up).

    Raises:
        ValueError: If the value is not a finite amount that can be rounded
    """
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"not a money amount: {value!r}") from None


def compute_net(
    basic_salary: Decimal,
    variable_salary: Decimal,
    overtime_amount: Decimal,
    late_deduction: Decimal,
) -> Decimal:
    """net = basic + variable + overtime - late deduction."""
    return to_money(basic_salary + variable_salary + overtime_amount - late_deduction)


@dataclass(frozen=True)
class PayRates:
    """Rates for converting attendance minutes into money."""

    days_per_month: int = 30
    hours_per_day: int = 8
    overtime_multiplier: Decimal = Decimal("1.5")

    def hourly_rate(self, basic_salary: Decimal) -> Decimal:
        """Hourly wage derived from the monthly basic salary."""
        return basic_salary / self.days_per_month / self.hours_per_day

    def adjustments(
        self,
        basic_salary: Decimal,
        late_minutes: int,
        overtime_minutes: int,
    ) -> tuple[Decimal, Decimal]:
        """Return (overtime_amount, late_deduction) for a month of attendance."""
        hourly = self.hourly_rate(basic_salary)
        overtime = Decimal(overtime_minutes) / 60 * hourly * self.overtime_multiplier
        late = Decimal(late_minutes) / 60 * hourly
        return max(ZERO, to_money(overtime)), max(ZERO, to_money(late))

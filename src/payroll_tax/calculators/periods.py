"""Conversion between annual and pay-period amounts."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Union

from payroll_tax.calculators.errors import InvalidInput
from payroll_tax.calculators.types import to_decimal

Periods = Union[int, Decimal, "PayFrequency"]


class PayFrequency(str, Enum):
    """Canonical pay frequencies surfaced to users."""

    ANNUAL = "annual"
    MONTHLY = "monthly"
    SEMIMONTHLY = "semimonthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"

    @property
    def periods_per_year(self) -> Decimal:
        return _PERIODS_PER_YEAR[self]


_PERIODS_PER_YEAR: dict[PayFrequency, Decimal] = {
    PayFrequency.ANNUAL: Decimal("1"),
    PayFrequency.MONTHLY: Decimal("12"),
    PayFrequency.SEMIMONTHLY: Decimal("24"),
    PayFrequency.BIWEEKLY: Decimal("26"),
    PayFrequency.WEEKLY: Decimal("52"),
}

MONTHS_PER_YEAR = Decimal("12")


def periods_per_year(periods: Periods) -> Decimal:
    """Normalize a frequency or period count to a positive Decimal."""
    if isinstance(periods, PayFrequency):
        return periods.periods_per_year
    if isinstance(periods, str):
        try:
            return PayFrequency(periods.lower()).periods_per_year
        except ValueError:
            pass
    try:
        value = to_decimal(periods)
    except ArithmeticError:
        raise InvalidInput("periods_per_year", periods, "not a number") from None
    if not value.is_finite() or value <= 0:
        raise InvalidInput("periods_per_year", periods, "must be a positive number")
    return value


def to_annual(amount: Decimal, periods: Periods) -> Decimal:
    """Scale a per-period amount to its yearly equivalent."""
    return to_decimal(amount) * periods_per_year(periods)


def from_annual(amount: Decimal, periods: Periods) -> Decimal:
    """Divide a yearly amount into one pay period."""
    return to_decimal(amount) / periods_per_year(periods)


def monthly_to_period_factor(periods: Periods) -> Decimal:
    """Length of one pay period measured in months (12 / periods)."""
    return MONTHS_PER_YEAR / periods_per_year(periods)

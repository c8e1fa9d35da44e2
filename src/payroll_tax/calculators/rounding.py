"""Rounding of monetary amounts to a precision increment."""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal

from payroll_tax.calculators.types import DEFAULT_PRECISION, RoundingMode, to_decimal

_DECIMAL_MODES = {
    RoundingMode.NEAREST: ROUND_HALF_UP,
    RoundingMode.UP: ROUND_CEILING,
    RoundingMode.DOWN: ROUND_FLOOR,
    RoundingMode.BANKER: ROUND_HALF_EVEN,
}


def round_amount(
    amount: Decimal,
    mode: RoundingMode | str = RoundingMode.NEAREST,
    precision: Decimal = DEFAULT_PRECISION,
) -> Decimal:
    """Round ``amount`` to a multiple of ``precision``.

    ``precision`` is an increment: 0.01 rounds to cents, 1 to whole units,
    5 to the nearest five units. ``RoundingMode.NONE`` returns the amount
    untouched.
    """
    mode = RoundingMode(mode)
    amount = to_decimal(amount)
    if mode is RoundingMode.NONE:
        return amount

    precision = to_decimal(precision)
    if precision <= 0:
        raise ValueError(f"Rounding precision must be positive, got {precision}")

    units = (amount / precision).quantize(Decimal("1"), rounding=_DECIMAL_MODES[mode])
    return units * precision

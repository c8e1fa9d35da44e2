"""Social security contribution calculation (NIS, SSA, ...)."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping

from payroll_tax.calculators.errors import InvalidInput
from payroll_tax.calculators.periods import (
    Periods,
    monthly_to_period_factor,
    periods_per_year,
)
from payroll_tax.calculators.rounding import round_amount
from payroll_tax.calculators.types import (
    ZERO,
    CeilingPeriod,
    ContributionResult,
    SocialSecurityRule,
    to_decimal,
)

logger = logging.getLogger(__name__)

ALL_EARNINGS = "all"


def validate_rule(rule: SocialSecurityRule) -> None:
    """Check rates lie in [0, 1] and limits are not negative."""
    for name in ("employee_rate", "employer_rate"):
        rate = getattr(rule, name)
        if not ZERO <= rate <= 1:
            raise InvalidInput(name, rate, "must be between 0 and 1")
    for name in ("ceiling", "earnings_floor"):
        limit = getattr(rule, name)
        if limit is not None and limit < 0:
            raise InvalidInput(name, limit, "must not be negative")


def period_limit(
    limit: Decimal | None, ceiling_period: CeilingPeriod, periods: Periods
) -> Decimal | None:
    """Scale a ceiling (or floor) to one pay period.

    Monthly limits are scaled by the period length in months, so a monthly
    ceiling of 280,000 is 280,000 for monthly pay and 280,000 * 12 / 52 for
    weekly pay. Annual limits are divided by the number of periods.
    """
    if limit is None or ceiling_period is CeilingPeriod.NONE:
        return None
    if ceiling_period is CeilingPeriod.MONTHLY:
        return limit * monthly_to_period_factor(periods)
    return limit / periods_per_year(periods)


def contribution_basis(
    rule: SocialSecurityRule,
    period_gross: Decimal,
    earnings: Mapping[str, Decimal] | None = None,
) -> Decimal:
    """Earnings subject to contributions before ceiling and floor.

    With a gross basis, or when no component breakdown is supplied, this is
    ``period_gross``. Otherwise it is the sum of the included components
    (``"all"`` includes every component) minus any excluded ones.
    The component total may not exceed ``period_gross``.
    """
    if not rule.included_earnings and not rule.excluded_earnings:
        return period_gross
    if earnings is None:
        return period_gross

    for component, amount in earnings.items():
        if amount < 0:
            raise InvalidInput(f"earnings[{component}]", amount, "must not be negative")

    if not rule.included_earnings or ALL_EARNINGS in rule.included_earnings:
        included = set(earnings)
    else:
        included = set(rule.included_earnings)
    included -= set(rule.excluded_earnings)

    basis = sum((earnings[c] for c in sorted(included) if c in earnings), ZERO)
    if basis > period_gross:
        raise InvalidInput(
            "earnings", basis, f"contributable components exceed period gross {period_gross}"
        )
    return basis


def compute_contributions(
    rule: SocialSecurityRule,
    period_gross: Decimal,
    periods: Periods,
    earnings: Mapping[str, Decimal] | None = None,
) -> ContributionResult:
    """Calculate employee and employer contributions for one pay period.

    Both contributions are computed independently off the same capped base.

    Raises:
        InvalidInput: If ``period_gross`` is negative or ``periods`` invalid
    """
    period_gross = to_decimal(period_gross)
    if period_gross < 0:
        raise InvalidInput("period_gross", period_gross, "must not be negative")
    validate_rule(rule)

    basis = contribution_basis(rule, period_gross, earnings)
    period_ceiling = period_limit(rule.ceiling, rule.ceiling_period, periods)
    period_floor = period_limit(rule.earnings_floor, rule.ceiling_period, periods)

    contributable = basis
    ceiling_applied = False
    if period_ceiling is not None and basis > period_ceiling:
        contributable = period_ceiling
        ceiling_applied = True

    if period_floor is not None and contributable < period_floor:
        # Below minimum, no contributions
        contributable = ZERO

    employee = round_amount(
        contributable * rule.employee_rate, rule.rounding_mode, rule.rounding_precision
    )
    employer = round_amount(
        contributable * rule.employer_rate, rule.rounding_mode, rule.rounding_precision
    )

    logger.debug(
        "%s contributions on %s (ceiling %s): employee=%s employer=%s",
        rule.code,
        contributable,
        period_ceiling,
        employee,
        employer,
    )
    return ContributionResult(
        employee_contribution=employee,
        employer_contribution=employer,
        contributable_earnings=contributable,
        ceiling_applied=ceiling_applied,
        period_ceiling=period_ceiling,
    )

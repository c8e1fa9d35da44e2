"""Personal deduction (tax-free allowance) resolution.

Inputs are always annual. The policy ``basis`` states the unit of the
amount the policy produces: a ``monthly`` policy yields a monthly allowance
which is multiplied by 12. The resolver therefore always returns an annual
deduction.

Formula variables:
    annualGross  annual gross earnings
    gross        monthly equivalent (annualGross / 12)
    dependents   number of dependents declared by the employee
"""

from __future__ import annotations

from decimal import Decimal

from payroll_tax.calculators.errors import InvalidInput
from payroll_tax.calculators.formula import evaluate_formula
from payroll_tax.calculators.periods import MONTHS_PER_YEAR
from payroll_tax.calculators.types import (
    ZERO,
    DeductionBasis,
    DeductionType,
    PersonalDeduction,
    to_decimal,
)


def deduction_variables(annual_gross: Decimal, dependents: int = 0) -> dict[str, Decimal]:
    """Variables available to deduction formulas."""
    annual_gross = to_decimal(annual_gross)
    return {
        "annualGross": annual_gross,
        "gross": annual_gross / MONTHS_PER_YEAR,
        "dependents": Decimal(dependents),
    }


def resolve_deduction(
    policy: PersonalDeduction,
    annual_gross: Decimal,
    dependents: int = 0,
) -> Decimal:
    """Compute the annual personal deduction for ``annual_gross``.

    Raises:
        InvalidInput: If the policy lacks the value its type requires
        FormulaSyntaxError, UnknownVariable, DivisionByZero: From formulas
    """
    if policy.type is DeductionType.FLAT:
        if policy.amount is None:
            raise InvalidInput("personal_deduction.amount", None, "required for flat policy")
        amount = policy.amount

    elif policy.type is DeductionType.PERCENTAGE:
        if policy.percentage is None:
            raise InvalidInput(
                "personal_deduction.percentage", None, "required for percentage policy"
            )
        amount = to_decimal(annual_gross) * policy.percentage

    else:
        if not policy.formula:
            raise InvalidInput("personal_deduction.formula", None, "required for formula policy")
        amount = evaluate_formula(
            policy.formula, deduction_variables(annual_gross, dependents)
        )

    # Caps
    if policy.min_amount is not None and amount < policy.min_amount:
        amount = policy.min_amount
    if policy.max_amount is not None and amount > policy.max_amount:
        amount = policy.max_amount

    if policy.basis is DeductionBasis.MONTHLY:
        amount *= MONTHS_PER_YEAR

    return max(amount, ZERO)

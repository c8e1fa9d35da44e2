"""Payroll tax calculation engine."""

from payroll_tax.calculators.bands import compute_tax, validate_bands
from payroll_tax.calculators.deduction import resolve_deduction
from payroll_tax.calculators.engine import PayrollTaxEngine, calculate
from payroll_tax.calculators.formula import evaluate_formula, parse_formula
from payroll_tax.calculators.periods import PayFrequency, from_annual, to_annual
from payroll_tax.calculators.social_security import compute_contributions

__all__ = [
    "PayrollTaxEngine",
    "PayFrequency",
    "calculate",
    "compute_contributions",
    "compute_tax",
    "evaluate_formula",
    "from_annual",
    "parse_formula",
    "resolve_deduction",
    "to_annual",
    "validate_bands",
]

"""Error taxonomy for the tax calculation pipeline.

Every error is terminal for the single calculation being performed: the
engine is a deterministic function of its inputs, so retrying with the same
inputs yields the same error.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class TaxEngineError(Exception):
    """Base class for all tax engine errors."""

    code = "TAX_ENGINE_ERROR"


class FormulaSyntaxError(TaxEngineError):
    """Raised when a deduction formula cannot be parsed."""

    code = "FORMULA_SYNTAX_ERROR"

    def __init__(self, formula: str, message: str, position: int | None = None):
        self.formula = formula
        self.position = position
        self.message = message
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid formula {formula!r}{where}: {message}")


class UnknownVariable(TaxEngineError):
    """Raised when a formula references a variable that was not supplied."""

    code = "UNKNOWN_VARIABLE"

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = sorted(available or [])
        super().__init__(
            f"Unknown formula variable '{name}' (available: {', '.join(self.available) or 'none'})"
        )


class DivisionByZero(TaxEngineError):
    """Raised when a formula divides by zero."""

    code = "DIVISION_BY_ZERO"

    def __init__(self, formula: str | None = None):
        self.formula = formula
        msg = "Division by zero"
        if formula:
            msg += f" in formula {formula!r}"
        super().__init__(msg)


class InvalidBandConfiguration(TaxEngineError):
    """Raised when a tax band list violates ordering or bound invariants."""

    code = "INVALID_BAND_CONFIGURATION"

    def __init__(self, reason: str, band_name: str | None = None):
        self.reason = reason
        self.band_name = band_name
        msg = f"Invalid tax band configuration: {reason}"
        if band_name:
            msg += f" (band '{band_name}')"
        super().__init__(msg)


class InvalidInput(TaxEngineError):
    """Raised for negative amounts or non-positive period counts."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value}: {reason}")


class NoApplicableTaxRule(TaxEngineError):
    """Raised when rule lookup does not resolve to exactly one rule."""

    code = "NO_APPLICABLE_TAX_RULE"

    def __init__(
        self,
        rule_kind: str,
        jurisdiction_code: str,
        tax_year: int | None = None,
        as_of_date: date | None = None,
        matches: int = 0,
    ):
        self.rule_kind = rule_kind
        self.jurisdiction_code = jurisdiction_code
        self.tax_year = tax_year
        self.as_of_date = as_of_date
        self.matches = matches

        scope = []
        if tax_year is not None:
            scope.append(f"tax year {tax_year}")
        if as_of_date is not None:
            scope.append(f"effective {as_of_date}")
        where = " ".join(scope) or "any period"
        if matches > 1:
            reason = f"{matches} rules overlap"
        else:
            reason = "no rule found"
        super().__init__(
            f"No applicable {rule_kind} rule for jurisdiction '{jurisdiction_code}' "
            f"in {where}: {reason}"
        )


class TaxCalculationError(TaxEngineError):
    """Composite error raised by the orchestrator.

    Wraps the failing component's error (available as ``__cause__`` and
    ``cause``) with the pipeline stage and the calculation context.
    """

    code = "TAX_CALCULATION_ERROR"

    def __init__(self, stage: str, cause: Exception, context: dict[str, Any] | None = None):
        self.stage = stage
        self.cause = cause
        self.context = dict(context or {})
        ctx = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()) if v is not None)
        msg = f"Tax calculation failed at stage '{stage}': {cause}"
        if ctx:
            msg += f" [{ctx}]"
        super().__init__(msg)

    @property
    def cause_code(self) -> str:
        """Machine code of the wrapped error."""
        return getattr(self.cause, "code", type(self.cause).__name__)

"""Type definitions for the tax calculation pipeline.

Monetary amounts are ``Decimal`` values in the jurisdiction's major currency
unit. Rates are ``Decimal`` fractions (0.25 = 25%). Rule objects are frozen
so a single instance can be shared by every calculation in a payroll run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

ZERO = Decimal("0")
DEFAULT_PRECISION = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal via their string form."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else to_decimal(value)


class RoundingMode(str, Enum):
    """Rounding applied to final tax and contribution amounts."""

    NEAREST = "nearest"  # half up
    UP = "up"  # ceiling
    DOWN = "down"  # floor
    BANKER = "banker"  # half even
    NONE = "none"


class Periodization(str, Enum):
    """How income tax is derived for a sub-annual pay period."""

    ANNUALIZED = "annualized"
    TRUE_PERIOD = "true_period"


class CeilingPeriod(str, Enum):
    """Period a social security ceiling is expressed in."""

    MONTHLY = "monthly"
    ANNUAL = "annual"
    NONE = "none"


class DeductionType(str, Enum):
    """Personal deduction policy types."""

    FLAT = "flat"
    FORMULA = "formula"
    PERCENTAGE = "percentage"


class DeductionBasis(str, Enum):
    """Unit of the amount a deduction policy produces."""

    ANNUAL = "annual"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class TaxBand:
    """Progressive income tax band on an annual basis."""

    order: int
    name: str
    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.25 for 25%
    flat_amount: Decimal | None = None  # Added once when income reaches the band

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_amount", to_decimal(self.min_amount))
        object.__setattr__(self, "max_amount", _optional_decimal(self.max_amount))
        object.__setattr__(self, "rate", to_decimal(self.rate))
        object.__setattr__(self, "flat_amount", _optional_decimal(self.flat_amount))

    @property
    def is_unbounded(self) -> bool:
        return self.max_amount is None

    def scaled(self, divisor: Decimal) -> TaxBand:
        """Return a copy with amount limits divided by ``divisor``."""
        return TaxBand(
            order=self.order,
            name=self.name,
            min_amount=self.min_amount / divisor,
            max_amount=None if self.max_amount is None else self.max_amount / divisor,
            rate=self.rate,
            flat_amount=None if self.flat_amount is None else self.flat_amount / divisor,
        )

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "name": self.name,
            "min_amount": str(self.min_amount),
            "max_amount": str(self.max_amount) if self.max_amount is not None else None,
            "rate": str(self.rate),
            "flat_amount": str(self.flat_amount) if self.flat_amount is not None else None,
        }


@dataclass(frozen=True)
class PersonalDeduction:
    """Tax-free personal allowance policy."""

    type: DeductionType
    basis: DeductionBasis = DeductionBasis.ANNUAL
    amount: Decimal | None = None  # flat
    formula: str | None = None  # "MAX(1560000, {annualGross} * 0.333)"
    percentage: Decimal | None = None  # 0.10 = 10% of annual gross
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", DeductionType(self.type))
        object.__setattr__(self, "basis", DeductionBasis(self.basis))
        object.__setattr__(self, "amount", _optional_decimal(self.amount))
        object.__setattr__(self, "percentage", _optional_decimal(self.percentage))
        object.__setattr__(self, "min_amount", _optional_decimal(self.min_amount))
        object.__setattr__(self, "max_amount", _optional_decimal(self.max_amount))

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "basis": self.basis.value,
            "amount": str(self.amount) if self.amount is not None else None,
            "formula": self.formula,
            "percentage": str(self.percentage) if self.percentage is not None else None,
            "min_amount": str(self.min_amount) if self.min_amount is not None else None,
            "max_amount": str(self.max_amount) if self.max_amount is not None else None,
        }


@dataclass(frozen=True)
class IncomeTaxRule:
    """Income tax rule for one jurisdiction and tax year."""

    jurisdiction_code: str
    tax_year: int
    bands: tuple[TaxBand, ...]
    personal_deduction: PersonalDeduction
    rounding_mode: RoundingMode = RoundingMode.NEAREST
    rounding_precision: Decimal = DEFAULT_PRECISION
    periodization: Periodization = Periodization.ANNUALIZED
    effective_from: date | None = None
    effective_to: date | None = None
    rule_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "bands", tuple(self.bands))
        object.__setattr__(self, "rounding_mode", RoundingMode(self.rounding_mode))
        object.__setattr__(self, "rounding_precision", to_decimal(self.rounding_precision))
        object.__setattr__(self, "periodization", Periodization(self.periodization))

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "kind": "income_tax",
            "jurisdiction_code": self.jurisdiction_code,
            "tax_year": self.tax_year,
            "bands": [b.to_canonical_dict() for b in self.bands],
            "personal_deduction": self.personal_deduction.to_canonical_dict(),
            "rounding_mode": self.rounding_mode.value,
            "rounding_precision": str(self.rounding_precision),
            "periodization": self.periodization.value,
        }


@dataclass(frozen=True)
class SocialSecurityRule:
    """Social security contribution rule for one jurisdiction and tax year."""

    jurisdiction_code: str
    tax_year: int
    employee_rate: Decimal
    employer_rate: Decimal
    ceiling: Decimal | None = None
    ceiling_period: CeilingPeriod = CeilingPeriod.NONE
    earnings_floor: Decimal | None = None  # Same period as the ceiling
    included_earnings: tuple[str, ...] = ()  # Empty = gross basis
    excluded_earnings: tuple[str, ...] = ()
    rounding_mode: RoundingMode = RoundingMode.NONE
    rounding_precision: Decimal = DEFAULT_PRECISION
    name: str = "Social Security"
    code: str = "SS"
    effective_from: date | None = None
    effective_to: date | None = None
    rule_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "employee_rate", to_decimal(self.employee_rate))
        object.__setattr__(self, "employer_rate", to_decimal(self.employer_rate))
        object.__setattr__(self, "ceiling", _optional_decimal(self.ceiling))
        object.__setattr__(self, "ceiling_period", CeilingPeriod(self.ceiling_period))
        object.__setattr__(self, "earnings_floor", _optional_decimal(self.earnings_floor))
        object.__setattr__(self, "included_earnings", tuple(self.included_earnings))
        object.__setattr__(self, "excluded_earnings", tuple(self.excluded_earnings))
        object.__setattr__(self, "rounding_mode", RoundingMode(self.rounding_mode))
        object.__setattr__(self, "rounding_precision", to_decimal(self.rounding_precision))

    @property
    def basis(self) -> str | tuple[str, ...]:
        """'gross' or the enumerated included earnings components."""
        return self.included_earnings or "gross"

    def to_canonical_dict(self) -> dict[str, Any]:
        return {
            "kind": "social_security",
            "jurisdiction_code": self.jurisdiction_code,
            "tax_year": self.tax_year,
            "code": self.code,
            "employee_rate": str(self.employee_rate),
            "employer_rate": str(self.employer_rate),
            "ceiling": str(self.ceiling) if self.ceiling is not None else None,
            "ceiling_period": self.ceiling_period.value,
            "earnings_floor": str(self.earnings_floor) if self.earnings_floor is not None else None,
            "included_earnings": list(self.included_earnings),
            "excluded_earnings": list(self.excluded_earnings),
            "rounding_mode": self.rounding_mode.value,
            "rounding_precision": str(self.rounding_precision),
        }


@dataclass(frozen=True)
class TaxBandDetail:
    """Tax attributed to a single band."""

    band_name: str
    amount: Decimal  # Income taxed in this band
    rate: Decimal
    tax: Decimal


@dataclass(frozen=True)
class BandTaxResult:
    """Output of the progressive band calculator."""

    total_tax: Decimal
    breakdown: tuple[TaxBandDetail, ...] = ()

    @property
    def marginal_rate(self) -> Decimal:
        """Rate of the highest band reached (0 if none)."""
        return self.breakdown[-1].rate if self.breakdown else ZERO


@dataclass(frozen=True)
class ContributionResult:
    """Output of the social security calculator for one pay period."""

    employee_contribution: Decimal
    employer_contribution: Decimal
    contributable_earnings: Decimal
    ceiling_applied: bool = False
    period_ceiling: Decimal | None = None

    @property
    def total_contribution(self) -> Decimal:
        return self.employee_contribution + self.employer_contribution


@dataclass(frozen=True)
class PayrollTaxRequest:
    """Inputs for one employee in one pay period."""

    income_tax_rule: IncomeTaxRule
    social_security_rule: SocialSecurityRule
    period_gross: Decimal
    periods_per_year: Decimal | str  # Count or frequency name ("monthly")
    dependents: int = 0
    custom_deduction: Decimal = ZERO  # Annual, added to the personal deduction
    earnings: Mapping[str, Decimal] | None = None  # Component -> amount
    employee_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "period_gross", to_decimal(self.period_gross))
        if not isinstance(self.periods_per_year, str):
            object.__setattr__(self, "periods_per_year", to_decimal(self.periods_per_year))
        object.__setattr__(self, "custom_deduction", to_decimal(self.custom_deduction))
        if self.earnings is not None:
            object.__setattr__(
                self,
                "earnings",
                {k: to_decimal(v) for k, v in self.earnings.items()},
            )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "employee_id": self.employee_id,
            "period_gross": str(self.period_gross),
            "periods_per_year": str(getattr(self.periods_per_year, "value", self.periods_per_year)),
            "dependents": self.dependents,
            "custom_deduction": str(self.custom_deduction),
            "earnings": (
                {k: str(v) for k, v in sorted(self.earnings.items())}
                if self.earnings is not None
                else None
            ),
        }


@dataclass(frozen=True)
class PayslipTaxBreakdown:
    """Tax breakdown for a payslip. Constructed fresh per calculation."""

    jurisdiction_code: str
    tax_year: int
    period_gross: Decimal
    periods_per_year: Decimal
    annual_gross: Decimal
    personal_deduction: Decimal
    taxable_income: Decimal
    tax_bands: tuple[TaxBandDetail, ...]
    annual_tax: Decimal
    period_tax: Decimal
    contributable_earnings: Decimal
    employee_contribution: Decimal
    employer_contribution: Decimal
    net_pay: Decimal
    ceiling_applied: bool
    effective_tax_rate: Decimal  # Percentage of annual gross
    marginal_tax_rate: Decimal  # Percentage
    calculation_id: UUID
    rules_fingerprint: str
    employee_id: str | None = None

    @property
    def nisable_earnings(self) -> Decimal:
        """Alias used by NIS-style jurisdictions."""
        return self.contributable_earnings

    @property
    def total_contribution(self) -> Decimal:
        return self.employee_contribution + self.employer_contribution


@dataclass
class CalculationFailure:
    """A failed calculation within a payroll run."""

    employee_id: str | None
    stage: str
    code: str
    message: str


@dataclass
class PayrollRunResult:
    """Result of calculating a batch of employees."""

    results: list[PayslipTaxBreakdown] = field(default_factory=list)
    failures: list[CalculationFailure] = field(default_factory=list)
    total_gross: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_employee_contributions: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO
    total_net: Decimal = ZERO

    @property
    def error_count(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures

"""Pydantic schemas for API request/response models."""

from datetime import date
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from payroll_tax.calculators.periods import PayFrequency
from payroll_tax.calculators.rules import (
    income_tax_rule_from_payload,
    social_security_rule_from_payload,
)
from payroll_tax.calculators.types import IncomeTaxRule, SocialSecurityRule


# ============================================================================
# Rule schemas
# ============================================================================


class TaxBandSchema(BaseModel):
    """Progressive tax band on an annual basis."""

    order: int | None = None
    name: str | None = None
    min_amount: Decimal = Field(ge=0)
    max_amount: Decimal | None = None
    rate: Decimal = Field(ge=0, le=1)
    flat_amount: Decimal | None = None


class PersonalDeductionSchema(BaseModel):
    """Personal deduction policy."""

    type: Literal["flat", "fixed", "formula", "percentage"]
    basis: Literal["annual", "monthly"] = "annual"
    amount: Decimal | None = None
    formula: str | None = None
    percentage: Decimal | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    description: str | None = None


class IncomeTaxRuleSchema(BaseModel):
    """Income tax rule submitted inline with a calculation."""

    tax_year: int
    bands: list[TaxBandSchema] = Field(min_length=1)
    personal_deduction: PersonalDeductionSchema
    rounding_mode: Literal["nearest", "up", "down", "banker", "none", "floor", "ceil"] = "nearest"
    rounding_precision: Decimal = Field(default=Decimal("0.01"), gt=0)
    periodization: Literal["annualized", "true_period"] = "annualized"

    def to_rule(self, jurisdiction_code: str) -> IncomeTaxRule:
        return income_tax_rule_from_payload(self.model_dump(), jurisdiction_code)


class SocialSecurityRuleSchema(BaseModel):
    """Social security rule submitted inline with a calculation."""

    tax_year: int
    name: str = "Social Security"
    code: str = "SS"
    employee_rate: Decimal = Field(ge=0, le=1)
    employer_rate: Decimal = Field(ge=0, le=1)
    ceiling: Decimal | None = Field(default=None, ge=0)
    ceiling_period: Literal["monthly", "annual", "none"] = "monthly"
    earnings_floor: Decimal | None = Field(default=None, ge=0)
    included_earnings: list[str] = Field(default_factory=list)
    excluded_earnings: list[str] = Field(default_factory=list)
    rounding_mode: Literal["nearest", "up", "down", "banker", "none", "floor", "ceil"] = "none"
    rounding_precision: Decimal = Field(default=Decimal("0.01"), gt=0)

    def to_rule(self, jurisdiction_code: str) -> SocialSecurityRule:
        return social_security_rule_from_payload(self.model_dump(), jurisdiction_code)


# ============================================================================
# Calculation request schemas
# ============================================================================


class CalculationInputs(BaseModel):
    """Employee inputs for one pay period."""

    period_gross: Decimal = Field(ge=0)
    frequency: PayFrequency | None = None
    periods_per_year: Decimal | None = Field(default=None, gt=0)
    dependents: int = Field(default=0, ge=0)
    custom_deduction: Decimal = Field(default=Decimal("0"), ge=0)
    earnings: dict[str, Decimal] | None = None
    employee_id: str | None = None

    @model_validator(mode="after")
    def check_period(self) -> "CalculationInputs":
        if self.frequency is None and self.periods_per_year is None:
            raise ValueError("Either frequency or periods_per_year is required")
        return self

    @property
    def resolved_periods(self) -> Decimal:
        if self.periods_per_year is not None:
            return self.periods_per_year
        return self.frequency.periods_per_year


class InlineCalculationRequest(CalculationInputs):
    """Calculation with rules supplied in the request body."""

    jurisdiction_code: str
    income_tax_rule: IncomeTaxRuleSchema
    social_security_rule: SocialSecurityRuleSchema


class JurisdictionCalculationRequest(CalculationInputs):
    """Calculation with rules resolved from storage."""

    tax_year: int | None = None
    as_of_date: date | None = None

    @model_validator(mode="after")
    def check_rule_scope(self) -> "JurisdictionCalculationRequest":
        if self.tax_year is None and self.as_of_date is None:
            raise ValueError("Either tax_year or as_of_date is required")
        return self


# ============================================================================
# Response schemas
# ============================================================================


class TaxBandDetailResponse(BaseModel):
    """Tax attributed to one band."""

    model_config = ConfigDict(from_attributes=True)

    band_name: str
    amount: Decimal
    rate: Decimal
    tax: Decimal


class PayslipTaxBreakdownResponse(BaseModel):
    """Payslip tax breakdown."""

    model_config = ConfigDict(from_attributes=True)

    calculation_id: UUID
    rules_fingerprint: str
    employee_id: str | None = None
    jurisdiction_code: str
    tax_year: int
    period_gross: Decimal
    periods_per_year: Decimal
    annual_gross: Decimal
    personal_deduction: Decimal
    taxable_income: Decimal
    tax_bands: list[TaxBandDetailResponse]
    annual_tax: Decimal
    period_tax: Decimal
    contributable_earnings: Decimal
    employee_contribution: Decimal
    employer_contribution: Decimal
    net_pay: Decimal
    ceiling_applied: bool
    effective_tax_rate: Decimal
    marginal_tax_rate: Decimal


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
    stage: str | None = None

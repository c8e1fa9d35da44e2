"""Payroll tax calculation endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from payroll_tax.api.dependencies import RuleResolver, TaxEngine
from payroll_tax.api.schemas import (
    CalculationInputs,
    ErrorResponse,
    InlineCalculationRequest,
    JurisdictionCalculationRequest,
    PayslipTaxBreakdownResponse,
)
from payroll_tax.calculators.errors import InvalidInput
from payroll_tax.calculators.types import (
    IncomeTaxRule,
    PayrollTaxRequest,
    SocialSecurityRule,
)

router = APIRouter(tags=["tax"])


def _build_request(
    inputs: CalculationInputs,
    income_tax_rule: IncomeTaxRule,
    social_security_rule: SocialSecurityRule,
) -> PayrollTaxRequest:
    return PayrollTaxRequest(
        income_tax_rule=income_tax_rule,
        social_security_rule=social_security_rule,
        period_gross=inputs.period_gross,
        periods_per_year=inputs.resolved_periods,
        dependents=inputs.dependents,
        custom_deduction=inputs.custom_deduction,
        earnings=inputs.earnings,
        employee_id=inputs.employee_id,
    )


@router.post(
    "/tax/calculate",
    response_model=PayslipTaxBreakdownResponse,
    status_code=status.HTTP_200_OK,
    responses={422: {"model": ErrorResponse}},
)
async def calculate_tax(
    payload: InlineCalculationRequest,
    engine: TaxEngine,
) -> PayslipTaxBreakdownResponse:
    """Calculate a payslip tax breakdown with rules supplied inline."""
    try:
        income_tax_rule = payload.income_tax_rule.to_rule(payload.jurisdiction_code)
        ss_rule = payload.social_security_rule.to_rule(payload.jurisdiction_code)
    except ValueError as e:
        raise InvalidInput("rules", None, str(e)) from e

    breakdown = engine.calculate(_build_request(payload, income_tax_rule, ss_rule))
    return PayslipTaxBreakdownResponse.model_validate(breakdown)


@router.post(
    "/jurisdictions/{code}/calculate",
    response_model=PayslipTaxBreakdownResponse,
    status_code=status.HTTP_200_OK,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def calculate_jurisdiction_tax(
    code: Annotated[str, Path(description="Jurisdiction code, e.g. GY")],
    payload: JurisdictionCalculationRequest,
    engine: TaxEngine,
    resolver: RuleResolver,
) -> PayslipTaxBreakdownResponse:
    """Calculate a payslip tax breakdown with the jurisdiction's stored rules."""
    income_tax_rule, ss_rule = await resolver.get_rules(
        code, tax_year=payload.tax_year, as_of_date=payload.as_of_date
    )
    breakdown = engine.calculate(_build_request(payload, income_tax_rule, ss_rule))
    return PayslipTaxBreakdownResponse.model_validate(breakdown)

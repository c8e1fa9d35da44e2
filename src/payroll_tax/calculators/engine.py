"""Payroll tax engine - main orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from decimal import Decimal
from typing import Any
from uuid import UUID

from payroll_tax.calculators.bands import compute_tax, validate_bands
from payroll_tax.calculators.deduction import resolve_deduction
from payroll_tax.calculators.errors import (
    InvalidInput,
    TaxCalculationError,
    TaxEngineError,
)
from payroll_tax.calculators.periods import from_annual, periods_per_year, to_annual
from payroll_tax.calculators.rounding import round_amount
from payroll_tax.calculators.social_security import compute_contributions
from payroll_tax.calculators.types import (
    ZERO,
    BandTaxResult,
    CalculationFailure,
    IncomeTaxRule,
    Periodization,
    PayrollRunResult,
    PayrollTaxRequest,
    PayslipTaxBreakdown,
    SocialSecurityRule,
    to_decimal,
)
from payroll_tax.config import get_settings

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@contextmanager
def _stage(stage: str, context: dict[str, Any]) -> Iterator[None]:
    """Wrap component failures with the stage and calculation context."""
    try:
        yield
    except (TaxEngineError, ArithmeticError, ValueError) as e:
        raise TaxCalculationError(stage, e, context) from e


class PayrollTaxEngine:
    """Payroll tax calculation engine.

    Calculation pipeline (stable order per employee):
    1) Validate inputs
    2) Annualize period gross
    3) Resolve personal deduction
    4) Taxable income = max(0, annual gross - deduction)
    5) Progressive band tax
    6) De-annualize tax to the pay period
    7) Social security contributions on period gross
    8) Net pay = period gross - period tax - employee contribution

    The engine holds no mutable state; one instance can serve concurrent
    calculations. Any failure aborts the whole calculation with a
    ``TaxCalculationError`` naming the failing stage.
    """

    def __init__(self, engine_version: str | None = None):
        self.settings = get_settings()
        self.engine_version = engine_version or self.settings.engine_version

    def calculate(self, request: PayrollTaxRequest) -> PayslipTaxBreakdown:
        """Calculate the payslip tax breakdown for one employee and period.

        Raises:
            TaxCalculationError: Wrapping the failing component's error
        """
        rule = request.income_tax_rule
        ss_rule = request.social_security_rule
        context = {
            "employee_id": request.employee_id,
            "jurisdiction": rule.jurisdiction_code,
            "tax_year": rule.tax_year,
            "periods_per_year": request.periods_per_year,
        }

        # 1) Inputs
        with _stage("inputs", context):
            self._validate_request(request)
            periods = periods_per_year(request.periods_per_year)

        # 2) Annualize
        with _stage("annualize", context):
            annual_gross = to_annual(request.period_gross, periods)

        # 3-4) Personal deduction and taxable income
        with _stage("deduction", context):
            personal_deduction = (
                resolve_deduction(rule.personal_deduction, annual_gross, request.dependents)
                + request.custom_deduction
            )
            taxable_income = max(ZERO, annual_gross - personal_deduction)

        # 5-6) Income tax
        if rule.periodization is Periodization.TRUE_PERIOD:
            band_result, annual_tax, period_tax = self._true_period_tax(
                rule, taxable_income, periods, context
            )
        else:
            with _stage("income_tax", context):
                band_result = compute_tax(
                    rule.bands, taxable_income, rule.rounding_mode, rule.rounding_precision
                )
                annual_tax = band_result.total_tax
            with _stage("periodize", context):
                period_tax = round_amount(
                    from_annual(annual_tax, periods),
                    rule.rounding_mode,
                    rule.rounding_precision,
                )

        # 7) Social security, computed per period against a period ceiling
        with _stage("social_security", context):
            contributions = compute_contributions(
                ss_rule, request.period_gross, periods, request.earnings
            )

        # 8) Net
        net_pay = request.period_gross - period_tax - contributions.employee_contribution

        effective_tax_rate = (
            annual_tax / annual_gross * HUNDRED if annual_gross > 0 else ZERO
        )

        rules_fingerprint = self._compute_rules_fingerprint(rule, ss_rule)
        inputs_fingerprint = self._compute_inputs_fingerprint(request.to_canonical_dict())
        calculation_id = self._generate_calculation_id(inputs_fingerprint, rules_fingerprint)

        logger.debug(
            "Calculated %s/%s for employee %s: gross=%s tax=%s employee_ss=%s net=%s",
            rule.jurisdiction_code,
            rule.tax_year,
            request.employee_id,
            request.period_gross,
            period_tax,
            contributions.employee_contribution,
            net_pay,
        )

        return PayslipTaxBreakdown(
            jurisdiction_code=rule.jurisdiction_code,
            tax_year=rule.tax_year,
            period_gross=request.period_gross,
            periods_per_year=periods,
            annual_gross=annual_gross,
            personal_deduction=personal_deduction,
            taxable_income=taxable_income,
            tax_bands=band_result.breakdown,
            annual_tax=annual_tax,
            period_tax=period_tax,
            contributable_earnings=contributions.contributable_earnings,
            employee_contribution=contributions.employee_contribution,
            employer_contribution=contributions.employer_contribution,
            net_pay=net_pay,
            ceiling_applied=contributions.ceiling_applied,
            effective_tax_rate=effective_tax_rate,
            marginal_tax_rate=band_result.marginal_rate * HUNDRED,
            calculation_id=calculation_id,
            rules_fingerprint=rules_fingerprint,
            employee_id=request.employee_id,
        )

    def calculate_run(
        self,
        requests: Sequence[PayrollTaxRequest],
        max_workers: int | None = None,
    ) -> PayrollRunResult:
        """Calculate a batch of employees, one calculation each.

        Calculations share nothing but the read-only rule objects, so they
        may run on a thread pool. Failures are reported per employee; a
        failing employee never contributes zero tax to the totals.
        """
        if max_workers and max_workers > 1 and len(requests) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(self._calculate_one, requests))
        else:
            outcomes = [self._calculate_one(r) for r in requests]

        run = PayrollRunResult()
        for outcome in outcomes:
            if isinstance(outcome, CalculationFailure):
                run.failures.append(outcome)
                continue
            run.results.append(outcome)
            run.total_gross += outcome.period_gross
            run.total_tax += outcome.period_tax
            run.total_employee_contributions += outcome.employee_contribution
            run.total_employer_contributions += outcome.employer_contribution
            run.total_net += outcome.net_pay

        if run.failures:
            logger.warning(
                "Payroll tax run finished with %d failure(s) out of %d employee(s)",
                run.error_count,
                len(requests),
            )
        return run

    def calculate_ytd_tax(
        self,
        ytd_gross: Decimal,
        rule: IncomeTaxRule,
        dependents: int = 0,
    ) -> Decimal:
        """Cumulative (year-to-date) income tax on ``ytd_gross``.

        The year-to-date gross is run through the deduction and band
        calculators as-is; the result is not divided into periods.
        """
        ytd_gross = to_decimal(ytd_gross)
        if ytd_gross < 0:
            raise InvalidInput("ytd_gross", ytd_gross, "must not be negative")

        deduction = resolve_deduction(rule.personal_deduction, ytd_gross, dependents)
        taxable = max(ZERO, ytd_gross - deduction)
        return compute_tax(
            rule.bands, taxable, rule.rounding_mode, rule.rounding_precision
        ).total_tax

    def _calculate_one(
        self, request: PayrollTaxRequest
    ) -> PayslipTaxBreakdown | CalculationFailure:
        try:
            return self.calculate(request)
        except TaxCalculationError as e:
            logger.info("Employee %s: %s", request.employee_id, e)
            return CalculationFailure(
                employee_id=request.employee_id,
                stage=e.stage,
                code=e.cause_code,
                message=str(e),
            )
        except Exception as e:
            # Catch unexpected errors
            logger.exception("Unexpected error calculating employee %s", request.employee_id)
            return CalculationFailure(
                employee_id=request.employee_id,
                stage="unexpected",
                code="INTERNAL_ERROR",
                message=f"Unexpected error: {e}",
            )

    def _true_period_tax(
        self,
        rule: IncomeTaxRule,
        taxable_income: Decimal,
        periods: Decimal,
        context: dict[str, Any],
    ) -> tuple[BandTaxResult, Decimal, Decimal]:
        """Direct-period calculation: bands scaled to one pay period."""
        with _stage("income_tax", context):
            validate_bands(rule.bands)
            period_bands = [band.scaled(periods) for band in rule.bands]
            band_result = compute_tax(
                period_bands,
                from_annual(taxable_income, periods),
                rule.rounding_mode,
                rule.rounding_precision,
            )
            period_tax = band_result.total_tax
        with _stage("periodize", context):
            annual_tax = to_annual(period_tax, periods)
        return band_result, annual_tax, period_tax

    def _validate_request(self, request: PayrollTaxRequest) -> None:
        if request.period_gross < 0:
            raise InvalidInput("period_gross", request.period_gross, "must not be negative")
        if request.custom_deduction < 0:
            raise InvalidInput(
                "custom_deduction", request.custom_deduction, "must not be negative"
            )
        if request.dependents < 0:
            raise InvalidInput("dependents", request.dependents, "must not be negative")

        rule = request.income_tax_rule
        ss_rule = request.social_security_rule
        if rule.jurisdiction_code != ss_rule.jurisdiction_code:
            raise InvalidInput(
                "social_security_rule.jurisdiction_code",
                ss_rule.jurisdiction_code,
                f"does not match income tax rule jurisdiction '{rule.jurisdiction_code}'",
            )

    def _generate_calculation_id(
        self, inputs_fingerprint: str, rules_fingerprint: str
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
            "rules_fingerprint": rules_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_inputs_fingerprint(self, inputs_data: dict[str, Any]) -> str:
        """Compute fingerprint of the request inputs."""
        json_str = json.dumps(inputs_data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def _compute_rules_fingerprint(
        self, rule: IncomeTaxRule, ss_rule: SocialSecurityRule
    ) -> str:
        """Compute fingerprint of the rules used in calculation."""
        json_str = json.dumps(
            [rule.to_canonical_dict(), ss_rule.to_canonical_dict()], sort_keys=True
        )
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def calculate(request: PayrollTaxRequest) -> PayslipTaxBreakdown:
    """Calculate one payslip breakdown with a default engine."""
    return PayrollTaxEngine().calculate(request)

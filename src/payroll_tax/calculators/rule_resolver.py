"""Tax rule lookup by jurisdiction and tax year or effective date."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax.calculators.errors import InvalidInput, NoApplicableTaxRule
from payroll_tax.calculators.rules import select_rule
from payroll_tax.calculators.types import IncomeTaxRule, SocialSecurityRule
from payroll_tax.models import (
    IncomeTaxRuleRecord,
    SocialSecurityRuleRecord,
    TaxJurisdiction,
)

logger = logging.getLogger(__name__)

RuleRecord = TypeVar(
    "RuleRecord", bound=Union[IncomeTaxRuleRecord, SocialSecurityRuleRecord]
)


class TaxRuleResolver:
    """Resolves the rules a payroll run calculates with.

    A lookup must resolve to exactly one rule: either the rule for
    ``tax_year`` or the rule whose effective range includes ``as_of_date``
    (both may be given). Rules are fetched once per run and the returned
    objects are immutable, so they can be shared across every employee
    calculation in that run.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._jurisdiction_cache: dict[str, TaxJurisdiction] = {}

    async def get_jurisdiction(self, code: str) -> TaxJurisdiction:
        """Get an active jurisdiction by code.

        Raises:
            NoApplicableTaxRule: If the jurisdiction is unknown or inactive
        """
        if code in self._jurisdiction_cache:
            return self._jurisdiction_cache[code]

        result = await self.session.execute(
            select(TaxJurisdiction).where(
                TaxJurisdiction.code == code,
                TaxJurisdiction.is_active.is_(True),
            )
        )
        jurisdiction = result.scalar_one_or_none()
        if jurisdiction is None:
            raise NoApplicableTaxRule("jurisdiction", code)

        self._jurisdiction_cache[code] = jurisdiction
        return jurisdiction

    async def get_income_tax_rule(
        self,
        code: str,
        tax_year: int | None = None,
        as_of_date: date | None = None,
    ) -> IncomeTaxRule:
        """Get the income tax rule for a jurisdiction."""
        return await self._resolve(
            IncomeTaxRuleRecord, "income tax", code, tax_year, as_of_date
        )

    async def get_social_security_rule(
        self,
        code: str,
        tax_year: int | None = None,
        as_of_date: date | None = None,
    ) -> SocialSecurityRule:
        """Get the social security rule for a jurisdiction."""
        return await self._resolve(
            SocialSecurityRuleRecord, "social security", code, tax_year, as_of_date
        )

    async def get_rules(
        self,
        code: str,
        tax_year: int | None = None,
        as_of_date: date | None = None,
    ) -> tuple[IncomeTaxRule, SocialSecurityRule]:
        """Get both rules needed to calculate a payslip."""
        income_tax_rule = await self.get_income_tax_rule(code, tax_year, as_of_date)
        ss_rule = await self.get_social_security_rule(code, tax_year, as_of_date)
        return income_tax_rule, ss_rule

    async def _resolve(
        self,
        model: type[RuleRecord],
        rule_kind: str,
        code: str,
        tax_year: int | None,
        as_of_date: date | None,
    ) -> Any:
        if tax_year is None and as_of_date is None:
            raise InvalidInput("tax_year", None, "tax_year or as_of_date is required")

        jurisdiction = await self.get_jurisdiction(code)

        # Effective dates are matched by select_rule on the converted rules
        query = select(model).where(model.jurisdiction_id == jurisdiction.jurisdiction_id)
        if tax_year is not None:
            query = query.where(model.tax_year == tax_year)

        result = await self.session.execute(query)
        rules = [record.to_rule(code) for record in result.scalars().all()]

        try:
            return select_rule(rules, rule_kind, code, tax_year, as_of_date)
        except NoApplicableTaxRule as e:
            logger.warning(
                "%s rule lookup for %s (tax_year=%s, as_of=%s) matched %d rules",
                rule_kind,
                code,
                tax_year,
                as_of_date,
                e.matches,
            )
            raise

"""Reference jurisdiction data.

Guyana 2024 is the reference jurisdiction: two income tax bands on an
annual basis, a personal allowance of the greater of GYD 1,560,000 or a
third of annual gross, and National Insurance (NIS) capped at a monthly
insurable earnings ceiling.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax.models import (
    IncomeTaxRuleRecord,
    SocialSecurityRuleRecord,
    TaxJurisdiction,
)

logger = logging.getLogger(__name__)

GUYANA_JURISDICTION: dict[str, Any] = {
    "code": "GY",
    "name": "Guyana",
    "country": "GY",
    "currency": "GYD",
    "currency_symbol": "G$",
    "timezone": "America/Guyana",
    "fiscal_year_start": 1,
    "is_default": True,
}

GUYANA_INCOME_TAX_2024: dict[str, Any] = {
    "tax_year": 2024,
    "effective_from": date(2024, 1, 1),
    "effective_to": date(2024, 12, 31),
    "source_url": "https://www.gra.gov.gy/",
    "tax_bands": [
        {"order": 1, "name": "Band 1", "min_amount": "0", "max_amount": "3120000", "rate": "0.25"},
        {"order": 2, "name": "Band 2", "min_amount": "3120000", "max_amount": None, "rate": "0.35"},
    ],
    "personal_deduction": {
        "type": "formula",
        "basis": "annual",
        "formula": "MAX(1560000, {annualGross} * 0.333)",
        "description": "Greater of GYD 1,560,000 or one third of annual gross",
    },
    "periodization": "annualized",
    "rounding_mode": "nearest",
}

GUYANA_NIS_2024: dict[str, Any] = {
    "tax_year": 2024,
    "effective_from": date(2024, 1, 1),
    "effective_to": date(2024, 12, 31),
    "source_url": "https://www.nis.org.gy/",
    "name": "National Insurance Scheme",
    "code": "NIS",
    "employee_rate": Decimal("0.056"),
    "employer_rate": Decimal("0.084"),
    "earnings_ceiling": Decimal("280000"),
    "ceiling_period": "monthly",
    "rounding_mode": "none",
}


async def seed_jurisdiction(
    session: AsyncSession,
    jurisdiction: dict[str, Any],
    income_tax_rules: list[dict[str, Any]],
    social_security_rules: list[dict[str, Any]],
) -> TaxJurisdiction:
    """Create a jurisdiction and its rules, skipping rows that already exist."""
    result = await session.execute(
        select(TaxJurisdiction).where(TaxJurisdiction.code == jurisdiction["code"])
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = TaxJurisdiction(**jurisdiction)
        session.add(row)
        await session.flush()
        logger.info("Created jurisdiction %s", row.code)

    for data in income_tax_rules:
        existing = await session.execute(
            select(IncomeTaxRuleRecord).where(
                IncomeTaxRuleRecord.jurisdiction_id == row.jurisdiction_id,
                IncomeTaxRuleRecord.tax_year == data["tax_year"],
            )
        )
        if existing.scalar_one_or_none() is not None:
            logger.info("Income tax rule %s/%s exists, skipping", row.code, data["tax_year"])
            continue
        session.add(IncomeTaxRuleRecord(jurisdiction_id=row.jurisdiction_id, **data))
        logger.info("Created income tax rule %s/%s", row.code, data["tax_year"])

    for data in social_security_rules:
        existing = await session.execute(
            select(SocialSecurityRuleRecord).where(
                SocialSecurityRuleRecord.jurisdiction_id == row.jurisdiction_id,
                SocialSecurityRuleRecord.tax_year == data["tax_year"],
            )
        )
        if existing.scalar_one_or_none() is not None:
            logger.info("%s rule %s/%s exists, skipping", data["code"], row.code, data["tax_year"])
            continue
        session.add(SocialSecurityRuleRecord(jurisdiction_id=row.jurisdiction_id, **data))
        logger.info("Created %s rule %s/%s", data["code"], row.code, data["tax_year"])

    await session.flush()
    return row


async def seed_guyana(session: AsyncSession) -> TaxJurisdiction:
    """Seed Guyana with its 2024 income tax and NIS rules."""
    return await seed_jurisdiction(
        session,
        GUYANA_JURISDICTION,
        [GUYANA_INCOME_TAX_2024],
        [GUYANA_NIS_2024],
    )

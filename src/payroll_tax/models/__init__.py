"""ORM models for jurisdiction and rule storage."""

from payroll_tax.models.base import Base, TimestampMixin
from payroll_tax.models.tax import (
    IncomeTaxRuleRecord,
    SocialSecurityRuleRecord,
    TaxJurisdiction,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "IncomeTaxRuleRecord",
    "SocialSecurityRuleRecord",
    "TaxJurisdiction",
]

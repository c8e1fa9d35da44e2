"""Tax jurisdiction and rule storage."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_tax.calculators.rules import (
    income_tax_rule_from_payload,
    social_security_rule_from_payload,
)
from payroll_tax.calculators.types import IncomeTaxRule, SocialSecurityRule
from payroll_tax.models.base import Base, JSONType, TimestampMixin


class TaxJurisdiction(Base, TimestampMixin):
    """Country or region whose tax rules an organization applies."""

    __tablename__ = "tax_jurisdiction"

    jurisdiction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)  # "GY", "US-CA"
    name: Mapped[str] = mapped_column(String, nullable=False)
    country: Mapped[str] = mapped_column(String(2), nullable=False)  # ISO 3166-1 alpha-2
    region: Mapped[str | None] = mapped_column(String, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    currency_symbol: Mapped[str] = mapped_column(String, nullable=False)
    timezone: Mapped[str] = mapped_column(String, nullable=False)
    fiscal_year_start: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "fiscal_year_start BETWEEN 1 AND 12",
            name="tax_jurisdiction_fiscal_year_start_check",
        ),
    )

    # Relationships
    income_tax_rules: Mapped[list[IncomeTaxRuleRecord]] = relationship(
        back_populates="jurisdiction", cascade="all, delete-orphan"
    )
    social_security_rules: Mapped[list[SocialSecurityRuleRecord]] = relationship(
        back_populates="jurisdiction", cascade="all, delete-orphan"
    )


class _EffectiveDated:
    """Effective range shared by rule tables."""

    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    source_url: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)


class IncomeTaxRuleRecord(Base, _EffectiveDated, TimestampMixin):
    """Stored income tax rule (bands + personal deduction) for a tax year."""

    __tablename__ = "income_tax_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    jurisdiction_id: Mapped[UUID] = mapped_column(
        ForeignKey("tax_jurisdiction.jurisdiction_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tax_bands: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    personal_deduction: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    periodization: Mapped[str] = mapped_column(String, nullable=False, default="annualized")
    rounding_mode: Mapped[str] = mapped_column(String, nullable=False, default="nearest")
    rounding_precision: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0.01")
    )

    __table_args__ = (
        UniqueConstraint("jurisdiction_id", "tax_year", name="income_tax_rule_year_unique"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="income_tax_rule_dates_check",
        ),
        CheckConstraint(
            "periodization IN ('annualized', 'true_period')",
            name="income_tax_rule_periodization_check",
        ),
    )

    # Relationships
    jurisdiction: Mapped[TaxJurisdiction] = relationship(back_populates="income_tax_rules")

    def to_rule(self, jurisdiction_code: str) -> IncomeTaxRule:
        """Convert to the calculation type."""
        return income_tax_rule_from_payload(
            {
                "tax_year": self.tax_year,
                "bands": self.tax_bands,
                "personal_deduction": self.personal_deduction,
                "periodization": self.periodization,
                "rounding_mode": self.rounding_mode,
                "rounding_precision": self.rounding_precision,
            },
            jurisdiction_code=jurisdiction_code,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            rule_id=self.rule_id,
        )


class SocialSecurityRuleRecord(Base, _EffectiveDated, TimestampMixin):
    """Stored social security contribution rule for a tax year."""

    __tablename__ = "social_security_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    jurisdiction_id: Mapped[UUID] = mapped_column(
        ForeignKey("tax_jurisdiction.jurisdiction_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)  # "National Insurance Scheme"
    code: Mapped[str] = mapped_column(String, nullable=False)  # "NIS"
    employee_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    employer_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    earnings_floor: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    earnings_ceiling: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    ceiling_period: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    included_earnings: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    excluded_earnings: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    rounding_mode: Mapped[str] = mapped_column(String, nullable=False, default="none")
    rounding_precision: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0.01")
    )

    __table_args__ = (
        UniqueConstraint(
            "jurisdiction_id", "tax_year", name="social_security_rule_year_unique"
        ),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="social_security_rule_dates_check",
        ),
        CheckConstraint(
            "employee_rate >= 0 AND employee_rate <= 1 AND employer_rate >= 0 AND employer_rate <= 1",
            name="social_security_rule_rates_check",
        ),
        CheckConstraint(
            "ceiling_period IN ('monthly', 'annual', 'none')",
            name="social_security_rule_ceiling_period_check",
        ),
    )

    # Relationships
    jurisdiction: Mapped[TaxJurisdiction] = relationship(
        back_populates="social_security_rules"
    )

    def to_rule(self, jurisdiction_code: str) -> SocialSecurityRule:
        """Convert to the calculation type."""
        return social_security_rule_from_payload(
            {
                "tax_year": self.tax_year,
                "name": self.name,
                "code": self.code,
                "employee_rate": self.employee_rate,
                "employer_rate": self.employer_rate,
                "earnings_floor": self.earnings_floor,
                "ceiling": self.earnings_ceiling,
                "ceiling_period": self.ceiling_period,
                "included_earnings": self.included_earnings or (),
                "excluded_earnings": self.excluded_earnings or (),
                "rounding_mode": self.rounding_mode,
                "rounding_precision": self.rounding_precision,
            },
            jurisdiction_code=jurisdiction_code,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            rule_id=self.rule_id,
        )

"""Unit tests for rule payload parsing and rule selection."""

import pytest
from datetime import date
from decimal import Decimal

from payroll_tax.calculators.errors import InvalidInput, NoApplicableTaxRule
from payroll_tax.calculators.rules import (
    income_tax_rule_from_payload,
    is_effective_on,
    parse_rounding_mode,
    select_rule,
    social_security_rule_from_payload,
)
from payroll_tax.calculators.types import (
    CeilingPeriod,
    DeductionType,
    Periodization,
    RoundingMode,
)


class TestIncomeTaxPayload:
    """Test building income tax rules from stored payloads."""

    def test_snake_case_payload(self):
        """Stored rule payloads use snake_case keys."""
        rule = income_tax_rule_from_payload(
            {
                "tax_year": 2024,
                "bands": [
                    {"order": 1, "name": "Band 1", "min_amount": "0", "max_amount": "3120000", "rate": "0.25"},
                    {"order": 2, "name": "Band 2", "min_amount": "3120000", "max_amount": None, "rate": "0.35"},
                ],
                "personal_deduction": {
                    "type": "formula",
                    "formula": "MAX(1560000, {annualGross} * 0.333)",
                },
            },
            jurisdiction_code="GY",
        )

        assert rule.jurisdiction_code == "GY"
        assert rule.tax_year == 2024
        assert rule.bands[1].max_amount is None
        assert rule.bands[0].rate == Decimal("0.25")
        assert rule.personal_deduction.type is DeductionType.FORMULA
        assert rule.rounding_mode is RoundingMode.NEAREST
        assert rule.periodization is Periodization.ANNUALIZED

    def test_camel_case_payload_with_aliases(self):
        """camelCase keys, from/to bounds and fixed deductions are accepted."""
        rule = income_tax_rule_from_payload(
            {
                "jurisdictionCode": "GY",
                "taxYear": 2024,
                "taxBands": [
                    {"from": 0, "to": 3120000, "rate": 0.25},
                    {"from": 3120000, "to": None, "rate": 0.35},
                ],
                "personalDeduction": {"type": "fixed", "fixedAmount": 1560000, "basis": "annual"},
                "roundingMode": "floor",
                "periodization": {"monthly": True, "weekly": True},
            }
        )

        assert [b.name for b in rule.bands] == ["Band 1", "Band 2"]
        assert [b.order for b in rule.bands] == [1, 2]
        assert rule.bands[0].rate == Decimal("0.25")
        assert rule.personal_deduction.type is DeductionType.FLAT
        assert rule.personal_deduction.amount == Decimal("1560000")
        assert rule.rounding_mode is RoundingMode.DOWN
        assert rule.periodization is Periodization.ANNUALIZED

    def test_overrides(self):
        """Keyword overrides replace payload values."""
        rule = income_tax_rule_from_payload(
            {
                "tax_year": 2024,
                "bands": [{"min": 0, "rate": "0.1"}],
                "personal_deduction": {"type": "flat", "amount": 0},
            },
            jurisdiction_code="XX",
            effective_from=date(2024, 1, 1),
        )
        assert rule.effective_from == date(2024, 1, 1)

    def test_missing_bands(self):
        """Bands are required."""
        with pytest.raises(InvalidInput):
            income_tax_rule_from_payload(
                {"tax_year": 2024, "personal_deduction": {"type": "flat", "amount": 0}},
                jurisdiction_code="GY",
            )

    def test_unknown_deduction_type(self):
        """Deduction types are validated."""
        with pytest.raises(InvalidInput):
            income_tax_rule_from_payload(
                {
                    "tax_year": 2024,
                    "bands": [{"min": 0, "rate": "0.1"}],
                    "personal_deduction": {"type": "sliding"},
                },
                jurisdiction_code="GY",
            )


class TestRoundingModeParsing:
    """Test rounding mode names."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("nearest", RoundingMode.NEAREST),
            ("UP", RoundingMode.UP),
            ("ceil", RoundingMode.UP),
            ("floor", RoundingMode.DOWN),
            ("half_even", RoundingMode.BANKER),
            ("none", RoundingMode.NONE),
            (None, RoundingMode.NEAREST),
        ],
    )
    def test_names(self, name, expected):
        """Canonical names and aliases map to modes."""
        assert parse_rounding_mode(name) is expected

    def test_unknown_mode(self):
        """Unknown names are rejected."""
        with pytest.raises(InvalidInput):
            parse_rounding_mode("stochastic")


class TestSocialSecurityPayload:
    """Test building social security rules from payloads."""

    def test_nis_payload(self):
        """A ceiling defaults to a monthly period; rounding defaults to none."""
        rule = social_security_rule_from_payload(
            {
                "year": 2024,
                "name": "National Insurance Scheme",
                "code": "NIS",
                "employeeRate": 0.056,
                "employerRate": 0.084,
                "ceiling": 280000,
                "basis": "gross",
            },
            jurisdiction_code="GY",
        )

        assert rule.employee_rate == Decimal("0.056")
        assert rule.ceiling == Decimal("280000")
        assert rule.ceiling_period is CeilingPeriod.MONTHLY
        assert rule.rounding_mode is RoundingMode.NONE
        assert rule.basis == "gross"

    def test_component_basis(self):
        """A list basis enumerates the included components."""
        rule = social_security_rule_from_payload(
            {
                "tax_year": 2024,
                "employee_rate": "0.05",
                "employer_rate": "0.05",
                "basis": ["basic", "overtime"],
            },
            jurisdiction_code="XX",
        )

        assert rule.included_earnings == ("basic", "overtime")
        assert rule.ceiling_period is CeilingPeriod.NONE

    def test_missing_rate(self):
        """Rates are required."""
        with pytest.raises(InvalidInput):
            social_security_rule_from_payload(
                {"tax_year": 2024, "employee_rate": "0.05"}, jurisdiction_code="XX"
            )


class TestRuleSelection:
    """Test picking the single applicable rule."""

    @staticmethod
    def _rule(tax_year, effective_from=None, effective_to=None, code="GY"):
        return social_security_rule_from_payload(
            {"tax_year": tax_year, "employee_rate": "0.056", "employer_rate": "0.084"},
            jurisdiction_code=code,
            effective_from=effective_from,
            effective_to=effective_to,
        )

    def test_select_by_tax_year(self):
        """The rule for the requested year is returned."""
        rules = [self._rule(2023), self._rule(2024)]
        assert select_rule(rules, "social security", "GY", tax_year=2024).tax_year == 2024

    def test_select_by_date(self):
        """The rule whose range covers the date is returned."""
        rules = [
            self._rule(2023, date(2023, 1, 1), date(2023, 12, 31)),
            self._rule(2024, date(2024, 1, 1), None),
        ]
        selected = select_rule(rules, "social security", "GY", as_of_date=date(2024, 6, 1))
        assert selected.tax_year == 2024

    def test_other_jurisdictions_ignored(self):
        """Rules of other jurisdictions never match."""
        rules = [self._rule(2024, code="TT")]
        with pytest.raises(NoApplicableTaxRule) as exc_info:
            select_rule(rules, "social security", "GY", tax_year=2024)
        assert exc_info.value.matches == 0

    def test_overlapping_rules(self):
        """Two matching rules are an error, not a silent pick."""
        rules = [
            self._rule(2024, date(2024, 1, 1), None),
            self._rule(2025, date(2024, 12, 1), None),
        ]
        with pytest.raises(NoApplicableTaxRule) as exc_info:
            select_rule(rules, "social security", "GY", as_of_date=date(2024, 12, 15))
        assert exc_info.value.matches == 2
        assert "overlap" in str(exc_info.value)

    def test_undated_rule_effective_for_its_tax_year(self):
        """Without dates, a rule covers its calendar tax year."""
        rule = self._rule(2024)
        assert is_effective_on(rule, date(2024, 3, 1))
        assert not is_effective_on(rule, date(2025, 1, 1))

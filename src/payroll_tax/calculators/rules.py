"""Rule payload parsing and effective-rule selection.

Rule payloads are the JSON documents stored for a jurisdiction (see
``scripts/seed_tax_rules.py``). Both snake_case and camelCase keys are
accepted, as are the alternative spellings found in seeded data
(``from``/``to`` band bounds, ``fixed`` deductions, ``floor``/``ceil``
rounding).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any, TypeVar, Union

from payroll_tax.calculators.errors import InvalidInput, NoApplicableTaxRule
from payroll_tax.calculators.types import (
    CeilingPeriod,
    DeductionType,
    IncomeTaxRule,
    PersonalDeduction,
    RoundingMode,
    SocialSecurityRule,
    TaxBand,
)
from payroll_tax.config import get_settings

_MISSING = object()

ROUNDING_ALIASES = {
    "floor": RoundingMode.DOWN,
    "ceil": RoundingMode.UP,
    "ceiling": RoundingMode.UP,
    "half_even": RoundingMode.BANKER,
}

DEDUCTION_ALIASES = {
    "fixed": DeductionType.FLAT,
}

Rule = TypeVar("Rule", bound=Union[IncomeTaxRule, SocialSecurityRule])


def _pick(data: Mapping[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    if default is _MISSING:
        raise InvalidInput(keys[0], None, "missing from rule payload")
    return default


def parse_rounding_mode(value: str | None) -> RoundingMode:
    if value is None:
        return RoundingMode.NEAREST
    value = value.lower()
    if value in ROUNDING_ALIASES:
        return ROUNDING_ALIASES[value]
    try:
        return RoundingMode(value)
    except ValueError:
        raise InvalidInput("rounding_mode", value, "unknown rounding mode") from None


def tax_band_from_payload(data: Mapping[str, Any], position: int) -> TaxBand:
    """Build a band; ``position`` (1-based) is used when no order is given."""
    order = int(data.get("order") or position)
    return TaxBand(
        order=order,
        name=data.get("name") or f"Band {order}",
        min_amount=_pick(data, "min_amount", "minAmount", "min", "from"),
        max_amount=_pick(data, "max_amount", "maxAmount", "max", "to", default=None),
        rate=_pick(data, "rate"),
        flat_amount=_pick(data, "flat_amount", "flatAmount", "flat", default=None),
    )


def personal_deduction_from_payload(data: Mapping[str, Any]) -> PersonalDeduction:
    raw_type = str(_pick(data, "type")).lower()
    try:
        deduction_type = DEDUCTION_ALIASES.get(raw_type) or DeductionType(raw_type)
    except ValueError:
        raise InvalidInput("personal_deduction.type", raw_type, "unknown deduction type") from None

    return PersonalDeduction(
        type=deduction_type,
        basis=_pick(data, "basis", default="annual"),
        amount=_pick(data, "amount", "fixed_amount", "fixedAmount", default=None),
        formula=_pick(data, "formula", default=None),
        percentage=_pick(data, "percentage", default=None),
        min_amount=_pick(data, "min_amount", "minAmount", default=None),
        max_amount=_pick(data, "max_amount", "maxAmount", default=None),
        description=_pick(data, "description", default=None),
    )


def income_tax_rule_from_payload(
    data: Mapping[str, Any],
    jurisdiction_code: str | None = None,
    **overrides: Any,
) -> IncomeTaxRule:
    """Build an ``IncomeTaxRule`` from a stored or submitted payload."""
    bands = _pick(data, "bands", "tax_bands", "taxBands")
    periodization = _pick(data, "periodization", default="annualized")
    if not isinstance(periodization, str):
        # Seed data may carry a map of allowed frequencies
        periodization = "annualized"

    fields: dict[str, Any] = {
        "jurisdiction_code": jurisdiction_code
        or _pick(data, "jurisdiction_code", "jurisdictionCode"),
        "tax_year": int(_pick(data, "tax_year", "taxYear")),
        "bands": tuple(
            tax_band_from_payload(band, position)
            for position, band in enumerate(bands, start=1)
        ),
        "personal_deduction": personal_deduction_from_payload(
            _pick(data, "personal_deduction", "personalDeduction")
        ),
        "rounding_mode": parse_rounding_mode(
            _pick(data, "rounding_mode", "roundingMode", default=None)
        ),
        "rounding_precision": _pick(
            data,
            "rounding_precision",
            "roundingPrecision",
            default=get_settings().default_rounding_precision,
        ),
        "periodization": periodization,
    }
    fields.update(overrides)
    return IncomeTaxRule(**fields)


def social_security_rule_from_payload(
    data: Mapping[str, Any],
    jurisdiction_code: str | None = None,
    **overrides: Any,
) -> SocialSecurityRule:
    """Build a ``SocialSecurityRule`` from a stored or submitted payload."""
    basis = _pick(data, "basis", default="gross")
    included = _pick(data, "included_earnings", "includedEarnings", default=None)
    if included is None:
        included = () if basis == "gross" else tuple(basis)

    ceiling = _pick(data, "ceiling", "earnings_ceiling", "earningsCeiling", default=None)
    default_period = CeilingPeriod.MONTHLY if ceiling is not None else CeilingPeriod.NONE

    fields: dict[str, Any] = {
        "jurisdiction_code": jurisdiction_code
        or _pick(data, "jurisdiction_code", "jurisdictionCode"),
        "tax_year": int(_pick(data, "tax_year", "taxYear", "year")),
        "employee_rate": _pick(data, "employee_rate", "employeeRate"),
        "employer_rate": _pick(data, "employer_rate", "employerRate"),
        "ceiling": ceiling,
        "ceiling_period": _pick(data, "ceiling_period", "ceilingPeriod", default=default_period),
        "earnings_floor": _pick(data, "earnings_floor", "earningsFloor", default=None),
        "included_earnings": tuple(included),
        "excluded_earnings": tuple(
            _pick(data, "excluded_earnings", "excludedEarnings", default=None) or ()
        ),
        "rounding_mode": (
            parse_rounding_mode(_pick(data, "rounding_mode", "roundingMode"))
            if any(k in data for k in ("rounding_mode", "roundingMode"))
            else RoundingMode.NONE
        ),
        "rounding_precision": _pick(
            data,
            "rounding_precision",
            "roundingPrecision",
            default=get_settings().default_rounding_precision,
        ),
        "name": _pick(data, "name", default="Social Security"),
        "code": _pick(data, "code", default="SS"),
    }
    fields.update(overrides)
    return SocialSecurityRule(**fields)


def is_effective_on(rule: IncomeTaxRule | SocialSecurityRule, as_of_date: date) -> bool:
    """Check if a rule's effective range includes ``as_of_date``."""
    if rule.effective_from is not None and rule.effective_from > as_of_date:
        return False
    if rule.effective_to is not None and rule.effective_to < as_of_date:
        return False
    if rule.effective_from is None and rule.effective_to is None:
        return rule.tax_year == as_of_date.year
    return True


def select_rule(
    rules: Iterable[Rule],
    rule_kind: str,
    jurisdiction_code: str,
    tax_year: int | None = None,
    as_of_date: date | None = None,
) -> Rule:
    """Pick the single rule applicable to a tax year or date.

    Raises:
        NoApplicableTaxRule: If zero or several rules match
    """
    matches = [
        rule
        for rule in rules
        if rule.jurisdiction_code == jurisdiction_code
        and (tax_year is None or rule.tax_year == tax_year)
        and (as_of_date is None or is_effective_on(rule, as_of_date))
    ]
    if len(matches) != 1:
        raise NoApplicableTaxRule(
            rule_kind, jurisdiction_code, tax_year, as_of_date, matches=len(matches)
        )
    return matches[0]

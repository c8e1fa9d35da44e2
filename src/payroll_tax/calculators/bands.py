"""Progressive income tax band calculation."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from payroll_tax.calculators.errors import InvalidBandConfiguration
from payroll_tax.calculators.rounding import round_amount
from payroll_tax.calculators.types import (
    DEFAULT_PRECISION,
    ZERO,
    BandTaxResult,
    RoundingMode,
    TaxBand,
    TaxBandDetail,
    to_decimal,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")


def validate_bands(bands: Sequence[TaxBand]) -> None:
    """Check band ordering and bounds.

    Bands must be sorted ascending by ``min_amount`` without overlap, each
    bounded band must have ``max_amount > min_amount``, rates lie in [0, 1]
    and at most one band is unbounded, which must be the last one.

    Raises:
        InvalidBandConfiguration: On the first violated invariant
    """
    previous: TaxBand | None = None

    for index, band in enumerate(bands):
        if band.min_amount < 0:
            raise InvalidBandConfiguration("min_amount must not be negative", band.name)
        if not ZERO <= band.rate <= ONE:
            raise InvalidBandConfiguration(f"rate {band.rate} outside [0, 1]", band.name)
        if band.max_amount is not None and band.max_amount <= band.min_amount:
            raise InvalidBandConfiguration("max_amount must exceed min_amount", band.name)
        if band.flat_amount is not None and band.flat_amount < 0:
            raise InvalidBandConfiguration("flat_amount must not be negative", band.name)

        if band.is_unbounded and index != len(bands) - 1:
            unbounded = sum(1 for b in bands if b.is_unbounded)
            if unbounded > 1:
                raise InvalidBandConfiguration(
                    f"{unbounded} bands have no upper limit", band.name
                )
            raise InvalidBandConfiguration("only the last band may be unbounded", band.name)

        if previous is not None:
            if band.min_amount <= previous.min_amount:
                raise InvalidBandConfiguration(
                    "bands must be sorted ascending by min_amount", band.name
                )
            # previous.max_amount is not None: only the last band is unbounded
            if band.min_amount < previous.max_amount:
                raise InvalidBandConfiguration(
                    f"overlaps band '{previous.name}'", band.name
                )

        previous = band


def compute_tax(
    bands: Sequence[TaxBand],
    taxable_amount: Decimal,
    rounding_mode: RoundingMode | str = RoundingMode.NONE,
    rounding_precision: Decimal = DEFAULT_PRECISION,
) -> BandTaxResult:
    """Calculate progressive tax on ``taxable_amount``.

    An amount exactly at a band's ``max_amount`` is taxed entirely in that
    band; the next band starts contributing above its ``min_amount``.
    Rounding is applied once to the total, never per band.

    Raises:
        InvalidBandConfiguration: If ``bands`` violate ordering or bounds
    """
    validate_bands(bands)

    taxable = max(to_decimal(taxable_amount), ZERO)
    total_tax = ZERO
    breakdown: list[TaxBandDetail] = []

    for band in bands:
        if taxable <= band.min_amount:
            break

        upper = taxable if band.max_amount is None else min(taxable, band.max_amount)
        in_band = upper - band.min_amount
        if in_band <= 0:
            continue

        band_tax = in_band * band.rate + (band.flat_amount or ZERO)
        total_tax += band_tax
        breakdown.append(
            TaxBandDetail(
                band_name=band.name,
                amount=in_band,
                rate=band.rate,
                tax=band_tax,
            )
        )

    total_tax = round_amount(total_tax, rounding_mode, rounding_precision)
    logger.debug(
        "Band tax on %s: %s across %d band(s)", taxable, total_tax, len(breakdown)
    )
    return BandTaxResult(total_tax=total_tax, breakdown=tuple(breakdown))

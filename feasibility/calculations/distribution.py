"""Phasing of lump totals across months, with S-curves and escalation."""

import math
from decimal import Decimal
from typing import List, Mapping, Optional

from ..models.lookups import BELL_CURVE_SIGMAS, S_CURVE_STEEPNESS, DistributionMethod
from .money import D, ONE, TWELVE, ZERO, Number, pct

HALF = Decimal("0.5")


def _logistic(t: Decimal, steepness: Decimal) -> Decimal:
    """Logistic cumulative value at normalised time t, centred on 0.5."""
    return ONE / (ONE + (-(steepness * (t - HALF))).exp())


def _s_curve_factor(month_index: int, span: int, steepness: Number) -> Decimal:
    """Share of the total falling in one month of a logistic S-curve.

    The logistic curve never reaches 0 or 1 over a finite domain, so the
    month's slice is divided by the curve's own rise between t=0 and t=1.
    The slices telescope and sum to exactly one over the span.
    """
    k = D(steepness)
    n = D(span)
    start = _logistic(D(month_index) / n, k)
    end = _logistic(D(month_index + 1) / n, k)
    total_curve = _logistic(ONE, k) - _logistic(ZERO, k)
    return (end - start) / total_curve


def _normal_cdf(x: float) -> Decimal:
    return D(0.5 * (1.0 + math.erf(x / math.sqrt(2.0))))


def _bell_curve_factor(month_index: int, span: int) -> Decimal:
    """Share of the total in one month of a Gaussian mapped onto [-3s, +3s]."""
    sigmas = BELL_CURVE_SIGMAS

    def cdf_at(i: int) -> Decimal:
        return _normal_cdf(-sigmas + 2 * sigmas * (i / span))

    total_curve = cdf_at(span) - cdf_at(0)
    return (cdf_at(month_index + 1) - cdf_at(month_index)) / total_curve


def distribute(
    total: Number,
    month_index: int,
    method: DistributionMethod,
    span: int,
    steepness: Optional[Number] = None,
    milestones: Optional[Mapping[int, Number]] = None,
) -> Decimal:
    """Amount of ``total`` attributable to one month of its span.

    Args:
        total: Amount to phase.
        month_index: Month relative to the start of the span (0-based).
        method: Distribution shape.
        span: Number of months the total is spread over.
        steepness: Logistic k for S-curves (defaults to 12).
        milestones: Month -> percentage table for milestone phasing.
            Percentages need not sum to 100.

    Returns:
        The month's amount. Zero outside the span or when span <= 0.
    """
    if span <= 0 or month_index < 0 or month_index >= span:
        return ZERO

    amount = D(total)

    if method == DistributionMethod.UPFRONT:
        return amount if month_index == 0 else ZERO

    if method == DistributionMethod.END:
        return amount if month_index == span - 1 else ZERO

    if method == DistributionMethod.S_CURVE:
        k = steepness if steepness is not None else S_CURVE_STEEPNESS
        return amount * _s_curve_factor(month_index, span, k)

    if method == DistributionMethod.BELL_CURVE:
        return amount * _bell_curve_factor(month_index, span)

    if method == DistributionMethod.MILESTONE:
        table = milestones or {}
        return amount * pct(table.get(month_index, 0))

    # Linear and anything unrecognised
    return amount / D(span)


def distribution_weights(
    method: DistributionMethod,
    span: int,
    steepness: Optional[Number] = None,
    milestones: Optional[Mapping[int, Number]] = None,
) -> List[Decimal]:
    """Per-month shares of a unit total over the whole span.

    Args:
        method: Distribution shape.
        span: Number of months.
        steepness: Logistic k for S-curves.
        milestones: Month -> percentage table for milestone phasing.

    Returns:
        List of ``span`` weights (empty when span <= 0).
    """
    if span <= 0:
        return []
    return [distribute(ONE, i, method, span, steepness, milestones) for i in range(span)]


def monthly_rate_from_annual(annual_rate: Number) -> Decimal:
    """Compound-root monthly equivalent of an annual percentage rate.

    (1 + annual)^(1/12) - 1, returned as a fraction.
    """
    annual = D(annual_rate)
    if annual == 0:
        return ZERO
    return (ONE + pct(annual)) ** (ONE / TWELVE) - ONE


def escalation_factor(annual_rate: Number, month_index: int) -> Decimal:
    """Growth multiplier after ``month_index`` months at an annual rate.

    Example:
        >>> escalation_factor(0, 36)
        Decimal('1')
        >>> round(escalation_factor(12, 12), 6)
        Decimal('1.120000')
    """
    if month_index <= 0 or D(annual_rate) == 0:
        return ONE
    return (ONE + monthly_rate_from_annual(annual_rate)) ** month_index

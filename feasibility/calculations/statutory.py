"""Statutory charges: transfer duty, land tax, council rates and GST."""

from decimal import Decimal
from typing import Dict, Optional, Union

from ..models.lookups import (
    FALLBACK_DUTY_RATE,
    FOREIGN_BUYER_SURCHARGE,
    LAND_TAX_SCALES,
    STAMP_DUTY_SCALES,
    BracketMethod,
    GstTreatment,
    Jurisdiction,
    TaxScale,
)
from .money import D, HUNDRED, ZERO, Number, dmax, pct


def calculate_bracket_tax(amount: Number, scale: TaxScale) -> Decimal:
    """Apply a marginal bracket scale to an amount.

    The bracket containing the amount sets the result: for sliding brackets
    base + rate x (amount - previous limit), for flat brackets rate x amount.
    The last bracket is open-ended.

    Args:
        amount: Dutiable or taxable value.
        scale: Ordered brackets, lowest first.

    Returns:
        Tax payable. Zero for an empty scale or a non-positive amount.
    """
    value = D(amount)
    if not scale or value <= 0:
        return ZERO

    previous_limit = ZERO
    for i, bracket in enumerate(scale):
        is_top = bracket.limit is None or i == len(scale) - 1
        if is_top or value <= bracket.limit:
            if bracket.method == BracketMethod.FLAT:
                return value * pct(bracket.rate)
            excess = dmax(ZERO, value - previous_limit)
            return D(bracket.base) + excess * pct(bracket.rate)
        previous_limit = D(bracket.limit)

    return ZERO


def calculate_stamp_duty(
    price: Number,
    jurisdiction: Union[Jurisdiction, str],
    is_foreign_buyer: bool = False,
    override: Optional[Number] = None,
    scales: Optional[Dict[Jurisdiction, TaxScale]] = None,
) -> Decimal:
    """Transfer duty on a land purchase.

    Args:
        price: Purchase price.
        jurisdiction: State whose schedule applies.
        is_foreign_buyer: Adds the jurisdiction's foreign purchaser surcharge
            (flat rate x price).
        override: Manually assessed duty; returned unchanged when given.
        scales: Alternative duty schedules (defaults to STAMP_DUTY_SCALES).

    Returns:
        Duty payable.

    Example:
        >>> calculate_stamp_duty(1_000_000, "VIC")
        Decimal('51570.000')
    """
    if override is not None:
        return D(override)

    state = Jurisdiction(jurisdiction)
    value = D(price)
    scale = (STAMP_DUTY_SCALES if scales is None else scales).get(state)

    if scale:
        duty = calculate_bracket_tax(value, scale)
    else:
        duty = value * pct(FALLBACK_DUTY_RATE)

    if is_foreign_buyer:
        duty += value * pct(FOREIGN_BUYER_SURCHARGE.get(state, "0"))

    return duty


def calculate_land_tax(
    assessed_value: Number,
    jurisdiction: Union[Jurisdiction, str],
    scales: Optional[Dict[Jurisdiction, TaxScale]] = None,
) -> Decimal:
    """Annual general land tax on an assessed (unimproved) land value."""
    scale = (LAND_TAX_SCALES if scales is None else scales).get(Jurisdiction(jurisdiction), ())
    return calculate_bracket_tax(assessed_value, scale)


def calculate_council_rates(assessed_value: Number, rate_pct: Number) -> Decimal:
    """Annual council rates as a percentage of assessed land value."""
    return D(assessed_value) * pct(rate_pct)


def gst_payable(
    amount: Number,
    gst_rate: Number,
    use_margin_scheme: bool = False,
    cost_basis: Number = 0,
) -> Decimal:
    """GST contained in a GST-inclusive sale amount.

    Under the margin scheme GST applies only to the margin over the land
    cost basis, and a negative margin attracts no GST.

    Args:
        amount: GST-inclusive sale price.
        gst_rate: GST rate in percent.
        use_margin_scheme: Tax the margin instead of the full price.
        cost_basis: Land cost attributable to the sale.

    Returns:
        GST liability.
    """
    rate = D(gst_rate)
    base = D(amount)
    if use_margin_scheme:
        base = dmax(ZERO, base - D(cost_basis))
    if base <= 0 or rate <= 0:
        return ZERO
    return base * rate / (HUNDRED + rate)


def gst_credit(
    amount: Number,
    gst_rate: Number,
    treatment: GstTreatment = GstTreatment.TAXABLE,
) -> Decimal:
    """GST paid on top of a GST-exclusive cost, claimable as an input credit.

    Only taxable supplies carry GST; GST-free, input-taxed and margin-scheme
    purchases yield zero.
    """
    if treatment != GstTreatment.TAXABLE:
        return ZERO
    return D(amount) * pct(gst_rate)

"""Decimal arithmetic helpers.

All monetary math in the engine runs on ``Decimal``. Inputs arrive as int,
float, str or Decimal and are converted through ``str`` so that a float such
as 0.1 becomes exactly Decimal("0.1") rather than its binary expansion.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Iterable

from ..models.lookups import Number

ZERO = Decimal("0")
ONE = Decimal("1")
TWELVE = Decimal("12")
HUNDRED = Decimal("100")


def D(value: Number) -> Decimal:
    """Convert a number to Decimal via its string form. None maps to zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def pct(value: Number) -> Decimal:
    """Whole-number percentage to a fraction (7.5 -> 0.075)."""
    return D(value) / HUNDRED


def dsum(values: Iterable[Decimal]) -> Decimal:
    """Sum with a Decimal start value so an empty iterable yields Decimal 0."""
    return sum(values, ZERO)


def dmax(a: Decimal, b: Decimal) -> Decimal:
    return a if a >= b else b


def dmin(a: Decimal, b: Decimal) -> Decimal:
    return a if a <= b else b


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator, or zero when the denominator is zero."""
    if denominator == 0:
        return ZERO
    return numerator / denominator


def floor_whole(value: Decimal) -> Decimal:
    """Floor to whole currency units."""
    return value.quantize(ONE, rounding=ROUND_FLOOR)

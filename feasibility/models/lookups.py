"""Lookup tables for cost categories, statutory scales, and engine constants."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union

# Anything convertible to Decimal through str()
Number = Union[Decimal, int, float, str]


class CostCategory(str, Enum):
    """Budget category of a cost line."""

    LAND = "land"
    CONSULTANTS = "consultants"
    CONSTRUCTION = "construction"
    STATUTORY = "statutory"
    MISCELLANEOUS = "miscellaneous"
    SELLING = "selling"
    FINANCE = "finance"


class InputType(str, Enum):
    """How a cost line's amount is interpreted."""

    FIXED = "fixed"  # Lump sum
    PCT_CONSTRUCTION = "pct_construction"  # % of construction total
    PCT_REVENUE = "pct_revenue"  # % of estimated gross realisation
    RATE_PER_UNIT = "rate_per_unit"  # x total units
    RATE_PER_SQM = "rate_per_sqm"  # x site land area


class DistributionMethod(str, Enum):
    """Shape used to phase a total across its span."""

    LINEAR = "linear"
    S_CURVE = "s_curve"
    BELL_CURVE = "bell_curve"
    MILESTONE = "milestone"
    UPFRONT = "upfront"
    END = "end"


class GstTreatment(str, Enum):
    """GST treatment of a cost line."""

    TAXABLE = "taxable"
    GST_FREE = "gst_free"
    INPUT_TAXED = "input_taxed"
    MARGIN_SCHEME = "margin_scheme"  # Land bought under the margin scheme carries no credit


class CalculationLink(str, Enum):
    """Automation that replaces a cost line's amount with a statutory figure."""

    NONE = "none"
    AUTO_STAMP_DUTY = "auto_stamp_duty"
    AUTO_LAND_TAX = "auto_land_tax"
    AUTO_COUNCIL_RATES = "auto_council_rates"


class MilestoneLink(str, Enum):
    """Project milestone a cost line's start offset is measured from."""

    ACQUISITION = "acquisition"  # Settlement month
    CONSTRUCTION_START = "construction_start"
    COMPLETION = "completion"


class Jurisdiction(str, Enum):
    """State whose duty and land tax scales apply."""

    VIC = "VIC"
    NSW = "NSW"
    QLD = "QLD"


class Strategy(str, Enum):
    """Exit strategy of a scenario or revenue line."""

    SELL = "sell"
    HOLD = "hold"


class DebtLimitMethod(str, Enum):
    """How a debt tier's facility limit is expressed."""

    FIXED = "fixed"  # Hard cap in currency
    LTC = "ltc"  # % of total cost basis
    LVR = "lvr"  # % of gross realisation


class InterestRateMode(str, Enum):
    """Single rate or dated schedule."""

    SINGLE = "single"
    VARIABLE = "variable"


class FeeBase(str, Enum):
    """Basis of an establishment fee."""

    FIXED = "fixed"
    PERCENT = "percent"  # % of facility limit


class EquityMode(str, Enum):
    """How committed equity enters the project account."""

    SUM_OF_MONEY = "sum_of_money"  # Upfront in month 0
    INSTALMENTS = "instalments"  # Dated amounts
    PCT_LAND = "pct_land"  # % of purchase price, upfront


class BracketMethod(str, Enum):
    """How a bracket's rate applies."""

    SLIDING = "sliding"  # base + rate x excess over previous limit
    FLAT = "flat"  # rate x whole amount


@dataclass(frozen=True)
class TaxBracket:
    """One bracket of a marginal statutory scale.

    Rates are percentages. A limit of None marks the open top bracket.
    """

    limit: Optional[int]
    rate: str
    base: int = 0
    method: BracketMethod = BracketMethod.SLIDING


TaxScale = Tuple[TaxBracket, ...]


# General transfer duty schedules
STAMP_DUTY_SCALES: Dict[Jurisdiction, TaxScale] = {
    Jurisdiction.VIC: (
        TaxBracket(limit=25_000, rate="1.4"),
        TaxBracket(limit=130_000, rate="2.4", base=350),
        TaxBracket(limit=480_000, rate="5.0", base=2_870),
        TaxBracket(limit=2_000_000, rate="6.0", base=20_370),
        TaxBracket(limit=None, rate="6.5", base=111_570),
    ),
    Jurisdiction.NSW: (
        TaxBracket(limit=17_000, rate="1.25"),
        TaxBracket(limit=37_000, rate="1.5", base=212),
        TaxBracket(limit=97_000, rate="1.75", base=512),
        TaxBracket(limit=368_000, rate="3.5", base=1_562),
        TaxBracket(limit=1_220_000, rate="4.5", base=11_047),
        TaxBracket(limit=None, rate="5.5", base=49_387),
    ),
    Jurisdiction.QLD: (
        TaxBracket(limit=5_000, rate="0"),
        TaxBracket(limit=75_000, rate="1.5"),
        TaxBracket(limit=540_000, rate="3.5", base=1_050),
        TaxBracket(limit=1_000_000, rate="4.5", base=17_325),
        TaxBracket(limit=None, rate="5.75", base=38_025),
    ),
}

# General land tax schedules (annual liability on assessed land value)
LAND_TAX_SCALES: Dict[Jurisdiction, TaxScale] = {
    Jurisdiction.VIC: (
        TaxBracket(limit=50_000, rate="0"),
        TaxBracket(limit=100_000, rate="0", base=500),
        TaxBracket(limit=300_000, rate="0.1", base=975),
        TaxBracket(limit=600_000, rate="0.3", base=1_350),
        TaxBracket(limit=1_000_000, rate="0.9", base=2_950),
        TaxBracket(limit=1_800_000, rate="1.2", base=4_975),
        TaxBracket(limit=3_000_000, rate="1.55", base=16_475),
        TaxBracket(limit=None, rate="2.55", base=35_075),
    ),
    Jurisdiction.NSW: (
        TaxBracket(limit=1_075_000, rate="0"),
        TaxBracket(limit=None, rate="1.6", base=100),
    ),
    Jurisdiction.QLD: (
        TaxBracket(limit=600_000, rate="0"),
        TaxBracket(limit=1_000_000, rate="1.0", base=500),
        TaxBracket(limit=3_000_000, rate="1.65", base=4_500),
        TaxBracket(limit=5_000_000, rate="1.25", base=37_500),
        TaxBracket(limit=10_000_000, rate="1.75", base=62_500),
        TaxBracket(limit=None, rate="2.25", base=150_000),
    ),
}

# Foreign purchaser additional duty, % of price
FOREIGN_BUYER_SURCHARGE: Dict[Jurisdiction, str] = {
    Jurisdiction.VIC: "8",
    Jurisdiction.NSW: "9",
    Jurisdiction.QLD: "8",
}

# Fallback when a jurisdiction has no duty scale configured
FALLBACK_DUTY_RATE = "5"

DEFAULT_GST_RATE = "10"

# Distribution shapes
S_CURVE_STEEPNESS = 12  # Logistic k over the normalised span
BELL_CURVE_SIGMAS = 3  # Span maps onto [-3 sigma, +3 sigma]

# Residual land value search
SOLVER_PRICE_CAP = 200_000_000
SOLVER_MAX_ITERATIONS = 40
SOLVER_TOLERANCE = "0.05"  # Percentage points

# IRR Newton-Raphson
IRR_SEED = 0.1  # Monthly
IRR_MAX_ITERATIONS = 40
IRR_PRECISION = 1e-7

# Sensitivity: escalation added to construction lines per +10% cost variance
ESCALATION_BUMP_PER_10PCT = "0.5"
DEFAULT_SENSITIVITY_STEPS = (-15, -10, -5, 0, 5, 10, 15)

# Hold-phase depreciation, % p.a. prime cost
CAPITAL_WORKS_RATE = "2.5"
PLANT_RATE = "10"

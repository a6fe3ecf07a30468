"""Scenario data model: acquisition, capital stack, cost and revenue catalogues.

Every class here is a frozen dataclass. The engine never mutates its inputs;
variants for the solver and sensitivity grid are built with
``dataclasses.replace``.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Mapping, Optional, Tuple

from .lookups import (
    CalculationLink,
    CostCategory,
    DebtLimitMethod,
    DEFAULT_GST_RATE,
    DistributionMethod,
    EquityMode,
    FeeBase,
    GstTreatment,
    InputType,
    InterestRateMode,
    Jurisdiction,
    MilestoneLink,
    Number,
    Strategy,
)


@dataclass(frozen=True)
class CostItem:
    """One budget line.

    ``amount`` is read according to ``input_type``: a lump sum, a percentage
    of the construction total or of gross realisation, or a rate per unit or
    per square metre of site area.
    """

    description: str
    category: CostCategory
    amount: Number
    input_type: InputType = InputType.FIXED
    start_offset: int = 0  # Months from the anchoring milestone
    span: int = 1
    method: DistributionMethod = DistributionMethod.LINEAR
    escalation_rate: Number = 0  # Annual %
    gst_treatment: GstTreatment = GstTreatment.TAXABLE
    calculation_link: CalculationLink = CalculationLink.NONE
    milestone_link: Optional[MilestoneLink] = None
    s_curve_steepness: Optional[Number] = None
    milestones: Optional[Mapping[int, Number]] = None  # Relative month -> %
    code: str = ""


@dataclass(frozen=True)
class RevenueItem:
    """A sale tranche or a hold (rental) tranche, selected by ``strategy``."""

    description: str
    strategy: Strategy = Strategy.SELL
    units: Number = 0

    # Sell arm
    price_per_unit: Number = 0  # GST-inclusive
    commission_rate: Number = 0  # %
    offset_from_completion: int = 0
    settlement_span: int = 1
    is_taxable: bool = True

    # Hold arm
    weekly_rent: Number = 0  # Per unit
    opex_rate: Number = 0  # % of gross rent
    vacancy_pct: Number = 0
    lease_up_months: int = 0
    cap_rate: Number = 0  # %


@dataclass(frozen=True)
class DatedRate:
    """Annual rate effective from ``month`` onwards."""

    month: int
    rate: Number


@dataclass(frozen=True)
class DatedAmount:
    month: int
    amount: Number


@dataclass(frozen=True)
class CapitalTier:
    """A debt facility (senior or mezzanine).

    A tier whose resolved limit is zero is treated as absent.
    """

    interest_rate: Number = 0  # Annual %
    rate_mode: InterestRateMode = InterestRateMode.SINGLE
    variable_rates: Tuple[DatedRate, ...] = ()
    limit_method: DebtLimitMethod = DebtLimitMethod.FIXED
    limit: Optional[Number] = None  # Currency for FIXED, % for LTC / LVR
    establishment_fee_base: FeeBase = FeeBase.FIXED
    establishment_fee: Number = 0  # Currency or % of limit
    line_fee_pct: Number = 0  # % p.a. on limit
    activation_month: int = 0
    is_interest_capitalised: bool = True


@dataclass(frozen=True)
class EquityStructure:
    """Committed equity injected into the project account ahead of need."""

    mode: EquityMode = EquityMode.SUM_OF_MONEY
    initial_contribution: Number = 0
    instalments: Tuple[DatedAmount, ...] = ()
    percentage_input: Number = 0  # % of purchase price for PCT_LAND


@dataclass(frozen=True)
class CapitalStack:
    senior: CapitalTier = field(default_factory=CapitalTier)
    mezzanine: CapitalTier = field(default_factory=CapitalTier)
    equity: EquityStructure = field(default_factory=EquityStructure)
    surplus_interest_rate: Number = 0  # Annual % earned on positive cash


@dataclass(frozen=True)
class AcquisitionTerms:
    """Land purchase terms. Duty is derived from the price unless overridden."""

    purchase_price: Number = 0
    deposit_pct: Number = 10
    settlement_month: int = 0
    jurisdiction: Jurisdiction = Jurisdiction.VIC
    is_foreign_buyer: bool = False
    buyers_agent_fee_pct: Number = 0
    legal_fee: Number = 0
    stamp_duty_override: Optional[Number] = None


@dataclass(frozen=True)
class HoldStrategy:
    """Post-completion hold, refinance and exit assumptions."""

    refinance_month: Optional[int] = None
    refinance_lvr: Number = 65  # %
    investment_rate: Number = 6.5  # Annual %
    hold_period_years: int = 10
    annual_capital_growth: Number = 3  # %
    terminal_cap_rate: Number = 0  # % (0 = use each item's cap rate)
    rental_growth: Number = 0  # % p.a.
    capital_works_pct: Number = 85  # Split of construction cost
    plant_pct: Number = 15


@dataclass(frozen=True)
class ScenarioSettings:
    start_date: date = field(default_factory=lambda: date(2026, 1, 1))
    duration_months: int = 24
    acquisition: AcquisitionTerms = field(default_factory=AcquisitionTerms)
    capital_stack: CapitalStack = field(default_factory=CapitalStack)
    construction_delay: int = 0  # Months from settlement to construction start
    construction_months: Optional[int] = None  # None = derive from construction items
    total_units: int = 0
    gst_rate: Number = DEFAULT_GST_RATE
    use_margin_scheme: bool = False
    discount_rate: Number = 10  # Annual %
    hold_strategy: Optional[HoldStrategy] = None


@dataclass(frozen=True)
class Scenario:
    """A feasibility scenario for one site.

    A HOLD scenario may name the SELL scenario it grows out of in
    ``linked_scenario_name``; see ``merge_linked_scenario``.
    """

    name: str
    strategy: Strategy = Strategy.SELL
    settings: ScenarioSettings = field(default_factory=ScenarioSettings)
    costs: Tuple[CostItem, ...] = ()
    revenues: Tuple[RevenueItem, ...] = ()
    linked_scenario_name: Optional[str] = None


@dataclass(frozen=True)
class SiteContext:
    """Physical attributes of the site shared by all its scenarios."""

    land_area: Number = 0  # m2
    zoning: str = ""
    assessed_land_value: Number = 0
    council_rate_pct: Number = 0
    gross_floor_area: Number = 0
    net_saleable_area: Number = 0


def merge_linked_scenario(scenario: Scenario, linked: Optional[Scenario]) -> Scenario:
    """Build the merged view of a hold scenario and its originating sell scenario.

    The linked scenario's cost catalogue comes first, followed by the hold
    scenario's own items. Acquisition terms and the development timeline
    (construction delay and length, project duration) come from the linked
    scenario. Neither input is modified.

    Args:
        scenario: The scenario being simulated.
        linked: The sell scenario it inherits from, or None.

    Returns:
        ``scenario`` itself when there is nothing to merge, otherwise a new
        Scenario.
    """
    if linked is None or scenario.strategy != Strategy.HOLD:
        return scenario

    source = linked.settings
    settings = replace(
        scenario.settings,
        acquisition=source.acquisition,
        construction_delay=source.construction_delay,
        construction_months=source.construction_months,
        duration_months=source.duration_months,
    )
    return replace(
        scenario,
        settings=settings,
        costs=tuple(linked.costs) + tuple(scenario.costs),
    )


class ScenarioValidationError(ValueError):
    """Raised when a scenario fails input validation."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__("Invalid scenario: " + "; ".join(problems))


def _as_decimal(value) -> Optional[Decimal]:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _check_number(problems: List[str], label: str, value, minimum=None, maximum=None):
    number = _as_decimal(value)
    if number is None:
        problems.append(f"{label} must be a finite number (got {value!r})")
        return
    if minimum is not None and number < minimum:
        problems.append(f"{label} must be >= {minimum} (got {value})")
    if maximum is not None and number > maximum:
        problems.append(f"{label} must be <= {maximum} (got {value})")


def _validate_tier(problems: List[str], name: str, tier: CapitalTier):
    _check_number(problems, f"{name} interest rate", tier.interest_rate, minimum=0)
    for dated in tier.variable_rates:
        _check_number(problems, f"{name} rate at month {dated.month}", dated.rate, minimum=0)
        if dated.month < 0:
            problems.append(f"{name} dated rate month must be >= 0")
    if tier.limit is not None:
        upper = None if tier.limit_method == DebtLimitMethod.FIXED else 100
        _check_number(problems, f"{name} limit", tier.limit, minimum=0, maximum=upper)
    _check_number(problems, f"{name} establishment fee", tier.establishment_fee, minimum=0)
    _check_number(problems, f"{name} line fee", tier.line_fee_pct, minimum=0)
    if tier.activation_month < 0:
        problems.append(f"{name} activation month must be >= 0")


def validate_scenario(scenario: Scenario) -> List[str]:
    """Check a scenario against the input constraints.

    The simulation assumes well-formed input and never calls this itself;
    callers validate before simulating.

    Returns:
        Human-readable problems, empty when the scenario is valid.
    """
    problems: List[str] = []
    settings = scenario.settings
    acquisition = settings.acquisition

    if settings.duration_months < 1:
        problems.append("duration_months must be at least 1")
    if settings.construction_delay < 0:
        problems.append("construction_delay must be >= 0")
    if settings.construction_months is not None and settings.construction_months < 0:
        problems.append("construction_months must be >= 0")
    if settings.total_units < 0:
        problems.append("total_units must be >= 0")
    _check_number(problems, "gst_rate", settings.gst_rate, minimum=0)
    _check_number(problems, "discount_rate", settings.discount_rate)

    _check_number(problems, "purchase_price", acquisition.purchase_price, minimum=0)
    _check_number(problems, "deposit_pct", acquisition.deposit_pct, minimum=0, maximum=100)
    _check_number(problems, "buyers_agent_fee_pct", acquisition.buyers_agent_fee_pct, minimum=0)
    _check_number(problems, "legal_fee", acquisition.legal_fee, minimum=0)
    if acquisition.stamp_duty_override is not None:
        _check_number(problems, "stamp_duty_override", acquisition.stamp_duty_override, minimum=0)
    if acquisition.settlement_month < 0:
        problems.append("settlement_month must be >= 0")
    try:
        Jurisdiction(acquisition.jurisdiction)
    except ValueError:
        problems.append(f"unknown jurisdiction {acquisition.jurisdiction!r}")

    stack = settings.capital_stack
    _validate_tier(problems, "senior", stack.senior)
    _validate_tier(problems, "mezzanine", stack.mezzanine)
    _check_number(problems, "surplus_interest_rate", stack.surplus_interest_rate, minimum=0)
    _check_number(problems, "equity contribution", stack.equity.initial_contribution, minimum=0)
    _check_number(problems, "equity percentage", stack.equity.percentage_input, minimum=0, maximum=100)
    for instalment in stack.equity.instalments:
        if instalment.month < 0:
            problems.append("equity instalment month must be >= 0")
        _check_number(problems, "equity instalment", instalment.amount, minimum=0)

    if scenario.strategy == Strategy.HOLD and settings.hold_strategy is None:
        problems.append("HOLD scenario requires hold_strategy settings")
    if settings.hold_strategy is not None:
        hold = settings.hold_strategy
        if hold.hold_period_years < 0:
            problems.append("hold_period_years must be >= 0")
        _check_number(problems, "refinance_lvr", hold.refinance_lvr, minimum=0, maximum=100)
        _check_number(problems, "terminal_cap_rate", hold.terminal_cap_rate, minimum=0)

    for item in scenario.costs:
        label = f"cost '{item.description}'"
        _check_number(problems, f"{label} amount", item.amount)
        _check_number(problems, f"{label} escalation", item.escalation_rate)
        if item.span < 1:
            problems.append(f"{label} span must be at least 1")
        if item.start_offset < 0:
            problems.append(f"{label} start offset must be >= 0")
        if (
            item.category == CostCategory.CONSTRUCTION
            and item.input_type == InputType.PCT_CONSTRUCTION
        ):
            problems.append(f"{label} is construction and cannot be a % of construction")
        if (
            item.category == CostCategory.CONSTRUCTION
            and item.milestone_link == MilestoneLink.COMPLETION
            and settings.construction_months is None
        ):
            problems.append(
                f"{label} is construction linked to completion; set construction_months"
            )

    for item in scenario.revenues:
        label = f"revenue '{item.description}'"
        _check_number(problems, f"{label} units", item.units, minimum=0)
        if item.strategy == Strategy.SELL:
            _check_number(problems, f"{label} price", item.price_per_unit, minimum=0)
            _check_number(problems, f"{label} commission", item.commission_rate, minimum=0, maximum=100)
            if item.settlement_span < 1:
                problems.append(f"{label} settlement span must be at least 1")
        else:
            _check_number(problems, f"{label} weekly rent", item.weekly_rent, minimum=0)
            _check_number(problems, f"{label} cap rate", item.cap_rate, minimum=0)
            _check_number(problems, f"{label} vacancy", item.vacancy_pct, minimum=0, maximum=100)
            if item.lease_up_months < 0:
                problems.append(f"{label} lease-up months must be >= 0")

    return problems


def ensure_valid_scenario(scenario: Scenario) -> Scenario:
    """Return the scenario unchanged, or raise ScenarioValidationError."""
    problems = validate_scenario(scenario)
    if problems:
        raise ScenarioValidationError(problems)
    return scenario

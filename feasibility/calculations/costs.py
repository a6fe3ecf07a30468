"""Cost resolution, phasing and itemised cost schedules.

Each cost line resolves to a total (by its input type or automation link),
is anchored to a project milestone, phased over its span with the
distribution engine and escalated by the absolute project month. The land
purchase contributes implicit deposit, settlement, duty and fee lines.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from ..models.lookups import (
    CalculationLink,
    CostCategory,
    GstTreatment,
    InputType,
    MilestoneLink,
)
from ..models.scenario import AcquisitionTerms, CostItem, ScenarioSettings, SiteContext
from .distribution import distribute, escalation_factor
from .money import D, TWELVE, ZERO, dsum, pct
from .statutory import (
    calculate_council_rates,
    calculate_land_tax,
    calculate_stamp_duty,
    gst_credit,
)

logger = logging.getLogger(__name__)


class AcquisitionStage(str, Enum):
    """Land purchase obligation a scheduled line belongs to."""

    DEPOSIT = "deposit"  # Funded from cash, then equity
    SETTLEMENT = "settlement"  # Funded by a forced senior draw


@dataclass
class ScheduledCost:
    """One cost line laid out over the project months.

    ``monthly`` has one entry per simulated month (0..horizon); amounts are
    GST-exclusive and already escalated.
    """

    label: str
    category: CostCategory
    gst_treatment: GstTreatment
    total: Decimal  # Resolved, before escalation
    start_month: int
    monthly: List[Decimal] = field(default_factory=list)
    code: str = ""
    stage: Optional[AcquisitionStage] = None  # Set on implicit land purchase lines

    @property
    def scheduled_total(self) -> Decimal:
        return dsum(self.monthly)


@dataclass
class LineItemSummary:
    """Net, GST and gross totals of one scheduled cost line."""

    label: str
    category: CostCategory
    net: Decimal
    gst: Decimal
    gross: Decimal


@dataclass
class ItemisedRow:
    label: str
    values: List[Decimal]
    total: Decimal


@dataclass
class ItemisedCategory:
    category: CostCategory
    rows: List[ItemisedRow]
    totals: List[Decimal]


def is_circular_driver(item: CostItem) -> bool:
    """A construction line cannot be driven by the construction total."""
    return (
        item.category == CostCategory.CONSTRUCTION
        and item.input_type == InputType.PCT_CONSTRUCTION
    )


def calculate_line_item_total(
    item: CostItem,
    settings: ScenarioSettings,
    site: SiteContext,
    construction_total: Decimal,
    estimated_revenue: Decimal,
) -> Decimal:
    """Resolve a cost line's total amount.

    Automation links take precedence over the input type:

    - AUTO_STAMP_DUTY: transfer duty on the purchase price
    - AUTO_LAND_TAX: annual land tax on assessed land value x span / 12
    - AUTO_COUNCIL_RATES: annual council rates x span / 12

    Otherwise the amount is read per ``input_type``.

    Args:
        item: The cost line.
        settings: Scenario settings (acquisition terms, unit count).
        site: Site attributes (land area, assessed value).
        construction_total: Total of construction lines not themselves
            driven by the construction total.
        estimated_revenue: Estimated gross realisation.

    Returns:
        Resolved total, before escalation.
    """
    acquisition = settings.acquisition
    link = item.calculation_link
    years = D(max(item.span, 0)) / TWELVE

    if link == CalculationLink.AUTO_STAMP_DUTY:
        return calculate_stamp_duty(
            acquisition.purchase_price,
            acquisition.jurisdiction,
            acquisition.is_foreign_buyer,
            acquisition.stamp_duty_override,
        )
    if link == CalculationLink.AUTO_LAND_TAX:
        return calculate_land_tax(site.assessed_land_value, acquisition.jurisdiction) * years
    if link == CalculationLink.AUTO_COUNCIL_RATES:
        return calculate_council_rates(site.assessed_land_value, site.council_rate_pct) * years

    amount = D(item.amount)
    input_type = item.input_type

    if input_type == InputType.PCT_CONSTRUCTION:
        if is_circular_driver(item):
            logger.warning(
                "Construction item %r is a %% of construction; resolved to zero",
                item.description,
            )
            return ZERO
        return construction_total * pct(amount)
    if input_type == InputType.PCT_REVENUE:
        return estimated_revenue * pct(amount)
    if input_type == InputType.RATE_PER_UNIT:
        return D(settings.total_units) * amount
    if input_type == InputType.RATE_PER_SQM:
        return D(site.land_area) * amount
    return amount


def calculate_construction_total(
    costs: Sequence[CostItem],
    settings: ScenarioSettings,
    site: SiteContext,
    estimated_revenue: Decimal,
) -> Decimal:
    """Sum of construction lines, excluding any driven by the construction total."""
    return dsum(
        calculate_line_item_total(item, settings, site, ZERO, estimated_revenue)
        for item in costs
        if item.category == CostCategory.CONSTRUCTION and not is_circular_driver(item)
    )


def item_start_month(item: CostItem, anchors: Mapping[MilestoneLink, int]) -> int:
    """Absolute start month of a cost line.

    Lines with a milestone link start relative to that milestone. Unlinked
    construction lines start relative to construction start, everything else
    relative to month 0.
    """
    if item.milestone_link is not None:
        anchor = anchors.get(item.milestone_link, 0)
    elif item.category == CostCategory.CONSTRUCTION:
        anchor = anchors.get(MilestoneLink.CONSTRUCTION_START, 0)
    else:
        anchor = 0
    return anchor + item.start_offset


def has_auto_stamp_duty(costs: Sequence[CostItem]) -> bool:
    return any(c.calculation_link == CalculationLink.AUTO_STAMP_DUTY for c in costs)


def _single_month(amount: Decimal, month: int, horizon: int) -> List[Decimal]:
    values = [ZERO] * (horizon + 1)
    if 0 <= month <= horizon:
        values[month] = amount
    return values


def acquisition_costs(
    acquisition: AcquisitionTerms,
    horizon: int,
    include_stamp_duty: bool = True,
) -> List[ScheduledCost]:
    """Implicit land purchase lines.

    Month 0 carries the deposit and legal fee. The settlement month carries
    the balance of the price, transfer duty and the buyer's agent fee.
    Legal and agent fees are taxable supplies; land and duty are not.

    Args:
        acquisition: Purchase terms.
        horizon: Last simulated month.
        include_stamp_duty: False when a cost line already carries the duty
            through AUTO_STAMP_DUTY.

    Returns:
        Scheduled acquisition lines (zero-amount lines omitted).
    """
    price = D(acquisition.purchase_price)
    deposit = price * pct(acquisition.deposit_pct)
    settlement = acquisition.settlement_month

    lines = [
        ("Land Deposit", CostCategory.LAND, GstTreatment.GST_FREE, deposit, 0, AcquisitionStage.DEPOSIT),
        (
            "Land Settlement",
            CostCategory.LAND,
            GstTreatment.GST_FREE,
            price - deposit,
            settlement,
            AcquisitionStage.SETTLEMENT,
        ),
        ("Acquisition Legal Fees", CostCategory.LAND, GstTreatment.TAXABLE, D(acquisition.legal_fee), 0, None),
        (
            "Buyer's Agent Fee",
            CostCategory.LAND,
            GstTreatment.TAXABLE,
            price * pct(acquisition.buyers_agent_fee_pct),
            settlement,
            AcquisitionStage.SETTLEMENT,
        ),
    ]
    if include_stamp_duty:
        duty = calculate_stamp_duty(
            price,
            acquisition.jurisdiction,
            acquisition.is_foreign_buyer,
            acquisition.stamp_duty_override,
        )
        lines.append(
            ("Stamp Duty", CostCategory.STATUTORY, GstTreatment.GST_FREE, duty, settlement, AcquisitionStage.SETTLEMENT)
        )

    return [
        ScheduledCost(
            label=label,
            category=category,
            gst_treatment=treatment,
            total=amount,
            start_month=month,
            monthly=_single_month(amount, month, horizon),
            stage=stage,
        )
        for label, category, treatment, amount, month, stage in lines
        if amount != 0
    ]


def schedule_costs(
    costs: Sequence[CostItem],
    settings: ScenarioSettings,
    site: SiteContext,
    anchors: Mapping[MilestoneLink, int],
    horizon: int,
    estimated_revenue: Decimal,
    include_acquisition: bool = True,
) -> List[ScheduledCost]:
    """Lay out every cost line over months 0..horizon.

    Each month's amount is the distributed share of the line's total,
    multiplied by the escalation factor for that absolute project month.
    Amounts falling past the horizon are dropped.

    Args:
        costs: Cost catalogue.
        settings: Scenario settings.
        site: Site attributes.
        anchors: Month of each project milestone.
        horizon: Last simulated month.
        estimated_revenue: Gross realisation used by % of revenue lines.
        include_acquisition: Prepend the implicit land purchase lines.

    Returns:
        Scheduled lines, acquisition lines first.
    """
    construction_total = calculate_construction_total(costs, settings, site, estimated_revenue)
    schedule: List[ScheduledCost] = []

    if include_acquisition:
        schedule.extend(
            acquisition_costs(
                settings.acquisition,
                horizon,
                include_stamp_duty=not has_auto_stamp_duty(costs),
            )
        )

    for item in costs:
        total = calculate_line_item_total(item, settings, site, construction_total, estimated_revenue)
        start = item_start_month(item, anchors)
        monthly = [ZERO] * (horizon + 1)

        if total != 0 and item.span > 0:
            for offset in range(item.span):
                month = start + offset
                if month < 0 or month > horizon:
                    continue
                base = distribute(
                    total, offset, item.method, item.span,
                    item.s_curve_steepness, item.milestones,
                )
                monthly[month] = base * escalation_factor(item.escalation_rate, month)

        schedule.append(
            ScheduledCost(
                label=item.description,
                category=item.category,
                gst_treatment=item.gst_treatment,
                total=total,
                start_month=start,
                monthly=monthly,
                code=item.code,
            )
        )

    return schedule


def generate_itemised_cashflow(schedule: Sequence[ScheduledCost]) -> List[ItemisedCategory]:
    """Group scheduled lines by category with per-month category totals.

    Categories appear in CostCategory order; empty categories are omitted.
    """
    if not schedule:
        return []
    months = len(schedule[0].monthly)
    categories = []

    for category in CostCategory:
        lines = [s for s in schedule if s.category == category]
        if not lines:
            continue
        rows = [ItemisedRow(s.label, list(s.monthly), s.scheduled_total) for s in lines]
        totals = [dsum(row.values[m] for row in rows) for m in range(months)]
        categories.append(ItemisedCategory(category=category, rows=rows, totals=totals))

    return categories


def calculate_line_item_summaries(
    schedule: Sequence[ScheduledCost],
    gst_rate,
) -> List[LineItemSummary]:
    """Net, GST and gross totals of each scheduled line."""
    summaries = []
    for line in schedule:
        net = line.scheduled_total
        gst = gst_credit(net, gst_rate, line.gst_treatment)
        summaries.append(LineItemSummary(line.label, line.category, net, gst, net + gst))
    return summaries


def costs_by_category(schedule: Sequence[ScheduledCost], month: int) -> Dict[CostCategory, Decimal]:
    """Month's cost per category (categories with no spend omitted)."""
    breakdown: Dict[CostCategory, Decimal] = {}
    for line in schedule:
        amount = line.monthly[month]
        if amount:
            breakdown[line.category] = breakdown.get(line.category, ZERO) + amount
    return breakdown


def construction_end_offset(
    costs: Sequence[CostItem],
    construction_start: int,
    anchors: Optional[Mapping[MilestoneLink, int]] = None,
) -> int:
    """Months from construction start to the end of the last construction line.

    Lines anchored to completion cannot determine completion and are left out.
    """
    anchors = dict(anchors or {})
    anchors.setdefault(MilestoneLink.CONSTRUCTION_START, construction_start)
    ends = [
        item_start_month(item, anchors) + item.span - construction_start
        for item in costs
        if item.category == CostCategory.CONSTRUCTION
        and item.span > 0
        and item.milestone_link != MilestoneLink.COMPLETION
    ]
    return max(max(ends, default=0), 0)

"""Monthly cashflow simulation.

The engine walks a discrete monthly clock from month 0 to the horizon
(inclusive). Each month runs seven steps in a fixed order, because later
steps read what earlier ones produced in the same month:

1. Refinance check (hold strategies)
2. Revenue recognition
3. Cost recognition, GST paid and the prior month's input tax credit
4. Finance accrual (interest, line fees, establishment fees)
5. Net position and cumulative cashflow
6. Funding / repayment waterfall
7. Asset value roll-forward and depreciation

The output is an immutable list of MonthlyFlow records. Every call starts
from scratch; the inputs are never modified.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from dateutil.relativedelta import relativedelta

from ..models.lookups import (
    CAPITAL_WORKS_RATE,
    PLANT_RATE,
    CostCategory,
    MilestoneLink,
    Strategy,
)
from ..models.scenario import Scenario, SiteContext, merge_linked_scenario
from .costs import (
    AcquisitionStage,
    ScheduledCost,
    calculate_construction_total,
    construction_end_offset,
    costs_by_category,
    schedule_costs,
)
from .debt_stack import (
    FundingWaterfall,
    establishment_fee,
    line_fee,
    monthly_interest,
    rate_at,
    resolve_limit,
    scheduled_equity,
)
from .distribution import monthly_rate_from_annual
from .money import ONE, TWELVE, ZERO, dmax, dsum, pct
from .revenue import capitalised_value, estimate_gross_realisation, recognise_revenue, rental_growth_factor
from .statutory import gst_credit

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Project phase of a month."""

    PREDEVELOPMENT = "predevelopment"
    CONSTRUCTION = "construction"
    SALES = "sales"
    OPERATIONS = "operations"
    REVERSION = "reversion"


def month_label(start_date: date, month: int) -> str:
    """Calendar label of a project month, e.g. "Mar 27"."""
    return (start_date + relativedelta(months=month)).strftime("%b %y")


@dataclass(frozen=True)
class Timeline:
    """Key months of a scenario."""

    start_date: date
    strategy: Strategy
    settlement_month: int
    construction_start: int
    completion_month: int
    horizon: int  # Last simulated month (inclusive)
    refinance_month: Optional[int] = None

    @property
    def months(self) -> int:
        return self.horizon + 1

    @property
    def anchors(self) -> Dict[MilestoneLink, int]:
        return {
            MilestoneLink.ACQUISITION: self.settlement_month,
            MilestoneLink.CONSTRUCTION_START: self.construction_start,
            MilestoneLink.COMPLETION: self.completion_month,
        }

    def phase(self, month: int) -> Phase:
        if month < self.construction_start:
            return Phase.PREDEVELOPMENT
        if month < self.completion_month:
            return Phase.CONSTRUCTION
        if self.strategy == Strategy.HOLD:
            return Phase.REVERSION if month == self.horizon else Phase.OPERATIONS
        return Phase.SALES

    def label(self, month: int) -> str:
        return month_label(self.start_date, month)


def build_timeline(scenario: Scenario) -> Timeline:
    """Derive the key months of a (merged) scenario.

    Construction starts ``construction_delay`` months after settlement and
    runs for ``construction_months``, or until the last construction line
    ends when no length is given. A SELL scenario runs for
    ``duration_months``; a HOLD scenario to completion plus the hold period.
    """
    settings = scenario.settings
    settlement = settings.acquisition.settlement_month
    construction_start = settlement + settings.construction_delay

    if settings.construction_months is not None:
        completion = construction_start + settings.construction_months
    else:
        anchors = {MilestoneLink.ACQUISITION: settlement}
        completion = construction_start + construction_end_offset(
            scenario.costs, construction_start, anchors
        )

    hold = settings.hold_strategy
    refinance_month = None
    if scenario.strategy == Strategy.HOLD:
        years = hold.hold_period_years if hold else 0
        horizon = completion + years * 12
        refinance_month = hold.refinance_month if hold else None
    else:
        horizon = settings.duration_months

    return Timeline(
        start_date=settings.start_date,
        strategy=scenario.strategy,
        settlement_month=settlement,
        construction_start=construction_start,
        completion_month=completion,
        horizon=max(horizon, 0),
        refinance_month=refinance_month,
    )


@dataclass(frozen=True)
class TierFlow:
    """One month of a debt tier."""

    draw: Decimal = ZERO
    repayment: Decimal = ZERO
    interest: Decimal = ZERO
    line_fee: Decimal = ZERO
    establishment_fee: Decimal = ZERO
    balance: Decimal = ZERO  # Closing

    @property
    def finance_cost(self) -> Decimal:
        return self.interest + self.line_fee + self.establishment_fee


@dataclass(frozen=True)
class EquityFlow:
    draw: Decimal = ZERO
    repayment: Decimal = ZERO
    balance: Decimal = ZERO  # Cumulative draws less repayments

    @property
    def net(self) -> Decimal:
        """Cashflow to the equity investor (repayments less draws)."""
        return self.repayment - self.draw


@dataclass(frozen=True)
class MonthlyFlow:
    """Full accounting of one simulated month."""

    month: int
    label: str
    phase: Phase

    # Revenue
    gross_revenue: Decimal
    commission: Decimal
    gst_on_sales: Decimal
    operating_costs: Decimal
    net_revenue: Decimal

    # Costs (GST-exclusive)
    development_costs: Decimal
    cost_breakdown: Mapping[CostCategory, Decimal]
    gst_on_costs: Decimal  # GST paid this month
    gst_credit_claimed: Decimal  # Input tax credit for last month's GST

    # Other inflows
    surplus_interest: Decimal
    refinance_inflow: Decimal

    # Capital stack
    senior: TierFlow
    mezzanine: TierFlow
    investment: TierFlow
    equity: EquityFlow
    cash_balance: Decimal

    # Position
    total_inflow: Decimal
    total_outflow: Decimal
    net_cashflow: Decimal
    cumulative_cashflow: Decimal

    # Hold
    asset_value: Decimal = ZERO
    depreciation: Decimal = ZERO

    @property
    def total_debt(self) -> Decimal:
        """Development debt outstanding (senior + mezzanine)."""
        return self.senior.balance + self.mezzanine.balance

    @property
    def finance_costs(self) -> Decimal:
        return self.senior.finance_cost + self.mezzanine.finance_cost + self.investment.finance_cost

    @property
    def total_interest(self) -> Decimal:
        return self.senior.interest + self.mezzanine.interest + self.investment.interest


def prepare_schedule(
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    linked_scenario: Optional[Scenario] = None,
) -> Tuple[Scenario, Timeline, List[ScheduledCost]]:
    """Merge, time and lay out a scenario's costs ahead of simulation.

    Returns:
        Tuple of (merged scenario, timeline, scheduled cost lines).
    """
    merged = merge_linked_scenario(scenario, linked_scenario)
    site = site or SiteContext()
    timeline = build_timeline(merged)
    schedule = schedule_costs(
        merged.costs,
        merged.settings,
        site,
        timeline.anchors,
        timeline.horizon,
        estimate_gross_realisation(merged.revenues),
    )
    return merged, timeline, schedule


def _depreciation_rate(hold) -> Decimal:
    """Blended annual depreciation rate on construction cost."""
    return (
        pct(hold.capital_works_pct) * pct(CAPITAL_WORKS_RATE)
        + pct(hold.plant_pct) * pct(PLANT_RATE)
    )


def simulate(
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    linked_scenario: Optional[Scenario] = None,
) -> List[MonthlyFlow]:
    """Run the monthly cashflow simulation.

    Args:
        scenario: Scenario to simulate.
        site: Site attributes (land area, assessed value). Defaults to an
            empty site.
        linked_scenario: The SELL scenario a HOLD scenario inherits its
            costs and acquisition from.

    Returns:
        One MonthlyFlow per month from 0 to the horizon inclusive.

    Example:
        >>> flows = simulate(scenario, site)
        >>> flows[-1].cumulative_cashflow
        Decimal('1843210.55')  # Example
    """
    site = site or SiteContext()
    scenario, timeline, schedule = prepare_schedule(scenario, site, linked_scenario)
    settings = scenario.settings
    stack = settings.capital_stack
    hold = settings.hold_strategy
    is_hold = scenario.strategy == Strategy.HOLD and hold is not None
    horizon = timeline.horizon

    logger.debug(
        "Simulating %r: %s strategy, %d months, completion month %d",
        scenario.name, scenario.strategy.value, timeline.months, timeline.completion_month,
    )

    # Facility limits
    estimated_revenue = estimate_gross_realisation(scenario.revenues)
    cost_basis = dsum(line.total for line in schedule if line.category != CostCategory.FINANCE)
    senior_limit = resolve_limit(stack.senior, cost_basis, estimated_revenue)
    mezzanine_limit = resolve_limit(stack.mezzanine, cost_basis, estimated_revenue)
    waterfall = FundingWaterfall.for_stack(stack, senior_limit, mezzanine_limit)

    construction_total = calculate_construction_total(
        scenario.costs, settings, site, estimated_revenue
    )
    monthly_depreciation = (
        construction_total * _depreciation_rate(hold) / TWELVE if is_hold else ZERO
    )
    monthly_growth = (
        monthly_rate_from_annual(hold.annual_capital_growth) if is_hold else ZERO
    )
    hold_revenues = [r for r in scenario.revenues if r.strategy == Strategy.HOLD]

    flows: List[MonthlyFlow] = []
    gst_credit_due = ZERO
    cumulative = ZERO
    asset_value = ZERO

    for month in range(horizon + 1):
        is_terminal = month == horizon
        opening_senior = waterfall.senior.balance
        opening_mezzanine = waterfall.mezzanine.balance
        opening_investment = waterfall.investment.balance
        opening_cash = waterfall.cash

        # 1. Refinance
        refinance_inflow = ZERO
        valuation = None
        if is_hold and timeline.refinance_month == month:
            growth = rental_growth_factor(hold.rental_growth, month - timeline.completion_month)
            valuation = dsum(capitalised_value(item, growth) for item in hold_revenues)
            refinance_inflow = valuation * pct(hold.refinance_lvr)
            waterfall.investment.balance += refinance_inflow

        # 2. Revenue
        revenue = recognise_revenue(
            scenario.revenues, month, timeline.completion_month, horizon, settings
        )

        # 3. Costs
        development_costs = ZERO
        gst_paid = ZERO
        deposit_due = ZERO
        settlement_due = ZERO
        for line in schedule:
            amount = line.monthly[month]
            if not amount:
                continue
            development_costs += amount
            gst_paid += gst_credit(amount, settings.gst_rate, line.gst_treatment)
            if line.stage == AcquisitionStage.DEPOSIT:
                deposit_due += amount
            elif line.stage == AcquisitionStage.SETTLEMENT:
                settlement_due += amount
        gst_credit_claimed = gst_credit_due
        gst_credit_due = gst_paid

        # 4. Finance accrual
        tier_charges = {}
        cash_finance = ZERO
        for name, tier, position, opening in (
            ("senior", stack.senior, waterfall.senior, opening_senior),
            ("mezzanine", stack.mezzanine, waterfall.mezzanine, opening_mezzanine),
        ):
            interest = monthly_interest(opening, rate_at(tier, month))
            fee = ZERO if position.retired else line_fee(tier, position.limit, month)
            setup = (
                establishment_fee(tier, position.limit)
                if month == tier.activation_month else ZERO
            )
            if tier.is_interest_capitalised:
                position.balance += interest
            else:
                cash_finance += interest
            cash_finance += fee + setup
            tier_charges[name] = (interest, fee, setup)

        investment_interest = ZERO
        if is_hold:
            investment_interest = monthly_interest(opening_investment, hold.investment_rate)
            cash_finance += investment_interest
        surplus_interest = monthly_interest(dmax(ZERO, opening_cash), stack.surplus_interest_rate)

        # 5. Net position
        total_inflow = revenue.net + gst_credit_claimed + surplus_interest + refinance_inflow
        total_outflow = development_costs + gst_paid + cash_finance
        net = total_inflow - total_outflow
        cumulative += net

        # 6. Waterfall
        moves = waterfall.run(
            month,
            net,
            deposit_due=deposit_due,
            settlement_due=settlement_due,
            equity_injection=scheduled_equity(stack.equity, month, settings.acquisition.purchase_price),
            is_terminal=is_terminal,
            retire_repaid=month >= timeline.completion_month,
        )

        # 7. Asset value
        depreciation = ZERO
        if valuation is not None:
            asset_value = valuation
        elif is_hold and month > timeline.completion_month:
            asset_value = asset_value * (ONE + monthly_growth)
        else:
            asset_value += development_costs
        if is_hold and month > timeline.completion_month:
            depreciation = monthly_depreciation

        senior_interest, senior_fee, senior_setup = tier_charges["senior"]
        mezzanine_interest, mezzanine_fee, mezzanine_setup = tier_charges["mezzanine"]

        flows.append(
            MonthlyFlow(
                month=month,
                label=timeline.label(month),
                phase=timeline.phase(month),
                gross_revenue=revenue.gross,
                commission=revenue.commission,
                gst_on_sales=revenue.gst,
                operating_costs=revenue.operating_costs,
                net_revenue=revenue.net,
                development_costs=development_costs,
                cost_breakdown=MappingProxyType(costs_by_category(schedule, month)),
                gst_on_costs=gst_paid,
                gst_credit_claimed=gst_credit_claimed,
                surplus_interest=surplus_interest,
                refinance_inflow=refinance_inflow,
                senior=TierFlow(
                    draw=moves.senior_draw,
                    repayment=moves.senior_repayment,
                    interest=senior_interest,
                    line_fee=senior_fee,
                    establishment_fee=senior_setup,
                    balance=waterfall.senior.balance,
                ),
                mezzanine=TierFlow(
                    draw=moves.mezzanine_draw,
                    repayment=moves.mezzanine_repayment,
                    interest=mezzanine_interest,
                    line_fee=mezzanine_fee,
                    establishment_fee=mezzanine_setup,
                    balance=waterfall.mezzanine.balance,
                ),
                investment=TierFlow(
                    draw=refinance_inflow,
                    repayment=moves.investment_repayment,
                    interest=investment_interest,
                    balance=waterfall.investment.balance,
                ),
                equity=EquityFlow(
                    draw=moves.equity_draw,
                    repayment=moves.equity_repayment,
                    balance=waterfall.equity_balance,
                ),
                cash_balance=waterfall.cash,
                total_inflow=total_inflow,
                total_outflow=total_outflow,
                net_cashflow=net,
                cumulative_cashflow=cumulative,
                asset_value=asset_value,
                depreciation=depreciation,
            )
        )

    logger.debug(
        "Simulated %r: cumulative cashflow %s, closing equity %s",
        scenario.name, cumulative, waterfall.equity_balance,
    )
    return flows

"""Revenue recognition for sale tranches and hold (rental) tranches."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from ..models.lookups import Strategy
from ..models.scenario import RevenueItem, ScenarioSettings
from .money import D, ONE, TWELVE, ZERO, dmin, dsum, pct, safe_ratio
from .statutory import gst_payable

WEEKS_PER_YEAR = Decimal("52")


@dataclass
class RevenueMonth:
    """Revenue recognised in one month across all revenue items."""

    gross: Decimal = ZERO  # Sale proceeds, rent and exit value
    commission: Decimal = ZERO
    gst: Decimal = ZERO
    operating_costs: Decimal = ZERO
    rental_income: Decimal = ZERO  # Gross collected rent (in ``gross``)
    exit_value: Decimal = ZERO  # Terminal sale of held units (in ``gross``)

    @property
    def net(self) -> Decimal:
        return self.gross - self.commission - self.gst - self.operating_costs


def gross_sale_value(item: RevenueItem) -> Decimal:
    return D(item.units) * D(item.price_per_unit)


def total_gross_sales(revenues: Sequence[RevenueItem]) -> Decimal:
    """Total GST-inclusive sale value of the sell tranches."""
    return dsum(gross_sale_value(r) for r in revenues if r.strategy == Strategy.SELL)


def rental_growth_factor(annual_growth, months_since_completion: int) -> Decimal:
    """Rent indexation after whole years of operation."""
    years = max(months_since_completion, 0) // 12
    if years == 0 or D(annual_growth) == 0:
        return ONE
    return (ONE + pct(annual_growth)) ** years


def stabilised_net_annual_rent(item: RevenueItem, growth_factor: Decimal = ONE) -> Decimal:
    """Fully leased net annual rent of a hold tranche.

    units x weekly rent x 52, less vacancy, less operating costs on the
    collected rent.
    """
    if item.strategy != Strategy.HOLD:
        return ZERO
    potential = D(item.units) * D(item.weekly_rent) * WEEKS_PER_YEAR * growth_factor
    collected = potential * (ONE - pct(item.vacancy_pct))
    return collected * (ONE - pct(item.opex_rate))


def capitalised_value(item: RevenueItem, growth_factor: Decimal = ONE, cap_rate=None) -> Decimal:
    """Net annual rent over the capitalisation rate (zero for a zero cap rate)."""
    rate = pct(item.cap_rate if cap_rate is None or D(cap_rate) == 0 else cap_rate)
    return safe_ratio(stabilised_net_annual_rent(item, growth_factor), rate)


def estimate_gross_realisation(revenues: Sequence[RevenueItem]) -> Decimal:
    """Gross realisation estimate used by % of revenue costs and LVR limits.

    Sale tranches count at units x price; hold tranches at their capitalised
    stabilised value.
    """
    return dsum(
        gross_sale_value(r) if r.strategy == Strategy.SELL else capitalised_value(r)
        for r in revenues
    )


def recognise_revenue(
    revenues: Sequence[RevenueItem],
    month: int,
    completion_month: int,
    terminal_month: int,
    settings: ScenarioSettings,
) -> RevenueMonth:
    """Recognise one month's revenue.

    Sale tranches settle pro rata over ``settlement_span`` months from
    completion + offset, less commission and GST. GST is carried in the
    sale price; under the margin scheme it applies to the sale less the land
    cost apportioned by the month's share of total sales.

    Hold tranches collect rent from completion, ramped over the lease-up
    period, less vacancy and operating costs, indexed by rental growth. In
    the terminal month rent is replaced by an exit sale at net rent over the
    terminal cap rate, less commission. Rent and the exit carry no GST.

    Args:
        revenues: Revenue catalogue.
        month: Project month.
        completion_month: Construction completion month.
        terminal_month: Last simulated month.
        settings: Scenario settings (GST, margin scheme, hold strategy).

    Returns:
        RevenueMonth totals.
    """
    result = RevenueMonth()
    gst_rate = settings.gst_rate
    purchase_price = D(settings.acquisition.purchase_price)
    all_sales = total_gross_sales(revenues)
    hold = settings.hold_strategy

    for item in revenues:
        if item.strategy == Strategy.SELL:
            start = completion_month + item.offset_from_completion
            span = item.settlement_span
            if span <= 0 or not (start <= month < start + span):
                continue
            gross = gross_sale_value(item) / D(span)
            commission = gross * pct(item.commission_rate)
            gst = ZERO
            if item.is_taxable:
                cost_basis = purchase_price * safe_ratio(gross, all_sales)
                gst = gst_payable(gross, gst_rate, settings.use_margin_scheme, cost_basis)
            result.gross += gross
            result.commission += commission
            result.gst += gst
            continue

        elapsed = month - completion_month
        if elapsed < 0:
            continue
        growth = rental_growth_factor(hold.rental_growth if hold else 0, elapsed)

        if month == terminal_month:
            terminal_cap = hold.terminal_cap_rate if hold else None
            exit_value = capitalised_value(item, growth, terminal_cap)
            result.gross += exit_value
            result.exit_value += exit_value
            result.commission += exit_value * pct(item.commission_rate)
            continue

        if item.lease_up_months > 0:
            occupancy = dmin(ONE, D(elapsed + 1) / D(item.lease_up_months))
        else:
            occupancy = ONE
        potential = D(item.units) * D(item.weekly_rent) * WEEKS_PER_YEAR / TWELVE
        collected = potential * occupancy * (ONE - pct(item.vacancy_pct)) * growth
        result.gross += collected
        result.rental_income += collected
        result.operating_costs += collected * pct(item.opex_rate)

    return result

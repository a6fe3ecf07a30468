"""Summary metrics reduced from a simulated cashflow."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

import numpy as np
import numpy_financial as npf

from ..models.lookups import IRR_MAX_ITERATIONS, IRR_PRECISION, IRR_SEED, CostCategory
from ..models.scenario import Scenario, SiteContext
from .cashflow import MonthlyFlow
from .money import D, HUNDRED, TWELVE, ZERO, dsum, safe_ratio


@dataclass
class ProjectMetrics:
    """Investment metrics for one scenario run.

    Percentages are whole numbers (20 = 20 %).
    """

    # Realisation
    gross_realisation: Decimal
    net_realisation: Decimal
    gst_collected: Decimal
    gst_input_credits: Decimal
    net_gst_payable: Decimal

    # Costs
    total_development_cost: Decimal  # Costs + all finance charges
    total_finance_cost: Decimal
    construction_cost: Decimal

    # Returns
    total_inflow: Decimal
    profit: Decimal
    margin: Decimal  # Profit / TDC
    margin_before_interest: Decimal
    equity_irr: Decimal  # Annualised, 0 when it does not converge
    project_irr: Decimal
    npv: Decimal
    equity_multiple: Decimal

    # Capital
    peak_debt: Decimal
    peak_debt_month: int
    peak_debt_label: str
    peak_equity: Decimal
    margin_on_equity: Decimal
    ltc: Decimal
    lvr: Decimal

    # Ratios
    land_cost_per_sqm: Decimal = ZERO
    tdc_per_sqm: Decimal = ZERO
    revenue_per_nsa: Decimal = ZERO
    profit_per_unit: Decimal = ZERO
    construction_cost_per_gfa: Decimal = ZERO


def calculate_irr(flows: Sequence) -> Decimal:
    """Annualised IRR of a monthly cashflow series.

    Newton-Raphson on the monthly rate, seeded at 10 %, stopping when
    successive guesses differ by less than 1e-7. The monthly rate is
    annualised as rate x 12 x 100.

    Series whose true rate is far below the seed, such as long holds with
    a slow payback, can step below -100 % on the first iteration. Those
    return 0 even though a positive IRR exists, so a zero IRR next to a
    positive margin means the search failed, not that the return is nil.

    Args:
        flows: Monthly cashflows, month 0 first.

    Returns:
        IRR in percent; 0 when the series has no sign change or the
        iteration fails to converge.

    Example:
        >>> round(calculate_irr([-1000, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1120]), 2)
        Decimal('11.39')
    """
    values = np.array([float(f) for f in flows], dtype=float)
    if values.size < 2 or not (values > 0).any() or not (values < 0).any():
        return ZERO

    periods = np.arange(values.size, dtype=float)
    guess = IRR_SEED

    with np.errstate(all="ignore"):
        for _ in range(IRR_MAX_ITERATIONS):
            factor = (1.0 + guess) ** periods
            npv = np.sum(values / factor)
            derivative = np.sum(-periods * values / (factor * (1.0 + guess)))
            if derivative == 0 or not np.isfinite(derivative):
                return ZERO
            next_guess = guess - npv / derivative
            if not np.isfinite(next_guess) or next_guess <= -1.0:
                return ZERO
            if abs(next_guess - guess) < IRR_PRECISION:
                return D(next_guess) * TWELVE * HUNDRED
            guess = next_guess

    return ZERO


def calculate_npv(flows: Sequence, annual_discount_rate) -> Decimal:
    """NPV of monthly flows at annual rate / 12 per month, month 0 undiscounted."""
    values = [float(f) for f in flows]
    if not values:
        return ZERO
    monthly = float(annual_discount_rate) / 100 / 12
    return D(npf.npv(monthly, values))


def calculate_metrics(
    flows: Sequence[MonthlyFlow],
    scenario: Scenario,
    site: Optional[SiteContext] = None,
) -> ProjectMetrics:
    """Reduce a simulated cashflow to summary metrics.

    Total development cost is every cost line plus all finance charges;
    total inflow is net revenue plus interest earned on surplus cash.
    Ratio metrics are zero when their denominator is zero.

    Args:
        flows: Output of ``simulate``.
        scenario: The simulated scenario (discount rate, unit count, price).
        site: Site attributes for per-area ratios.

    Returns:
        ProjectMetrics.
    """
    site = site or SiteContext()
    settings = scenario.settings

    gross_realisation = dsum(f.gross_revenue for f in flows)
    net_realisation = dsum(f.net_revenue for f in flows)
    gst_collected = dsum(f.gst_on_sales for f in flows)
    gst_input_credits = dsum(f.gst_on_costs for f in flows)

    development_costs = dsum(f.development_costs for f in flows)
    finance_cost = dsum(f.finance_costs for f in flows)
    total_cost = development_costs + finance_cost
    construction_cost = dsum(f.cost_breakdown.get(CostCategory.CONSTRUCTION, ZERO) for f in flows)

    total_inflow = net_realisation + dsum(f.surplus_interest for f in flows)
    profit = total_inflow - total_cost
    margin = safe_ratio(profit, total_cost) * HUNDRED

    peak_debt = ZERO
    peak_month = 0
    for f in flows:
        if f.total_debt > peak_debt:
            peak_debt = f.total_debt
            peak_month = f.month
    peak_label = flows[peak_month].label if flows else ""

    equity_flows = [f.equity.net for f in flows]
    peak_equity = max((f.equity.balance for f in flows), default=ZERO)
    if peak_equity < 0:
        peak_equity = ZERO
    drawn = dsum(f.equity.draw for f in flows)
    repaid = dsum(f.equity.repayment for f in flows)

    project_flows = [
        f.net_revenue + f.surplus_interest + f.gst_credit_claimed
        - f.development_costs - f.gst_on_costs
        for f in flows
    ]

    land_area = D(site.land_area)
    nsa = D(site.net_saleable_area)
    gfa = D(site.gross_floor_area)

    return ProjectMetrics(
        gross_realisation=gross_realisation,
        net_realisation=net_realisation,
        gst_collected=gst_collected,
        gst_input_credits=gst_input_credits,
        net_gst_payable=gst_collected - gst_input_credits,
        total_development_cost=total_cost,
        total_finance_cost=finance_cost,
        construction_cost=construction_cost,
        total_inflow=total_inflow,
        profit=profit,
        margin=margin,
        margin_before_interest=safe_ratio(profit + finance_cost, development_costs) * HUNDRED,
        equity_irr=calculate_irr(equity_flows),
        project_irr=calculate_irr(project_flows),
        npv=calculate_npv(equity_flows, settings.discount_rate),
        equity_multiple=safe_ratio(repaid, drawn),
        peak_debt=peak_debt,
        peak_debt_month=peak_month,
        peak_debt_label=peak_label,
        peak_equity=peak_equity,
        margin_on_equity=safe_ratio(profit, peak_equity) * HUNDRED,
        ltc=safe_ratio(peak_debt, total_cost) * HUNDRED,
        lvr=safe_ratio(peak_debt, gross_realisation) * HUNDRED,
        land_cost_per_sqm=safe_ratio(D(settings.acquisition.purchase_price), land_area),
        tdc_per_sqm=safe_ratio(total_cost, land_area),
        revenue_per_nsa=safe_ratio(net_realisation, nsa),
        profit_per_unit=safe_ratio(profit, D(settings.total_units)),
        construction_cost_per_gfa=safe_ratio(construction_cost, gfa),
    )

"""Tests for the monthly cashflow simulation."""

from dataclasses import replace
from decimal import Decimal

from feasibility.calculations.cashflow import Phase, build_timeline, month_label, simulate
from feasibility.models.lookups import CostCategory, DebtLimitMethod, MilestoneLink
from feasibility.models.scenario import (
    AcquisitionTerms,
    CapitalTier,
    CostItem,
    merge_linked_scenario,
)
from tests.fixtures.test_inputs import get_sell_scenario


class TestTimeline:
    """Tests for key project months."""

    def test_sell_timeline(self, sell_scenario):
        timeline = build_timeline(sell_scenario)
        assert timeline.settlement_month == 2
        assert timeline.construction_start == 2
        assert timeline.completion_month == 14
        assert timeline.horizon == 20
        assert timeline.phase(0) == Phase.PREDEVELOPMENT
        assert timeline.phase(2) == Phase.CONSTRUCTION
        assert timeline.phase(14) == Phase.SALES

    def test_explicit_construction_length(self, sell_scenario):
        settings = replace(sell_scenario.settings, construction_months=9, construction_delay=1)
        timeline = build_timeline(replace(sell_scenario, settings=settings))
        assert timeline.construction_start == 3
        assert timeline.completion_month == 12

    def test_completion_linked_construction_ignored_for_completion(self, sell_scenario):
        retention = CostItem(
            "Defects Retention", CostCategory.CONSTRUCTION, 80_000, span=3,
            milestone_link=MilestoneLink.COMPLETION,
        )
        scenario = replace(sell_scenario, costs=sell_scenario.costs + (retention,))
        assert build_timeline(scenario).completion_month == 14

    def test_hold_horizon_runs_hold_period(self, sell_scenario, hold_scenario):
        merged = merge_linked_scenario(hold_scenario, sell_scenario)
        timeline = build_timeline(merged)
        assert timeline.completion_month == 14
        assert timeline.horizon == 14 + 24
        assert timeline.phase(timeline.horizon) == Phase.REVERSION
        assert timeline.phase(20) == Phase.OPERATIONS

    def test_month_labels(self, sell_scenario):
        assert month_label(sell_scenario.settings.start_date, 0) == "Jan 26"
        assert month_label(sell_scenario.settings.start_date, 14) == "Mar 27"


class TestSimulate:
    """Tests for the month-by-month engine."""

    def test_one_record_per_month(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        assert [f.month for f in flows] == list(range(21))
        assert flows[0].label == "Jan 26"

    def test_linear_construction_line(self, construction_only_scenario):
        """1.2M linear over 12 months contributes exactly 100k in months 0-11."""
        flows = simulate(construction_only_scenario)
        for month in range(12):
            assert flows[month].cost_breakdown[CostCategory.CONSTRUCTION] == Decimal("100000")
        assert CostCategory.CONSTRUCTION not in flows[12].cost_breakdown

    def test_gst_credit_lags_one_month(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        assert flows[0].gst_credit_claimed == 0
        assert flows[0].gst_on_costs > 0
        for previous, current in zip(flows, flows[1:]):
            assert current.gst_credit_claimed == previous.gst_on_costs

    def test_cumulative_cashflow_accumulates(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        running = Decimal(0)
        for f in flows:
            running += f.net_cashflow
            assert f.cumulative_cashflow == running

    def test_equity_only_funding(self, equity_only_scenario, site):
        """With no debt limits every funding need is met by equity."""
        flows = simulate(equity_only_scenario, site)
        for f in flows:
            assert f.senior.balance == 0
            assert f.mezzanine.balance == 0
            if f.net_cashflow < 0:
                assert f.equity.draw == -f.net_cashflow

    def test_debt_repaid_from_sales(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        assert max(f.senior.balance for f in flows) > 0
        assert flows[-1].senior.balance == 0
        assert flows[-1].cash_balance == 0

    def test_no_fees_or_draws_after_senior_repaid(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        repaid = next(
            f.month for f in flows
            if f.month >= 14 and f.senior.repayment > 0 and f.senior.balance == 0
        )
        for f in flows[repaid + 1:]:
            assert f.senior.line_fee == 0
            assert f.senior.draw == 0
            assert f.senior.balance == 0

    def test_settlement_drawn_on_senior(self, site):
        """Settlement obligations go to senior debt ahead of its activation month."""
        senior = CapitalTier(interest_rate=8, limit=100_000, activation_month=6)
        scenario = get_sell_scenario(senior=senior)
        flows = simulate(scenario, site)

        settlement = flows[2]
        assert settlement.senior.draw >= Decimal("951570")
        assert settlement.senior.balance > Decimal("100000")
        # Interest accrues on the opening balance from the next month
        assert flows[3].senior.interest == settlement.senior.balance * Decimal("0.08") / 12

    def test_establishment_fee_in_activation_month(self, sell_scenario, site):
        flows = simulate(sell_scenario, site)
        fees = [f.senior.establishment_fee for f in flows]
        assert fees[0] > 0
        assert all(fee == 0 for fee in fees[1:])

    def test_capitalised_interest_grows_balance(self, site):
        senior = CapitalTier(interest_rate=12, limit_method=DebtLimitMethod.LTC, limit=80)
        flows = simulate(get_sell_scenario(senior=senior), site)
        month = flows[6]
        assert month.senior.interest > 0
        assert month.senior.balance >= flows[5].senior.balance + month.senior.interest

    def test_serviced_interest_paid_in_cash(self, site):
        senior = CapitalTier(
            interest_rate=12,
            limit_method=DebtLimitMethod.LTC,
            limit=80,
            is_interest_capitalised=False,
        )
        flows = simulate(get_sell_scenario(senior=senior), site)
        month = flows[6]
        assert month.senior.interest > 0
        assert month.total_outflow >= month.development_costs + month.gst_on_costs + month.senior.interest

    def test_inputs_not_modified(self, sell_scenario, site):
        before = replace(sell_scenario)
        simulate(sell_scenario, site)
        assert sell_scenario == before

    def test_repeatable(self, sell_scenario, site):
        assert simulate(sell_scenario, site) == simulate(sell_scenario, site)

    def test_empty_scenario(self, empty_scenario):
        flows = simulate(empty_scenario)
        assert len(flows) == 25
        assert all(f.net_cashflow == 0 for f in flows)


class TestHoldSimulation:
    """Tests for build-to-rent scenarios linked to a sell scenario."""

    def test_inherits_linked_costs_and_acquisition(self, sell_scenario, hold_scenario, site):
        flows = simulate(hold_scenario, site, linked_scenario=sell_scenario)
        sell_flows = simulate(sell_scenario, site)

        assert flows[2].cost_breakdown[CostCategory.LAND] == sell_flows[2].cost_breakdown[CostCategory.LAND]
        assert len(flows) == 39

    def test_refinance_and_exit(self, sell_scenario, hold_scenario, site):
        flows = simulate(hold_scenario, site, linked_scenario=sell_scenario)

        refinance = flows[20]
        assert refinance.refinance_inflow > 0
        assert refinance.investment.balance == refinance.refinance_inflow
        assert flows[21].investment.interest > 0

        terminal = flows[-1]
        assert terminal.investment.balance == 0
        assert terminal.senior.balance == 0
        assert terminal.gross_revenue > refinance.asset_value

    def test_rent_collected_after_completion(self, sell_scenario, hold_scenario, site):
        flows = simulate(hold_scenario, site, linked_scenario=sell_scenario)
        assert flows[13].gross_revenue == 0
        assert flows[14].gross_revenue > 0
        assert flows[18].gross_revenue > flows[14].gross_revenue

    def test_depreciation_after_completion(self, sell_scenario, hold_scenario, site):
        flows = simulate(hold_scenario, site, linked_scenario=sell_scenario)
        assert flows[14].depreciation == 0
        assert flows[15].depreciation > 0

    def test_unlinked_hold_uses_own_settings(self, hold_scenario, site):
        settings = replace(
            hold_scenario.settings,
            acquisition=AcquisitionTerms(purchase_price=500_000),
            construction_months=6,
        )
        flows = simulate(replace(hold_scenario, settings=settings), site)
        assert len(flows) == 6 + 24 + 1

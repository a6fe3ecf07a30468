"""Tests for facility limits, rates, fees and the funding waterfall."""

from decimal import Decimal

from feasibility.calculations.debt_stack import (
    FundingWaterfall,
    TierPosition,
    establishment_fee,
    line_fee,
    monthly_interest,
    rate_at,
    resolve_limit,
    scheduled_equity,
)
from feasibility.models.lookups import DebtLimitMethod, EquityMode, FeeBase, InterestRateMode
from feasibility.models.scenario import CapitalTier, DatedAmount, DatedRate, EquityStructure


class TestLimitsAndRates:
    """Tests for facility sizing and rate schedules."""

    def test_limit_methods(self):
        cost, value = Decimal("5000000"), Decimal("8000000")
        assert resolve_limit(CapitalTier(limit=2_000_000), cost, value) == Decimal("2000000")
        assert resolve_limit(CapitalTier(limit_method=DebtLimitMethod.LTC, limit=65), cost, value) == Decimal("3250000")
        assert resolve_limit(CapitalTier(limit_method=DebtLimitMethod.LVR, limit=60), cost, value) == Decimal("4800000")

    def test_no_limit_means_absent(self):
        assert resolve_limit(CapitalTier(), Decimal("5000000"), Decimal("8000000")) == 0

    def test_variable_schedule(self):
        tier = CapitalTier(
            interest_rate=8,
            rate_mode=InterestRateMode.VARIABLE,
            variable_rates=(DatedRate(12, "7.5"), DatedRate(6, 9)),
        )
        assert rate_at(tier, 5) == Decimal("8")
        assert rate_at(tier, 6) == Decimal("9")
        assert rate_at(tier, 11) == Decimal("9")
        assert rate_at(tier, 30) == Decimal("7.5")

    def test_single_mode_ignores_schedule(self):
        tier = CapitalTier(interest_rate=8, variable_rates=(DatedRate(0, 20),))
        assert rate_at(tier, 10) == Decimal("8")

    def test_nominal_monthly_interest(self):
        assert monthly_interest(Decimal("1200000"), Decimal("6")) == Decimal("6000")
        assert monthly_interest(Decimal("-5"), Decimal("6")) == 0


class TestFees:
    """Tests for establishment and line fees."""

    def test_establishment_fee_bases(self):
        assert establishment_fee(CapitalTier(establishment_fee=25_000), Decimal("1000000")) == Decimal("25000")
        percent = CapitalTier(establishment_fee_base=FeeBase.PERCENT, establishment_fee="1.5")
        assert establishment_fee(percent, Decimal("2000000")) == Decimal("30000")

    def test_absent_tier_pays_no_fees(self):
        tier = CapitalTier(establishment_fee=25_000, line_fee_pct=1)
        assert establishment_fee(tier, Decimal(0)) == 0
        assert line_fee(tier, Decimal(0), 5) == 0

    def test_line_fee_from_activation(self):
        tier = CapitalTier(line_fee_pct="0.6", activation_month=3)
        assert line_fee(tier, Decimal("1000000"), 2) == 0
        assert line_fee(tier, Decimal("1000000"), 3) == Decimal("500")


class TestEquity:
    """Tests for committed equity schedules."""

    def test_sum_of_money_at_month_zero(self):
        equity = EquityStructure(initial_contribution=500_000)
        assert scheduled_equity(equity, 0, 1_000_000) == Decimal("500000")
        assert scheduled_equity(equity, 1, 1_000_000) == 0

    def test_instalments(self):
        equity = EquityStructure(
            mode=EquityMode.INSTALMENTS,
            instalments=(DatedAmount(0, 100_000), DatedAmount(4, 250_000), DatedAmount(4, 50_000)),
        )
        assert scheduled_equity(equity, 4, 0) == Decimal("300000")

    def test_percent_of_land(self):
        equity = EquityStructure(mode=EquityMode.PCT_LAND, percentage_input=35)
        assert scheduled_equity(equity, 0, 1_000_000) == Decimal("350000")


class TestFundingWaterfall:
    """Tests for deficit funding and surplus repayment order."""

    def _waterfall(self, senior_limit=0, mezzanine_limit=0, senior_activation=0, mezzanine_activation=0):
        return FundingWaterfall(
            TierPosition(Decimal(senior_limit), senior_activation),
            TierPosition(Decimal(mezzanine_limit), mezzanine_activation),
        )

    def test_no_debt_means_all_equity(self):
        waterfall = self._waterfall()
        moves = waterfall.run(0, Decimal("-750000"))
        assert moves.equity_draw == Decimal("750000")
        assert waterfall.senior.balance == 0
        assert waterfall.mezzanine.balance == 0

    def test_cash_then_mezzanine_then_senior_then_equity(self):
        waterfall = self._waterfall(senior_limit=300, mezzanine_limit=200)
        waterfall.cash = Decimal("100")
        moves = waterfall.run(0, Decimal("-1000"))

        assert moves.cash_used == Decimal("100")
        assert moves.mezzanine_draw == Decimal("200")
        assert moves.senior_draw == Decimal("300")
        assert moves.equity_draw == Decimal("400")

    def test_inactive_tier_is_skipped(self):
        waterfall = self._waterfall(senior_limit=1000, senior_activation=6)
        moves = waterfall.run(2, Decimal("-500"))
        assert moves.senior_draw == 0
        assert moves.equity_draw == Decimal("500")

    def test_deposit_funded_by_equity_not_debt(self):
        waterfall = self._waterfall(senior_limit=1_000_000)
        moves = waterfall.run(0, Decimal("-150000"), deposit_due=Decimal("100000"))
        assert moves.equity_draw == Decimal("100000")
        assert moves.senior_draw == Decimal("50000")

    def test_settlement_forced_onto_senior_beyond_limit(self):
        """Settlement is drawn on senior even when it exceeds the limit before activation."""
        waterfall = self._waterfall(senior_limit=100_000, senior_activation=6)
        moves = waterfall.run(3, Decimal("-951570"), settlement_due=Decimal("951570"))

        assert moves.senior_draw == Decimal("951570")
        assert moves.equity_draw == 0
        assert waterfall.senior.balance > waterfall.senior.limit
        assert waterfall.senior.headroom == 0

    def test_settlement_not_forced_onto_absent_senior(self):
        waterfall = self._waterfall(senior_limit=0)
        moves = waterfall.run(3, Decimal("-900000"), settlement_due=Decimal("900000"))
        assert moves.senior_draw == 0
        assert moves.equity_draw == Decimal("900000")

    def test_surplus_repays_senior_then_mezzanine_then_equity(self):
        waterfall = self._waterfall(senior_limit=1000, mezzanine_limit=1000)
        waterfall.senior.balance = Decimal("300")
        waterfall.mezzanine.balance = Decimal("200")
        moves = waterfall.run(10, Decimal("1000"))

        assert moves.senior_repayment == Decimal("300")
        assert moves.mezzanine_repayment == Decimal("200")
        assert moves.equity_repayment == Decimal("500")

    def test_investment_loan_repaid_only_at_terminal(self):
        waterfall = self._waterfall()
        waterfall.investment.balance = Decimal("400")

        moves = waterfall.run(10, Decimal("100"))
        assert moves.investment_repayment == 0

        moves = waterfall.run(11, Decimal("1000"), is_terminal=True)
        assert moves.investment_repayment == Decimal("400")
        assert moves.equity_repayment == Decimal("600")

    def test_terminal_month_returns_cash_to_equity(self):
        waterfall = self._waterfall()
        moves = waterfall.run(0, Decimal(0), equity_injection=Decimal("250"))
        assert waterfall.cash == Decimal("250")

        moves = waterfall.run(1, Decimal(0), is_terminal=True)
        assert moves.equity_repayment == Decimal("250")
        assert waterfall.cash == 0
        assert waterfall.equity_balance == 0

    def test_repaid_facility_closed_after_completion(self):
        waterfall = self._waterfall(senior_limit=1000)
        waterfall.senior.balance = Decimal("300")
        moves = waterfall.run(15, Decimal("500"), retire_repaid=True)
        assert moves.senior_repayment == Decimal("300")
        assert waterfall.senior.retired

        moves = waterfall.run(16, Decimal("-50"), retire_repaid=True)
        assert moves.senior_draw == 0
        assert moves.equity_draw == Decimal("50")
        assert waterfall.senior.balance == 0

    def test_partly_repaid_facility_stays_open(self):
        waterfall = self._waterfall(senior_limit=1000)
        waterfall.senior.balance = Decimal("300")
        waterfall.run(15, Decimal("100"), retire_repaid=True)
        assert not waterfall.senior.retired

        moves = waterfall.run(16, Decimal("-50"), retire_repaid=True)
        assert moves.senior_draw == Decimal("50")

    def test_repayment_during_construction_keeps_facility(self):
        waterfall = self._waterfall(senior_limit=1000)
        waterfall.senior.balance = Decimal("300")
        waterfall.run(5, Decimal("300"))
        assert not waterfall.senior.retired
        assert waterfall.senior.is_active(6)

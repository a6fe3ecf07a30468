"""Capital stack: facility limits, rate schedules, fees and the funding waterfall."""

from bisect import bisect_right
from dataclasses import dataclass
from decimal import Decimal

from ..models.lookups import DebtLimitMethod, EquityMode, FeeBase, InterestRateMode
from ..models.scenario import CapitalStack, CapitalTier, EquityStructure
from .money import D, TWELVE, ZERO, dmax, dmin, pct


def resolve_limit(tier: CapitalTier, cost_basis: Decimal, gross_realisation: Decimal) -> Decimal:
    """Facility limit in currency.

    Args:
        tier: Debt tier.
        cost_basis: Total cost basis for loan-to-cost limits (budgeted costs
            excluding finance, plus acquisition costs).
        gross_realisation: Estimated gross realisation for loan-to-value limits.

    Returns:
        The limit; zero when no limit is configured.
    """
    if tier.limit is None:
        return ZERO
    if tier.limit_method == DebtLimitMethod.LTC:
        return D(cost_basis) * pct(tier.limit)
    if tier.limit_method == DebtLimitMethod.LVR:
        return D(gross_realisation) * pct(tier.limit)
    return D(tier.limit)


def rate_at(tier: CapitalTier, month: int) -> Decimal:
    """Annual interest rate (%) in force in ``month``.

    A variable schedule applies the latest dated rate whose effective month
    is at or before ``month``; before the first dated rate, or with no
    schedule, the tier's single rate applies.

    Example:
        >>> tier = CapitalTier(interest_rate=8, rate_mode=InterestRateMode.VARIABLE,
        ...                    variable_rates=(DatedRate(6, 9), DatedRate(12, 7.5)))
        >>> rate_at(tier, 5), rate_at(tier, 6), rate_at(tier, 30)
        (Decimal('8'), Decimal('9'), Decimal('7.5'))
    """
    if tier.rate_mode != InterestRateMode.VARIABLE or not tier.variable_rates:
        return D(tier.interest_rate)
    schedule = sorted(tier.variable_rates, key=lambda r: r.month)
    months = [r.month for r in schedule]
    index = bisect_right(months, month) - 1
    if index < 0:
        return D(tier.interest_rate)
    return D(schedule[index].rate)


def monthly_interest(balance: Decimal, annual_rate: Decimal) -> Decimal:
    """Nominal monthly interest: balance x annual% / 12."""
    if balance <= 0:
        return ZERO
    return balance * pct(annual_rate) / TWELVE


def establishment_fee(tier: CapitalTier, limit: Decimal) -> Decimal:
    """One-off facility establishment fee (zero for an absent tier)."""
    if limit <= 0:
        return ZERO
    if tier.establishment_fee_base == FeeBase.PERCENT:
        return limit * pct(tier.establishment_fee)
    return D(tier.establishment_fee)


def line_fee(tier: CapitalTier, limit: Decimal, month: int) -> Decimal:
    """Monthly line fee on the facility limit once the tier is active."""
    if limit <= 0 or month < tier.activation_month:
        return ZERO
    return limit * pct(tier.line_fee_pct) / TWELVE


def scheduled_equity(equity: EquityStructure, month: int, purchase_price) -> Decimal:
    """Committed equity paid into the project account in ``month``."""
    if equity.mode == EquityMode.INSTALMENTS:
        return sum((D(i.amount) for i in equity.instalments if i.month == month), ZERO)
    if month != 0:
        return ZERO
    if equity.mode == EquityMode.PCT_LAND:
        return D(purchase_price) * pct(equity.percentage_input)
    return D(equity.initial_contribution)


@dataclass
class TierPosition:
    """Running balance of one debt tier during a simulation."""

    limit: Decimal
    activation_month: int = 0
    balance: Decimal = ZERO
    retired: bool = False  # Repaid and closed after completion

    @property
    def is_present(self) -> bool:
        return self.limit > 0

    @property
    def is_open(self) -> bool:
        return self.is_present and not self.retired

    def is_active(self, month: int) -> bool:
        return self.is_open and month >= self.activation_month

    @property
    def headroom(self) -> Decimal:
        return dmax(ZERO, self.limit - self.balance)


@dataclass
class WaterfallMovements:
    """Draws and repayments resolved in one month."""

    senior_draw: Decimal = ZERO
    mezzanine_draw: Decimal = ZERO
    equity_draw: Decimal = ZERO
    cash_used: Decimal = ZERO
    senior_repayment: Decimal = ZERO
    mezzanine_repayment: Decimal = ZERO
    investment_repayment: Decimal = ZERO
    equity_repayment: Decimal = ZERO


class FundingWaterfall:
    """Funding and repayment state for a single simulation run.

    Deficits are funded in priority order:

    1. Land deposit: cash at bank, then equity
    2. Land settlement: forced senior draw (beyond the limit and before
       activation if need be) when a senior facility exists
    3. Cash at bank
    4. Mezzanine, up to its limit, once active
    5. Senior, up to its limit, once active
    6. Equity, uncapped

    Surpluses repay senior, then mezzanine, then (in the terminal month
    only) the investment loan; the remainder is distributed to equity.
    Once the project has completed, a facility left at zero by a surplus is
    closed, so later shortfalls fall to cash and equity.

    Example:
        >>> waterfall = FundingWaterfall(TierPosition(ZERO), TierPosition(ZERO))
        >>> moves = waterfall.run(month=0, net=Decimal("-500"))
        >>> moves.equity_draw
        Decimal('500')
    """

    def __init__(self, senior: TierPosition, mezzanine: TierPosition):
        self.senior = senior
        self.mezzanine = mezzanine
        self.investment = TierPosition(limit=ZERO)
        self.cash = ZERO
        self.equity_drawn = ZERO
        self.equity_repaid = ZERO

    @classmethod
    def for_stack(cls, stack: CapitalStack, senior_limit: Decimal, mezzanine_limit: Decimal):
        return cls(
            TierPosition(senior_limit, stack.senior.activation_month),
            TierPosition(mezzanine_limit, stack.mezzanine.activation_month),
        )

    @property
    def equity_balance(self) -> Decimal:
        return self.equity_drawn - self.equity_repaid

    def inject_equity(self, amount: Decimal, moves: WaterfallMovements):
        """Committed equity paid into the cash account ahead of need."""
        if amount <= 0:
            return
        moves.equity_draw += amount
        self.equity_drawn += amount
        self.cash += amount

    def _draw_equity(self, amount: Decimal, moves: WaterfallMovements):
        moves.equity_draw += amount
        self.equity_drawn += amount

    def _use_cash(self, needed: Decimal, moves: WaterfallMovements) -> Decimal:
        used = dmin(needed, dmax(ZERO, self.cash))
        self.cash -= used
        moves.cash_used += used
        return needed - used

    def _draw_tier(self, tier: TierPosition, needed: Decimal, month: int) -> Decimal:
        if needed <= 0 or not tier.is_active(month):
            return ZERO
        drawn = dmin(needed, tier.headroom)
        tier.balance += drawn
        return drawn

    def fund_deficit(
        self,
        deficit: Decimal,
        month: int,
        moves: WaterfallMovements,
        deposit_due: Decimal = ZERO,
        settlement_due: Decimal = ZERO,
    ):
        remaining = deficit

        deposit = dmin(remaining, deposit_due)
        if deposit > 0:
            shortfall = self._use_cash(deposit, moves)
            self._draw_equity(shortfall, moves)
            remaining -= deposit

        settlement = dmin(remaining, settlement_due)
        if settlement > 0 and self.senior.is_open:
            self.senior.balance += settlement
            moves.senior_draw += settlement
            remaining -= settlement

        remaining = self._use_cash(remaining, moves)

        drawn = self._draw_tier(self.mezzanine, remaining, month)
        moves.mezzanine_draw += drawn
        remaining -= drawn

        drawn = self._draw_tier(self.senior, remaining, month)
        moves.senior_draw += drawn
        remaining -= drawn

        if remaining > 0:
            self._draw_equity(remaining, moves)

    def apply_surplus(
        self,
        surplus: Decimal,
        is_terminal: bool,
        moves: WaterfallMovements,
        retire_repaid: bool = False,
    ):
        remaining = surplus

        repaid = dmin(remaining, self.senior.balance)
        self.senior.balance -= repaid
        moves.senior_repayment += repaid
        remaining -= repaid

        repaid = dmin(remaining, self.mezzanine.balance)
        self.mezzanine.balance -= repaid
        moves.mezzanine_repayment += repaid
        remaining -= repaid

        if retire_repaid:
            for tier in (self.senior, self.mezzanine):
                if tier.is_present and tier.balance <= 0:
                    tier.retired = True

        if is_terminal:
            repaid = dmin(remaining, self.investment.balance)
            self.investment.balance -= repaid
            moves.investment_repayment += repaid
            remaining -= repaid

        moves.equity_repayment += remaining
        self.equity_repaid += remaining

    def run(
        self,
        month: int,
        net: Decimal,
        deposit_due: Decimal = ZERO,
        settlement_due: Decimal = ZERO,
        equity_injection: Decimal = ZERO,
        is_terminal: bool = False,
        retire_repaid: bool = False,
    ) -> WaterfallMovements:
        """Resolve one month's net cashflow against the capital stack.

        Args:
            month: Project month.
            net: Net cashflow for the month (negative = funding need).
            deposit_due: Land deposit paid this month.
            settlement_due: Settlement obligations paid this month (price
                balance, duty, agent fee).
            equity_injection: Committed equity scheduled for this month.
            is_terminal: Final month; investment loan is repaid and cash at
                bank is returned to equity.
            retire_repaid: Close any development facility whose balance a
                surplus leaves at zero (set from completion onwards). A
                closed facility charges no line fee and is never drawn again.

        Returns:
            The month's draws and repayments.
        """
        moves = WaterfallMovements()
        self.inject_equity(equity_injection, moves)

        if net < 0:
            self.fund_deficit(-net, month, moves, deposit_due, settlement_due)
        else:
            self.apply_surplus(net, is_terminal, moves, retire_repaid)

        if is_terminal and self.cash > 0:
            moves.equity_repayment += self.cash
            self.equity_repaid += self.cash
            self.cash = ZERO

        return moves

"""Scenario factories shared across the test suite."""

from datetime import date

from feasibility.models.lookups import (
    CostCategory,
    DebtLimitMethod,
    DistributionMethod,
    FeeBase,
    GstTreatment,
    InputType,
    Jurisdiction,
    Strategy,
)
from feasibility.models.scenario import (
    AcquisitionTerms,
    CapitalStack,
    CapitalTier,
    CostItem,
    HoldStrategy,
    RevenueItem,
    Scenario,
    ScenarioSettings,
    SiteContext,
)


def get_site() -> SiteContext:
    """A 2,000 m2 inner-suburban Victorian site."""
    return SiteContext(
        land_area=2_000,
        zoning="GRZ1",
        assessed_land_value=900_000,
        council_rate_pct="0.25",
        gross_floor_area=3_200,
        net_saleable_area=2_600,
    )


def get_empty_scenario() -> Scenario:
    """No land, no costs, no revenue."""
    return Scenario(name="Empty")


def get_construction_only_scenario() -> Scenario:
    """One 1.2M construction line spread linearly over 12 months."""
    return Scenario(
        name="Construction Only",
        settings=ScenarioSettings(duration_months=12),
        costs=(
            CostItem(
                description="Build Contract",
                category=CostCategory.CONSTRUCTION,
                amount=1_200_000,
                span=12,
                method=DistributionMethod.LINEAR,
            ),
        ),
    )


def get_sell_scenario(
    purchase_price=1_000_000,
    senior: CapitalTier = None,
    mezzanine: CapitalTier = None,
) -> Scenario:
    """Ten townhouses: buy, build over 12 months, sell over 3 months.

    Purchase 1,000,000 in Victoria (duty 51,570), settlement month 2,
    construction 4,000,000 on an S-curve from month 2, sales of 10 x 1,100,000
    from completion (month 14) with 2 % commission.
    """
    if senior is None:
        senior = CapitalTier(
            interest_rate="7.5",
            limit_method=DebtLimitMethod.LTC,
            limit=65,
            establishment_fee_base=FeeBase.PERCENT,
            establishment_fee=1,
            line_fee_pct="0.5",
        )
    if mezzanine is None:
        mezzanine = CapitalTier()

    return Scenario(
        name="Townhouses - Sell",
        strategy=Strategy.SELL,
        settings=ScenarioSettings(
            start_date=date(2026, 1, 1),
            duration_months=20,
            acquisition=AcquisitionTerms(
                purchase_price=purchase_price,
                deposit_pct=10,
                settlement_month=2,
                jurisdiction=Jurisdiction.VIC,
                legal_fee=15_000,
            ),
            capital_stack=CapitalStack(senior=senior, mezzanine=mezzanine),
            total_units=10,
            discount_rate=10,
        ),
        costs=(
            CostItem(
                description="Build Contract",
                category=CostCategory.CONSTRUCTION,
                amount=4_000_000,
                span=12,
                method=DistributionMethod.S_CURVE,
            ),
            CostItem(
                description="Architect",
                category=CostCategory.CONSULTANTS,
                amount=5,
                input_type=InputType.PCT_CONSTRUCTION,
                span=6,
            ),
            CostItem(
                description="Council Contributions",
                category=CostCategory.STATUTORY,
                amount=12_000,
                input_type=InputType.RATE_PER_UNIT,
                start_offset=3,
                gst_treatment=GstTreatment.GST_FREE,
            ),
        ),
        revenues=(
            RevenueItem(
                description="Townhouses",
                units=10,
                price_per_unit=1_100_000,
                commission_rate=2,
                settlement_span=3,
            ),
        ),
    )


def get_equity_only_scenario() -> Scenario:
    """The sell scenario with no debt facilities at all."""
    return get_sell_scenario(senior=CapitalTier(), mezzanine=CapitalTier())


def get_hold_scenario() -> Scenario:
    """Build-to-rent variant linked to the sell scenario.

    Inherits acquisition, programme and costs from "Townhouses - Sell";
    refinances six months after completion and holds for two years.
    """
    return Scenario(
        name="Townhouses - Hold",
        strategy=Strategy.HOLD,
        linked_scenario_name="Townhouses - Sell",
        settings=ScenarioSettings(
            capital_stack=CapitalStack(
                senior=CapitalTier(
                    interest_rate="7.5",
                    limit_method=DebtLimitMethod.LTC,
                    limit=65,
                ),
            ),
            total_units=10,
            hold_strategy=HoldStrategy(
                refinance_month=20,
                refinance_lvr=60,
                investment_rate="6.25",
                hold_period_years=2,
                annual_capital_growth=3,
                terminal_cap_rate="4.5",
                rental_growth=3,
            ),
        ),
        revenues=(
            RevenueItem(
                description="Townhouse Rentals",
                strategy=Strategy.HOLD,
                units=10,
                weekly_rent=850,
                opex_rate=25,
                vacancy_pct=3,
                lease_up_months=4,
                cap_rate="4.75",
                commission_rate="1.5",
            ),
        ),
    )

#!/usr/bin/env python3
"""Example script to run a townhouse feasibility: sell vs build-to-rent."""

import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from feasibility.models.lookups import (
    CalculationLink,
    CostCategory,
    DebtLimitMethod,
    DistributionMethod,
    FeeBase,
    GstTreatment,
    InputType,
    Jurisdiction,
    MilestoneLink,
    Strategy,
)
from feasibility.models.scenario import (
    AcquisitionTerms,
    CapitalStack,
    CapitalTier,
    CostItem,
    EquityStructure,
    HoldStrategy,
    RevenueItem,
    Scenario,
    ScenarioSettings,
    SiteContext,
    ensure_valid_scenario,
)
from feasibility.calculations.cashflow import prepare_schedule
from feasibility.calculations.costs import generate_itemised_cashflow
from feasibility.calculations.solver import SolveTarget, solve_land_value
from feasibility.calculations.sensitivity import SensitivityAxis, generate_sensitivity_matrix
from feasibility.export import flows_to_dataframe, generate_audit_excel, sensitivity_to_dataframe
from feasibility.scenarios import compare_scenarios, format_comparison_table


def build_site() -> SiteContext:
    return SiteContext(
        land_area=2_400,
        zoning="GRZ1",
        assessed_land_value=1_650_000,
        council_rate_pct="0.22",
        gross_floor_area=3_800,
        net_saleable_area=3_100,
    )


def build_sell_scenario() -> Scenario:
    """Fourteen townhouses bought, built and sold off the plan."""
    return Scenario(
        name="Townhouses - Sell",
        strategy=Strategy.SELL,
        settings=ScenarioSettings(
            start_date=date(2026, 1, 1),
            duration_months=26,
            acquisition=AcquisitionTerms(
                purchase_price=2_400_000,
                deposit_pct=10,
                settlement_month=3,
                jurisdiction=Jurisdiction.VIC,
                buyers_agent_fee_pct="1.5",
                legal_fee=18_000,
            ),
            capital_stack=CapitalStack(
                senior=CapitalTier(
                    interest_rate="7.25",
                    limit_method=DebtLimitMethod.LTC,
                    limit=65,
                    establishment_fee_base=FeeBase.PERCENT,
                    establishment_fee=1,
                    line_fee_pct="0.5",
                ),
                mezzanine=CapitalTier(
                    interest_rate=14,
                    limit=600_000,
                    establishment_fee=12_000,
                    activation_month=6,
                ),
                equity=EquityStructure(initial_contribution=750_000),
                surplus_interest_rate="3.5",
            ),
            construction_delay=2,
            total_units=14,
            discount_rate=12,
        ),
        costs=(
            CostItem("Build Contract", CostCategory.CONSTRUCTION, 6_300_000, span=16,
                     method=DistributionMethod.S_CURVE, escalation_rate=4),
            CostItem("Construction Contingency", CostCategory.CONSTRUCTION, 315_000, span=16),
            CostItem("Design & Engineering", CostCategory.CONSULTANTS, 6,
                     input_type=InputType.PCT_CONSTRUCTION, span=8),
            CostItem("Development Contributions", CostCategory.STATUTORY, 9_500,
                     input_type=InputType.RATE_PER_UNIT, gst_treatment=GstTreatment.GST_FREE,
                     milestone_link=MilestoneLink.CONSTRUCTION_START),
            CostItem("Land Tax", CostCategory.STATUTORY, 0, span=24,
                     calculation_link=CalculationLink.AUTO_LAND_TAX,
                     gst_treatment=GstTreatment.GST_FREE),
            CostItem("Council Rates", CostCategory.STATUTORY, 0, span=24,
                     calculation_link=CalculationLink.AUTO_COUNCIL_RATES,
                     gst_treatment=GstTreatment.GST_FREE),
            CostItem("Marketing", CostCategory.SELLING, 1,
                     input_type=InputType.PCT_REVENUE, start_offset=8, span=10),
        ),
        revenues=(
            RevenueItem("Three-bed Townhouses", units=10, price_per_unit=1_250_000,
                        commission_rate=2, settlement_span=3),
            RevenueItem("Four-bed Townhouses", units=4, price_per_unit=1_480_000,
                        commission_rate=2, offset_from_completion=1, settlement_span=2),
        ),
    )


def build_hold_scenario() -> Scenario:
    """The same townhouses held as build-to-rent and sold after five years."""
    return Scenario(
        name="Townhouses - Hold",
        strategy=Strategy.HOLD,
        linked_scenario_name="Townhouses - Sell",
        settings=ScenarioSettings(
            capital_stack=CapitalStack(
                senior=CapitalTier(interest_rate="7.25", limit_method=DebtLimitMethod.LTC, limit=65),
                equity=EquityStructure(initial_contribution=750_000),
            ),
            total_units=14,
            discount_rate=9,
            hold_strategy=HoldStrategy(
                refinance_month=28,
                refinance_lvr=60,
                investment_rate="6.1",
                hold_period_years=5,
                annual_capital_growth=4,
                terminal_cap_rate="4.75",
                rental_growth=3,
            ),
        ),
        costs=(
            CostItem("Furniture Packages", CostCategory.MISCELLANEOUS, 14 * 9_000,
                     milestone_link=MilestoneLink.COMPLETION),
        ),
        revenues=(
            RevenueItem("Townhouse Rentals", strategy=Strategy.HOLD, units=14, weekly_rent=900,
                        opex_rate=22, vacancy_pct=3, lease_up_months=5, cap_rate=5,
                        commission_rate="1.5"),
        ),
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    site = build_site()
    sell = ensure_valid_scenario(build_sell_scenario())
    hold = ensure_valid_scenario(build_hold_scenario())

    print("=" * 70)
    print("TOWNHOUSE FEASIBILITY")
    print("=" * 70)

    runs = compare_scenarios([sell, hold], site)
    print("\n" + format_comparison_table(runs))

    sell_run = runs[0]
    df = flows_to_dataframe(sell_run.flows)
    print("\nSell scenario - quarterly net cashflow")
    print(df["net_cashflow"].groupby(df.index // 3).sum().round(0).to_string())

    print("\n" + "=" * 70)
    print("RESIDUAL LAND VALUE (20% margin)")
    print("=" * 70)
    result = solve_land_value(20, SolveTarget.MARGIN, sell, site)
    print(f"Land value:      ${result.land_value:,.0f}")
    print(f"Stamp duty:      ${result.stamp_duty:,.2f}")
    print(f"Achieved margin: {result.achieved_metric:.2f}% "
          f"({'converged' if result.converged else 'not converged'} in {result.iterations} iterations)")

    print("\n" + "=" * 70)
    print("MARGIN SENSITIVITY (% change)")
    print("=" * 70)
    matrix = generate_sensitivity_matrix(
        sell, site, x_axis=SensitivityAxis.REVENUE, y_axis=SensitivityAxis.COST
    )
    print(sensitivity_to_dataframe(matrix).round(1).to_string())

    _, _, schedule = prepare_schedule(sell, site)
    report = generate_audit_excel(
        sell_run.metrics,
        sell_run.flows,
        generate_itemised_cashflow(schedule),
        matrix,
    )
    output = Path("townhouse_feasibility.xlsx")
    output.write_bytes(report)
    print(f"\nAudit workbook written to {output}")


if __name__ == "__main__":
    main()

"""Calculation modules for the development feasibility engine."""

from .money import D, pct, floor_whole
from .distribution import (
    distribute,
    distribution_weights,
    escalation_factor,
    monthly_rate_from_annual,
)
from .statutory import (
    calculate_bracket_tax,
    calculate_stamp_duty,
    calculate_land_tax,
    calculate_council_rates,
    gst_payable,
    gst_credit,
)
from .costs import (
    AcquisitionStage,
    ScheduledCost,
    LineItemSummary,
    ItemisedRow,
    ItemisedCategory,
    calculate_line_item_total,
    schedule_costs,
    generate_itemised_cashflow,
    calculate_line_item_summaries,
)
from .revenue import (
    RevenueMonth,
    recognise_revenue,
    estimate_gross_realisation,
    stabilised_net_annual_rent,
)
from .debt_stack import (
    resolve_limit,
    rate_at,
    establishment_fee,
    line_fee,
    TierPosition,
    WaterfallMovements,
    FundingWaterfall,
)

# Monthly engine
from .cashflow import (
    Phase,
    Timeline,
    TierFlow,
    EquityFlow,
    MonthlyFlow,
    build_timeline,
    simulate,
)
from .metrics import (
    ProjectMetrics,
    calculate_metrics,
    calculate_irr,
    calculate_npv,
)

# Residual land value
from .solver import (
    SolveTarget,
    SolverConfig,
    SolveResult,
    solve_land_value,
)

# Sensitivity grids
from .sensitivity import (
    SensitivityAxis,
    SensitivityConfig,
    SensitivityCell,
    SensitivityMatrix,
    SensitivityCache,
    apply_variance,
    generate_sensitivity_matrix,
    generate_sensitivity_matrix_async,
)

__all__ = [
    "D",
    "pct",
    "floor_whole",
    "distribute",
    "distribution_weights",
    "escalation_factor",
    "monthly_rate_from_annual",
    "calculate_bracket_tax",
    "calculate_stamp_duty",
    "calculate_land_tax",
    "calculate_council_rates",
    "gst_payable",
    "gst_credit",
    "AcquisitionStage",
    "ScheduledCost",
    "LineItemSummary",
    "ItemisedRow",
    "ItemisedCategory",
    "calculate_line_item_total",
    "schedule_costs",
    "generate_itemised_cashflow",
    "calculate_line_item_summaries",
    "RevenueMonth",
    "recognise_revenue",
    "estimate_gross_realisation",
    "stabilised_net_annual_rent",
    "resolve_limit",
    "rate_at",
    "establishment_fee",
    "line_fee",
    "TierPosition",
    "WaterfallMovements",
    "FundingWaterfall",
    # Monthly engine
    "Phase",
    "Timeline",
    "TierFlow",
    "EquityFlow",
    "MonthlyFlow",
    "build_timeline",
    "simulate",
    "ProjectMetrics",
    "calculate_metrics",
    "calculate_irr",
    "calculate_npv",
    # Residual land value
    "SolveTarget",
    "SolverConfig",
    "SolveResult",
    "solve_land_value",
    # Sensitivity grids
    "SensitivityAxis",
    "SensitivityConfig",
    "SensitivityCell",
    "SensitivityMatrix",
    "SensitivityCache",
    "apply_variance",
    "generate_sensitivity_matrix",
    "generate_sensitivity_matrix_async",
]

"""Data models for the feasibility engine."""

from .lookups import (
    CostCategory,
    InputType,
    DistributionMethod,
    GstTreatment,
    CalculationLink,
    MilestoneLink,
    Jurisdiction,
    Strategy,
    DebtLimitMethod,
    InterestRateMode,
    FeeBase,
    EquityMode,
    TaxBracket,
    STAMP_DUTY_SCALES,
    LAND_TAX_SCALES,
)
from .scenario import (
    CostItem,
    RevenueItem,
    DatedRate,
    DatedAmount,
    CapitalTier,
    EquityStructure,
    CapitalStack,
    AcquisitionTerms,
    HoldStrategy,
    ScenarioSettings,
    Scenario,
    SiteContext,
    ScenarioValidationError,
    merge_linked_scenario,
    validate_scenario,
    ensure_valid_scenario,
)

__all__ = [
    "CostCategory",
    "InputType",
    "DistributionMethod",
    "GstTreatment",
    "CalculationLink",
    "MilestoneLink",
    "Jurisdiction",
    "Strategy",
    "DebtLimitMethod",
    "InterestRateMode",
    "FeeBase",
    "EquityMode",
    "TaxBracket",
    "STAMP_DUTY_SCALES",
    "LAND_TAX_SCALES",
    "CostItem",
    "RevenueItem",
    "DatedRate",
    "DatedAmount",
    "CapitalTier",
    "EquityStructure",
    "CapitalStack",
    "AcquisitionTerms",
    "HoldStrategy",
    "ScenarioSettings",
    "Scenario",
    "SiteContext",
    "ScenarioValidationError",
    "merge_linked_scenario",
    "validate_scenario",
    "ensure_valid_scenario",
]

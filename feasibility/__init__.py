"""Property development feasibility engine."""

from .models.scenario import Scenario, SiteContext, validate_scenario
from .calculations.cashflow import simulate
from .calculations.metrics import calculate_metrics
from .calculations.solver import solve_land_value
from .calculations.sensitivity import generate_sensitivity_matrix
from .scenarios import compare_scenarios

__version__ = "0.1.0"

__all__ = [
    "Scenario",
    "SiteContext",
    "validate_scenario",
    "simulate",
    "calculate_metrics",
    "solve_land_value",
    "generate_sensitivity_matrix",
    "compare_scenarios",
]

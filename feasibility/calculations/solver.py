"""Residual land value solver.

Binary search over the purchase price, re-running the full simulation at
each candidate. Duty and agent fees are re-derived from the candidate price
by the engine, so the land -> duty -> debt -> interest -> cost loop is
resolved the same way the real transaction resolves it.
"""

import concurrent.futures
import logging
import threading
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from ..models.lookups import SOLVER_MAX_ITERATIONS, SOLVER_PRICE_CAP, SOLVER_TOLERANCE
from ..models.scenario import Scenario, SiteContext, merge_linked_scenario
from .cashflow import simulate
from .metrics import calculate_metrics
from .money import D, ZERO, floor_whole
from .statutory import calculate_stamp_duty

logger = logging.getLogger(__name__)

TWO = Decimal("2")


class SolveTarget(str, Enum):
    """Metric the solver drives to its target."""

    MARGIN = "margin"
    IRR = "irr"


@dataclass
class SolverConfig:
    """Search bounds and stopping rules."""

    price_cap: int = SOLVER_PRICE_CAP
    max_iterations: int = SOLVER_MAX_ITERATIONS
    tolerance: str = SOLVER_TOLERANCE  # Absolute, in percentage points


@dataclass
class SolveResult:
    """Outcome of a residual land value search.

    ``converged`` is False when the iteration budget ran out before the
    achieved metric came within tolerance; callers should then inspect
    ``achieved_metric`` and ``iterations``.
    """

    land_value: Decimal  # Floored to whole currency units
    stamp_duty: Decimal
    achieved_metric: Decimal  # Re-run at the floored land_value
    iterations: int
    converged: bool
    target_metric: Decimal = ZERO
    target_type: SolveTarget = SolveTarget.MARGIN


def with_purchase_price(scenario: Scenario, price: Decimal) -> Scenario:
    """Copy of the scenario with a different purchase price."""
    settings = scenario.settings
    acquisition = replace(settings.acquisition, purchase_price=price)
    return replace(scenario, settings=replace(settings, acquisition=acquisition))


def evaluate_metric(
    scenario: Scenario,
    site: Optional[SiteContext],
    target_type: SolveTarget,
    linked_scenario: Optional[Scenario] = None,
) -> Decimal:
    """Run the engine once and read the objective metric."""
    flows = simulate(scenario, site, linked_scenario)
    metrics = calculate_metrics(flows, merge_linked_scenario(scenario, linked_scenario), site)
    if SolveTarget(target_type) == SolveTarget.IRR:
        return metrics.equity_irr
    return metrics.margin


def solve_land_value(
    target_metric,
    target_type: SolveTarget,
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    linked_scenario: Optional[Scenario] = None,
    config: Optional[SolverConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> SolveResult:
    """Find the highest land price that still achieves a target return.

    Margin and IRR fall as the land price rises, so the search moves the
    lower bound up when the achieved metric beats the target and the upper
    bound down otherwise. It stops after ``max_iterations`` or once the
    achieved metric is within ``tolerance`` of the target. The solver never
    raises on non-convergence.

    Args:
        target_metric: Target margin or IRR in percent (e.g. 20).
        target_type: MARGIN or IRR.
        scenario: Scenario whose purchase price is solved for.
        site: Site attributes.
        linked_scenario: SELL scenario a HOLD scenario inherits from. Its
            acquisition terms are the ones substituted into.
        config: Search bounds and tolerance.
        cancel_event: When set, the search raises CancelledError at the
            next iteration boundary.
        progress_callback: Optional callback(iteration, max_iterations).

    Returns:
        SolveResult with the floored land value and its transfer duty.

    Example:
        >>> result = solve_land_value(20, SolveTarget.MARGIN, scenario, site)
        >>> result.land_value
        Decimal('4718250')  # Example
    """
    config = config or SolverConfig()
    target = D(target_metric)
    tolerance = D(config.tolerance)
    target_type = SolveTarget(target_type)

    # Candidate prices go into whichever scenario supplies the acquisition terms
    price_source = linked_scenario if linked_scenario is not None else scenario

    def metric_at(price: Decimal) -> Decimal:
        candidate = with_purchase_price(price_source, price)
        if linked_scenario is not None:
            return evaluate_metric(scenario, site, target_type, candidate)
        return evaluate_metric(candidate, site, target_type)

    low = ZERO
    high = D(config.price_cap)
    best_price = ZERO
    best_metric: Optional[Decimal] = None
    achieved = ZERO
    converged = False
    iterations = 0

    while iterations < config.max_iterations:
        if cancel_event is not None and cancel_event.is_set():
            raise concurrent.futures.CancelledError("Land value solve cancelled")

        mid = (low + high) / TWO
        achieved = metric_at(mid)

        logger.debug("Iteration %d: price %s -> %s %s", iterations, mid, target_type.value, achieved)

        if achieved > target:
            low = mid
            best_price = mid
            best_metric = achieved
        else:
            high = mid

        iterations += 1
        if progress_callback:
            progress_callback(iterations, config.max_iterations)

        if abs(achieved - target) < tolerance:
            best_price = mid
            best_metric = achieved
            converged = True
            break

    if best_metric is None:
        best_metric = achieved

    land_value = floor_whole(best_price)
    if land_value != best_price:
        best_metric = metric_at(land_value)
    acquisition = with_purchase_price(price_source, land_value).settings.acquisition
    stamp_duty = calculate_stamp_duty(
        land_value,
        acquisition.jurisdiction,
        acquisition.is_foreign_buyer,
        acquisition.stamp_duty_override,
    )

    if converged:
        logger.info(
            "Residual land value %s achieves %s %s (target %s) in %d iterations",
            land_value, target_type.value, best_metric, target, iterations,
        )
    else:
        logger.warning(
            "Land value search did not reach %s %s within %d iterations (best %s at %s)",
            target_type.value, target, iterations, best_metric, land_value,
        )

    return SolveResult(
        land_value=land_value,
        stamp_duty=stamp_duty,
        achieved_metric=best_metric,
        iterations=iterations,
        converged=converged,
        target_metric=target,
        target_type=target_type,
    )

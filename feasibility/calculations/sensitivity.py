"""Two-way sensitivity grids over revenue, cost, duration and interest rate.

Each cell re-runs the full simulation on a perturbed copy of the scenario.
Cells are independent, so the grid is evaluated on a thread pool and may be
run in the background; an injectable cache keyed on the full input content
skips recomputation when nothing has changed.

Typical usage:
    from feasibility.calculations.sensitivity import (
        SensitivityAxis,
        SensitivityCache,
        generate_sensitivity_matrix,
    )

    cache = SensitivityCache()
    matrix = generate_sensitivity_matrix(
        scenario, site,
        x_axis=SensitivityAxis.REVENUE, y_axis=SensitivityAxis.COST,
        cache=cache,
    )
    revenue_steps, cost_steps, margins = matrix.get_heatmap_data()
"""

import concurrent.futures
import hashlib
import logging
import multiprocessing
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..models.lookups import (
    DEFAULT_SENSITIVITY_STEPS,
    ESCALATION_BUMP_PER_10PCT,
    CostCategory,
    Strategy,
)
from ..models.scenario import Scenario, SiteContext, merge_linked_scenario
from .cashflow import simulate
from .metrics import calculate_metrics
from .money import D, ONE, ZERO, dmax, pct

logger = logging.getLogger(__name__)

TEN = Decimal("10")


class SensitivityAxis(str, Enum):
    """Input perturbed along one axis of the grid."""

    REVENUE = "revenue"  # % change to sale prices and rents
    COST = "cost"  # % change to construction costs
    DURATION = "duration"  # Months added to the programme
    INTEREST = "interest"  # Absolute points added to debt rates


@dataclass
class SensitivityConfig:
    """Execution settings for a sensitivity run."""

    parallel: bool = True
    max_workers: Optional[int] = None  # Default: min(cpu_count, 8)
    escalation_bump_per_10pct: str = ESCALATION_BUMP_PER_10PCT


@dataclass(frozen=True)
class SensitivityCell:
    x_value: Decimal
    y_value: Decimal
    margin: Decimal
    profit: Decimal
    failed: bool = False


@dataclass
class SensitivityMatrix:
    """Grid of results; ``cells[y][x]`` follows the step lists' order."""

    x_axis: SensitivityAxis
    y_axis: SensitivityAxis
    x_steps: List[Decimal]
    y_steps: List[Decimal]
    cells: List[List[SensitivityCell]] = field(default_factory=list)

    @property
    def failed_cells(self) -> List[SensitivityCell]:
        return [cell for row in self.cells for cell in row if cell.failed]

    def cell(self, x_value, y_value) -> SensitivityCell:
        """Look up the cell for a pair of step values."""
        x_index = self.x_steps.index(D(x_value))
        y_index = self.y_steps.index(D(y_value))
        return self.cells[y_index][x_index]

    def get_heatmap_data(self, metric: str = "margin") -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Get data formatted for heatmap visualization.

        Args:
            metric: "margin" or "profit".

        Returns:
            Tuple of (x_steps, y_steps, value_matrix) with the matrix shaped
            (len(y_steps), len(x_steps)); failed cells are NaN.
        """
        x_values = np.array([float(v) for v in self.x_steps])
        y_values = np.array([float(v) for v in self.y_steps])
        matrix = np.full((len(self.y_steps), len(self.x_steps)), np.nan)

        for i, row in enumerate(self.cells):
            for j, cell in enumerate(row):
                if not cell.failed:
                    matrix[i, j] = float(getattr(cell, metric))

        return x_values, y_values, matrix


def _scale(value, factor: Decimal) -> Decimal:
    return D(value) * factor


def apply_variance(
    scenario: Scenario,
    axis: SensitivityAxis,
    value,
    config: Optional[SensitivityConfig] = None,
) -> Scenario:
    """Copy of the scenario with one axis perturbed.

    - REVENUE: sale prices and weekly rents x (1 + value / 100)
    - COST: construction line amounts x (1 + value / 100); increases also
      add the escalation bump per 10 % to those lines' escalation rates
    - DURATION: value months added to the project duration and the
      construction programme (never below one month)
    - INTEREST: value points added to senior, mezzanine (single and dated)
      and investment loan rates (never below zero)

    Args:
        scenario: Base scenario (already merged with any linked scenario).
        axis: Which input to perturb.
        value: Step value for the axis.
        config: Escalation bump setting.

    Returns:
        New Scenario; the input is unchanged.

    Raises:
        ValueError: For an unknown axis.
    """
    config = config or SensitivityConfig()
    axis = SensitivityAxis(axis)
    step = D(value)

    if axis == SensitivityAxis.REVENUE:
        factor = ONE + pct(step)
        revenues = tuple(
            replace(r, price_per_unit=_scale(r.price_per_unit, factor))
            if r.strategy == Strategy.SELL
            else replace(r, weekly_rent=_scale(r.weekly_rent, factor))
            for r in scenario.revenues
        )
        return replace(scenario, revenues=revenues)

    if axis == SensitivityAxis.COST:
        factor = ONE + pct(step)
        bump = step / TEN * D(config.escalation_bump_per_10pct) if step > 0 else ZERO
        costs = tuple(
            replace(
                c,
                amount=_scale(c.amount, factor),
                escalation_rate=D(c.escalation_rate) + bump,
            )
            if c.category == CostCategory.CONSTRUCTION
            else c
            for c in scenario.costs
        )
        return replace(scenario, costs=costs)

    if axis == SensitivityAxis.DURATION:
        delta = int(step)
        settings = scenario.settings
        costs = scenario.costs
        construction_months = settings.construction_months
        if construction_months is not None:
            construction_months = max(1, construction_months + delta)
        else:
            costs = tuple(
                replace(c, span=max(1, c.span + delta))
                if c.category == CostCategory.CONSTRUCTION
                else c
                for c in costs
            )
        settings = replace(
            settings,
            duration_months=max(1, settings.duration_months + delta),
            construction_months=construction_months,
        )
        return replace(scenario, settings=settings, costs=costs)

    if axis == SensitivityAxis.INTEREST:
        settings = scenario.settings
        stack = settings.capital_stack

        def shift(rate) -> Decimal:
            return dmax(ZERO, D(rate) + step)

        def shift_tier(tier):
            return replace(
                tier,
                interest_rate=shift(tier.interest_rate),
                variable_rates=tuple(
                    replace(r, rate=shift(r.rate)) for r in tier.variable_rates
                ),
            )

        stack = replace(stack, senior=shift_tier(stack.senior), mezzanine=shift_tier(stack.mezzanine))
        hold = settings.hold_strategy
        if hold is not None:
            hold = replace(hold, investment_rate=shift(hold.investment_rate))
        return replace(scenario, settings=replace(settings, capital_stack=stack, hold_strategy=hold))

    raise ValueError(f"Unknown sensitivity axis: {axis}")


def _canonical(value):
    """Deterministic, hashable structure for cache keys."""
    if is_dataclass(value) and not isinstance(value, type):
        return (type(value).__name__,) + tuple(
            (f.name, _canonical(getattr(value, f.name))) for f in fields(value)
        )
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _canonical(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_canonical(v) for v in value)
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(D(value))
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class SensitivityCache:
    """LRU cache of sensitivity matrices keyed on their full inputs.

    Pass one instance to ``generate_sensitivity_matrix`` to reuse results
    across calls; each instance is independent.
    """

    def __init__(self, max_entries: int = 32):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, SensitivityMatrix]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(
        scenario: Scenario,
        site: Optional[SiteContext],
        linked_scenario: Optional[Scenario],
        x_axis: SensitivityAxis,
        y_axis: SensitivityAxis,
        x_steps: Sequence,
        y_steps: Sequence,
        config: Optional[SensitivityConfig] = None,
    ) -> str:
        bump = (config or SensitivityConfig()).escalation_bump_per_10pct
        content = _canonical((
            scenario, site, linked_scenario,
            SensitivityAxis(x_axis), SensitivityAxis(y_axis),
            list(x_steps), list(y_steps), D(bump),
        ))
        return hashlib.sha256(repr(content).encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[SensitivityMatrix]:
        matrix = self._entries.get(key)
        if matrix is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return matrix

    def put(self, key: str, matrix: SensitivityMatrix):
        self._entries[key] = matrix
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self):
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


def _evaluate_cell(
    base: Scenario,
    site: Optional[SiteContext],
    x_axis: SensitivityAxis,
    y_axis: SensitivityAxis,
    x_value: Decimal,
    y_value: Decimal,
    config: SensitivityConfig,
    cancel_event: Optional[threading.Event],
) -> SensitivityCell:
    if cancel_event is not None and cancel_event.is_set():
        raise concurrent.futures.CancelledError("Sensitivity run cancelled")

    variant = apply_variance(base, x_axis, x_value, config)
    variant = apply_variance(variant, y_axis, y_value, config)
    try:
        flows = simulate(variant, site)
        metrics = calculate_metrics(flows, variant, site)
    except (ArithmeticError, ValueError) as exc:
        logger.warning(
            "Sensitivity cell %s=%s, %s=%s failed: %s",
            x_axis.value, x_value, y_axis.value, y_value, exc,
        )
        return SensitivityCell(x_value, y_value, ZERO, ZERO, failed=True)

    return SensitivityCell(x_value, y_value, metrics.margin, metrics.profit)


def generate_sensitivity_matrix(
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    x_axis: SensitivityAxis = SensitivityAxis.REVENUE,
    y_axis: SensitivityAxis = SensitivityAxis.COST,
    x_steps: Sequence = DEFAULT_SENSITIVITY_STEPS,
    y_steps: Sequence = DEFAULT_SENSITIVITY_STEPS,
    linked_scenario: Optional[Scenario] = None,
    config: Optional[SensitivityConfig] = None,
    cache: Optional[SensitivityCache] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> SensitivityMatrix:
    """Evaluate margin and profit over the Cartesian product of two axes.

    Args:
        scenario: Base scenario.
        site: Site attributes.
        x_axis: Axis varied across columns.
        y_axis: Axis varied down rows.
        x_steps: Step values for the x axis.
        y_steps: Step values for the y axis.
        linked_scenario: SELL scenario a HOLD scenario inherits from; the
            merged view is perturbed.
        config: Parallelism and escalation bump settings.
        cache: Optional result cache.
        cancel_event: When set, the run raises CancelledError at the next
            cell boundary.
        progress_callback: Optional callback(completed, total).

    Returns:
        SensitivityMatrix with ``cells[y][x]``.

    Raises:
        ValueError: For an unknown axis or an empty step list.
    """
    config = config or SensitivityConfig()
    x_axis = SensitivityAxis(x_axis)
    y_axis = SensitivityAxis(y_axis)
    x_values = [D(v) for v in x_steps]
    y_values = [D(v) for v in y_steps]
    if not x_values or not y_values:
        raise ValueError("Sensitivity step lists must not be empty")

    key = None
    if cache is not None:
        key = SensitivityCache.make_key(
            scenario, site, linked_scenario, x_axis, y_axis, x_values, y_values, config
        )
        cached = cache.get(key)
        if cached is not None:
            logger.debug("Sensitivity cache hit %s", key[:12])
            return cached
        logger.debug("Sensitivity cache miss %s", key[:12])

    base = merge_linked_scenario(scenario, linked_scenario)
    total = len(x_values) * len(y_values)
    cells: List[List[Optional[SensitivityCell]]] = [[None] * len(x_values) for _ in y_values]
    completed = 0

    if config.parallel and total > 1:
        max_workers = config.max_workers or min(multiprocessing.cpu_count(), 8)

        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(
                    _evaluate_cell, base, site, x_axis, y_axis, x, y, config, cancel_event
                ): (i, j)
                for i, y in enumerate(y_values)
                for j, x in enumerate(x_values)
            }

            for future in concurrent.futures.as_completed(futures):
                i, j = futures[future]
                cells[i][j] = future.result()
                completed += 1
                if progress_callback:
                    progress_callback(completed, total)
    else:
        for i, y in enumerate(y_values):
            for j, x in enumerate(x_values):
                cells[i][j] = _evaluate_cell(
                    base, site, x_axis, y_axis, x, y, config, cancel_event
                )
                completed += 1
                if progress_callback:
                    progress_callback(completed, total)

    matrix = SensitivityMatrix(x_axis, y_axis, x_values, y_values, cells)
    logger.info(
        "Sensitivity grid %s x %s complete: %d cells, %d failed",
        x_axis.value, y_axis.value, total, len(matrix.failed_cells),
    )

    if cache is not None:
        cache.put(key, matrix)
    return matrix


def generate_sensitivity_matrix_async(
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    executor: Optional[concurrent.futures.Executor] = None,
    **kwargs,
) -> concurrent.futures.Future:
    """Run ``generate_sensitivity_matrix`` in the background.

    Args:
        scenario: Base scenario.
        site: Site attributes.
        executor: Executor to submit to. A single-worker thread pool is
            created (and released once the run finishes) when omitted.
        **kwargs: Passed through to ``generate_sensitivity_matrix``.

    Returns:
        Future resolving to the SensitivityMatrix.
    """
    if executor is not None:
        return executor.submit(generate_sensitivity_matrix, scenario, site, **kwargs)

    own_executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = own_executor.submit(generate_sensitivity_matrix, scenario, site, **kwargs)
    own_executor.shutdown(wait=False)
    return future

"""Scenario comparison runner for several strategies on one site.

Each scenario is simulated with the same engine; a HOLD scenario that names
a linked SELL scenario inherits its acquisition, programme and costs.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .models.lookups import Strategy
from .models.scenario import Scenario, SiteContext, merge_linked_scenario
from .calculations.cashflow import MonthlyFlow, simulate
from .calculations.metrics import ProjectMetrics, calculate_metrics


@dataclass
class ScenarioRun:
    """Result of simulating one scenario."""

    scenario: Scenario
    flows: List[MonthlyFlow]
    metrics: ProjectMetrics
    linked_scenario: Optional[Scenario] = None

    @property
    def name(self) -> str:
        return self.scenario.name


def run_single_scenario(
    scenario: Scenario,
    site: Optional[SiteContext] = None,
    linked_scenario: Optional[Scenario] = None,
) -> ScenarioRun:
    """Simulate one scenario and reduce it to metrics."""
    flows = simulate(scenario, site, linked_scenario)
    metrics = calculate_metrics(flows, merge_linked_scenario(scenario, linked_scenario), site)
    return ScenarioRun(scenario, flows, metrics, linked_scenario)


def resolve_linked_scenario(
    scenario: Scenario,
    by_name: Dict[str, Scenario],
) -> Optional[Scenario]:
    """Linked SELL scenario of a HOLD scenario, if it names one.

    Raises:
        ValueError: If the named scenario is not among those supplied.
    """
    name = scenario.linked_scenario_name
    if scenario.strategy != Strategy.HOLD or not name:
        return None
    if name not in by_name:
        raise ValueError(f"Scenario '{scenario.name}' links to unknown scenario '{name}'")
    return by_name[name]


def compare_scenarios(
    scenarios: Sequence[Scenario],
    site: Optional[SiteContext] = None,
) -> List[ScenarioRun]:
    """Run every scenario of a site, resolving golden-thread links by name.

    Args:
        scenarios: Scenarios to compare. Names should be unique.
        site: Site attributes shared by all scenarios.

    Returns:
        One ScenarioRun per scenario, in input order.
    """
    by_name = {s.name: s for s in scenarios}
    runs: List[ScenarioRun] = []

    for scenario in scenarios:
        linked = resolve_linked_scenario(scenario, by_name)
        runs.append(run_single_scenario(scenario, site, linked))

    return runs


def format_comparison_table(runs: Sequence[ScenarioRun]) -> str:
    """Format scenario runs as a text table.

    Args:
        runs: Output of ``compare_scenarios``.

    Returns:
        Formatted string table.
    """
    lines = [
        "=" * 90,
        "SCENARIO COMPARISON",
        "=" * 90,
        "",
        f"{'Scenario':<22} {'Strategy':<9} {'TDC':>14} {'Profit':>14} "
        f"{'Margin':>8} {'Eq IRR':>8} {'Peak Debt':>12}",
        "-" * 90,
    ]

    for run in runs:
        m = run.metrics
        lines.append(
            f"{run.name[:22]:<22} {run.scenario.strategy.value:<9} "
            f"{float(m.total_development_cost):>14,.0f} {float(m.profit):>14,.0f} "
            f"{float(m.margin):>7.2f}% {float(m.equity_irr):>7.2f}% "
            f"{float(m.peak_debt):>12,.0f}"
        )

    lines.append("-" * 90)

    if runs:
        best = max(runs, key=lambda r: r.metrics.margin)
        lines.append(f"\nScenarios compared: {len(runs)}")
        lines.append(f"Highest margin: {best.name} ({float(best.metrics.margin):.2f}%)")

    lines.append("=" * 90)

    return "\n".join(lines)

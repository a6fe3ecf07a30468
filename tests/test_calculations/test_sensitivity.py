"""Tests for sensitivity grids, variance transforms and the result cache."""

import concurrent.futures
import logging
import threading
from dataclasses import replace
from decimal import Decimal

import numpy as np
import pytest

from feasibility.calculations.cashflow import simulate
from feasibility.calculations.metrics import calculate_metrics
from feasibility.calculations.sensitivity import (
    SensitivityAxis,
    SensitivityCache,
    SensitivityConfig,
    apply_variance,
    generate_sensitivity_matrix,
    generate_sensitivity_matrix_async,
)
from feasibility.models.lookups import CostCategory, InterestRateMode
from feasibility.models.scenario import CapitalTier, DatedRate, HoldStrategy


SERIAL = SensitivityConfig(parallel=False)


class TestApplyVariance:
    """Tests for the per-axis input transforms."""

    def test_revenue_scales_prices(self, sell_scenario):
        varied = apply_variance(sell_scenario, SensitivityAxis.REVENUE, 10)
        assert varied.revenues[0].price_per_unit == Decimal("1210000")
        assert sell_scenario.revenues[0].price_per_unit == 1_100_000

    def test_cost_scales_construction_only(self, sell_scenario):
        varied = apply_variance(sell_scenario, SensitivityAxis.COST, 10)
        build = varied.costs[0]
        architect = varied.costs[1]
        assert build.category == CostCategory.CONSTRUCTION
        assert build.amount == Decimal("4400000")
        assert build.escalation_rate == Decimal("0.5")
        assert architect.amount == 5

    def test_cost_decrease_has_no_escalation_bump(self, sell_scenario):
        varied = apply_variance(sell_scenario, SensitivityAxis.COST, -10)
        assert varied.costs[0].amount == Decimal("3600000")
        assert varied.costs[0].escalation_rate == 0

    def test_duration_extends_programme(self, sell_scenario):
        varied = apply_variance(sell_scenario, SensitivityAxis.DURATION, 3)
        assert varied.settings.duration_months == 23
        assert varied.costs[0].span == 15

    def test_duration_never_below_one_month(self, sell_scenario):
        varied = apply_variance(sell_scenario, SensitivityAxis.DURATION, -50)
        assert varied.settings.duration_months == 1
        assert varied.costs[0].span == 1

    def test_duration_with_explicit_construction_length(self, sell_scenario):
        scenario = replace(sell_scenario, settings=replace(sell_scenario.settings, construction_months=12))
        varied = apply_variance(scenario, SensitivityAxis.DURATION, 2)
        assert varied.settings.construction_months == 14
        assert varied.costs[0].span == 12

    def test_interest_adds_points(self, sell_scenario):
        senior = CapitalTier(
            interest_rate="7.5",
            rate_mode=InterestRateMode.VARIABLE,
            variable_rates=(DatedRate(6, 8),),
            limit=1_000_000,
        )
        stack = replace(sell_scenario.settings.capital_stack, senior=senior)
        settings = replace(
            sell_scenario.settings,
            capital_stack=stack,
            hold_strategy=HoldStrategy(investment_rate=6),
        )
        varied = apply_variance(replace(sell_scenario, settings=settings), SensitivityAxis.INTEREST, 2)

        assert varied.settings.capital_stack.senior.interest_rate == Decimal("9.5")
        assert varied.settings.capital_stack.senior.variable_rates[0].rate == Decimal("10")
        assert varied.settings.hold_strategy.investment_rate == Decimal("8")

    def test_unknown_axis(self, sell_scenario):
        with pytest.raises(ValueError):
            apply_variance(sell_scenario, "weather", 5)


class TestSensitivityMatrix:
    """Tests for grid generation."""

    def test_centre_cell_matches_base_run(self, sell_scenario, site):
        matrix = generate_sensitivity_matrix(
            sell_scenario, site, x_steps=[-10, 0, 10], y_steps=[0, 10], config=SERIAL
        )
        base = calculate_metrics(simulate(sell_scenario, site), sell_scenario, site)

        assert len(matrix.cells) == 2
        assert len(matrix.cells[0]) == 3
        assert matrix.cell(0, 0).margin == base.margin
        assert matrix.cell(0, 0).profit == base.profit

    def test_directions(self, sell_scenario, site):
        matrix = generate_sensitivity_matrix(
            sell_scenario, site, x_steps=[-10, 0, 10], y_steps=[0, 10], config=SERIAL
        )
        assert matrix.cell(10, 0).margin > matrix.cell(0, 0).margin
        assert matrix.cell(-10, 0).margin < matrix.cell(0, 0).margin
        assert matrix.cell(0, 10).margin < matrix.cell(0, 0).margin

    def test_parallel_matches_serial(self, sell_scenario, site):
        kwargs = dict(
            x_axis=SensitivityAxis.DURATION,
            y_axis=SensitivityAxis.INTEREST,
            x_steps=[0, 3],
            y_steps=[-1, 0, 1],
        )
        serial = generate_sensitivity_matrix(sell_scenario, site, config=SERIAL, **kwargs)
        parallel = generate_sensitivity_matrix(
            sell_scenario, site, config=SensitivityConfig(max_workers=3), **kwargs
        )
        assert serial.cells == parallel.cells

    def test_heatmap_data(self, sell_scenario, site):
        matrix = generate_sensitivity_matrix(
            sell_scenario, site, x_steps=[0, 5], y_steps=[0, 5, 10], config=SERIAL
        )
        x_values, y_values, values = matrix.get_heatmap_data()

        assert values.shape == (3, 2)
        np.testing.assert_array_equal(x_values, [0.0, 5.0])
        np.testing.assert_array_equal(y_values, [0.0, 5.0, 10.0])
        assert values[0, 0] == pytest.approx(float(matrix.cell(0, 0).margin))

    def test_progress_callback(self, sell_scenario, site):
        calls = []
        generate_sensitivity_matrix(
            sell_scenario, site, x_steps=[0, 5], y_steps=[0, 5],
            progress_callback=lambda done, total: calls.append((done, total)),
        )
        assert sorted(calls) == [(1, 4), (2, 4), (3, 4), (4, 4)]

    def test_empty_steps_rejected(self, sell_scenario, site):
        with pytest.raises(ValueError):
            generate_sensitivity_matrix(sell_scenario, site, x_steps=[], y_steps=[0])

    def test_cancellation(self, sell_scenario, site):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(concurrent.futures.CancelledError):
            generate_sensitivity_matrix(sell_scenario, site, x_steps=[0, 5], y_steps=[0], cancel_event=cancel)

    def test_async_returns_future(self, sell_scenario, site):
        future = generate_sensitivity_matrix_async(
            sell_scenario, site, x_steps=[0, 5], y_steps=[0], config=SERIAL
        )
        matrix = future.result(timeout=120)
        assert len(matrix.cells[0]) == 2

    def test_linked_hold_scenario(self, sell_scenario, hold_scenario, site):
        matrix = generate_sensitivity_matrix(
            hold_scenario, site, x_steps=[0, 10], y_steps=[0],
            linked_scenario=sell_scenario, config=SERIAL,
        )
        assert not matrix.failed_cells
        assert matrix.cell(10, 0).margin > matrix.cell(0, 0).margin


class TestSensitivityCache:
    """Tests for the injectable result cache."""

    def test_hit_on_identical_inputs(self, sell_scenario, site, caplog):
        cache = SensitivityCache()
        steps = dict(x_steps=[0, 5], y_steps=[0], config=SERIAL)

        first = generate_sensitivity_matrix(sell_scenario, site, cache=cache, **steps)
        with caplog.at_level(logging.DEBUG, logger="feasibility.calculations.sensitivity"):
            second = generate_sensitivity_matrix(sell_scenario, site, cache=cache, **steps)

        assert second is first
        assert cache.hits == 1
        assert cache.misses == 1
        assert "cache hit" in caplog.text

    def test_miss_when_inputs_change(self, sell_scenario, site):
        cache = SensitivityCache()
        generate_sensitivity_matrix(sell_scenario, site, x_steps=[0], y_steps=[0], config=SERIAL, cache=cache)

        cheaper = replace(
            sell_scenario,
            settings=replace(
                sell_scenario.settings,
                acquisition=replace(sell_scenario.settings.acquisition, purchase_price=900_000),
            ),
        )
        generate_sensitivity_matrix(cheaper, site, x_steps=[0], y_steps=[0], config=SERIAL, cache=cache)

        assert cache.hits == 0
        assert cache.misses == 2
        assert len(cache) == 2

    def test_equal_numbers_share_a_key(self, sell_scenario, site):
        key_int = SensitivityCache.make_key(sell_scenario, site, None, "revenue", "cost", [0, 5], [0])
        key_str = SensitivityCache.make_key(sell_scenario, site, None, "revenue", "cost", ["0", "5"], [0])
        assert key_int == key_str

    def test_lru_eviction(self, sell_scenario, site):
        cache = SensitivityCache(max_entries=1)
        generate_sensitivity_matrix(sell_scenario, site, x_steps=[0], y_steps=[0], config=SERIAL, cache=cache)
        generate_sensitivity_matrix(sell_scenario, site, x_steps=[5], y_steps=[0], config=SERIAL, cache=cache)
        assert len(cache) == 1

    def test_clear(self):
        cache = SensitivityCache()
        cache.misses = 3
        cache.clear()
        assert len(cache) == 0
        assert cache.misses == 0

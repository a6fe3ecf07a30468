#!/usr/bin/env python3
"""Example background sensitivity grid with progress reporting and caching.

Usage:
    python examples/sensitivity_grid.py

Runs a duration x interest-rate grid on a worker thread, reports progress,
then re-requests the same grid to show the cache hit.
"""

import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from feasibility.calculations.sensitivity import (
    SensitivityAxis,
    SensitivityCache,
    generate_sensitivity_matrix,
    generate_sensitivity_matrix_async,
)
from feasibility.export import sensitivity_to_dataframe
from run_example import build_sell_scenario, build_site


def main():
    """Run a duration x interest grid in the background."""

    print("=" * 70)
    print("SENSITIVITY GRID: PROGRAMME DELAY vs INTEREST RATE")
    print("=" * 70)
    print()

    site = build_site()
    scenario = build_sell_scenario()
    cache = SensitivityCache()

    def progress(completed: int, total: int):
        print(f"  {completed}/{total} cells", end="\r")

    grid = dict(
        x_axis=SensitivityAxis.DURATION,
        y_axis=SensitivityAxis.INTEREST,
        x_steps=[0, 3, 6, 9],
        y_steps=[-1, 0, 1, 2],
        cache=cache,
    )

    start = time.time()
    future = generate_sensitivity_matrix_async(scenario, site, progress_callback=progress, **grid)
    matrix = future.result()
    elapsed = time.time() - start

    print(f"\nComputed {len(matrix.x_steps) * len(matrix.y_steps)} cells in {elapsed:.1f}s")
    print()
    print("Margin (%) - rows: interest rate change (points), columns: delay (months)")
    print("-" * 70)
    print(sensitivity_to_dataframe(matrix).round(2).to_string())
    print("-" * 70)

    if matrix.failed_cells:
        print(f"{len(matrix.failed_cells)} cells failed")

    start = time.time()
    generate_sensitivity_matrix(scenario, site, **grid)
    print(f"\nRepeat request served from cache in {time.time() - start:.3f}s "
          f"(hits={cache.hits}, misses={cache.misses})")
    print("=" * 70)


if __name__ == "__main__":
    main()

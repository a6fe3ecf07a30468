"""Tabular views of engine output as pandas DataFrames.

Monetary values are converted to float for analysis and charting; the engine
itself keeps exact decimals.
"""

from typing import List, Optional, Sequence

import pandas as pd

from ..calculations.cashflow import MonthlyFlow
from ..calculations.costs import ItemisedCategory
from ..calculations.sensitivity import SensitivityMatrix
from ..models.lookups import CostCategory


def _tier_columns(prefix: str, tier) -> dict:
    return {
        f"{prefix}_draw": float(tier.draw),
        f"{prefix}_repayment": float(tier.repayment),
        f"{prefix}_interest": float(tier.interest),
        f"{prefix}_fees": float(tier.line_fee + tier.establishment_fee),
        f"{prefix}_balance": float(tier.balance),
    }


def flows_to_dataframe(flows: Sequence[MonthlyFlow]) -> pd.DataFrame:
    """One row per month, indexed by month number.

    Args:
        flows: Output of ``simulate``.

    Returns:
        DataFrame with revenue, cost (per category), capital stack and
        position columns.
    """
    rows: List[dict] = []
    for f in flows:
        row = {
            "month": f.month,
            "label": f.label,
            "phase": f.phase.value,
            "gross_revenue": float(f.gross_revenue),
            "commission": float(f.commission),
            "gst_on_sales": float(f.gst_on_sales),
            "operating_costs": float(f.operating_costs),
            "net_revenue": float(f.net_revenue),
            "development_costs": float(f.development_costs),
        }
        for category in CostCategory:
            row[f"cost_{category.value}"] = float(f.cost_breakdown.get(category, 0))
        row.update({
            "gst_on_costs": float(f.gst_on_costs),
            "gst_credit_claimed": float(f.gst_credit_claimed),
            "surplus_interest": float(f.surplus_interest),
            "refinance_inflow": float(f.refinance_inflow),
        })
        row.update(_tier_columns("senior", f.senior))
        row.update(_tier_columns("mezzanine", f.mezzanine))
        row.update(_tier_columns("investment", f.investment))
        row.update({
            "equity_draw": float(f.equity.draw),
            "equity_repayment": float(f.equity.repayment),
            "equity_balance": float(f.equity.balance),
            "cash_balance": float(f.cash_balance),
            "total_inflow": float(f.total_inflow),
            "total_outflow": float(f.total_outflow),
            "net_cashflow": float(f.net_cashflow),
            "cumulative_cashflow": float(f.cumulative_cashflow),
            "asset_value": float(f.asset_value),
            "depreciation": float(f.depreciation),
        })
        rows.append(row)

    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.set_index("month")
    return df


def itemised_to_dataframe(
    categories: Sequence[ItemisedCategory],
    labels: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Itemised cost grid: one row per line plus a subtotal row per category.

    Args:
        categories: Output of ``generate_itemised_cashflow``.
        labels: Optional month labels used as column names.

    Returns:
        DataFrame indexed by (category, line) with one column per month and
        a ``total`` column.
    """
    records = []
    index = []
    for group in categories:
        for row in group.rows:
            index.append((group.category.value, row.label))
            records.append([float(v) for v in row.values] + [float(row.total)])
        index.append((group.category.value, "Subtotal"))
        records.append([float(v) for v in group.totals] + [float(sum(group.totals))])

    if not records:
        return pd.DataFrame()

    months = len(records[0]) - 1
    columns = list(labels) if labels is not None else list(range(months))
    if len(columns) != months:
        raise ValueError(f"Expected {months} month labels, got {len(columns)}")

    return pd.DataFrame(
        records,
        index=pd.MultiIndex.from_tuples(index, names=["category", "line"]),
        columns=columns + ["total"],
    )


def sensitivity_to_dataframe(matrix: SensitivityMatrix, metric: str = "margin") -> pd.DataFrame:
    """Sensitivity grid with y steps as rows and x steps as columns.

    Failed cells are NaN.
    """
    x_values, y_values, values = matrix.get_heatmap_data(metric)
    df = pd.DataFrame(values, index=y_values, columns=x_values)
    df.index.name = matrix.y_axis.value
    df.columns.name = matrix.x_axis.value
    return df

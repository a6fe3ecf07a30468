"""Audit Report Generator - Export a feasibility run to an Excel workbook.

The workbook shows the headline metrics, the month-by-month cashflow with
its funding, the itemised cost grid and (optionally) a sensitivity grid so
that the numbers can be reviewed outside the engine.
"""

import io
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from dataclasses import dataclass

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

from ..calculations.cashflow import MonthlyFlow
from ..calculations.costs import ItemisedCategory
from ..calculations.metrics import ProjectMetrics
from ..calculations.sensitivity import SensitivityMatrix


@dataclass
class AuditReportConfig:
    """Configuration for audit report generation."""
    include_summary: bool = True
    include_cash_flows: bool = True
    include_itemised_costs: bool = True
    include_sensitivity: bool = True
    project_name: str = "Development Feasibility"
    scenario_name: str = "Analysis"


def _add_header_style(ws, row: int, cols: int) -> None:
    """Apply header styling to a row."""
    header_fill = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    for col in range(1, cols + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")


def _add_section_header(ws, title: str, row: int) -> int:
    """Add a section header and return next row."""
    ws.cell(row=row, column=1, value=title)
    ws.cell(row=row, column=1).font = Font(bold=True, size=14)
    return row + 1


def _money(value: Decimal) -> float:
    return round(float(value), 2)


def generate_audit_excel(
    metrics: ProjectMetrics,
    flows: Sequence[MonthlyFlow],
    itemised: Optional[Sequence[ItemisedCategory]] = None,
    sensitivity: Optional[SensitivityMatrix] = None,
    config: Optional[AuditReportConfig] = None,
) -> bytes:
    """Generate an Excel audit report for one scenario run.

    Args:
        metrics: Output of ``calculate_metrics``.
        flows: Output of ``simulate``.
        itemised: Output of ``generate_itemised_cashflow``.
        sensitivity: Optional sensitivity grid.
        config: Optional configuration for the report

    Returns:
        Excel file as bytes
    """
    if config is None:
        config = AuditReportConfig()

    wb = Workbook()

    # Remove default sheet
    wb.remove(wb.active)

    if config.include_summary:
        ws = wb.create_sheet("Summary")
        _create_summary_sheet(ws, metrics, flows, config)

    if config.include_cash_flows:
        ws = wb.create_sheet("Cash Flows")
        _create_cash_flows_sheet(ws, flows)

    if config.include_itemised_costs and itemised:
        ws = wb.create_sheet("Itemised Costs")
        _create_itemised_sheet(ws, itemised, [f.label for f in flows])

    if config.include_sensitivity and sensitivity is not None:
        ws = wb.create_sheet("Sensitivity")
        _create_sensitivity_sheet(ws, sensitivity)

    # Save to bytes
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()


def _create_summary_sheet(
    ws,
    metrics: ProjectMetrics,
    flows: Sequence[MonthlyFlow],
    config: AuditReportConfig,
) -> None:
    """Create the summary sheet."""
    row = 1

    ws.cell(row=row, column=1, value=f"Feasibility Report: {config.project_name}")
    ws.cell(row=row, column=1).font = Font(bold=True, size=16)
    row += 1

    ws.cell(row=row, column=1, value=f"Scenario: {config.scenario_name}")
    row += 1

    ws.cell(row=row, column=1, value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    row += 2

    row = _add_section_header(ws, "Key Metrics", row)
    row += 1

    lines = [
        ("Gross Realisation", _money(metrics.gross_realisation)),
        ("Net Realisation", _money(metrics.net_realisation)),
        ("Total Development Cost", _money(metrics.total_development_cost)),
        ("Finance Costs", _money(metrics.total_finance_cost)),
        ("", None),
        ("Profit", _money(metrics.profit)),
        ("Development Margin (%)", _money(metrics.margin)),
        ("Equity IRR (%)", _money(metrics.equity_irr)),
        ("Project IRR (%)", _money(metrics.project_irr)),
        ("Equity Multiple", _money(metrics.equity_multiple)),
        ("", None),
        ("Peak Debt", _money(metrics.peak_debt)),
        ("Peak Debt Month", metrics.peak_debt_label),
        ("Peak Equity", _money(metrics.peak_equity)),
        ("Net GST Payable", _money(metrics.net_gst_payable)),
    ]

    for label, value in lines:
        if label:
            ws.cell(row=row, column=1, value=label)
            ws.cell(row=row, column=2, value=value)
        row += 1

    row += 1
    row = _add_section_header(ws, "Timeline", row)
    row += 1

    phases = {}
    for f in flows:
        phases[f.phase.value] = phases.get(f.phase.value, 0) + 1
    for phase, months in phases.items():
        ws.cell(row=row, column=1, value=phase.title())
        ws.cell(row=row, column=2, value=f"{months} months")
        row += 1
    ws.cell(row=row, column=1, value="Total Periods")
    ws.cell(row=row, column=2, value=f"{len(flows)} months")

    ws.column_dimensions['A'].width = 25
    ws.column_dimensions['B'].width = 28


def _create_cash_flows_sheet(ws, flows: Sequence[MonthlyFlow]) -> None:
    """Create the Cash Flows sheet."""
    row = 1
    row = _add_section_header(ws, "Month-by-Month Cash Flows", row)
    row += 2

    headers = [
        "Month", "Label", "Phase", "Net Revenue", "Costs", "Finance",
        "Senior Bal", "Mezz Bal", "Equity Draw", "Equity Return", "Net CF", "Cumulative",
    ]
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _add_header_style(ws, row, len(headers))
    row += 1

    for f in flows:
        values = [
            f.month,
            f.label,
            f.phase.value,
            _money(f.net_revenue),
            _money(f.development_costs),
            _money(f.finance_costs),
            _money(f.senior.balance),
            _money(f.mezzanine.balance),
            _money(f.equity.draw),
            _money(f.equity.repayment),
            _money(f.net_cashflow),
            _money(f.cumulative_cashflow),
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)
        row += 1

    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 15


def _create_itemised_sheet(ws, itemised: Sequence[ItemisedCategory], labels: Sequence[str]) -> None:
    """Create the Itemised Costs sheet."""
    row = 1
    row = _add_section_header(ws, "Itemised Costs (ex GST)", row)
    row += 2

    headers = ["Line"] + list(labels) + ["Total"]
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _add_header_style(ws, row, len(headers))
    row += 1

    for group in itemised:
        ws.cell(row=row, column=1, value=group.category.value.title())
        ws.cell(row=row, column=1).font = Font(bold=True)
        row += 1

        for line in group.rows:
            ws.cell(row=row, column=1, value=line.label)
            for col, value in enumerate(line.values, 2):
                ws.cell(row=row, column=col, value=_money(value))
            ws.cell(row=row, column=len(headers), value=_money(line.total))
            row += 1

        ws.cell(row=row, column=1, value="Subtotal")
        for col, value in enumerate(group.totals, 2):
            ws.cell(row=row, column=col, value=_money(value))
        ws.cell(row=row, column=len(headers), value=_money(sum(group.totals)))
        for col in range(1, len(headers) + 1):
            ws.cell(row=row, column=col).font = Font(bold=True)
        row += 2

    ws.column_dimensions['A'].width = 35


def _create_sensitivity_sheet(ws, matrix: SensitivityMatrix) -> None:
    """Create the Sensitivity sheet (margin %)."""
    row = 1
    row = _add_section_header(
        ws, f"Margin Sensitivity: {matrix.y_axis.value} (rows) vs {matrix.x_axis.value} (columns)", row
    )
    row += 2

    headers = [""] + [float(x) for x in matrix.x_steps]
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _add_header_style(ws, row, len(headers))
    row += 1

    for y_value, cells in zip(matrix.y_steps, matrix.cells):
        ws.cell(row=row, column=1, value=float(y_value)).font = Font(bold=True)
        for col, cell in enumerate(cells, 2):
            ws.cell(row=row, column=col, value="n/a" if cell.failed else round(float(cell.margin), 2))
        row += 1

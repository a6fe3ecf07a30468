"""Export module for tables and audit reports."""

from .audit_report import (
    AuditReportConfig,
    generate_audit_excel,
)
from .tables import (
    flows_to_dataframe,
    itemised_to_dataframe,
    sensitivity_to_dataframe,
)

__all__ = [
    "AuditReportConfig",
    "generate_audit_excel",
    "flows_to_dataframe",
    "itemised_to_dataframe",
    "sensitivity_to_dataframe",
]

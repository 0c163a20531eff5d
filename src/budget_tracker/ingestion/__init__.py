"""
Spreadsheet import pipeline for budgets and actuals.

Header mapping, period reconciliation, row validation with partial-success
semantics, and deduplication against existing records.
"""

from .context import ImportContext
from .header_mapper import HeaderMapping, auto_map
from .period_resolver import PeriodDefaults, resolve_period
from .report import build_report
from .session import ImportResult, ImportSession
from .sources import TabularPayload, read_tabular_file

__all__ = [
    "HeaderMapping",
    "ImportContext",
    "ImportResult",
    "ImportSession",
    "PeriodDefaults",
    "TabularPayload",
    "auto_map",
    "build_report",
    "read_tabular_file",
    "resolve_period",
]

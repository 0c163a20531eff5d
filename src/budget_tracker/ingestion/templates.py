"""Downloadable import templates (header row plus a few example rows)."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import pandas as pd

from ..exceptions import SourceReadError
from ..models import RecordKind


TEMPLATES: Dict[RecordKind, List[List[str]]] = {
    RecordKind.ACTUALS: [
        ["Month", "Category", "Amount Spent to Date", "Team", "Description", "Approved Amount", "Requested Amount", "Notes"],
        ["2025-01", "COM - Regulatory Compliance Fees", "32000", "Compliance", "Q1 compliance audit fees", "45000", "50000", "Annual audit cycle"],
        ["2025-01", "TEC - Software Subscriptions / SaaS Licenses", "15000", "Product & Engineering", "Monthly SaaS subscriptions", "80000", "80000", "Core development tools"],
        ["2025-01", "EE - Training and Development", "21000", "People & Culture", "Employee training programs", "25000", "30000", "Skills development initiative"],
        ["2025-02", "MKT - Digital Advertising", "45000", "Marketing", "February ad campaigns", "60000", "65000", "Q1 marketing push"],
        ["2025-02", "OPEX - Office Supplies", "3500", "Finance", "Monthly office supplies", "5000", "5000", "Standard office materials"],
    ],
    RecordKind.BUDGETS: [
        ["Year", "Team", "Category", "H1 Budget", "H2 Budget", "Notes"],
        ["2025", "Compliance", "COM - Audit Services", "40000", "45000", "External audit"],
        ["2025", "Marketing", "MKT - Digital Advertising", "120000", "90000", "Launch campaigns in H1"],
        ["2025", "Product & Engineering", "TEC - Software Subscriptions / SaaS Licenses", "80000", "80000", ""],
    ],
}


def template_frame(kind: RecordKind) -> pd.DataFrame:
    header, *rows = TEMPLATES[kind]
    return pd.DataFrame(rows, columns=header)


def write_template(kind: RecordKind, path: str | Path) -> Path:
    """Write the template as CSV or XLSX depending on the file extension."""

    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df = template_frame(kind)
    ext = out.suffix.lower()
    if ext == ".csv":
        df.to_csv(out, index=False, encoding="utf-8")
    elif ext == ".xlsx":
        sheet = "Actuals Template" if kind is RecordKind.ACTUALS else "Budgets Template"
        df.to_excel(out, index=False, sheet_name=sheet)
    else:
        raise SourceReadError(f"Unsupported template type {ext or '(none)'}; expected .csv or .xlsx")
    return out

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ..models import ImportReport, ImportStatus, ParsedRow, RecordKind, RowStatus, utcnow


MAX_REPORTED_ISSUES = 10


@dataclass(frozen=True)
class SourceMeta:
    name: str
    size: int
    kind: RecordKind = RecordKind.ACTUALS


def format_issue(row: ParsedRow) -> str:
    """``Row {n}: ...`` where n counts from 1 and skips the header row."""

    messages = row.errors or row.warnings
    return f"Row {row.row_number}: {', '.join(messages)}"


def build_report(
    source: SourceMeta,
    rows: Sequence[ParsedRow],
    timestamp: Optional[datetime] = None,
) -> ImportReport:
    total = len(rows)
    imported = sum(1 for r in rows if r.status is RowStatus.VALID and not r.is_update)
    updated = sum(1 for r in rows if r.status is RowStatus.VALID and r.is_update)
    skipped = total - imported - updated
    issues = tuple(format_issue(r) for r in rows if r.status is not RowStatus.VALID)[:MAX_REPORTED_ISSUES]
    return ImportReport(
        timestamp=timestamp or utcnow(),
        kind=source.kind,
        source_name=source.name,
        source_size=source.size,
        total_rows=total,
        imported_count=imported,
        updated_count=updated,
        skipped_count=skipped,
        status=ImportStatus.COMPLETED if skipped == 0 else ImportStatus.PARTIAL,
        issues=issues,
    )


def write_report(report: ImportReport, output_path: str | Path) -> Path:
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)
    return out

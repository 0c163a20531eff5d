"""Decode uploaded CSV / Excel files into a :class:`TabularPayload`.

The import core only ever sees header strings and untyped cell values; this
module is the file-format boundary. The size ceiling is checked from the
file size before anything is decoded, the row ceiling right after decoding.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ..exceptions import ImportLimitExceeded, SourceReadError
from .context import MAX_FILE_SIZE_BYTES, MAX_ROWS


logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm", ".xls")


@dataclass(frozen=True)
class TabularPayload:
    headers: Tuple[str, ...]
    rows: Tuple[Dict[str, Any], ...]
    source_name: str = "inline"
    source_size: int = 0
    sheet_name: Optional[str] = None
    sheet_names: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping[str, Any]],
        headers: Optional[Sequence[str]] = None,
        source_name: str = "inline",
        source_size: int = 0,
    ) -> "TabularPayload":
        """Build a payload from row dicts; headers default to first-seen key order."""

        if headers is None:
            seen: List[str] = []
            for rec in records:
                for key in rec:
                    if key not in seen:
                        seen.append(key)
            headers = seen
        return cls(
            headers=tuple(headers),
            rows=tuple(dict(r) for r in records),
            source_name=source_name,
            source_size=source_size,
        )


def _clean_cell(value: Any) -> Any:
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _is_blank_header(name: Any) -> bool:
    s = str(name).strip()
    return not s or s.startswith("Unnamed:")


def check_file_size(size: int, max_bytes: int = MAX_FILE_SIZE_BYTES) -> None:
    if size > max_bytes:
        raise ImportLimitExceeded(
            f"File size {size / 1024 / 1024:.1f}MB exceeds the {max_bytes / 1024 / 1024:.0f}MB limit",
            limit=max_bytes,
            actual=size,
        )


def check_row_count(count: int, max_rows: int = MAX_ROWS) -> None:
    if count > max_rows:
        raise ImportLimitExceeded(
            f"File contains {count} rows; the limit is {max_rows}. Please split into smaller files.",
            limit=max_rows,
            actual=count,
        )


def list_sheets(path: str | Path) -> List[str]:
    p = Path(path)
    if p.suffix.lower() in CSV_EXTENSIONS:
        return ["Sheet1"]
    try:
        with pd.ExcelFile(p) as book:
            return [str(s) for s in book.sheet_names]
    except (OSError, ValueError) as exc:
        raise SourceReadError(f"Could not read workbook {p.name}: {exc}") from exc


def _frame_to_payload(
    df: pd.DataFrame,
    p: Path,
    size: int,
    sheet_name: Optional[str],
    sheet_names: Iterable[str],
) -> TabularPayload:
    keep = [c for c in df.columns if not _is_blank_header(c)]
    df = df[keep]
    headers = tuple(str(c).strip() for c in keep)
    rows: List[Dict[str, Any]] = []
    for values in df.itertuples(index=False, name=None):
        row = {h: _clean_cell(v) for h, v in zip(headers, values)}
        if any(v is not None for v in row.values()):
            rows.append(row)
    return TabularPayload(
        headers=headers,
        rows=tuple(rows),
        source_name=p.name,
        source_size=size,
        sheet_name=sheet_name,
        sheet_names=tuple(sheet_names),
    )


def read_tabular_file(
    path: str | Path,
    sheet: Optional[str] = None,
    max_rows: int = MAX_ROWS,
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
) -> TabularPayload:
    """Read a CSV or Excel sheet (first sheet by default) into a payload."""

    p = Path(path)
    if not p.exists():
        raise SourceReadError(f"Input not found: {p}")
    size = p.stat().st_size
    check_file_size(size, max_file_size_bytes)

    ext = p.suffix.lower()
    try:
        if ext in CSV_EXTENSIONS:
            df = pd.read_csv(p, dtype="string", keep_default_na=False, skip_blank_lines=True)
            sheet_name, sheet_names = "Sheet1", ["Sheet1"]
        elif ext in EXCEL_EXTENSIONS:
            sheet_names = list_sheets(p)
            sheet_name = sheet or (sheet_names[0] if sheet_names else None)
            if sheet_name not in sheet_names:
                raise SourceReadError(f"Sheet {sheet_name!r} not found in {p.name}")
            df = pd.read_excel(p, sheet_name=sheet_name, dtype=object)
        else:
            raise SourceReadError(f"Unsupported file type {ext or '(none)'}; expected .csv or .xlsx")
    except pd.errors.EmptyDataError as exc:
        raise SourceReadError(f"{p.name} is empty") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Could not parse {p.name}: {exc}") from exc

    payload = _frame_to_payload(df, p, size, sheet_name, sheet_names)
    if not payload.headers:
        raise SourceReadError(f"{p.name} has no header row")
    check_row_count(len(payload.rows), max_rows)
    logger.info("Read %d rows x %d columns from %s", len(payload.rows), len(payload.headers), p.name)
    return payload

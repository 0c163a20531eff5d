"""Import session orchestration.

Steps:
  - Enforce the row/size ceiling before any row is touched.
  - Map each row through the (immutable) header mapping.
  - Per row: normalize -> resolve period -> validate -> natural key.
  - Batch dedup: intra-batch supersession and existing-record matching.
  - Field corrections re-run the whole rule set for the patched row.
  - Finalize: build records for Valid rows and the import report.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..exceptions import InvalidRecordError
from ..models import (
    ActualRecord,
    BudgetRecord,
    ImportReport,
    ParsedRow,
    Record,
    RecordKind,
    RowStatus,
    new_record_id,
    touch,
    utcnow,
)
from . import header_mapper as hm
from .context import ImportContext
from .dedup import natural_key, plan_batch
from .header_mapper import HeaderMapping, auto_map
from .period_resolver import resolve_period
from .report import SourceMeta, build_report
from .row_validator import RowValidation, validate_actual, validate_budget
from .sources import TabularPayload, check_file_size, check_row_count


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    inserted: Tuple[Record, ...]
    updated: Tuple[Record, ...]
    report: ImportReport

    @property
    def records(self) -> Tuple[Record, ...]:
        return self.inserted + self.updated


def parse_row(
    row_index: int,
    raw: Dict[str, Any],
    kind: RecordKind,
    mapping: HeaderMapping,
    context: ImportContext,
    overrides: Optional[Dict[str, Any]] = None,
) -> ParsedRow:
    """Run one raw row through mapping, period resolution and validation."""

    mapped = mapping.apply(raw)
    if overrides:
        mapped.update(overrides)
    resolved = None
    if kind is RecordKind.ACTUALS:
        resolution = resolve_period(mapped, context.period_defaults)
        validation: RowValidation = validate_actual(mapped, resolution, context)
        resolved = resolution.to_resolved()
    else:
        validation = validate_budget(mapped, context)
    return ParsedRow(
        row_index=row_index,
        kind=kind,
        raw_data=dict(raw),
        mapped_fields=mapped,
        issues=list(validation.issues),
        normalized=dict(validation.normalized),
        resolved_period=resolved,
        natural_key=natural_key(kind, validation.normalized),
    )


def required_mapping_gaps(mapping: HeaderMapping, context: ImportContext) -> List[str]:
    """Fields the user still has to map (or give a default for) before parsing."""

    bound = mapping.as_dict()
    gaps: List[str] = []
    for fld in (hm.CATEGORY,):
        if fld not in bound:
            gaps.append(fld)
    if hm.TEAM not in bound and not context.default_team:
        gaps.append(hm.TEAM)
    if mapping.kind is RecordKind.ACTUALS:
        if hm.AMOUNT not in bound:
            gaps.append(hm.AMOUNT)
        has_half = hm.HALF in bound or context.default_half is not None
        has_year = hm.YEAR in bound or context.default_year is not None
        if hm.MONTH not in bound and not (has_half and has_year):
            gaps.append(hm.MONTH)
    else:
        if hm.YEAR not in bound and context.default_year is None:
            gaps.append(hm.YEAR)
        if hm.H1_AMOUNT not in bound and hm.H2_AMOUNT not in bound:
            gaps.append(hm.H1_AMOUNT)
    return gaps


@dataclass
class ImportSession:
    """One upload: payload, mapping, parsed rows and the existing-record snapshot."""

    kind: RecordKind
    payload: TabularPayload
    context: ImportContext
    existing: Tuple[Record, ...] = ()
    mapping: Optional[HeaderMapping] = None
    rows: List[ParsedRow] = field(default_factory=list)
    _overrides: Dict[int, Dict[str, Any]] = field(default_factory=dict, repr=False)

    @classmethod
    def start(
        cls,
        kind: RecordKind,
        payload: TabularPayload,
        context: ImportContext,
        existing: Sequence[Record] = (),
        mapping: Optional[HeaderMapping] = None,
    ) -> "ImportSession":
        """Open a session; raises ImportLimitExceeded before any row is processed."""

        check_file_size(payload.source_size, context.max_file_size_bytes)
        check_row_count(len(payload.rows), context.max_rows)
        if mapping is None:
            mapping = auto_map(payload.headers, kind, context.extra_aliases)
        elif mapping.kind is not kind:
            raise ValueError(f"Mapping is for {mapping.kind.value}, session is {kind.value}")
        snapshot = tuple(r for r in existing if isinstance(r, _RECORD_TYPES[kind]))
        logger.info(
            "Import session started: %s, %d rows, %d existing %s",
            payload.source_name, len(payload.rows), len(snapshot), kind.value,
        )
        return cls(kind=kind, payload=payload, context=context, existing=snapshot, mapping=mapping)

    def remap(self, mapping: HeaderMapping) -> "ImportSession":
        """Swap in a new header mapping; parsed rows must be rebuilt with :meth:`parse`."""

        if mapping.kind is not self.kind:
            raise ValueError(f"Mapping is for {mapping.kind.value}, session is {self.kind.value}")
        self.mapping = mapping
        self.rows = []
        self._overrides = {}
        return self

    def missing_mappings(self) -> List[str]:
        return required_mapping_gaps(self.mapping, self.context)

    def parse(self) -> List[ParsedRow]:
        self.rows = [
            parse_row(i, raw, self.kind, self.mapping, self.context, self._overrides.get(i))
            for i, raw in enumerate(self.payload.rows)
        ]
        plan_batch(self.rows, self.existing)
        counts = self.status_counts()
        logger.info(
            "Parsed %d rows: %d valid, %d needs-mapping, %d error",
            len(self.rows), counts[RowStatus.VALID], counts[RowStatus.NEEDS_MAPPING], counts[RowStatus.ERROR],
        )
        return self.rows

    def patch_row(self, row_index: int, field_name: str, value: Any) -> ParsedRow:
        """Correct one canonical field of a row and re-validate it from scratch.

        Batch dedup is re-planned afterwards since the row's key may change.
        """

        if field_name not in self.mapping.fields:
            raise ValueError(f"Unknown field for {self.kind.value}: {field_name}")
        if not self.rows:
            self.parse()
        if not 0 <= row_index < len(self.rows):
            raise IndexError(f"No row with index {row_index}")
        self._overrides.setdefault(row_index, {})[field_name] = value
        self.rows[row_index] = parse_row(
            row_index,
            self.payload.rows[row_index],
            self.kind,
            self.mapping,
            self.context,
            self._overrides[row_index],
        )
        plan_batch(self.rows, self.existing)
        return self.rows[row_index]

    def status_counts(self) -> Dict[RowStatus, int]:
        counts = {status: 0 for status in RowStatus}
        for row in self.rows:
            counts[row.status] += 1
        return counts

    def preview(self) -> ImportReport:
        """Report the outcome a commit would have, without building records."""

        if not self.rows:
            self.parse()
        return build_report(self._source_meta(), self.rows)

    def finalize(self, now: Optional[datetime] = None) -> ImportResult:
        if not self.rows:
            self.parse()
        stamp = now or utcnow()
        by_id = {r.id: r for r in self.existing}
        inserted: List[Record] = []
        updated: List[Record] = []
        for row in self.rows:
            if row.status is not RowStatus.VALID:
                continue
            values = self._record_values(row)
            if row.is_update and row.matched_existing_id in by_id:
                updated.append(touch(by_id[row.matched_existing_id], now=stamp, **values))
            else:
                inserted.append(self._new_record(values, stamp))
        report = build_report(self._source_meta(), self.rows, timestamp=stamp)
        logger.info(
            "Import finalized: %d imported, %d updated, %d skipped (%s)",
            report.imported_count, report.updated_count, report.skipped_count, report.status.value,
        )
        return ImportResult(inserted=tuple(inserted), updated=tuple(updated), report=report)

    def _source_meta(self) -> SourceMeta:
        return SourceMeta(name=self.payload.source_name, size=self.payload.source_size, kind=self.kind)

    def _record_values(self, row: ParsedRow) -> Dict[str, Any]:
        n = row.normalized
        if self.kind is RecordKind.BUDGETS:
            return {
                "year": n["year"],
                "teams": tuple(n["teams"]),
                "category": n["category"],
                "h1_amount": n["h1_amount"],
                "h2_amount": n["h2_amount"],
                "notes": n.get("notes") or "",
            }
        return {
            "period": n["period"],
            "year": n["year"],
            "half": n["half"],
            "teams": tuple(n["teams"]),
            "category": n["category"],
            "amount": n["amount"],
            "description": n.get("description") or f"Expense for {n['category']}",
        }

    def _new_record(self, values: Dict[str, Any], stamp: datetime) -> Record:
        record_type = _RECORD_TYPES[self.kind]
        try:
            return record_type(id=new_record_id(), created_at=stamp, updated_at=stamp, **values)
        except InvalidRecordError:
            logger.error("Validated row produced an invalid %s record: %s", self.kind.value, values)
            raise


_RECORD_TYPES = {
    RecordKind.ACTUALS: ActualRecord,
    RecordKind.BUDGETS: BudgetRecord,
}

"""Map uploaded column headers onto canonical import fields.

Auto-mapping is a suggestion: headers are compared after lower-casing,
trimming and collapsing whitespace to ``_``, against a fixed alias table per
canonical field. Fields are tried in declaration order, the first alias hit
wins, and a field keeps the first header that claimed it.

The resulting :class:`HeaderMapping` is immutable; manual overrides return a
new mapping.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import MappingError
from ..models import RecordKind


CATEGORY = "category"
AMOUNT = "amount"
TEAM = "team"
MONTH = "month"
HALF = "half"
YEAR = "year"
NOTES = "notes"
DESCRIPTION = "description"
APPROVED_AMOUNT = "approved_amount"
REQUESTED_AMOUNT = "requested_amount"
H1_AMOUNT = "h1_amount"
H2_AMOUNT = "h2_amount"

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    YEAR: ("year", "yyyy", "fiscal_year"),
    MONTH: ("month", "period", "month_year", "yyyy-mm", "date"),
    HALF: ("half", "h1_h2", "semester", "half_year", "period_half"),
    CATEGORY: ("category", "category_name", "expense_category", "budget_category", "type"),
    AMOUNT: ("amount_spent_to_date", "amount_spent", "actual_amount", "actuals", "spent", "amount"),
    TEAM: ("team", "teams", "department", "departments"),
    DESCRIPTION: ("description", "details", "expense_description"),
    APPROVED_AMOUNT: ("approved_amount", "approved", "budget_approved"),
    REQUESTED_AMOUNT: ("requested_amount", "requested", "budget_requested"),
    NOTES: ("notes", "comments", "remarks"),
    H1_AMOUNT: ("h1_budget", "h1budget", "h1_amount", "first_half", "jan_jun"),
    H2_AMOUNT: ("h2_budget", "h2budget", "h2_amount", "second_half", "jul_dec"),
}

FIELDS_BY_KIND: Dict[RecordKind, Tuple[str, ...]] = {
    RecordKind.ACTUALS: (
        YEAR, MONTH, HALF, CATEGORY, AMOUNT, TEAM, DESCRIPTION,
        APPROVED_AMOUNT, REQUESTED_AMOUNT, NOTES,
    ),
    RecordKind.BUDGETS: (YEAR, CATEGORY, TEAM, H1_AMOUNT, H2_AMOUNT, NOTES),
}

# Budgets have no description; free text goes to notes.
_KIND_EXTRA_ALIASES: Dict[RecordKind, Dict[str, Tuple[str, ...]]] = {
    RecordKind.ACTUALS: {},
    RecordKind.BUDGETS: {NOTES: ("description",)},
}

_WS = re.compile(r"\s+")


def normalize_header(header: Any) -> str:
    return _WS.sub("_", str(header).strip().lower())


def alias_table(
    kind: RecordKind,
    extra_aliases: Optional[Mapping[str, Iterable[str]]] = None,
) -> Dict[str, Tuple[str, ...]]:
    """Alias sets for the fields of ``kind``, in lookup order."""

    table: Dict[str, Tuple[str, ...]] = {}
    extras = dict(_KIND_EXTRA_ALIASES[kind])
    for fld, aliases in (extra_aliases or {}).items():
        extras[fld] = tuple(extras.get(fld, ())) + tuple(aliases)
    for fld in FIELDS_BY_KIND[kind]:
        merged: List[str] = []
        for alias in FIELD_ALIASES[fld] + tuple(extras.get(fld, ())):
            key = normalize_header(alias)
            if key not in merged:
                merged.append(key)
        table[fld] = tuple(merged)
    return table


@dataclass(frozen=True)
class HeaderMapping:
    """Immutable canonical-field -> source-header binding."""

    kind: RecordKind
    headers: Tuple[str, ...]
    bindings: Tuple[Tuple[str, str], ...] = ()

    @property
    def fields(self) -> Tuple[str, ...]:
        return FIELDS_BY_KIND[self.kind]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.bindings)

    def header_for(self, field: str) -> Optional[str]:
        return self.as_dict().get(field)

    def field_for(self, header: str) -> Optional[str]:
        for fld, hdr in self.bindings:
            if hdr == header:
                return fld
        return None

    def assign(self, field: str, header: str) -> "HeaderMapping":
        """Bind ``header`` to ``field``, replacing the field's previous header.

        A header already bound to a different field is released from it.
        """

        if field not in self.fields:
            raise MappingError(f"Unknown field for {self.kind.value}: {field}")
        if header not in self.headers:
            raise MappingError(f"Unknown header: {header}")
        kept = tuple((f, h) for f, h in self.bindings if f != field and h != header)
        return self._with(kept + ((field, header),))

    def unassign(self, field: str) -> "HeaderMapping":
        if field not in self.fields:
            raise MappingError(f"Unknown field for {self.kind.value}: {field}")
        return self._with(tuple((f, h) for f, h in self.bindings if f != field))

    def missing_fields(self, required: Iterable[str]) -> List[str]:
        bound = self.as_dict()
        return [f for f in required if f not in bound]

    def unmapped_headers(self) -> List[str]:
        bound = {h for _, h in self.bindings}
        return [h for h in self.headers if h not in bound]

    def apply(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Project a raw row onto canonical fields."""

        return {fld: row.get(hdr) for fld, hdr in self.bindings if hdr in row}

    def _with(self, bindings: Tuple[Tuple[str, str], ...]) -> "HeaderMapping":
        order = {f: i for i, f in enumerate(self.fields)}
        ordered = tuple(sorted(bindings, key=lambda b: order[b[0]]))
        return HeaderMapping(kind=self.kind, headers=self.headers, bindings=ordered)


def auto_map(
    headers: Sequence[Any],
    kind: RecordKind,
    extra_aliases: Optional[Mapping[str, Iterable[str]]] = None,
) -> HeaderMapping:
    """Suggest a mapping for ``headers`` from the alias tables."""

    table = alias_table(kind, extra_aliases)
    clean = tuple(str(h) for h in headers if h is not None and str(h).strip())
    bound: Dict[str, str] = {}
    for header in clean:
        key = normalize_header(header)
        for fld, aliases in table.items():
            if key in aliases:
                bound.setdefault(fld, header)
                break
    mapping = HeaderMapping(kind=kind, headers=clean)
    return mapping._with(tuple(bound.items()))

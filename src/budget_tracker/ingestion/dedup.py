"""Natural-key matching of parsed rows against existing records.

Keys:
  - actuals: ``(period, category)``
  - budgets: ``(year, category, frozenset(teams))``

The existing-record snapshot is read-only for the whole pass, so decisions
are stable within one import. Within a batch, the last valid row carrying a
given key wins; earlier rows with the same key are marked superseded and
skipped, and only the winner is matched against the snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..models import ParsedRow, Record, RecordKind


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergePlan:
    is_update: bool = False
    matched_id: Optional[str] = None


INSERT = MergePlan()


def natural_key_for_actual(values: Mapping[str, Any]) -> Optional[Tuple[Hashable, ...]]:
    period, category = values.get("period"), values.get("category")
    if period is None or category is None:
        return None
    return (period, category)


def natural_key_for_budget(values: Mapping[str, Any]) -> Optional[Tuple[Hashable, ...]]:
    year, category, teams = values.get("year"), values.get("category"), values.get("teams")
    if year is None or category is None or not teams:
        return None
    return (year, category, frozenset(teams))


def natural_key(kind: RecordKind, values: Mapping[str, Any]) -> Optional[Tuple[Hashable, ...]]:
    if kind is RecordKind.BUDGETS:
        return natural_key_for_budget(values)
    return natural_key_for_actual(values)


def index_records(existing: Iterable[Record]) -> Dict[Tuple[Hashable, ...], str]:
    """Natural key -> id; when the snapshot holds duplicate keys the first record wins."""

    index: Dict[Tuple[Hashable, ...], str] = {}
    for record in existing:
        index.setdefault(record.natural_key, record.id)
    return index


def plan(
    key: Optional[Tuple[Hashable, ...]],
    existing: Union[Mapping[Tuple[Hashable, ...], str], Iterable[Record]],
) -> MergePlan:
    """Match one key against the existing records (or an index of them); first match wins."""

    if key is None:
        return INSERT
    index = existing if isinstance(existing, Mapping) else index_records(existing)
    matched = index.get(key)
    if matched is None:
        return INSERT
    return MergePlan(is_update=True, matched_id=matched)


def _base_valid(row: ParsedRow) -> bool:
    # Status ignoring any supersession from a previous batch pass.
    return not row.issues


def plan_batch(rows: Sequence[ParsedRow], existing: Sequence[Record]) -> List[ParsedRow]:
    """Apply the batch dedup policy and existing-record matching to ``rows`` in place.

    Returns the same row objects for convenience.
    """

    index = index_records(existing)
    last_by_key: Dict[Tuple[Hashable, ...], int] = {}
    for row in rows:
        if row.natural_key is not None and _base_valid(row):
            last_by_key[row.natural_key] = row.row_index

    for row in rows:
        row.superseded_by = None
        row.is_update = False
        row.matched_existing_id = None
        if row.natural_key is None:
            continue
        if _base_valid(row):
            winner = last_by_key[row.natural_key]
            if winner != row.row_index:
                row.superseded_by = winner
                continue
        merge = plan(row.natural_key, index)
        if merge.is_update:
            row.is_update = True
            row.matched_existing_id = merge.matched_id
            logger.debug("Row %d matches existing record %s", row.row_number, merge.matched_id)
    return list(rows)

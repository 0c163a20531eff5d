"""Search queries over actual records.

``team:Finance half:H2 amount:>500 travel`` is parsed once into a
:class:`SearchQuery` (field filters plus free text) and then evaluated
per record, instead of re-scanning the raw string for every row.
"""
from __future__ import annotations

import calendar
import shlex
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .models import ActualRecord, Half


class Operator(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    GT = "gt"
    LT = "lt"
    BETWEEN = "between"


QUERY_FIELDS = {
    "team": "team",
    "cat": "category",
    "category": "category",
    "half": "half",
    "year": "year",
    "month": "month",
    "amount": "amount",
}


@dataclass(frozen=True)
class Filter:
    field: str
    operator: Operator
    value: Tuple[str, ...]


@dataclass(frozen=True)
class SearchQuery:
    filters: Tuple[Filter, ...] = ()
    free_text: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.filters and not self.free_text


def _tokens(text: str) -> List[str]:
    try:
        return shlex.split(text)
    except ValueError:
        # unbalanced quote
        return text.replace('"', " ").split()


def _decimal(text: str) -> Decimal:
    try:
        return Decimal(text.replace(",", ""))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount filter: {text!r}") from exc


def _amount_filter(value: str) -> Filter:
    if value.startswith(">"):
        return Filter("amount", Operator.GT, (str(_decimal(value[1:])),))
    if value.startswith("<"):
        return Filter("amount", Operator.LT, (str(_decimal(value[1:])),))
    if "-" in value.strip("-"):
        low, high = value.split("-", 1)
        return Filter("amount", Operator.BETWEEN, (str(_decimal(low)), str(_decimal(high))))
    return Filter("amount", Operator.EQUALS, (str(_decimal(value)),))


def _make_filter(key: str, value: str) -> Filter:
    name = QUERY_FIELDS[key]
    if name == "amount":
        return _amount_filter(value)
    if name == "team":
        teams = tuple(t.strip() for t in value.split(",") if t.strip())
        return Filter(name, Operator.CONTAINS, teams)
    if name == "category":
        return Filter(name, Operator.CONTAINS, (value,))
    return Filter(name, Operator.EQUALS, (value,))


def parse_query(text: Optional[str]) -> SearchQuery:
    """Split a search string into field filters and free text.

    Tokens of the form ``field:value`` with a known field become filters;
    a later filter on the same field replaces an earlier one. Everything
    else is free text. Raises ValueError for a malformed amount filter.
    """
    filters = {}
    free: List[str] = []
    for token in _tokens(text or ""):
        key, sep, value = token.partition(":")
        if sep and key.lower() in QUERY_FIELDS and value:
            flt = _make_filter(key.lower(), value)
            filters[flt.field] = flt
        else:
            free.append(token)
    return SearchQuery(filters=tuple(filters.values()), free_text=" ".join(free).lower())


def _searchable_text(record: ActualRecord) -> str:
    year, month = record.period.split("-")
    label = f"{calendar.month_abbr[int(month)]} {year}"
    parts = [record.description, record.category, *record.teams, record.period, Half(record.half).value, str(record.amount), label]
    return " ".join(parts).lower()


def _matches_filter(record: ActualRecord, flt: Filter) -> bool:
    if flt.field == "team":
        wanted = [t.lower() for t in flt.value]
        return any(w in team.lower() for w in wanted for team in record.teams)
    if flt.field == "category":
        return flt.value[0].lower() in record.category.lower()
    if flt.field == "half":
        return Half(record.half).value.lower() == flt.value[0].lower()
    if flt.field == "year":
        return str(record.year) == flt.value[0]
    if flt.field == "month":
        return record.period == flt.value[0]

    amount = record.amount
    bounds = [Decimal(v) for v in flt.value]
    if flt.operator is Operator.GT:
        return amount > bounds[0]
    if flt.operator is Operator.LT:
        return amount < bounds[0]
    if flt.operator is Operator.BETWEEN:
        return bounds[0] <= amount <= bounds[1]
    return amount == bounds[0]


def matches(record: ActualRecord, query: SearchQuery) -> bool:
    if not all(_matches_filter(record, flt) for flt in query.filters):
        return False
    if query.free_text and query.free_text not in _searchable_text(record):
        return False
    return True


def filter_records(records: Iterable[ActualRecord], query: SearchQuery | str) -> List[ActualRecord]:
    """Records matching ``query`` (a parsed query or a raw search string), in input order."""

    if isinstance(query, str):
        query = parse_query(query)
    if query.is_empty:
        return list(records)
    return [r for r in records if matches(r, query)]

"""Record and import-session data model.

Budgets and actuals are the two persisted record types. ``ParsedRow`` and
``ImportReport`` only exist for the duration of one import session.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .exceptions import InvalidRecordError
from .vocabulary import CATEGORY_LIST, TEAM_LIST


class Half(str, Enum):
    H1 = "H1"
    H2 = "H2"


class RecordKind(str, Enum):
    ACTUALS = "actuals"
    BUDGETS = "budgets"


class RowStatus(str, Enum):
    VALID = "valid"
    NEEDS_MAPPING = "needs-mapping"
    ERROR = "error"


class ImportStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class IssueSeverity(str, Enum):
    """How a row issue affects the row status.

    TERMINAL issues make the row an Error; RECOVERABLE issues and WARNINGs
    hold it as NeedsMapping until a field is corrected.
    """

    TERMINAL = "terminal"
    RECOVERABLE = "recoverable"
    WARNING = "warning"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex


def half_for_month(month: int) -> Half:
    return Half.H1 if month <= 6 else Half.H2


def _parse_period(period: str) -> Tuple[int, int]:
    try:
        year_text, month_text = str(period).split("-")
        year, month = int(year_text), int(month_text)
    except ValueError as exc:
        raise InvalidRecordError(f"Invalid period {period!r} (expected YYYY-MM)") from exc
    if not 1 <= month <= 12 or len(year_text) != 4 or len(month_text) != 2:
        raise InvalidRecordError(f"Invalid period {period!r} (expected YYYY-MM)")
    return year, month


def _check_teams(teams: Sequence[str]) -> None:
    if not teams:
        raise InvalidRecordError("At least one team is required")


def _check_vocabulary(value: str, vocabulary: Iterable[str], label: str) -> None:
    if value not in set(vocabulary):
        raise InvalidRecordError(f"Unknown {label}: {value}")


@dataclass(frozen=True)
class BudgetRecord:
    id: str
    year: int
    teams: Tuple[str, ...]
    category: str
    h1_amount: Decimal
    h2_amount: Decimal
    notes: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        _check_teams(self.teams)
        if self.h1_amount < 0 or self.h2_amount < 0:
            raise InvalidRecordError("Budget amounts cannot be negative")
        if self.h1_amount == 0 and self.h2_amount == 0:
            raise InvalidRecordError("At least one budget amount (H1 or H2) must be greater than 0")

    @property
    def annual_amount(self) -> Decimal:
        return self.h1_amount + self.h2_amount

    @property
    def natural_key(self) -> Tuple[int, str, FrozenSet[str]]:
        return (self.year, self.category, frozenset(self.teams))

    @classmethod
    def create(
        cls,
        *,
        year: int,
        teams: Sequence[str],
        category: str,
        h1_amount: Union[Decimal, int, str],
        h2_amount: Union[Decimal, int, str],
        notes: str = "",
        categories: Iterable[str] = CATEGORY_LIST,
        team_vocabulary: Iterable[str] = TEAM_LIST,
        now: Optional[datetime] = None,
    ) -> "BudgetRecord":
        """Build a new budget from form input, checking the vocabularies."""

        _check_vocabulary(category, categories, "category")
        allowed = set(team_vocabulary)
        for team in teams:
            _check_vocabulary(team, allowed, "team")
        stamp = now or utcnow()
        return cls(
            id=new_record_id(),
            year=int(year),
            teams=tuple(teams),
            category=category,
            h1_amount=Decimal(h1_amount),
            h2_amount=Decimal(h2_amount),
            notes=notes or "",
            created_at=stamp,
            updated_at=stamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "year": self.year,
            "teams": list(self.teams),
            "category": self.category,
            "h1_amount": str(self.h1_amount),
            "h2_amount": str(self.h2_amount),
            "annual_amount": str(self.annual_amount),
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BudgetRecord":
        return cls(
            id=str(data["id"]),
            year=int(data["year"]),
            teams=tuple(data["teams"]),
            category=str(data["category"]),
            h1_amount=Decimal(str(data["h1_amount"])),
            h2_amount=Decimal(str(data["h2_amount"])),
            notes=str(data.get("notes") or ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class ActualRecord:
    id: str
    period: str
    year: int
    half: Half
    teams: Tuple[str, ...]
    category: str
    amount: Decimal
    description: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        year, month = _parse_period(self.period)
        if self.year != year or Half(self.half) != half_for_month(month):
            raise InvalidRecordError(
                f"Period {self.period} does not match year {self.year} / half {Half(self.half).value}"
            )
        _check_teams(self.teams)
        if self.amount < 0:
            raise InvalidRecordError("Actual amounts are stored as absolute values")

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.period, self.category)

    @classmethod
    def create(
        cls,
        *,
        period: str,
        teams: Sequence[str],
        category: str,
        amount: Union[Decimal, int, str],
        description: str = "",
        categories: Iterable[str] = CATEGORY_LIST,
        team_vocabulary: Iterable[str] = TEAM_LIST,
        now: Optional[datetime] = None,
    ) -> "ActualRecord":
        """Build a new actual from form input; year and half are derived from ``period``."""

        _check_vocabulary(category, categories, "category")
        allowed = set(team_vocabulary)
        for team in teams:
            _check_vocabulary(team, allowed, "team")
        year, month = _parse_period(period)
        stamp = now or utcnow()
        return cls(
            id=new_record_id(),
            period=period,
            year=year,
            half=half_for_month(month),
            teams=tuple(teams),
            category=category,
            amount=abs(Decimal(amount)),
            description=description or f"Expense for {category}",
            created_at=stamp,
            updated_at=stamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "period": self.period,
            "year": self.year,
            "half": Half(self.half).value,
            "teams": list(self.teams),
            "category": self.category,
            "amount": str(self.amount),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActualRecord":
        return cls(
            id=str(data["id"]),
            period=str(data["period"]),
            year=int(data["year"]),
            half=Half(data["half"]),
            teams=tuple(data["teams"]),
            category=str(data["category"]),
            amount=Decimal(str(data["amount"])),
            description=str(data.get("description") or ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


Record = Union[BudgetRecord, ActualRecord]


def touch(record: Record, now: Optional[datetime] = None, **changes: Any) -> Record:
    """Return ``record`` updated in place semantics: same id and created_at, new updated_at."""

    changes.pop("id", None)
    changes.pop("created_at", None)
    return replace(record, updated_at=now or utcnow(), **changes)


@dataclass(frozen=True)
class RowIssue:
    field: str
    message: str
    severity: IssueSeverity


@dataclass(frozen=True)
class ResolvedPeriod:
    year: int
    half: Half
    period: Optional[str] = None


@dataclass
class ParsedRow:
    """One data row as it moves through an import session."""

    row_index: int
    kind: RecordKind
    raw_data: Dict[str, Any]
    mapped_fields: Dict[str, Any]
    issues: List[RowIssue] = field(default_factory=list)
    normalized: Dict[str, Any] = field(default_factory=dict)
    resolved_period: Optional[ResolvedPeriod] = None
    natural_key: Optional[Tuple[Any, ...]] = None
    is_update: bool = False
    matched_existing_id: Optional[str] = None
    superseded_by: Optional[int] = None

    @property
    def row_number(self) -> int:
        """Spreadsheet row number: 1-based plus the header row."""
        return self.row_index + 2

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.severity is not IssueSeverity.WARNING]

    @property
    def warnings(self) -> List[str]:
        messages = [i.message for i in self.issues if i.severity is IssueSeverity.WARNING]
        if self.superseded_by is not None:
            messages.append(f"Superseded by row {self.superseded_by + 2} (same natural key)")
        return messages

    @property
    def status(self) -> RowStatus:
        if any(i.severity is IssueSeverity.TERMINAL for i in self.issues):
            return RowStatus.ERROR
        if self.issues or self.superseded_by is not None:
            return RowStatus.NEEDS_MAPPING
        return RowStatus.VALID

    @property
    def is_valid(self) -> bool:
        return self.status is RowStatus.VALID


@dataclass(frozen=True)
class ImportReport:
    timestamp: datetime
    kind: RecordKind
    source_name: str
    source_size: int
    total_rows: int
    imported_count: int
    updated_count: int
    skipped_count: int
    status: ImportStatus
    issues: Tuple[str, ...] = ()
    report_id: str = field(default_factory=new_record_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "source_name": self.source_name,
            "source_size": self.source_size,
            "total_rows": self.total_rows,
            "imported_count": self.imported_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "status": self.status.value,
            "issues": list(self.issues),
        }

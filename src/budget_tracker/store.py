"""JSON-file persistence for budgets and actuals."""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import StoreReadError
from .models import ActualRecord, BudgetRecord, Record, RecordKind, new_record_id, utcnow


logger = logging.getLogger(__name__)


class RecordStore:
    """Budgets and actuals kept in one JSON document.

    Records are held in insertion order and keyed by id; :meth:`save` writes
    the whole document back.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._budgets: Dict[str, BudgetRecord] = {}
        self._actuals: Dict[str, ActualRecord] = {}

    @classmethod
    def load(cls, path: str | Path) -> "RecordStore":
        store = cls(path)
        if not store.path.exists():
            logger.info("Record store %s not found; starting empty", store.path)
            return store
        try:
            with open(store.path, "r", encoding="utf-8") as fh:
                data = json.load(fh) or {}
            for item in data.get(RecordKind.BUDGETS.value, []):
                rec = BudgetRecord.from_dict(item)
                store._budgets[rec.id] = rec
            for item in data.get(RecordKind.ACTUALS.value, []):
                rec = ActualRecord.from_dict(item)
                store._actuals[rec.id] = rec
        except (OSError, ValueError, KeyError, TypeError, AttributeError, ArithmeticError) as exc:
            # ValueError covers JSONDecodeError and InvalidRecordError
            raise StoreReadError(f"Could not read record store {store.path}: {exc!r}") from exc
        logger.info("Loaded %d budgets and %d actuals from %s", len(store._budgets), len(store._actuals), store.path)
        return store

    def save(self) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            RecordKind.BUDGETS.value: [r.to_dict() for r in self._budgets.values()],
            RecordKind.ACTUALS.value: [r.to_dict() for r in self._actuals.values()],
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
        tmp.replace(self.path)
        return self.path

    @property
    def budgets(self) -> List[BudgetRecord]:
        return list(self._budgets.values())

    @property
    def actuals(self) -> List[ActualRecord]:
        return list(self._actuals.values())

    def records(self, kind: RecordKind) -> List[Record]:
        return self.actuals if kind is RecordKind.ACTUALS else self.budgets

    def get(self, record_id: str) -> Optional[Record]:
        return self._budgets.get(record_id) or self._actuals.get(record_id)

    def put(self, record: Record) -> None:
        """Insert or replace by id."""
        if isinstance(record, BudgetRecord):
            self._budgets[record.id] = record
        elif isinstance(record, ActualRecord):
            self._actuals[record.id] = record
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")

    def apply_import(self, result) -> int:
        """Persist an ``ImportResult`` in memory: inserts plus in-place updates.

        Returns the number of records written.
        """
        for record in result.inserted:
            self.put(record)
        for record in result.updated:
            if self.get(record.id) is None:
                logger.warning("Updated record %s is not in the store; inserting it", record.id)
            self.put(record)
        return len(result.inserted) + len(result.updated)

    def duplicate_budgets(self, from_year: int, to_year: int, now: Optional[datetime] = None) -> List[BudgetRecord]:
        """Copy ``from_year`` budgets into ``to_year`` with fresh ids.

        Budgets whose (category, teams) already exist in ``to_year`` are left alone.
        """
        if from_year == to_year:
            raise ValueError("from_year and to_year must differ")
        stamp = now or utcnow()
        taken = {r.natural_key for r in self._budgets.values() if r.year == to_year}
        created: List[BudgetRecord] = []
        for budget in self.budgets:
            if budget.year != from_year:
                continue
            copy = replace(
                budget,
                id=new_record_id(),
                year=to_year,
                notes=f"Duplicated from {from_year}: {budget.notes}",
                created_at=stamp,
                updated_at=stamp,
            )
            if copy.natural_key in taken:
                logger.debug("Skipping %s: budget already exists for %d", budget.category, to_year)
                continue
            taken.add(copy.natural_key)
            self._budgets[copy.id] = copy
            created.append(copy)
        logger.info("Duplicated %d budgets from %d to %d", len(created), from_year, to_year)
        return created

"""Exception hierarchy for the budget import core."""
from __future__ import annotations


class BudgetImportError(Exception):
    """Base class for session-level import failures."""


class ImportLimitExceeded(BudgetImportError):
    """The source exceeds the configured row or size ceiling; nothing was processed."""

    def __init__(self, message: str, *, limit: int, actual: int) -> None:
        super().__init__(message)
        self.limit = limit
        self.actual = actual


class SourceReadError(BudgetImportError):
    """The uploaded file could not be decoded into a tabular payload."""


class StoreReadError(BudgetImportError):
    """The record store file exists but could not be decoded into records."""


class MappingError(ValueError):
    """Invalid manual header-mapping operation (unknown field or header)."""


class InvalidRecordError(ValueError):
    """A budget or actual record violates one of its invariants."""

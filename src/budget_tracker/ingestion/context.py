from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..models import Half
from ..vocabulary import CATEGORY_LIST, TEAM_LIST
from .period_resolver import PeriodDefaults


MAX_ROWS = 50_000
MAX_FILE_SIZE_BYTES = 25 * 1024 * 1024


@dataclass(frozen=True)
class ImportContext:
    """Everything an import session needs besides the payload and existing records.

    Built once per session (normally from :class:`ImportSettings`); the core
    never reads preferences from anywhere else.
    """

    categories: Tuple[str, ...] = tuple(CATEGORY_LIST)
    teams: Tuple[str, ...] = tuple(TEAM_LIST)
    default_year: Optional[int] = None
    default_half: Optional[Half] = None
    default_team: Optional[str] = None
    allow_negative_amounts: bool = False
    max_rows: int = MAX_ROWS
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES
    extra_aliases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @property
    def period_defaults(self) -> PeriodDefaults:
        return PeriodDefaults(default_year=self.default_year, default_half=self.default_half)

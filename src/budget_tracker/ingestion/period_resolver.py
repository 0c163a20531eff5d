"""Reconcile Month vs. Half+Year inputs into a canonical period.

Resolution order:
  1. ``month`` (``YYYY-MM`` / ``YYYY-MM-DD`` / date cell) -> year and half are
     derived from it and the month itself is the period.
  2. Otherwise Half+Year, each taken from the row or from the session
     defaults. Half-granularity rows get a representative month so they can
     share a monthly timeline: H1 -> ``{year}-04``, H2 -> ``{year}-10``.
  3. Nothing resolved -> "Period required" error.
  4. A month-resolved row whose explicit half (or year) disagrees with the
     month is a hard conflict error; the row is never auto-corrected.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from ..models import Half, ResolvedPeriod
from .header_mapper import HALF, MONTH, YEAR
from .value_normalizer import derive_half, derive_year, is_blank, normalize_half, normalize_period, normalize_year


PERIOD_REQUIRED = "Period required: provide Month or Half+Year"
INVALID_MONTH = "Invalid month format (expected YYYY-MM)"

SOURCE_MONTH = "month"
SOURCE_HALF_YEAR = "half_year"

_REPRESENTATIVE_MONTH = {Half.H1: "04", Half.H2: "10"}


@dataclass(frozen=True)
class PeriodDefaults:
    default_year: Optional[int] = None
    default_half: Optional[Half] = None


@dataclass(frozen=True)
class PeriodResolution:
    year: Optional[int] = None
    half: Optional[Half] = None
    period: Optional[str] = None
    source: Optional[str] = None
    errors: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors and self.year is not None and self.half is not None

    def to_resolved(self) -> Optional[ResolvedPeriod]:
        if self.year is None or self.half is None:
            return None
        return ResolvedPeriod(year=self.year, half=self.half, period=self.period)


def representative_month(year: int, half: Half) -> str:
    return f"{year}-{_REPRESENTATIVE_MONTH[Half(half)]}"


def _explicit_half(mapped_row: Mapping[str, Any], errors: list) -> Optional[Half]:
    raw = mapped_row.get(HALF)
    if is_blank(raw):
        return None
    half = normalize_half(raw)
    if half is None:
        errors.append(f"Invalid half value: {str(raw).strip()}")
    return half


def _explicit_year(mapped_row: Mapping[str, Any], errors: list) -> Optional[int]:
    raw = mapped_row.get(YEAR)
    if is_blank(raw):
        return None
    year = normalize_year(raw)
    if year is None:
        errors.append(f"Invalid year value: {str(raw).strip()}")
    return year


def resolve_period(mapped_row: Mapping[str, Any], defaults: PeriodDefaults) -> PeriodResolution:
    """Resolve the row's period; a pure function of ``mapped_row`` and ``defaults``."""

    errors: list = []
    half = _explicit_half(mapped_row, errors)
    year = _explicit_year(mapped_row, errors)

    raw_month = mapped_row.get(MONTH)
    if not is_blank(raw_month):
        period = normalize_period(raw_month)
        if period is not None:
            derived_half = derive_half(period)
            derived_year = derive_year(period)
            if half is not None and half is not derived_half:
                errors.append(
                    f"Conflict: Month {period} is in {derived_half.value} but Half is {half.value}"
                )
            if year is not None and year != derived_year:
                errors.append(f"Conflict: Month {period} is in {derived_year} but Year is {year}")
            return PeriodResolution(
                year=derived_year,
                half=derived_half,
                period=period,
                source=SOURCE_MONTH,
                errors=tuple(errors),
            )
        errors.append(INVALID_MONTH)

    if half is None and is_blank(mapped_row.get(HALF)):
        half = defaults.default_half
    if year is None and is_blank(mapped_row.get(YEAR)):
        year = defaults.default_year

    if half is not None and year is not None:
        return PeriodResolution(
            year=year,
            half=Half(half),
            period=representative_month(year, half),
            source=SOURCE_HALF_YEAR,
            errors=tuple(errors),
        )

    errors.append(PERIOD_REQUIRED)
    return PeriodResolution(year=year, half=half, errors=tuple(errors))

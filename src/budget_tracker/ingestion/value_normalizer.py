from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

import pandas as pd

from ..models import Half, half_for_month


class ValueType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    PERIOD = "period"


_CURRENCY_RX = re.compile(r"[\s$,£€₣₹¥₩₽₺% ]")
_PERIOD_RX = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_RX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

MIN_YEAR = 1900
MAX_YEAR = 2999

_HALF_ALIASES: Dict[str, Half] = {
    "h1": Half.H1,
    "1h": Half.H1,
    "h-1": Half.H1,
    "first half": Half.H1,
    "first": Half.H1,
    "1st half": Half.H1,
    "jan-jun": Half.H1,
    "h2": Half.H2,
    "2h": Half.H2,
    "h-2": Half.H2,
    "second half": Half.H2,
    "second": Half.H2,
    "2nd half": Half.H2,
    "jul-dec": Half.H2,
}


def is_blank(value: Any) -> bool:
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def normalize_string(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    s = str(value).strip()
    return s or None


def strip_currency(value: Any) -> Optional[Decimal]:
    """Parse a currency/percent formatted cell into a Decimal.

    Removes currency symbols, percent signs, whitespace and thousands
    separators; ``(1,234.50)`` is read as negative.
    """

    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        val = Decimal(value)
        return val if val.is_finite() else None
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None
    s = _CURRENCY_RX.sub("", str(value).strip())
    neg = False
    if s.startswith("(") and s.endswith(")"):
        neg = True
        s = s[1:-1]
    if not s:
        return None
    try:
        val = Decimal(s)
    except InvalidOperation:
        return None
    if not val.is_finite():
        return None
    return -val if neg else val


def normalize_period(value: Any) -> Optional[str]:
    """Return ``YYYY-MM`` for month-like input, else None.

    Accepts ``YYYY-MM``, ``YYYY-MM-DD`` (truncated) and date cells; the year
    must fall in the same range as :func:`normalize_year`.
    """

    if is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        year, month = value.year, value.month
    else:
        s = str(value).strip()
        m = _PERIOD_RX.fullmatch(s) or _DATE_RX.fullmatch(s)
        if m is None:
            return None
        year, month = int(m.group(1)), int(m.group(2))
    if not (MIN_YEAR <= year <= MAX_YEAR and 1 <= month <= 12):
        return None
    return f"{year:04d}-{month:02d}"


def normalize(value: Any, target: ValueType) -> Any:
    """Coerce a raw cell to ``target``; invalid input yields None, never raises."""

    if target is ValueType.STRING:
        return normalize_string(value)
    if target is ValueType.NUMBER:
        return strip_currency(value)
    if target is ValueType.PERIOD:
        return normalize_period(value)
    raise ValueError(f"Unknown target type: {target!r}")


def normalize_half(value: Any) -> Optional[Half]:
    s = normalize_string(value)
    if s is None:
        return None
    return _HALF_ALIASES.get(s.lower())


def normalize_year(value: Any) -> Optional[int]:
    """Integer year in 1900..2999; accepts ``2025``, ``2025.0`` and ``"2025"``."""

    num = strip_currency(value)
    if num is None or num != num.to_integral_value():
        return None
    year = int(num)
    if not MIN_YEAR <= year <= MAX_YEAR:
        return None
    return year


def derive_year(period: str) -> int:
    return int(period.split("-")[0])


def derive_half(period: str) -> Half:
    return half_for_month(int(period.split("-")[1]))

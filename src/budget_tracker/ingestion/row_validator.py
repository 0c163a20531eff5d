"""Field-level and cross-field validation of mapped import rows.

Every rule runs on every row; issues accumulate instead of short-circuiting.
Validation never raises: the outcome is a list of :class:`RowIssue` whose
severities determine the row status (see :class:`ParsedRow.status`).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from ..models import IssueSeverity, RowIssue
from ..vocabulary import match_vocabulary
from .context import ImportContext
from .header_mapper import (
    AMOUNT,
    APPROVED_AMOUNT,
    CATEGORY,
    DESCRIPTION,
    H1_AMOUNT,
    H2_AMOUNT,
    MONTH,
    NOTES,
    REQUESTED_AMOUNT,
    TEAM,
    YEAR,
)
from .period_resolver import PeriodResolution
from .value_normalizer import ValueType, is_blank, normalize, normalize_year


NEGATIVE_AMOUNT = "Negative amount detected"
BOTH_HALVES_ZERO = "At least one budget amount (H1 or H2) must be greater than 0"

_TEAM_SPLIT = re.compile(r"[,;|]")


@dataclass
class RowValidation:
    issues: List[RowIssue] = field(default_factory=list)
    normalized: Dict[str, Any] = field(default_factory=dict)

    def add(self, fld: str, message: str, severity: IssueSeverity) -> None:
        self.issues.append(RowIssue(field=fld, message=message, severity=severity))

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.severity is not IssueSeverity.WARNING]

    @property
    def warnings(self) -> List[str]:
        return [i.message for i in self.issues if i.severity is IssueSeverity.WARNING]


def split_teams(value: str) -> List[str]:
    return [t.strip() for t in _TEAM_SPLIT.split(value) if t.strip()]


def _check_category(mapped_row: Mapping[str, Any], context: ImportContext, result: RowValidation) -> None:
    category = normalize(mapped_row.get(CATEGORY), ValueType.STRING)
    if category is None:
        result.add(CATEGORY, "Category is required", IssueSeverity.TERMINAL)
        return
    canonical = match_vocabulary(category, context.categories)
    if canonical is None:
        result.add(CATEGORY, f"Invalid category: {category}", IssueSeverity.RECOVERABLE)
        return
    result.normalized["category"] = canonical


def _check_teams(mapped_row: Mapping[str, Any], context: ImportContext, result: RowValidation) -> None:
    team_text = normalize(mapped_row.get(TEAM), ValueType.STRING)
    tokens = split_teams(team_text) if team_text else []
    if not tokens:
        if context.default_team:
            result.normalized["teams"] = (context.default_team,)
        else:
            result.add(TEAM, "Team is required", IssueSeverity.TERMINAL)
        return
    matched: List[str] = []
    for token in tokens:
        canonical = match_vocabulary(token, context.teams)
        if canonical is not None and canonical not in matched:
            matched.append(canonical)
    if not matched:
        result.add(TEAM, f"Invalid team(s): {team_text}", IssueSeverity.WARNING)
        return
    result.normalized["teams"] = tuple(matched)


def _signed_amount(
    value: Decimal,
    context: ImportContext,
    result: RowValidation,
    fld: str,
) -> Decimal:
    if value < 0 and not context.allow_negative_amounts and NEGATIVE_AMOUNT not in result.warnings:
        result.add(fld, NEGATIVE_AMOUNT, IssueSeverity.WARNING)
    return abs(value)


def _check_amount(mapped_row: Mapping[str, Any], context: ImportContext, result: RowValidation) -> None:
    raw = mapped_row.get(AMOUNT)
    if is_blank(raw):
        result.add(AMOUNT, "Amount is required", IssueSeverity.TERMINAL)
        return
    value = normalize(raw, ValueType.NUMBER)
    if value is None:
        result.add(AMOUNT, "Invalid amount value", IssueSeverity.TERMINAL)
        return
    result.normalized["amount"] = _signed_amount(value, context, result, AMOUNT)


def _optional(mapped_row: Mapping[str, Any], fld: str, target: ValueType) -> Optional[Any]:
    return normalize(mapped_row.get(fld), target)


def validate_actual(
    mapped_row: Mapping[str, Any],
    resolution: PeriodResolution,
    context: ImportContext,
) -> RowValidation:
    """Validate an actuals row whose period has already been resolved."""

    result = RowValidation()
    for message in resolution.errors:
        result.add(MONTH, message, IssueSeverity.TERMINAL)
    if resolution.ok:
        result.normalized.update(
            period=resolution.period,
            year=resolution.year,
            half=resolution.half,
        )

    _check_category(mapped_row, context, result)
    _check_amount(mapped_row, context, result)
    _check_teams(mapped_row, context, result)

    # Blank descriptions are defaulted when the session is finalized.
    result.normalized["description"] = _optional(mapped_row, DESCRIPTION, ValueType.STRING) or ""
    result.normalized["notes"] = _optional(mapped_row, NOTES, ValueType.STRING) or ""
    result.normalized["approved_amount"] = _optional(mapped_row, APPROVED_AMOUNT, ValueType.NUMBER)
    result.normalized["requested_amount"] = _optional(mapped_row, REQUESTED_AMOUNT, ValueType.NUMBER)
    return result


def _budget_half(
    mapped_row: Mapping[str, Any],
    fld: str,
    label: str,
    context: ImportContext,
    result: RowValidation,
) -> Optional[Decimal]:
    raw = mapped_row.get(fld)
    if is_blank(raw):
        return Decimal(0)
    value = normalize(raw, ValueType.NUMBER)
    if value is None:
        result.add(fld, f"Invalid {label} amount value", IssueSeverity.TERMINAL)
        return None
    return _signed_amount(value, context, result, fld)


def _check_budget_year(mapped_row: Mapping[str, Any], context: ImportContext, result: RowValidation) -> None:
    raw = mapped_row.get(YEAR)
    if is_blank(raw):
        if context.default_year is None:
            result.add(YEAR, "Year is required", IssueSeverity.TERMINAL)
            return
        result.normalized["year"] = context.default_year
        return
    year = normalize_year(raw)
    if year is None:
        result.add(YEAR, f"Invalid year value: {str(raw).strip()}", IssueSeverity.TERMINAL)
        return
    result.normalized["year"] = year


def validate_budget(mapped_row: Mapping[str, Any], context: ImportContext) -> RowValidation:
    """Validate a budgets row (year, category, teams, H1/H2 amounts)."""

    result = RowValidation()
    _check_budget_year(mapped_row, context, result)
    _check_category(mapped_row, context, result)
    _check_teams(mapped_row, context, result)

    h1 = _budget_half(mapped_row, H1_AMOUNT, "H1", context, result)
    h2 = _budget_half(mapped_row, H2_AMOUNT, "H2", context, result)
    if h1 is not None and h2 is not None:
        if h1 == 0 and h2 == 0:
            result.add(H1_AMOUNT, BOTH_HALVES_ZERO, IssueSeverity.TERMINAL)
        result.normalized.update(h1_amount=h1, h2_amount=h2)

    result.normalized["notes"] = _optional(mapped_row, NOTES, ValueType.STRING) or ""
    return result

"""Unit tests for row validation rules and issue severities."""
import sys
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2] / "src"))

from budget_tracker.ingestion.context import ImportContext
from budget_tracker.ingestion.period_resolver import PeriodDefaults, resolve_period
from budget_tracker.ingestion.row_validator import (
    BOTH_HALVES_ZERO,
    NEGATIVE_AMOUNT,
    split_teams,
    validate_actual,
    validate_budget,
)
from budget_tracker.models import Half, IssueSeverity


CONTEXT = ImportContext()


def _actual(row, context=CONTEXT):
    return validate_actual(row, resolve_period(row, context.period_defaults), context)


def _severities(result):
    return {i.message: i.severity for i in result.issues}


def test_valid_actual_is_normalized():
    result = _actual({
        "month": "2025-01",
        "category": "tec - software subscriptions / saas licenses",
        "amount": "$1,500.00",
        "team": "product & engineering",
    })
    assert result.issues == []
    n = result.normalized
    assert n["category"] == "TEC - Software Subscriptions / SaaS Licenses"
    assert n["amount"] == Decimal("1500.00")
    assert n["teams"] == ("Product & Engineering",)
    assert (n["year"], n["half"], n["period"]) == (2025, Half.H1, "2025-01")


def test_invalid_category_is_recoverable():
    result = _actual({"month": "2025-01", "category": "Office Stuff", "amount": "10", "team": "Finance"})
    assert _severities(result) == {"Invalid category: Office Stuff": IssueSeverity.RECOVERABLE}
    assert result.errors == ["Invalid category: Office Stuff"]


def test_missing_category_and_amount_are_terminal():
    result = _actual({"month": "2025-01", "team": "Finance"})
    sev = _severities(result)
    assert sev["Category is required"] is IssueSeverity.TERMINAL
    assert sev["Amount is required"] is IssueSeverity.TERMINAL


def test_unparseable_amount_is_terminal():
    result = _actual({"month": "2025-01", "category": "OPEX - Utilities", "amount": "lots", "team": "Finance"})
    assert _severities(result) == {"Invalid amount value": IssueSeverity.TERMINAL}


def test_negative_amount_warns_and_stores_abs():
    row = {"half": "H2", "year": 2025, "category": "OPEX - Utilities", "amount": -200, "team": "Finance"}
    result = _actual(row)
    assert result.warnings == [NEGATIVE_AMOUNT]
    assert result.errors == []
    assert result.normalized["amount"] == Decimal("200")


def test_negative_amount_allowed_by_opt_in():
    context = ImportContext(allow_negative_amounts=True)
    row = {"month": "2025-02", "category": "OPEX - Utilities", "amount": "(75)", "team": "Finance"}
    result = _actual(row, context)
    assert result.issues == []
    assert result.normalized["amount"] == Decimal("75")


def test_teams_split_filtered_and_canonicalized():
    result = _actual({"month": "2025-01", "category": "OPEX - Utilities", "amount": 1, "team": "finance; Unknown | MARKETING, finance"})
    assert result.issues == []
    assert result.normalized["teams"] == ("Finance", "Marketing")


def test_no_valid_team_is_warning():
    result = _actual({"month": "2025-01", "category": "OPEX - Utilities", "amount": 1, "team": "Ghosts"})
    assert _severities(result) == {"Invalid team(s): Ghosts": IssueSeverity.WARNING}


def test_blank_team_uses_default_or_errors():
    row = {"month": "2025-01", "category": "OPEX - Utilities", "amount": 1}
    assert _severities(_actual(row)) == {"Team is required": IssueSeverity.TERMINAL}
    result = _actual(row, ImportContext(default_team="Finance"))
    assert result.normalized["teams"] == ("Finance",)


def test_period_errors_are_terminal():
    result = _actual({"month": "2025-03", "half": "H2", "category": "OPEX - Utilities", "amount": 1, "team": "Finance"})
    assert _severities(result) == {"Conflict: Month 2025-03 is in H1 but Half is H2": IssueSeverity.TERMINAL}
    assert "period" not in result.normalized


def test_all_rules_run_without_short_circuit():
    result = _actual({"category": "Nope", "amount": "x"})
    assert len(result.issues) == 4


def test_split_teams():
    assert split_teams(" A , B;C|  ") == ["A", "B", "C"]


def test_valid_budget():
    result = validate_budget(
        {"year": "2025", "category": "MKT - Digital Advertising", "team": "Marketing", "h1_amount": "$120,000", "h2_amount": ""},
        CONTEXT,
    )
    assert result.issues == []
    n = result.normalized
    assert (n["year"], n["h1_amount"], n["h2_amount"]) == (2025, Decimal("120000"), Decimal("0"))


def test_budget_both_halves_zero_is_terminal():
    result = validate_budget({"year": 2025, "category": "MKT - Digital Advertising", "team": "Marketing", "h1_amount": "0"}, CONTEXT)
    assert _severities(result) == {BOTH_HALVES_ZERO: IssueSeverity.TERMINAL}


def test_budget_year_default_and_invalid():
    row = {"category": "MKT - Digital Advertising", "team": "Marketing", "h1_amount": 1}
    assert "Year is required" in validate_budget(row, CONTEXT).errors
    assert validate_budget(row, ImportContext(default_year=2026)).normalized["year"] == 2026
    assert "Invalid year value: FY25" in validate_budget(dict(row, year="FY25"), CONTEXT).errors


def test_budget_invalid_half_amount():
    result = validate_budget({"year": 2025, "category": "MKT - Digital Advertising", "team": "Marketing", "h1_amount": "abc", "h2_amount": 5}, CONTEXT)
    assert result.errors == ["Invalid H1 amount value"]
    assert "h1_amount" not in result.normalized


def test_budget_negative_half_warns_once():
    result = validate_budget({"year": 2025, "category": "MKT - Digital Advertising", "team": "Marketing", "h1_amount": -1, "h2_amount": -2}, CONTEXT)
    assert result.warnings == [NEGATIVE_AMOUNT]
    assert result.normalized["h2_amount"] == Decimal("2")

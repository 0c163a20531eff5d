"""Unit tests for header auto-mapping and manual overrides."""
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2] / "src"))

from budget_tracker.exceptions import MappingError
from budget_tracker.ingestion import header_mapper as hm
from budget_tracker.ingestion.header_mapper import auto_map, normalize_header
from budget_tracker.models import RecordKind


ACTUALS_TEMPLATE_HEADERS = [
    "Month", "Category", "Amount Spent to Date", "Team",
    "Description", "Approved Amount", "Requested Amount", "Notes",
]


def test_normalize_header_collapses_whitespace():
    assert normalize_header("  Amount   Spent to Date ") == "amount_spent_to_date"
    assert normalize_header("H1 Budget") == "h1_budget"


def test_auto_map_actuals_template_headers():
    mapping = auto_map(ACTUALS_TEMPLATE_HEADERS, RecordKind.ACTUALS)
    assert mapping.as_dict() == {
        hm.MONTH: "Month",
        hm.CATEGORY: "Category",
        hm.AMOUNT: "Amount Spent to Date",
        hm.TEAM: "Team",
        hm.DESCRIPTION: "Description",
        hm.APPROVED_AMOUNT: "Approved Amount",
        hm.REQUESTED_AMOUNT: "Requested Amount",
        hm.NOTES: "Notes",
    }
    assert mapping.unmapped_headers() == []


def test_auto_map_budget_headers_and_description_as_notes():
    mapping = auto_map(["YEAR", "Department", "Type", "H1 Budget", "Second Half", "Description"], RecordKind.BUDGETS)
    assert mapping.as_dict() == {
        hm.YEAR: "YEAR",
        hm.CATEGORY: "Type",
        hm.TEAM: "Department",
        hm.H1_AMOUNT: "H1 Budget",
        hm.H2_AMOUNT: "Second Half",
        hm.NOTES: "Description",
    }


def test_auto_map_first_header_keeps_field():
    mapping = auto_map(["Amount", "Spent"], RecordKind.ACTUALS)
    assert mapping.header_for(hm.AMOUNT) == "Amount"
    assert mapping.unmapped_headers() == ["Spent"]


def test_auto_map_extra_aliases():
    mapping = auto_map(["Cost Center", "Spend"], RecordKind.ACTUALS, {"team": ["cost center"], "amount": ["spend"]})
    assert mapping.header_for(hm.TEAM) == "Cost Center"
    assert mapping.header_for(hm.AMOUNT) == "Spend"


def test_unknown_headers_stay_unmapped():
    mapping = auto_map(["Foo", "Category"], RecordKind.ACTUALS)
    assert mapping.unmapped_headers() == ["Foo"]
    assert mapping.field_for("Category") == hm.CATEGORY


def test_assign_returns_new_mapping_and_releases_header():
    mapping = auto_map(["Category", "Amount", "Foo"], RecordKind.ACTUALS)
    remapped = mapping.assign(hm.NOTES, "Amount")
    assert mapping.header_for(hm.AMOUNT) == "Amount"
    assert remapped.header_for(hm.NOTES) == "Amount"
    assert remapped.header_for(hm.AMOUNT) is None

    remapped = remapped.assign(hm.AMOUNT, "Foo")
    assert remapped.header_for(hm.AMOUNT) == "Foo"


def test_assign_rejects_unknown_field_or_header():
    mapping = auto_map(["Category"], RecordKind.BUDGETS)
    with pytest.raises(MappingError):
        mapping.assign(hm.MONTH, "Category")
    with pytest.raises(MappingError):
        mapping.assign(hm.CATEGORY, "Nope")


def test_unassign_and_missing_fields():
    mapping = auto_map(["Category", "Team"], RecordKind.ACTUALS).unassign(hm.TEAM)
    assert mapping.missing_fields([hm.CATEGORY, hm.TEAM]) == [hm.TEAM]


def test_apply_projects_row():
    mapping = auto_map(["Category", "Amount", "Extra"], RecordKind.ACTUALS)
    row = {"Category": "OPEX - Utilities", "Amount": "12", "Extra": "x"}
    assert mapping.apply(row) == {hm.CATEGORY: "OPEX - Utilities", hm.AMOUNT: "12"}

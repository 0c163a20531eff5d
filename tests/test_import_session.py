"""End-to-end tests for import sessions over in-memory payloads."""
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pandas as pd
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from budget_tracker.exceptions import ImportLimitExceeded
from budget_tracker.ingestion import ImportContext, ImportSession, TabularPayload
from budget_tracker.models import (
    ActualRecord,
    BudgetRecord,
    Half,
    ImportStatus,
    RecordKind,
    RowStatus,
)


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2025, 6, 1, tzinfo=timezone.utc)
SAAS = "TEC - Software Subscriptions / SaaS Licenses"


def _session(rows, kind=RecordKind.ACTUALS, context=None, existing=(), headers=None):
    payload = TabularPayload.from_records(rows, headers=headers, source_name="upload.csv", source_size=512)
    return ImportSession.start(kind, payload, context or ImportContext(), existing=existing)


def test_valid_month_row_imports():
    session = _session([
        {"Month": "2025-01", "Category": SAAS, "Amount": "$1,500.00", "Team": "Product & Engineering"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.VALID
    assert row.normalized["amount"] == Decimal("1500.00")
    assert row.resolved_period.half is Half.H1
    assert row.resolved_period.year == 2025

    result = session.finalize(now=T0)
    (rec,) = result.inserted
    assert isinstance(rec, ActualRecord)
    assert rec.period == "2025-01"
    assert rec.description == f"Expense for {SAAS}"
    assert result.report.status is ImportStatus.COMPLETED
    assert result.report.imported_count == 1


def test_negative_amount_held_for_review():
    session = _session([
        {"Half": "H2", "Year": 2025, "Category": "OPEX - Utilities", "Amount": -200, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.NEEDS_MAPPING
    assert row.warnings == ["Negative amount detected"]
    assert row.normalized["amount"] == Decimal("200")
    assert row.normalized["period"] == "2025-10"
    result = session.finalize()
    assert result.records == ()
    assert result.report.skipped_count == 1
    assert result.report.issues == ("Row 2: Negative amount detected",)


def test_month_half_conflict_is_error():
    session = _session([
        {"Month": "2025-03", "Half": "H2", "Category": "OPEX - Utilities", "Amount": 1, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.ERROR
    assert row.errors == ["Conflict: Month 2025-03 is in H1 but Half is H2"]


@pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity")])
def test_non_finite_amount_is_error(amount):
    session = _session([
        {"Month": "2025-03", "Category": "OPEX - Utilities", "Amount": amount, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.ERROR
    assert row.errors == ["Invalid amount value"]
    result = session.finalize()
    assert result.inserted == ()
    assert result.report.skipped_count == 1


def test_missing_month_timestamp_counts_as_blank():
    session = _session([
        {"Month": pd.NaT, "Category": "OPEX - Utilities", "Amount": 5, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.ERROR
    assert row.errors == ["Period required: provide Month or Half+Year"]


def test_month_with_out_of_range_year_is_error():
    session = _session([
        {"Month": "0042-03", "Category": "OPEX - Utilities", "Amount": 5, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.ERROR
    assert "Invalid month format (expected YYYY-MM)" in row.errors
    assert session.finalize().inserted == ()


def test_unknown_category_needs_mapping():
    session = _session([
        {"Month": "2025-01", "Category": "Office Stuff", "Amount": 1, "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.NEEDS_MAPPING
    assert row.errors == ["Invalid category: Office Stuff"]


def test_matching_existing_actual_is_update():
    existing = ActualRecord.create(period="2025-01", teams=["Finance"], category="OPEX - Utilities", amount=10, now=T0)
    session = _session(
        [{"Month": "2025-01", "Category": "opex - utilities", "Amount": "25", "Team": "Marketing"}],
        existing=[existing],
    )
    (row,) = session.parse()
    assert row.is_update
    assert row.matched_existing_id == existing.id

    result = session.finalize(now=T1)
    assert result.inserted == ()
    (updated,) = result.updated
    assert updated.id == existing.id
    assert updated.created_at == T0
    assert updated.updated_at == T1
    assert updated.amount == Decimal("25")
    assert updated.teams == ("Marketing",)
    assert (result.report.imported_count, result.report.updated_count) == (0, 1)


def test_reimport_is_idempotent():
    rows = [
        {"Month": "2025-01", "Category": "OPEX - Utilities", "Amount": 10, "Team": "Finance"},
        {"Month": "2025-02", "Category": "OPEX - Utilities", "Amount": 20, "Team": "Finance"},
    ]
    first = _session(rows).finalize(now=T0)
    second = _session(rows, existing=first.inserted).finalize(now=T1)
    assert second.inserted == ()
    assert [r.id for r in second.updated] == [r.id for r in first.inserted]
    assert [r.amount for r in second.updated] == [r.amount for r in first.inserted]


def test_report_counts_add_up():
    existing = ActualRecord.create(period="2025-01", teams=["Finance"], category="OPEX - Utilities", amount=10)
    session = _session(
        [
            {"Month": "2025-01", "Category": "OPEX - Utilities", "Amount": 10, "Team": "Finance"},
            {"Month": "2025-02", "Category": "OPEX - Utilities", "Amount": 10, "Team": "Finance"},
            {"Month": "2025-02", "Category": "", "Amount": 10, "Team": "Finance"},
            {"Month": "bad", "Category": "OPEX - Utilities", "Amount": 10, "Team": "Finance"},
        ],
        existing=[existing],
    )
    report = session.finalize().report
    assert (report.total_rows, report.imported_count, report.updated_count, report.skipped_count) == (4, 1, 1, 2)
    assert report.imported_count + report.updated_count + report.skipped_count == report.total_rows
    assert report.status is ImportStatus.PARTIAL
    assert report.issues[0] == "Row 4: Category is required"


def test_duplicate_keys_in_batch_last_wins():
    session = _session([
        {"Month": "2025-01", "Category": "OPEX - Utilities", "Amount": 10, "Team": "Finance"},
        {"Month": "2025-01", "Category": "OPEX - Utilities", "Amount": 30, "Team": "Finance"},
    ])
    first, second = session.parse()
    assert first.status is RowStatus.NEEDS_MAPPING
    assert first.warnings == ["Superseded by row 3 (same natural key)"]
    assert second.status is RowStatus.VALID
    (rec,) = session.finalize().inserted
    assert rec.amount == Decimal("30")


def test_patch_row_revalidates_from_scratch():
    session = _session([
        {"Month": "2025-01", "Category": "Office Stuff", "Amount": "oops", "Team": "Finance"},
    ])
    (row,) = session.parse()
    assert row.status is RowStatus.ERROR

    row = session.patch_row(0, "category", "OPEX - Office Supplies")
    assert row.status is RowStatus.ERROR
    assert row.errors == ["Invalid amount value"]

    row = session.patch_row(0, "amount", "45")
    assert row.status is RowStatus.VALID
    (rec,) = session.finalize().inserted
    assert rec.category == "OPEX - Office Supplies"
    assert rec.amount == Decimal("45")


def test_patch_row_rejects_unknown_field_or_row():
    session = _session([{"Month": "2025-01"}])
    with pytest.raises(ValueError):
        session.patch_row(0, "h1_amount", 5)
    with pytest.raises(IndexError):
        session.patch_row(3, "amount", 5)


def test_defaults_apply_to_half_year_and_team():
    context = ImportContext(default_year=2026, default_half=Half.H1, default_team="Compliance")
    session = _session([{"Category": "COM - Audit Services", "Amount": "900"}], context=context)
    assert session.missing_mappings() == []
    (rec,) = session.finalize().inserted
    assert (rec.period, rec.year, rec.half, rec.teams) == ("2026-04", 2026, Half.H1, ("Compliance",))


def test_missing_mappings_reported():
    session = _session([{"Foo": 1}], headers=["Foo"])
    assert session.missing_mappings() == ["category", "team", "amount", "month"]


def test_remap_with_manual_assignment():
    session = _session([{"When": "2025-05", "Category": "OPEX - Utilities", "Amount": 5, "Team": "Finance"}])
    assert "month" in session.missing_mappings()
    session.remap(session.mapping.assign("month", "When"))
    (row,) = session.parse()
    assert row.status is RowStatus.VALID
    assert row.normalized["period"] == "2025-05"


def test_row_limit_aborts_before_parsing():
    context = ImportContext(max_rows=2)
    rows = [{"Month": "2025-01"}] * 3
    with pytest.raises(ImportLimitExceeded) as exc:
        _session(rows, context=context)
    assert exc.value.limit == 2
    assert exc.value.actual == 3


def test_size_limit_aborts():
    payload = TabularPayload.from_records([{"Month": "2025-01"}], source_size=10_000)
    with pytest.raises(ImportLimitExceeded):
        ImportSession.start(RecordKind.ACTUALS, payload, ImportContext(max_file_size_bytes=1_000))


def test_budget_import_and_update():
    existing = BudgetRecord.create(year=2025, teams=["Marketing"], category="MKT - Digital Advertising", h1_amount=1, h2_amount=1, now=T0)
    session = _session(
        [
            {"Year": "2025", "Team": "Marketing", "Category": "MKT - Digital Advertising", "H1 Budget": "120,000", "H2 Budget": "90000"},
            {"Year": "2025", "Team": "Finance, Strategy", "Category": "OPEX - Utilities", "H1 Budget": "", "H2 Budget": "500", "Notes": "Q3 move"},
            {"Year": "2025", "Team": "Finance", "Category": "OPEX - Utilities", "H1 Budget": "0", "H2 Budget": "0"},
        ],
        kind=RecordKind.BUDGETS,
        existing=[existing],
    )
    rows = session.parse()
    assert [r.status for r in rows] == [RowStatus.VALID, RowStatus.VALID, RowStatus.ERROR]
    assert rows[2].errors == ["At least one budget amount (H1 or H2) must be greater than 0"]

    result = session.finalize(now=T1)
    (updated,) = result.updated
    assert updated.id == existing.id
    assert updated.annual_amount == Decimal("210000")
    (inserted,) = result.inserted
    assert inserted.teams == ("Finance", "Strategy")
    assert inserted.h1_amount == Decimal("0")
    assert inserted.notes == "Q3 move"


def test_existing_records_of_other_kind_are_ignored():
    budget = BudgetRecord.create(year=2025, teams=["Finance"], category="OPEX - Utilities", h1_amount=1, h2_amount=0)
    session = _session(
        [{"Month": "2025-01", "Category": "OPEX - Utilities", "Amount": 1, "Team": "Finance"}],
        existing=[budget],
    )
    assert session.existing == ()


def test_empty_payload_completes():
    session = _session([], headers=["Month", "Category"])
    result = session.finalize()
    assert result.report.total_rows == 0
    assert result.report.status is ImportStatus.COMPLETED

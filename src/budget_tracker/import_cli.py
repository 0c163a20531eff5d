"""Command line entry point: ``budget-import``.

Subcommands:
  import             run an import session on a CSV/XLSX file against the record store
  template           write the downloadable import template
  search             search stored actuals (``team:Finance half:H2 amount:>500``)
  duplicate-budgets  copy one year's budgets into another year
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from .common.config_validator import ImportSettings, load_settings
from .exceptions import BudgetImportError, MappingError, StoreReadError
from .ingestion import ImportContext, ImportSession, read_tabular_file
from .ingestion.report import write_report
from .ingestion.templates import write_template
from .ingestion.value_normalizer import normalize_half
from .logging_utils import (
    end_timer,
    get_logger,
    get_user_logger,
    log_error,
    log_import_summary,
    log_system_event,
    log_warning,
    start_timer,
)
from .models import RecordKind
from .query import filter_records, parse_query
from .store import RecordStore
from .vocabulary import match_vocabulary


EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CONFIG = 2


def _context_from_args(settings: ImportSettings, args: argparse.Namespace) -> ImportContext:
    """Session context from settings, with command line overrides applied."""

    context = settings.to_context()
    changes = {}
    if args.default_year is not None:
        changes["default_year"] = args.default_year
    if args.default_half is not None:
        half = normalize_half(args.default_half)
        if half is None:
            raise ValueError(f"Invalid --default-half: {args.default_half}")
        changes["default_half"] = half
    if args.default_team is not None:
        team = match_vocabulary(args.default_team, context.teams)
        if team is None:
            raise ValueError(f"Unknown --default-team: {args.default_team}")
        changes["default_team"] = team
    if args.allow_negative:
        changes["allow_negative_amounts"] = True
    return replace(context, **changes) if changes else context


def _apply_manual_mapping(session: ImportSession, pairs: List[str]) -> None:
    mapping = session.mapping
    for pair in pairs:
        fld, sep, header = pair.partition("=")
        if not sep:
            raise MappingError(f"Expected FIELD=HEADER, got {pair!r}")
        mapping = mapping.assign(fld.strip(), header.strip())
    session.remap(mapping)


def _load_store(path, logger: logging.Logger) -> Optional[RecordStore]:
    try:
        return RecordStore.load(path)
    except StoreReadError as exc:
        log_error(logger, str(exc))
        return None


def run_import(args: argparse.Namespace, settings: ImportSettings) -> int:
    config = settings.model_dump(by_alias=True)
    logger = get_logger(config)
    user_logger = get_user_logger(config)
    timings = {}
    kind = RecordKind(args.kind)

    try:
        context = _context_from_args(settings, args)
    except ValueError as exc:
        log_error(logger, str(exc))
        return EXIT_CONFIG

    store_path = Path(args.store or settings.paths.records_store)
    store = _load_store(store_path, logger)
    if store is None:
        return EXIT_ABORTED

    t0 = start_timer()
    try:
        payload = read_tabular_file(
            args.file,
            sheet=args.sheet,
            max_rows=context.max_rows,
            max_file_size_bytes=context.max_file_size_bytes,
        )
        session = ImportSession.start(kind, payload, context, existing=store.records(kind))
        if args.map:
            _apply_manual_mapping(session, args.map)
    except (BudgetImportError, MappingError) as exc:
        log_error(logger, f"Import aborted: {exc}")
        return EXIT_ABORTED
    end_timer("read_and_map", t0, timings, logger)

    log_system_event(logger, f"Header mapping: {session.mapping.as_dict()}")
    unmapped = session.mapping.unmapped_headers()
    if unmapped:
        log_warning(logger, f"Ignored columns: {', '.join(unmapped)}")
    gaps = session.missing_mappings()
    if gaps:
        log_warning(logger, f"Unmapped required fields: {', '.join(gaps)} (use --map FIELD=HEADER)")

    t1 = start_timer()
    result = session.finalize()
    end_timer("validate_and_dedup", t1, timings, logger)

    report = result.report
    if args.dry_run:
        log_system_event(logger, "Dry run: record store left unchanged")
    else:
        written = store.apply_import(result)
        store.save()
        log_system_event(logger, f"Wrote {written} records to {store_path}")

    report_out = Path(args.report_out) if args.report_out else Path(settings.paths.reports_dir) / f"import_{report.report_id}.json"
    write_report(report, report_out)
    log_system_event(logger, f"Report written to {report_out}")
    log_import_summary(user_logger, report.to_dict(), report.issues)
    return EXIT_OK


def run_template(args: argparse.Namespace, settings: ImportSettings) -> int:
    logger = get_logger(settings.model_dump(by_alias=True))
    try:
        out = write_template(RecordKind(args.kind), args.output)
    except BudgetImportError as exc:
        log_error(logger, str(exc))
        return EXIT_ABORTED
    log_system_event(logger, f"Template written to {out}")
    return EXIT_OK


def run_search(args: argparse.Namespace, settings: ImportSettings) -> int:
    logger = get_logger(settings.model_dump(by_alias=True))
    store = _load_store(args.store or settings.paths.records_store, logger)
    if store is None:
        return EXIT_ABORTED
    try:
        query = parse_query(" ".join(args.query))
    except ValueError as exc:
        log_error(logger, str(exc))
        return EXIT_CONFIG
    found = filter_records(store.actuals, query)
    for rec in found:
        print(f"{rec.period}\t{rec.half.value}\t{', '.join(rec.teams)}\t{rec.category}\t{rec.amount}\t{rec.description}")
    log_system_event(logger, f"{len(found)} of {len(store.actuals)} actuals matched")
    return EXIT_OK


def run_duplicate_budgets(args: argparse.Namespace, settings: ImportSettings) -> int:
    logger = get_logger(settings.model_dump(by_alias=True))
    store = _load_store(args.store or settings.paths.records_store, logger)
    if store is None:
        return EXIT_ABORTED
    try:
        created = store.duplicate_budgets(args.from_year, args.to_year)
    except ValueError as exc:
        log_error(logger, str(exc))
        return EXIT_CONFIG
    store.save()
    log_system_event(logger, f"Duplicated {len(created)} budgets from {args.from_year} to {args.to_year}")
    return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""

    parser = argparse.ArgumentParser(prog="budget-import", description="Budget and actuals spreadsheet import")
    parser.add_argument("--config", default=None, help="Path to configuration YAML (defaults are used when omitted)")
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a CSV/XLSX file")
    imp.add_argument("--kind", choices=[k.value for k in RecordKind], required=True)
    imp.add_argument("--file", required=True, help="CSV or Excel file to import")
    imp.add_argument("--sheet", default=None, help="Workbook sheet (first sheet by default)")
    imp.add_argument("--store", default=None, help="Record store JSON (overrides paths.records_store)")
    imp.add_argument("--report-out", default=None, help="Where to write the import report JSON")
    imp.add_argument("--map", action="append", default=[], metavar="FIELD=HEADER", help="Manual header mapping; repeatable")
    imp.add_argument("--default-year", type=int, default=None)
    imp.add_argument("--default-half", default=None)
    imp.add_argument("--default-team", default=None)
    imp.add_argument("--allow-negative", action="store_true", help="Import negative amounts as absolute values")
    imp.add_argument("--dry-run", action="store_true", help="Validate and report without writing records")
    imp.set_defaults(handler=run_import)

    tpl = sub.add_parser("template", help="Write an import template")
    tpl.add_argument("--kind", choices=[k.value for k in RecordKind], required=True)
    tpl.add_argument("--output", required=True, help="Output path (.csv or .xlsx)")
    tpl.set_defaults(handler=run_template)

    srch = sub.add_parser("search", help="Search stored actuals")
    srch.add_argument("query", nargs="*", help='e.g. team:Finance half:H2 amount:>500 "office supplies"')
    srch.add_argument("--store", default=None)
    srch.set_defaults(handler=run_search)

    dup = sub.add_parser("duplicate-budgets", help="Copy a year's budgets into another year")
    dup.add_argument("--from-year", type=int, required=True)
    dup.add_argument("--to-year", type=int, required=True)
    dup.add_argument("--store", default=None)
    dup.set_defaults(handler=run_duplicate_budgets)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""

    args = build_arg_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        logging.getLogger(__name__).error("[ERROR] Invalid configuration: %s", exc)
        return EXIT_CONFIG
    return args.handler(args, settings)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

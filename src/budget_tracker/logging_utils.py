"""Logging utilities for the budget import tools.

Centralizes logging setup and timing helpers so the CLI can emit:
  - system-readable logs (system.log)
  - user-readable logs (user_readable.log): import summaries and issues

Graceful degradation: if file handlers fail, console logging is kept.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Optional


SYSTEM_FMT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
HUMAN_FMT = "%(message)s"

ROOT_LOGGER = "budget_tracker"


def _ensure_logs_dir(config: dict) -> Path:
    paths = (config or {}).get("paths", {})
    logs_dir = Path(paths.get("logs_dir", "logs")).expanduser().resolve()
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _safe_add_file_handler(logger: logging.Logger, path: Path, fmt: str, level: int) -> None:
    try:
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(fmt))
        logger.addHandler(fh)
    except OSError as exc:  # pragma: no cover - FS issues
        logger.warning("[WARNING] Failed to attach file handler %s (%s)", str(path), exc)


def _level(config: dict) -> int:
    name = ((config or {}).get("logging") or {}).get("level", "INFO")
    return getattr(logging, str(name).upper(), logging.INFO)


def get_logger(config: dict, name: str = ROOT_LOGGER) -> logging.Logger:
    """Return the package logger with console + system.log handlers.

    Module loggers (``budget_tracker.ingestion.*``) propagate to it.
    """
    logs_dir = _ensure_logs_dir(config)
    level = _level(config)
    file_name = ((config or {}).get("logging") or {}).get("file_name", "system.log")
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    # Reset handlers to avoid duplication across repeated initializations
    logger.handlers = []

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(SYSTEM_FMT))
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / file_name, SYSTEM_FMT, level)
    return logger


def get_user_logger(config: dict) -> logging.Logger:
    """Return a user-friendly logger that writes to user_readable.log and console."""
    logs_dir = _ensure_logs_dir(config)
    logger = logging.getLogger(f"{ROOT_LOGGER}.user")
    logger.setLevel(logging.INFO)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.propagate = False

    sh = logging.StreamHandler()
    sh.setLevel(logging.INFO)
    sh.setFormatter(logging.Formatter(HUMAN_FMT))
    logger.addHandler(sh)

    _safe_add_file_handler(logger, logs_dir / "user_readable.log", HUMAN_FMT, logging.INFO)
    return logger


def start_timer() -> float:
    return time.perf_counter()


def end_timer(step_name: str, start_time: float, timing_dict: Dict[str, float], logger: Optional[logging.Logger] = None) -> float:
    """Record elapsed seconds for ``step_name`` and log it."""
    elapsed = time.perf_counter() - float(start_time)
    timing_dict[step_name] = elapsed
    if logger is not None:
        logger.info("%s completed in %.2f seconds", step_name, elapsed)
    return elapsed


def log_system_event(logger: logging.Logger, message: str):
    logger.info("[SYSTEM] %s", message)


def log_warning(logger: logging.Logger, message: str):
    logger.warning("[WARNING] %s", message)


def log_error(logger: logging.Logger, message: str):
    logger.error("[ERROR] %s", message)


def log_import_summary(user_logger: logging.Logger, report_dict: dict, issues: Iterable[str] = ()) -> None:
    """Human-readable import outcome: counts first, then the capped issue list."""
    user_logger.info(
        "%s: %s rows, %s imported, %s updated, %s skipped (%s)",
        report_dict.get("source_name"),
        report_dict.get("total_rows"),
        report_dict.get("imported_count"),
        report_dict.get("updated_count"),
        report_dict.get("skipped_count"),
        report_dict.get("status"),
    )
    for issue in issues:
        user_logger.info("  %s", issue)

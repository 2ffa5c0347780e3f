"""
Category-routed logging for the journal.

Every module logs through ``get_logger(__name__)``; the module path decides
which of four category loggers receives the record:

- system:  startup, config, CLI, session wiring
- broker:  OANDA REST calls, ledger fetches, transaction log walks
- journal: annotation/workspace stores, merging, lazy enrichment
- sync:    backup bundles and the external file mirror

Each category writes to its own file under ``{log_dir}/{date}/`` through a
queue listener, so a slow disk never stalls the event loop. Records carry the
current ledger-sync cycle id.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from queue import Queue
from typing import Dict, List, Optional

from .timezone import now_utc
from .trace_context import get_cycle_id

CATEGORIES = ["system", "broker", "journal", "sync"]

CATEGORY_SUFFIXES = {
    "system": "sys",
    "broker": "brk",
    "journal": "jnl",
    "sync": "syn",
}

# First matching prefix wins
MODULE_ROUTING: List[tuple[str, str]] = [
    ("tradeflow.infrastructure.adapters", "broker"),
    ("tradeflow.domain.services.transaction_log_walker", "broker"),
    ("tradeflow.infrastructure.sync", "sync"),
    ("tradeflow.services.backup_service", "sync"),
    ("tradeflow.application.backup_sync_coordinator", "sync"),
    ("tradeflow.infrastructure.stores", "journal"),
    ("tradeflow.domain.services", "journal"),
    ("tradeflow.models", "journal"),
    ("tradeflow.application", "system"),
    ("tradeflow", "system"),
]

_session_run_number: Optional[int] = None
_category_loggers: Dict[str, logging.Logger] = {}
_queue_listeners: List[logging.handlers.QueueListener] = []


def get_category_for_module(module_name: str) -> str:
    """
    Map a module path to its log category.

    Args:
        module_name: Dotted module path, usually ``__name__``.

    Returns:
        One of CATEGORIES; "system" when nothing matches.
    """
    for prefix, category in MODULE_ROUTING:
        if module_name.startswith(prefix):
            return category
    return "system"


def get_logger(module_name: str) -> logging.Logger:
    """Logger for a module, routed to its category."""
    return logging.getLogger(f"tradeflow.{get_category_for_module(module_name)}")


class CycleIdFilter(logging.Filter):
    """Stamp the caller's cycle id before the record crosses to the listener thread."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.cycle_id = get_cycle_id()
        return True


def _cycle_of(record: logging.LogRecord) -> str:
    return getattr(record, "cycle_id", None) or get_cycle_id()


class JSONFormatter(logging.Formatter):
    """One JSON object per line: ts, level, cat, cycle, msg (+ data, exception)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": now_utc().isoformat(),
            "level": record.levelname,
            "cat": record.name.split(".", 1)[-1] if record.name.startswith("tradeflow.") else "system",
            "cycle": _cycle_of(record),
            "msg": record.getMessage(),
        }
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[LEVEL  ] [cycle] message``, colored by level on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        level = f"[{record.levelname:7}]"
        if self.use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"
        return f"{level} [{_cycle_of(record)}] {record.getMessage()}"


def _next_run_number(day_dir: Path, env: str, date_str: str) -> int:
    if not day_dir.exists():
        return 1
    pattern = re.compile(
        rf"^tradeflow_{re.escape(env)}_[a-z]{{3}}_{re.escape(date_str)}_(\d+)\.log$"
    )
    runs = [
        int(match.group(1))
        for match in (pattern.match(p.name) for p in day_dir.iterdir())
        if match
    ]
    return max(runs, default=0) + 1


def reset_session_run_number() -> None:
    """Forget the cached run number (tests start a fresh numbering)."""
    global _session_run_number
    _session_run_number = None


def setup_category_logging(
    env: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    console: bool = False,
    verbose: bool = False,
    json_format: bool = True,
) -> Dict[str, logging.Logger]:
    """
    Attach file (and optionally console) handlers to the category loggers.

    Files are named ``tradeflow_{env}_{sys|brk|jnl|syn}_{date}_{run}.log``;
    the run number is shared by all categories of one process. Calling this
    again replaces the previous handlers.

    Args:
        env: Environment name (practice/live), used in file names.
        log_dir: Base log directory.
        level: Level name for files; ignored when ``verbose`` forces DEBUG.
        console: Also log to stderr (WARNING+, or DEBUG+ when verbose).
        verbose: Force DEBUG everywhere.
        json_format: JSON lines instead of plain text in files.

    Returns:
        Category name -> configured logger.
    """
    global _session_run_number

    shutdown_logging()

    date_str = datetime.now().strftime("%Y-%m-%d")
    day_dir = Path(log_dir) / date_str
    day_dir.mkdir(parents=True, exist_ok=True)
    if _session_run_number is None:
        _session_run_number = _next_run_number(day_dir, env, date_str)

    effective_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    for category in CATEGORIES:
        logger = logging.getLogger(f"tradeflow.{category}")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(effective_level)
        logger.propagate = False

        file_handler = logging.FileHandler(
            day_dir / f"tradeflow_{env}_{CATEGORY_SUFFIXES[category]}_{date_str}_{_session_run_number}.log",
            mode="a",
            encoding="utf-8",
        )
        file_handler.setLevel(effective_level)
        file_handler.setFormatter(
            JSONFormatter() if json_format
            else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

        log_queue: Queue = Queue(-1)
        queue_handler = logging.handlers.QueueHandler(log_queue)
        queue_handler.addFilter(CycleIdFilter())
        logger.addHandler(queue_handler)
        listener = logging.handlers.QueueListener(log_queue, file_handler, respect_handler_level=True)
        listener.start()
        _queue_listeners.append(listener)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(ConsoleFormatter(use_colors=sys.stderr.isatty()))
            console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
            logger.addHandler(console_handler)

        _category_loggers[category] = logger

    return dict(_category_loggers)


def flush_all_loggers() -> None:
    """Flush every handler attached to a category logger."""
    for category in CATEGORIES:
        for handler in logging.getLogger(f"tradeflow.{category}").handlers:
            handler.flush()


def shutdown_logging() -> None:
    """Stop queue listeners, draining pending records to disk."""
    for listener in _queue_listeners:
        listener.stop()
        for handler in listener.handlers:
            handler.close()
    _queue_listeners.clear()

"""Utility modules."""

from .logging_setup import (
    setup_category_logging,
    flush_all_loggers,
    shutdown_logging,
    reset_session_run_number,
    get_logger,
)
from .trace_context import (
    get_cycle_id,
    new_cycle,
)
from .timezone import (
    UTC,
    now_utc,
    to_utc,
    parse_rfc3339,
    format_iso_z,
)

__all__ = [
    # Logging setup
    "setup_category_logging",
    "flush_all_loggers",
    "shutdown_logging",
    "reset_session_run_number",
    "get_logger",
    # Trace context
    "get_cycle_id",
    "new_cycle",
    # Timezone
    "UTC",
    "now_utc",
    "to_utc",
    "parse_rfc3339",
    "format_iso_z",
]

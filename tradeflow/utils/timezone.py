"""
Timezone utilities for broker timestamps.

Conventions:
- Internal storage/processing: UTC (timezone-aware)
- Broker data: OANDA returns RFC 3339 strings with up to nanosecond precision
- Backup bundles: ISO 8601 UTC with a trailing "Z"
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
import re


UTC = timezone.utc

# OANDA emits nine fractional digits; datetime only holds six.
_FRACTION_RE = re.compile(r"\.(\d+)")


def now_utc() -> datetime:
    """Get current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Args:
        dt: The datetime to convert. Naive datetimes are assumed to be UTC.

    Returns:
        Timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_rfc3339(time_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 3339 timestamp as returned by the OANDA v20 API.

    Args:
        time_str: e.g. "2024-03-15T10:30:45.123456789Z".

    Returns:
        Timezone-aware UTC datetime, or None if missing or unparseable.
    """
    if not time_str:
        return None

    text = str(time_str).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_iso_z(dt: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with millisecond precision and a "Z" suffix."""
    return to_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")

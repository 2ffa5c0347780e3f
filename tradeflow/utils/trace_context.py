"""
Trace context for correlating logs across a single ledger sync cycle.

Provides:
- Unique cycle IDs (6-char hex) for each sync cycle
- Context propagation via contextvars (async-safe)
- Easy access to current cycle ID from any module

Usage:
    # In the journal session (start of cycle)
    with new_cycle():
        trades = await ledger.fetch()
        merged = merger.merge(trades, annotations)

    # In any module
    from tradeflow.utils.trace_context import get_cycle_id
    logger.info(f"[{get_cycle_id()}] Processing...")
"""

from __future__ import annotations

import secrets
from contextvars import ContextVar
from contextlib import contextmanager
from typing import Optional, Generator

# Context variable for the current cycle ID (async-safe)
_cycle_id: ContextVar[Optional[str]] = ContextVar("cycle_id", default=None)


def generate_cycle_id() -> str:
    """
    Generate a new unique cycle ID.

    Returns:
        6-character hex string (e.g., "a7f3b2").
    """
    return secrets.token_hex(3)


def get_cycle_id() -> str:
    """
    Get the current cycle ID.

    Returns:
        Current cycle ID, or "------" if no cycle is active.
    """
    cycle_id = _cycle_id.get()
    return cycle_id if cycle_id else "------"


@contextmanager
def new_cycle() -> Generator[str, None, None]:
    """
    Context manager to create a new cycle with a unique ID.

    Yields:
        The new cycle ID.
    """
    cycle_id = generate_cycle_id()
    token = _cycle_id.set(cycle_id)

    try:
        yield cycle_id
    finally:
        _cycle_id.reset(token)


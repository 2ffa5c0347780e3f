"""Unified trade model: broker-owned ledger fields plus the local annotation overlay.

Field ownership:
- Broker-owned fields come from the OANDA ledger and are only ever written
  by the ledger client.
- Annotation-owned fields come from the local annotation store and are only
  ever written by the reconciliation merger.

The two sets are disjoint and together cover every field of ``Trade``.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TradeDirection(Enum):
    """Position direction."""
    LONG = "LONG"
    SHORT = "SHORT"


class TradeStatus(Enum):
    """Trade outcome status."""
    OPEN = "OPEN"
    WIN = "WIN"
    LOSS = "LOSS"
    BREAK_EVEN = "BREAK_EVEN"


@dataclass(frozen=True)
class Trade:
    """
    A broker trade as shown in the journal.

    Instances are immutable; the merger and scheduler produce updated
    copies with ``dataclasses.replace``.
    """

    # Broker-owned
    id: str  # Broker-assigned trade id (also the opening transaction id)
    symbol: str  # Instrument with separators stripped, e.g. "EURUSD"
    direction: TradeDirection
    status: TradeStatus
    entry_price: float
    quantity: float
    stop_loss: float = 0.0  # Current live stop (0.0 when none attached)
    take_profit: float = 0.0
    entry_time: Optional[datetime] = None
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    pnl: float = 0.0  # Realized for closed trades, unrealized for open ones

    # Annotation-owned
    notes: str = ""
    setup: str = ""
    mistake: str = ""
    emotion: str = ""
    tags: Tuple[str, ...] = ()
    followed_rules: Tuple[str, ...] = ()
    initial_stop_loss: Optional[float] = None  # Pinned or reconstructed stop

    @property
    def is_long(self) -> bool:
        return self.direction == TradeDirection.LONG

    @property
    def is_closed(self) -> bool:
        return self.status != TradeStatus.OPEN

    @property
    def effective_stop_loss(self) -> float:
        """Initial stop if known, otherwise the current live stop."""
        if self.initial_stop_loss is not None:
            return self.initial_stop_loss
        return self.stop_loss

    @property
    def risk_multiple(self) -> Optional[float]:
        """
        Realized R-multiple of a closed trade.

        Uses the initial stop-loss as the risk basis (falling back to the
        live stop). Returns None for open trades, trades without an exit
        price, or when no risk can be determined.
        """
        if not self.is_closed or self.exit_price is None:
            return None

        stop = self.effective_stop_loss
        if not stop:
            return None

        risk = abs(self.entry_price - stop)
        if risk == 0:
            return None

        if self.is_long:
            move = self.exit_price - self.entry_price
        else:
            move = self.entry_price - self.exit_price
        return move / risk

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict (stable key order)."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "status": self.status.value,
            "entry_price": self.entry_price,
            "quantity": self.quantity,
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "entry_time": self.entry_time.isoformat() if self.entry_time else None,
            "exit_price": self.exit_price,
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "pnl": self.pnl,
            "notes": self.notes,
            "setup": self.setup,
            "mistake": self.mistake,
            "emotion": self.emotion,
            "tags": list(self.tags),
            "followed_rules": list(self.followed_rules),
            "initial_stop_loss": self.initial_stop_loss,
        }


BROKER_FIELDS: frozenset[str] = frozenset({
    "id",
    "symbol",
    "direction",
    "status",
    "entry_price",
    "quantity",
    "stop_loss",
    "take_profit",
    "entry_time",
    "exit_price",
    "exit_time",
    "pnl",
})

ANNOTATION_FIELDS: frozenset[str] = frozenset({
    "notes",
    "setup",
    "mistake",
    "emotion",
    "tags",
    "followed_rules",
    "initial_stop_loss",
})


def _check_field_partition() -> None:
    all_fields = frozenset(f.name for f in fields(Trade))
    overlap = BROKER_FIELDS & ANNOTATION_FIELDS
    if overlap:
        raise TypeError(f"Trade fields owned by both broker and annotations: {sorted(overlap)}")
    unowned = all_fields - (BROKER_FIELDS | ANNOTATION_FIELDS)
    if unowned:
        raise TypeError(f"Trade fields without an owner: {sorted(unowned)}")


_check_field_partition()

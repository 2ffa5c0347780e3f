"""Historical context reconstructed from the transaction log."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .transaction import EntryOrderType


class StopLossResolution(Enum):
    """Outcome of the initial stop-loss search."""
    VALUE = "VALUE"  # A valid stop was found
    NONE = "NONE"  # The search completed and no stop was ever placed
    UNKNOWN = "UNKNOWN"  # The search could not complete (missing fill, network failure)


class ExitReason(Enum):
    """Why a closed trade was closed."""
    STOP_LOSS = "stop-loss"
    TAKE_PROFIT = "take-profit"
    MANUAL_CLOSE = "manual-close"
    TRAILING_STOP = "trailing-stop"
    OTHER = "other"

    @classmethod
    def from_broker_reason(cls, reason: Optional[str]) -> Optional["ExitReason"]:
        """
        Map the closing transaction's reason code.

        Args:
            reason: e.g. "STOP_LOSS_ORDER", "TAKE_PROFIT_ORDER", "MARKET_ORDER_TRADE_CLOSE".

        Returns:
            Mapped label, or None when no reason was given.
        """
        if not reason:
            return None
        return _EXIT_REASONS.get(reason, cls.OTHER)


_EXIT_REASONS = {
    "STOP_LOSS_ORDER": ExitReason.STOP_LOSS,
    "GUARANTEED_STOP_LOSS_ORDER": ExitReason.STOP_LOSS,
    "TAKE_PROFIT_ORDER": ExitReason.TAKE_PROFIT,
    "TRAILING_STOP_LOSS_ORDER": ExitReason.TRAILING_STOP,
    "MARKET_ORDER": ExitReason.MANUAL_CLOSE,
    "MARKET_ORDER_TRADE_CLOSE": ExitReason.MANUAL_CLOSE,
    "MARKET_ORDER_POSITION_CLOSEOUT": ExitReason.MANUAL_CLOSE,
}


@dataclass(frozen=True)
class InitialStop:
    """Tri-state initial stop-loss: a price, known-absent, or unknown."""

    resolution: StopLossResolution
    price: Optional[float] = None

    @classmethod
    def of(cls, price: float) -> "InitialStop":
        return cls(StopLossResolution.VALUE, price)

    @classmethod
    def none(cls) -> "InitialStop":
        return cls(StopLossResolution.NONE)

    @classmethod
    def unknown(cls) -> "InitialStop":
        return cls(StopLossResolution.UNKNOWN)


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Point-in-time order facts for one trade.

    Every field degrades independently to absent when its lookup fails.
    """

    initial_stop: InitialStop = field(default_factory=InitialStop.unknown)
    initial_entry_price: Optional[float] = None
    entry_order_type: Optional[EntryOrderType] = None
    exit_reason: Optional[ExitReason] = None
    raw_exit_reason: Optional[str] = None

    @property
    def initial_stop_loss(self) -> Optional[float]:
        """The reconstructed stop price, or None unless one was found."""
        if self.initial_stop.resolution == StopLossResolution.VALUE:
            return self.initial_stop.price
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_stop_loss": self.initial_stop_loss,
            "initial_stop_resolution": self.initial_stop.resolution.value,
            "initial_entry_price": self.initial_entry_price,
            "entry_order_type": self.entry_order_type.value if self.entry_order_type else None,
            "exit_reason": self.exit_reason.value if self.exit_reason else None,
            "raw_exit_reason": self.raw_exit_reason,
        }

"""Immutable transaction log records from the OANDA v20 API.

The raw API returns one loosely typed JSON shape per transaction, told apart
by a ``type`` string with many overlapping optional keys. Here each kind the
engine cares about is its own frozen dataclass, and ``parse_transaction`` is
the only code that reads raw payload keys. Consumers ``match`` on the class.

Kinds:
- OrderFillTransaction: an execution (opens, reduces or closes trades)
- EntryOrderTransaction: creation of a market / limit / stop / MIT order
- StopLossOrderTransaction: creation of a stop-loss order for a trade
- OtherTransaction: everything else (cancels, take-profits, funding, ...)
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union


class EntryOrderType(Enum):
    """Order type that opened a position."""
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"
    MARKET_IF_TOUCHED = "MARKET_IF_TOUCHED"

    @property
    def is_pending(self) -> bool:
        """Pending orders wait for a price; their planned price can differ from the fill."""
        return self != EntryOrderType.MARKET


_ENTRY_ORDER_TYPES = {
    "MARKET_ORDER": EntryOrderType.MARKET,
    "MARKET": EntryOrderType.MARKET,
    "LIMIT_ORDER": EntryOrderType.LIMIT,
    "LIMIT": EntryOrderType.LIMIT,
    "STOP_ORDER": EntryOrderType.STOP,
    "STOP": EntryOrderType.STOP,
    "MARKET_IF_TOUCHED_ORDER": EntryOrderType.MARKET_IF_TOUCHED,
    "MARKET_IF_TOUCHED": EntryOrderType.MARKET_IF_TOUCHED,
}

_STOP_LOSS_TYPES = frozenset({"STOP_LOSS_ORDER", "STOP_LOSS"})


@dataclass(frozen=True, kw_only=True)
class BaseTransaction:
    """Fields shared by every transaction kind."""

    id: str
    type: str
    reason: Optional[str] = None

    @property
    def sequence(self) -> int:
        """Numeric position in the account log (ids are monotonically increasing integers)."""
        try:
            return int(self.id)
        except ValueError:
            return -1


@dataclass(frozen=True, kw_only=True)
class OrderFillTransaction(BaseTransaction):
    """An order execution."""

    order_id: Optional[str] = None
    price: Optional[float] = None
    trade_opened_id: Optional[str] = None
    stop_loss_on_fill: Optional[float] = None  # Protective stop attached at fill time
    closed_trade_ids: Tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class EntryOrderTransaction(BaseTransaction):
    """Creation of an order that can open a position."""

    order_type: EntryOrderType
    price: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class StopLossOrderTransaction(BaseTransaction):
    """Creation of a stop-loss order attached to a trade."""

    trade_id: Optional[str] = None
    price: Optional[float] = None


@dataclass(frozen=True, kw_only=True)
class OtherTransaction(BaseTransaction):
    """Any transaction kind the engine does not interpret."""

    trade_id: Optional[str] = None


Transaction = Union[
    OrderFillTransaction,
    EntryOrderTransaction,
    StopLossOrderTransaction,
    OtherTransaction,
]


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_transaction(raw: Mapping[str, Any]) -> Transaction:
    """
    Convert a raw API transaction payload into its typed record.

    Args:
        raw: The ``transaction`` object from the API.

    Returns:
        One of the Transaction union members.

    Raises:
        ValueError: If the payload has no id.
    """
    if not isinstance(raw, Mapping) or raw.get("id") in (None, ""):
        raise ValueError(f"Transaction payload without id: {raw!r}")

    tx_id = str(raw["id"])
    tx_type = str(raw.get("type", ""))
    reason = _opt_str(raw.get("reason"))
    nested = raw.get("order") if isinstance(raw.get("order"), Mapping) else {}
    nested_type = str(nested.get("type", ""))

    if tx_type == "ORDER_FILL":
        opened = raw.get("tradeOpened") or {}
        stop_on_fill = opened.get("stopLossOnFill") or {}
        closed = raw.get("tradesClosed") or []
        return OrderFillTransaction(
            id=tx_id,
            type=tx_type,
            reason=reason,
            order_id=_opt_str(raw.get("orderID")),
            price=_to_float(raw.get("price")),
            trade_opened_id=_opt_str(opened.get("tradeID")),
            stop_loss_on_fill=_to_float(stop_on_fill.get("price")),
            closed_trade_ids=tuple(
                str(c["tradeID"]) for c in closed if isinstance(c, Mapping) and c.get("tradeID")
            ),
        )

    if tx_type in _STOP_LOSS_TYPES or nested_type in _STOP_LOSS_TYPES:
        return StopLossOrderTransaction(
            id=tx_id,
            type=tx_type,
            reason=reason,
            trade_id=_opt_str(raw.get("tradeID")) or _opt_str(nested.get("tradeID")),
            price=_to_float(raw.get("price")) if raw.get("price") else _to_float(nested.get("price")),
        )

    entry_type = _ENTRY_ORDER_TYPES.get(tx_type) or _ENTRY_ORDER_TYPES.get(nested_type)
    if entry_type is not None:
        return EntryOrderTransaction(
            id=tx_id,
            type=tx_type,
            reason=reason,
            order_type=entry_type,
            price=_to_float(raw.get("price")) if raw.get("price") else _to_float(nested.get("price")),
        )

    return OtherTransaction(
        id=tx_id,
        type=tx_type,
        reason=reason,
        trade_id=_opt_str(raw.get("tradeID")) or _opt_str(nested.get("tradeID")),
    )

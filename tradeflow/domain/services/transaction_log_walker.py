"""
Transaction log walker.

Reconstructs point-in-time order facts for one trade from the append-only
transaction log: the originally placed stop-loss, the entry order type and
planned entry price, and the reason the position was closed.

Steps (a broker error aborts only its own step, keeping earlier results):
1. Fetch the trade's opening transaction (the trade id is the fill id).
2. Fetch the originating order for the entry order type / planned price.
3. Accept ``stopLossOnFill`` if it sits on the correct side of entry.
4. Otherwise scan a bounded id window after entry for the first valid
   stop-loss order attached to the trade.
5. For closed trades, read the reason of the first closing transaction.

The scan window is an approximation: a stop placed more than ``scan_window``
transactions after entry is not found and the result is NONE.
"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

from ...domain.exceptions import StopLossRejected, TradeflowError
from ...models.enrichment import EnrichmentResult, ExitReason, InitialStop
from ...models.trade import Trade
from ...models.transaction import (
    EntryOrderTransaction,
    OrderFillTransaction,
    StopLossOrderTransaction,
    Transaction,
    parse_transaction,
)
from ...utils.logging_setup import get_logger

if TYPE_CHECKING:
    from ...infrastructure.adapters.oanda.client import OandaClient

logger = get_logger(__name__)

DEFAULT_SCAN_WINDOW = 100


def validate_stop(trade: Trade, candidate: float) -> float:
    """
    Check a stop-loss candidate against the trade's direction.

    Long stops must sit below entry, short stops above it.

    Returns:
        The candidate unchanged.

    Raises:
        StopLossRejected: If the candidate is on the wrong side (or at) entry.
    """
    valid = candidate < trade.entry_price if trade.is_long else candidate > trade.entry_price
    if not valid:
        raise StopLossRejected(candidate, trade.entry_price, trade.direction.value)
    return candidate


class TransactionLogWalker:
    """Best-effort historical reconstruction over the OANDA transaction log."""

    def __init__(self, client: "OandaClient", scan_window: int = DEFAULT_SCAN_WINDOW) -> None:
        if scan_window <= 0:
            raise ValueError("scan_window must be positive")
        self._client = client
        self._scan_window = scan_window

    @property
    def scan_window(self) -> int:
        return self._scan_window

    async def reconstruct(self, trade: Trade) -> EnrichmentResult:
        """
        Rebuild order facts for a trade. Never raises.

        Returns:
            EnrichmentResult whose fields degrade independently to absent.
            ``initial_stop`` is VALUE when a stop was accepted, NONE when every
            stop lookup completed without one, UNKNOWN when a lookup failed.
        """
        initial_stop = InitialStop.unknown()
        entry_price: Optional[float] = None
        entry_type = None

        fill = await self._fetch_fill(trade)
        if fill is not None:
            if fill.order_id:
                order = await self._fetch(fill.order_id, trade)
                match order:
                    case EntryOrderTransaction(order_type=order_type, price=price):
                        entry_type = order_type
                        if order_type.is_pending and price is not None:
                            entry_price = price
                    case None:
                        pass
                    case _:
                        logger.debug(f"Trade {trade.id}: order {fill.order_id} is {order.type}, not an entry order")

            initial_stop = await self._resolve_stop(trade, fill)

        exit_reason, raw_reason = await self._resolve_exit_reason(trade)

        result = EnrichmentResult(
            initial_stop=initial_stop,
            initial_entry_price=entry_price,
            entry_order_type=entry_type,
            exit_reason=exit_reason,
            raw_exit_reason=raw_reason,
        )
        logger.debug(f"Trade {trade.id} reconstructed: {result.to_dict()}")
        return result

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _fetch(self, transaction_id: str, trade: Trade) -> Optional[Transaction]:
        """Fetch and parse one transaction; None on any failure."""
        try:
            raw = await self._client.get_transaction(transaction_id)
            return parse_transaction(raw)
        except (TradeflowError, ValueError) as e:
            logger.warning(f"Trade {trade.id}: transaction {transaction_id} lookup failed: {e}")
            return None

    async def _fetch_fill(self, trade: Trade) -> Optional[OrderFillTransaction]:
        match await self._fetch(trade.id, trade):
            case OrderFillTransaction() as fill:
                return fill
            case None:
                return None
            case other:
                logger.debug(f"Trade {trade.id}: opening transaction is {other.type}, not ORDER_FILL")
                return None

    async def _resolve_stop(self, trade: Trade, fill: OrderFillTransaction) -> InitialStop:
        if fill.stop_loss_on_fill is not None:
            try:
                return InitialStop.of(validate_stop(trade, fill.stop_loss_on_fill))
            except StopLossRejected as e:
                logger.debug(f"Trade {trade.id}: stopLossOnFill discarded: {e}")

        try:
            candidates = await self._scan_for_stop_orders(trade)
        except (TradeflowError, ValueError) as e:
            logger.warning(f"Trade {trade.id}: stop-loss scan failed: {e}")
            return InitialStop.unknown()

        for candidate in candidates:
            if candidate.price is None:
                continue
            try:
                return InitialStop.of(validate_stop(trade, candidate.price))
            except StopLossRejected as e:
                logger.debug(f"Trade {trade.id}: stop order {candidate.id} discarded: {e}")

        return InitialStop.none()

    async def _scan_for_stop_orders(self, trade: Trade) -> List[StopLossOrderTransaction]:
        """
        Stop-loss orders for this trade in ``[start, min(start + window, last)]``.

        Returns:
            Matching orders sorted by ascending id; empty when the window is empty.
        """
        start = int(trade.id)
        summary = await self._client.get_account_summary()
        last = int(summary.get("lastTransactionID", start))
        end = min(start + self._scan_window, last)
        if end <= start:
            return []

        raw_transactions = await self._client.get_transaction_range(start, end)
        matches: List[StopLossOrderTransaction] = []
        for raw in raw_transactions:
            try:
                tx = parse_transaction(raw)
            except ValueError:
                continue
            match tx:
                case StopLossOrderTransaction(trade_id=trade_id) if trade_id == trade.id:
                    matches.append(tx)

        matches.sort(key=lambda t: t.sequence)
        return matches

    async def _resolve_exit_reason(self, trade: Trade) -> tuple[Optional[ExitReason], Optional[str]]:
        if not trade.is_closed:
            return None, None

        try:
            detail = await self._client.get_trade(trade.id)
        except TradeflowError as e:
            logger.warning(f"Trade {trade.id}: trade detail lookup failed: {e}")
            return None, None

        closing_ids = detail.get("closingTransactionIDs") or []
        if not closing_ids:
            return None, None

        closing = await self._fetch(str(closing_ids[0]), trade)
        if closing is None or not closing.reason:
            return None, None
        return ExitReason.from_broker_reason(closing.reason), closing.reason

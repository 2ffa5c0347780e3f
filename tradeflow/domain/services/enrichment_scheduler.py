"""
Lazy enrichment scheduler.

Runs the transaction log walker for trades as they become visible, at most
once per trade per session, one trade at a time. A discovered initial
stop-loss is promoted into the annotation store so it no longer has to be
re-derived.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Set, TYPE_CHECKING

from ...domain.events.event_types import EventType
from ...models.enrichment import EnrichmentResult
from ...models.trade import Trade
from ...utils.logging_setup import get_logger

if TYPE_CHECKING:
    from ...domain.interfaces.event_bus import EventBus
    from ...infrastructure.stores.annotation_store import AnnotationStore
    from .transaction_log_walker import TransactionLogWalker

logger = get_logger(__name__)


class LazyEnrichmentScheduler:
    """
    Session-scoped driver of the transaction log walker.

    Trade ids enter the attempted set before any I/O, so a re-render during
    a fetch cannot schedule the same trade twice. Attempts are never retried
    within a session.
    """

    def __init__(
        self,
        walker: "TransactionLogWalker",
        annotation_store: "AnnotationStore",
        event_bus: Optional["EventBus"] = None,
        on_trade_updated: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Args:
            walker: Reconstructs order facts for one trade.
            annotation_store: Receives promoted stop-losses.
            event_bus: Receives ``TRADE_ENRICHED``.
            on_trade_updated: Called with the trade id after a promotion; the
                owner rebuilds its view from current state, not from the
                snapshot passed to ``on_visible``.
        """
        self._walker = walker
        self._annotations = annotation_store
        self._event_bus = event_bus
        self._on_trade_updated = on_trade_updated

        self._attempted: Set[str] = set()
        self._pending: Set[str] = set()
        self._results: Dict[str, EnrichmentResult] = {}
        self._fetch_lock = asyncio.Lock()
        self._background_tasks: Set[asyncio.Task] = set()

    def on_visible(self, trades: Iterable[Trade]) -> Optional[asyncio.Task]:
        """
        Schedule enrichment for trades not attempted yet.

        Must be called from a running event loop.

        Returns:
            The background task, or None when every trade was already attempted.
        """
        batch: List[Trade] = []
        for trade in trades:
            if trade.id in self._attempted:
                continue
            self._attempted.add(trade.id)
            batch.append(trade)

        if not batch:
            return None

        logger.debug(f"Scheduling enrichment for {len(batch)} trades")
        task = asyncio.create_task(self._process(batch))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    def is_pending(self, trade_id: str) -> bool:
        """True while this trade's own lookup is in flight."""
        return trade_id in self._pending

    def was_attempted(self, trade_id: str) -> bool:
        return trade_id in self._attempted

    def result_for(self, trade_id: str) -> Optional[EnrichmentResult]:
        """Last reconstruction result for a trade, if one has completed."""
        return self._results.get(trade_id)

    async def drain(self) -> None:
        """Wait for all scheduled work to finish."""
        while True:
            tasks = [t for t in self._background_tasks if not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _process(self, batch: List[Trade]) -> None:
        # Batches from separate calls queue on one lock: one fetch in flight at a time
        async with self._fetch_lock:
            for trade in batch:
                self._pending.add(trade.id)
                try:
                    result = await self._walker.reconstruct(trade)
                except Exception as e:
                    logger.error(f"Enrichment failed for trade {trade.id}: {e}", exc_info=True)
                    continue
                finally:
                    self._pending.discard(trade.id)

                self._results[trade.id] = result
                self._promote(trade, result)

    def _promote(self, trade: Trade, result: EnrichmentResult) -> None:
        stop = result.initial_stop_loss
        if stop is None:
            return

        record = self._annotations.get(trade.id)
        pinned = record.initial_stop_loss if record is not None else None
        if stop == pinned:
            return

        self._annotations.put(trade.id, initial_stop_loss=stop)
        logger.info(f"Trade {trade.id}: initial stop-loss pinned at {stop}")

        if self._on_trade_updated is not None:
            self._on_trade_updated(trade.id)
        if self._event_bus is not None:
            self._event_bus.publish(
                EventType.TRADE_ENRICHED,
                {"trade_id": trade.id, "initial_stop_loss": stop, "result": result},
            )

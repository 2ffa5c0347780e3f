"""
Journal session.

Owns one account's engine graph: the OANDA client, ledger client, local
stores, merger, lazy enrichment and backup mirror, all sharing one event
bus. Holds the current unified trade list, replaced atomically on each
successful ledger sync.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.models import AppConfig

from ..domain.events.event_types import EventType
from ..domain.exceptions import AuthError, ConfigurationError, NetworkError
from ..domain.services.enrichment_scheduler import LazyEnrichmentScheduler
from ..domain.services.reconciliation_merger import ReconciliationMerger
from ..domain.services.transaction_log_walker import TransactionLogWalker
from ..infrastructure.adapters.oanda.client import OandaClient
from ..infrastructure.adapters.oanda.ledger_client import BrokerLedgerClient
from ..infrastructure.stores.annotation_store import AnnotationStore
from ..infrastructure.stores.local_storage import LocalStorage
from ..infrastructure.stores.workspace_store import WorkspaceStore
from ..models.trade import Trade
from ..services.backup_service import BackupService
from ..utils.logging_setup import get_logger
from ..utils.timezone import now_utc
from ..utils.trace_context import new_cycle
from .backup_sync_coordinator import BackupSyncCoordinator
from .simple_event_bus import SimpleEventBus

logger = get_logger(__name__)


class JournalSession:
    """Composition root and in-memory state for one journal."""

    def __init__(
        self,
        config: AppConfig,
        client: Optional[OandaClient] = None,
        event_bus: Optional[SimpleEventBus] = None,
    ) -> None:
        """
        Args:
            config: Loaded application config.
            client: OANDA client (built from ``config.broker`` when omitted).
            event_bus: Shared bus (a fresh one when omitted).

        Raises:
            ConfigurationError: No client given and broker credentials missing.
        """
        if client is None:
            if not config.broker.has_credentials:
                raise ConfigurationError(
                    "OANDA credentials missing: set broker.api_key/account_id or "
                    "OANDA_API_KEY/OANDA_ACCOUNT_ID"
                )
            client = OandaClient(
                api_key=config.broker.api_key,
                account_id=config.broker.account_id,
                environment=config.broker.environment,
                timeout=config.broker.request_timeout_sec,
            )

        self.config = config
        self.event_bus = event_bus or SimpleEventBus()
        self.client = client

        self.storage = LocalStorage(Path(config.storage.data_dir))
        self.annotations = AnnotationStore(self.storage, self.event_bus)
        self.workspace = WorkspaceStore(self.storage, self.event_bus)

        self.ledger = BrokerLedgerClient(client)
        self.merger = ReconciliationMerger()
        self.walker = TransactionLogWalker(client, scan_window=config.enrichment.scan_window)
        self.scheduler = LazyEnrichmentScheduler(
            self.walker,
            self.annotations,
            self.event_bus,
            on_trade_updated=self._refresh_trade,
        )

        self.backup = BackupService(self.annotations, self.workspace)
        self.sync_coordinator = BackupSyncCoordinator(
            self.backup,
            self.workspace,
            self.event_bus,
            debounce_seconds=config.sync.debounce_seconds,
        )

        self._ledger_trades: Dict[str, Trade] = {}
        self._trades: List[Trade] = []
        self.instruments: List[str] = []
        self.last_error: Optional[str] = None
        self.last_synced = None

        self.event_bus.subscribe(EventType.BACKUP_IMPORTED, self._on_backup_imported)

    async def __aenter__(self) -> "JournalSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def trades(self) -> List[Trade]:
        return list(self._trades)

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        for trade in self._trades:
            if trade.id == trade_id:
                return trade
        return None

    # -------------------------------------------------------------------------
    # Ledger sync
    # -------------------------------------------------------------------------

    async def sync(self) -> List[Trade]:
        """
        Refresh the ledger and rebuild the unified trade list.

        On failure the previous list is kept and the error re-raised.

        Raises:
            AuthError: Credentials rejected.
            NetworkError: Transport or API failure.
        """
        with new_cycle() as cycle_id:
            try:
                ledger_trades = await self.ledger.fetch()
            except (AuthError, NetworkError) as e:
                self.last_error = str(e)
                logger.error(f"Ledger sync failed [{cycle_id}]: {e}")
                self.event_bus.publish(EventType.LEDGER_SYNC_FAILED, {"error": str(e)})
                raise

            instruments = await self.ledger.fetch_instruments()

            self._ledger_trades = {t.id: t for t in ledger_trades}
            self._trades = self.merger.merge(ledger_trades, self.annotations)
            if instruments:
                self.instruments = instruments
            self.last_error = None
            self.last_synced = now_utc()

            logger.info(f"Ledger synced [{cycle_id}]: {len(self._trades)} trades")
            self.event_bus.publish(EventType.LEDGER_SYNCED, {"count": len(self._trades)})
            return self.trades

    def update_annotation(self, trade_id: str, **fields: Any) -> Optional[Trade]:
        """
        Write annotation fields for a trade and refresh its merged view.

        Returns:
            The re-merged trade, or None when the trade is not in the current ledger.

        Raises:
            ValueError: Unknown annotation field.
        """
        self.annotations.put(trade_id, fields)
        ledger_trade = self._ledger_trades.get(trade_id)
        if ledger_trade is None:
            return None
        merged = self.merger.merge_one(ledger_trade, self.annotations)
        self._replace_trade(merged)
        return merged

    # -------------------------------------------------------------------------
    # Paging and lazy enrichment
    # -------------------------------------------------------------------------

    @property
    def page_size(self) -> int:
        return self.config.enrichment.page_size

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self._trades) / self.page_size))

    def page(self, number: int = 1) -> List[Trade]:
        """Trades on a 1-based page; empty past the end."""
        if number < 1:
            raise ValueError("Page numbers start at 1")
        start = (number - 1) * self.page_size
        return self._trades[start:start + self.page_size]

    def show_page(self, number: int = 1) -> List[Trade]:
        """Return a page and schedule enrichment for its trades."""
        trades = self.page(number)
        self.scheduler.on_visible(trades)
        return trades

    async def close(self) -> None:
        await self.scheduler.drain()
        await self.sync_coordinator.close()
        await self.client.close()

    def _replace_trade(self, updated: Trade) -> None:
        self._trades = [updated if t.id == updated.id else t for t in self._trades]

    def _refresh_trade(self, trade_id: str) -> None:
        """Re-merge one trade from the current ledger snapshot and annotations."""
        ledger_trade = self._ledger_trades.get(trade_id)
        if ledger_trade is None:
            return
        self._replace_trade(self.merger.merge_one(ledger_trade, self.annotations))

    def _on_backup_imported(self, payload: Any) -> None:
        if self._ledger_trades:
            self._trades = self.merger.merge(self._trades_in_order(), self.annotations)

    def _trades_in_order(self) -> List[Trade]:
        return [self._ledger_trades[t.id] for t in self._trades if t.id in self._ledger_trades]

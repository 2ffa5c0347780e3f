"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from tradeflow.application.simple_event_bus import SimpleEventBus
from tradeflow.domain.exceptions import NotFoundError
from tradeflow.infrastructure.stores.annotation_store import AnnotationStore
from tradeflow.infrastructure.stores.local_storage import LocalStorage
from tradeflow.infrastructure.stores.workspace_store import WorkspaceStore
from tradeflow.models.trade import Trade, TradeDirection, TradeStatus


def make_trade(**overrides: Any) -> Trade:
    """Broker trade with sensible defaults (long EURUSD @ 1.1000, closed win)."""
    fields: Dict[str, Any] = dict(
        id="1000",
        symbol="EURUSD",
        direction=TradeDirection.LONG,
        status=TradeStatus.WIN,
        entry_price=1.1000,
        quantity=10000.0,
        stop_loss=0.0,
        take_profit=0.0,
        entry_time=datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc),
        exit_price=1.1100,
        exit_time=datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc),
        pnl=100.0,
    )
    fields.update(overrides)
    return Trade(**fields)


def raw_trade(trade_id: str = "1000", **overrides: Any) -> Dict[str, Any]:
    """Raw OANDA v20 trade payload."""
    raw: Dict[str, Any] = {
        "id": trade_id,
        "instrument": "EUR_USD",
        "price": "1.10000",
        "openTime": "2024-03-15T10:30:00.000000000Z",
        "initialUnits": "10000",
        "state": "CLOSED",
        "realizedPL": "100.0000",
        "averageClosePrice": "1.11000",
        "closeTime": "2024-03-15T14:00:00.000000000Z",
    }
    raw.update(overrides)
    return raw


class FakeOandaClient:
    """
    In-memory stand-in for OandaClient.

    Transactions, trade details and the summary are served from dicts;
    ``failures`` maps a transaction id (or "trades"/"summary"/"idrange"/"trade") to an
    exception raised instead. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        transactions: Optional[Dict[str, Dict[str, Any]]] = None,
        last_transaction_id: str = "2000",
        trade_details: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.account_id = "101-004-1234567-001"
        self.transactions = transactions or {}
        self.last_transaction_id = last_transaction_id
        self.trade_details = trade_details or {}
        self.trades_by_state: Dict[str, List[Dict[str, Any]]] = {"CLOSED": [], "OPEN": []}
        self.instruments: List[str] = ["EUR_USD"]
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.closed = False

    async def list_trades(self, state: str, count: int = 500) -> List[Dict[str, Any]]:
        self.calls.append(("trades", state))
        if "trades" in self.failures:
            raise self.failures["trades"]
        return list(self.trades_by_state.get(state, []))

    async def list_instruments(self) -> List[Dict[str, Any]]:
        self.calls.append(("instruments",))
        return [{"name": name} for name in self.instruments]

    async def get_transaction(self, transaction_id: str) -> Dict[str, Any]:
        self.calls.append(("transaction", transaction_id))
        if transaction_id in self.failures:
            raise self.failures[transaction_id]
        if transaction_id not in self.transactions:
            raise NotFoundError(f"Transaction {transaction_id} not found", 404)
        return self.transactions[transaction_id]

    async def get_account_summary(self) -> Dict[str, Any]:
        self.calls.append(("summary",))
        if "summary" in self.failures:
            raise self.failures["summary"]
        return {"lastTransactionID": self.last_transaction_id}

    async def get_transaction_range(self, from_id: int, to_id: int) -> List[Dict[str, Any]]:
        self.calls.append(("idrange", from_id, to_id))
        if "idrange" in self.failures:
            raise self.failures["idrange"]
        # Deliberately unordered, like a merged page
        return [
            tx for tid, tx in sorted(self.transactions.items(), key=lambda kv: -int(kv[0]))
            if from_id <= int(tid) <= to_id
        ]

    async def get_trade(self, trade_id: str) -> Dict[str, Any]:
        self.calls.append(("trade", trade_id))
        if "trade" in self.failures:
            raise self.failures["trade"]
        if trade_id not in self.trade_details:
            raise NotFoundError(f"Trade {trade_id} not found", 404)
        return self.trade_details[trade_id]

    async def close(self) -> None:
        self.closed = True

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def event_bus() -> SimpleEventBus:
    return SimpleEventBus()


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "data")


@pytest.fixture
def annotation_store(storage, event_bus) -> AnnotationStore:
    return AnnotationStore(storage, event_bus)


@pytest.fixture
def workspace_store(storage, event_bus) -> WorkspaceStore:
    return WorkspaceStore(storage, event_bus)


@pytest.fixture
def recorded_events(event_bus):
    """Subscribe to every event type; returns the list of (event_type, payload)."""
    from tradeflow.domain.events.event_types import EventType

    events: List[tuple] = []
    for event_type in EventType:
        event_bus.subscribe(event_type, lambda payload, et=event_type: events.append((et, payload)))
    return events


@pytest.fixture
def trade_factory():
    return make_trade


@pytest.fixture
def raw_trade_factory():
    return raw_trade


@pytest.fixture
def fake_client() -> FakeOandaClient:
    return FakeOandaClient()

"""Tests for BrokerLedgerClient normalization and helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tradeflow.domain.exceptions import AuthError, NetworkError
from tradeflow.infrastructure.adapters.oanda.ledger_client import (
    BrokerLedgerClient,
    find_best_match_symbol,
    normalize_trade,
)
from tradeflow.models.trade import TradeDirection, TradeStatus


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.account_id = "101-004-1234567-001"
    client.list_trades = AsyncMock()
    client.list_instruments = AsyncMock(return_value=[{"name": "EUR_USD"}, {"name": "XAU_USD"}])
    client.list_accounts = AsyncMock(return_value=[{"id": "101-004-1234567-001"}])
    client.get_candles = AsyncMock(return_value=[])
    return client


class TestNormalizeTrade:
    """Raw OANDA trade -> broker-owned Trade."""

    def test_closed_long_winner(self, raw_trade_factory):
        trade = normalize_trade(raw_trade_factory(
            stopLossOrder={"price": "1.09000"},
            takeProfitOrder={"price": "1.12000"},
        ), closed=True)

        assert trade.symbol == "EURUSD"
        assert trade.direction == TradeDirection.LONG
        assert trade.quantity == 10000
        assert trade.status == TradeStatus.WIN
        assert trade.exit_price == pytest.approx(1.11)
        assert trade.exit_time.hour == 14
        assert trade.stop_loss == pytest.approx(1.09)
        assert trade.take_profit == pytest.approx(1.12)

    def test_short_direction_from_negative_units(self, raw_trade_factory):
        trade = normalize_trade(raw_trade_factory(initialUnits="-5000", realizedPL="-12.5"), closed=True)
        assert trade.direction == TradeDirection.SHORT
        assert trade.quantity == 5000
        assert trade.status == TradeStatus.LOSS

    def test_zero_pnl_is_break_even(self, raw_trade_factory):
        trade = normalize_trade(raw_trade_factory(realizedPL="0.0000"), closed=True)
        assert trade.status == TradeStatus.BREAK_EVEN

    def test_open_trade_uses_unrealized(self, raw_trade_factory):
        trade = normalize_trade(raw_trade_factory(unrealizedPL="7.5", state="OPEN"), closed=False)
        assert trade.status == TradeStatus.OPEN
        assert trade.pnl == pytest.approx(7.5)
        assert trade.exit_price is None
        assert trade.exit_time is None

    def test_missing_attached_orders_default_to_zero(self, raw_trade_factory):
        trade = normalize_trade(raw_trade_factory(), closed=True)
        assert trade.stop_loss == 0.0
        assert trade.take_profit == 0.0
        assert trade.initial_stop_loss is None


class TestFetch:
    """fetch() is all-or-nothing and sorted newest first."""

    @pytest.mark.asyncio
    async def test_fetch_merges_and_sorts(self, mock_client, raw_trade_factory):
        mock_client.list_trades.side_effect = [
            [raw_trade_factory("1000", openTime="2024-03-01T00:00:00Z")],
            [raw_trade_factory("1200", openTime="2024-03-10T00:00:00Z", unrealizedPL="1")],
        ]
        trades = await BrokerLedgerClient(mock_client).fetch()

        assert [t.id for t in trades] == ["1200", "1000"]
        assert trades[0].status == TradeStatus.OPEN
        assert [c.args[0] for c in mock_client.list_trades.call_args_list] == ["CLOSED", "OPEN"]

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self, mock_client):
        mock_client.list_trades.side_effect = AuthError("Unauthorized", 401)
        with pytest.raises(AuthError):
            await BrokerLedgerClient(mock_client).fetch()

    @pytest.mark.asyncio
    async def test_failure_on_open_listing_returns_nothing(self, mock_client, raw_trade_factory):
        mock_client.list_trades.side_effect = [[raw_trade_factory()], NetworkError("boom", 500)]
        with pytest.raises(NetworkError):
            await BrokerLedgerClient(mock_client).fetch()

    @pytest.mark.asyncio
    async def test_non_mapping_trade_is_network_error(self, mock_client, raw_trade_factory):
        mock_client.list_trades.side_effect = [[raw_trade_factory(), "not-a-trade"], []]
        with pytest.raises(NetworkError, match="Malformed trade"):
            await BrokerLedgerClient(mock_client).fetch()

    @pytest.mark.asyncio
    async def test_value_error_during_normalization_is_network_error(
        self, mock_client, raw_trade_factory, monkeypatch
    ):
        from tradeflow.infrastructure.adapters.oanda import ledger_client

        def bad_normalize(raw, closed):
            raise ValueError("unparseable field")

        monkeypatch.setattr(ledger_client, "normalize_trade", bad_normalize)
        mock_client.list_trades.side_effect = [[raw_trade_factory()], []]
        with pytest.raises(NetworkError, match="unparseable field"):
            await BrokerLedgerClient(mock_client).fetch()


class TestHelpers:
    @pytest.mark.parametrize("symbol,instruments,expected", [
        ("EUR_USD", ["EUR_USD"], "EUR_USD"),
        ("eurusd", ["EUR_USD", "USD_JPY"], "EUR_USD"),
        ("XAUUSD", [], "XAU_USD"),
        ("GBPJPY", [], "GBP_JPY"),
        ("SPX500", [], "SPX500_USD"),
    ])
    def test_find_best_match_symbol(self, symbol, instruments, expected):
        assert find_best_match_symbol(symbol, instruments) == expected

    @pytest.mark.asyncio
    async def test_fetch_instruments_swallows_failure(self, mock_client):
        mock_client.list_instruments.side_effect = NetworkError("down")
        assert await BrokerLedgerClient(mock_client).fetch_instruments() == []

    @pytest.mark.asyncio
    async def test_verify_connection_success(self, mock_client):
        check = await BrokerLedgerClient(mock_client).verify_connection()
        assert check.success
        assert check.instruments == ["EUR_USD", "XAU_USD"]
        assert "2 instruments" in check.message

    @pytest.mark.asyncio
    async def test_verify_connection_unknown_account(self, mock_client):
        mock_client.list_accounts.return_value = [{"id": "other"}]
        check = await BrokerLedgerClient(mock_client).verify_connection()
        assert not check.success
        assert "Account ID not found" in check.message

    @pytest.mark.asyncio
    async def test_verify_connection_bad_token(self, mock_client):
        mock_client.list_accounts.side_effect = AuthError("Unauthorized", 401)
        check = await BrokerLedgerClient(mock_client).verify_connection()
        assert not check.success
        assert check.message == "Invalid API Key or Wrong Environment."

    @pytest.mark.asyncio
    async def test_fetch_candles_maps_mid_prices(self, mock_client):
        mock_client.get_candles.return_value = [
            {"time": "2024-03-15T10:00:00.000000000Z", "volume": 42,
             "mid": {"o": "1.1", "h": "1.2", "l": "1.0", "c": "1.15"}},
            {"time": "2024-03-15T11:00:00Z", "volume": 1},
        ]
        candles = await BrokerLedgerClient(mock_client).fetch_candles("EURUSD", instruments=["EUR_USD"])

        assert len(candles) == 1
        assert candles[0].close == pytest.approx(1.15)
        assert candles[0].volume == 42
        assert mock_client.get_candles.call_args.args[0] == "EUR_USD"

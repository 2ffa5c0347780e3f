"""Tests for transaction parsing into the typed union."""

from __future__ import annotations

import pytest

from tradeflow.models.transaction import (
    EntryOrderTransaction,
    EntryOrderType,
    OrderFillTransaction,
    OtherTransaction,
    StopLossOrderTransaction,
    parse_transaction,
)


class TestParseTransaction:
    """parse_transaction maps raw payloads onto one record per kind."""

    def test_order_fill_with_stop_on_fill(self):
        tx = parse_transaction({
            "id": "1000",
            "type": "ORDER_FILL",
            "orderID": "999",
            "price": "1.10000",
            "tradeOpened": {"tradeID": "1000", "stopLossOnFill": {"price": "1.09500"}},
        })
        assert isinstance(tx, OrderFillTransaction)
        assert tx.order_id == "999"
        assert tx.trade_opened_id == "1000"
        assert tx.stop_loss_on_fill == pytest.approx(1.095)

    def test_order_fill_closing_trades(self):
        tx = parse_transaction({
            "id": "1500",
            "type": "ORDER_FILL",
            "reason": "STOP_LOSS_ORDER",
            "tradesClosed": [{"tradeID": "1000"}, {"tradeID": "1001"}],
        })
        assert tx.reason == "STOP_LOSS_ORDER"
        assert tx.closed_trade_ids == ("1000", "1001")
        assert tx.stop_loss_on_fill is None

    @pytest.mark.parametrize("raw_type,expected", [
        ("MARKET_ORDER", EntryOrderType.MARKET),
        ("LIMIT_ORDER", EntryOrderType.LIMIT),
        ("STOP", EntryOrderType.STOP),
        ("MARKET_IF_TOUCHED_ORDER", EntryOrderType.MARKET_IF_TOUCHED),
    ])
    def test_entry_order_kinds(self, raw_type, expected):
        tx = parse_transaction({"id": "999", "type": raw_type, "price": "1.1"})
        assert isinstance(tx, EntryOrderTransaction)
        assert tx.order_type == expected
        assert tx.order_type.is_pending == (expected != EntryOrderType.MARKET)

    def test_stop_loss_order(self):
        tx = parse_transaction({"id": "1003", "type": "STOP_LOSS_ORDER", "tradeID": "1000", "price": "1.095"})
        assert isinstance(tx, StopLossOrderTransaction)
        assert tx.trade_id == "1000"
        assert tx.price == pytest.approx(1.095)
        assert tx.sequence == 1003

    def test_nested_stop_loss_order_create(self):
        tx = parse_transaction({
            "id": "1004",
            "type": "ORDER_CREATE",
            "order": {"type": "STOP_LOSS", "tradeID": "1000", "price": "1.0940"},
        })
        assert isinstance(tx, StopLossOrderTransaction)
        assert tx.trade_id == "1000"
        assert tx.price == pytest.approx(1.094)

    def test_unknown_kind_is_other(self):
        tx = parse_transaction({"id": "1005", "type": "TAKE_PROFIT_ORDER", "tradeID": "1000"})
        assert isinstance(tx, OtherTransaction)
        assert tx.trade_id == "1000"

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            parse_transaction({"type": "ORDER_FILL"})

    def test_records_are_immutable(self):
        tx = parse_transaction({"id": "1", "type": "DAILY_FINANCING"})
        with pytest.raises(AttributeError):
            tx.id = "2"

"""Tests for the unified Trade model and the annotation overlay record."""

from __future__ import annotations

from dataclasses import fields

import pytest

from tradeflow.models.annotation import AnnotationRecord
from tradeflow.models.trade import ANNOTATION_FIELDS, BROKER_FIELDS, Trade, TradeDirection, TradeStatus


class TestFieldOwnership:
    """Broker and annotation field sets partition the Trade fields."""

    def test_sets_are_disjoint(self):
        assert not (BROKER_FIELDS & ANNOTATION_FIELDS)

    def test_union_covers_every_field(self):
        assert BROKER_FIELDS | ANNOTATION_FIELDS == {f.name for f in fields(Trade)}

    def test_annotation_record_matches_annotation_fields(self):
        assert {f.name for f in fields(AnnotationRecord)} == ANNOTATION_FIELDS


class TestRiskMultiple:
    """R-multiple uses the initial stop, falling back to the live stop."""

    def test_long_winner_with_initial_stop(self, trade_factory):
        trade = trade_factory(initial_stop_loss=1.0950, stop_loss=1.1050)
        assert trade.risk_multiple == pytest.approx(2.0)

    def test_falls_back_to_live_stop(self, trade_factory):
        trade = trade_factory(stop_loss=1.0900)
        assert trade.risk_multiple == pytest.approx(1.0)

    def test_short_loser(self, trade_factory):
        trade = trade_factory(
            direction=TradeDirection.SHORT,
            status=TradeStatus.LOSS,
            entry_price=1.2000,
            exit_price=1.2050,
            initial_stop_loss=1.2100,
            pnl=-50.0,
        )
        assert trade.risk_multiple == pytest.approx(-0.5)

    def test_none_without_any_stop(self, trade_factory):
        assert trade_factory().risk_multiple is None

    def test_none_for_open_trade(self, trade_factory):
        trade = trade_factory(status=TradeStatus.OPEN, exit_price=None, initial_stop_loss=1.09)
        assert trade.risk_multiple is None

    def test_none_when_stop_equals_entry(self, trade_factory):
        assert trade_factory(initial_stop_loss=1.1000).risk_multiple is None


class TestAnnotationRecord:
    """Tests for AnnotationRecord merging and wire format."""

    def test_merged_replaces_only_given_fields(self):
        record = AnnotationRecord(notes="old", setup="breakout")
        updated = record.merged({"notes": "new"})
        assert updated.notes == "new"
        assert updated.setup == "breakout"
        assert record.notes == "old"

    def test_tags_deduplicated_in_order(self):
        record = AnnotationRecord().merged({"tags": ["fomo", "london", "fomo"]})
        assert record.tags == ("fomo", "london")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown annotation fields"):
            AnnotationRecord().merged({"pnl": 10})

    def test_wire_keys_are_camel_case(self):
        wire = AnnotationRecord(followed_rules=("wait for close",), initial_stop_loss=1.09).to_wire()
        assert wire["followedRules"] == ["wait for close"]
        assert wire["initialStopLoss"] == 1.09
        assert "followed_rules" not in wire

    def test_from_wire_fills_defaults(self):
        record = AnnotationRecord.from_wire({"notes": "ok", "initialStopLoss": "1.0950"})
        assert record.notes == "ok"
        assert record.tags == ()
        assert record.initial_stop_loss == 1.0950

    def test_from_wire_treats_null_strings_as_empty(self):
        record = AnnotationRecord.from_wire({"notes": None, "emotion": None})
        assert record.notes == ""
        assert record.emotion == ""


class TestTradeSerialization:
    def test_to_dict_is_stable(self, trade_factory):
        trade = trade_factory(tags=("a",))
        first = trade.to_dict()
        assert first == trade_factory(tags=("a",)).to_dict()
        assert first["direction"] == "LONG"
        assert first["entry_time"].startswith("2024-03-15T10:30")

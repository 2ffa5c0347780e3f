"""Tests for the annotation store and its local persistence."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from tradeflow.domain.events.event_types import EventType
from tradeflow.infrastructure.stores.annotation_store import AnnotationStore
from tradeflow.infrastructure.stores.local_storage import JOURNAL_DATA_KEY
from tradeflow.models.annotation import AnnotationRecord


class TestAnnotationStore:
    """get / put / tags and persistence."""

    def test_get_missing_returns_none(self, annotation_store):
        assert annotation_store.get("1000") is None

    def test_put_creates_and_merges(self, annotation_store):
        annotation_store.put("1000", notes="first look")
        annotation_store.put("1000", {"tags": ["london"]})

        record = annotation_store.get("1000")
        assert record.notes == "first look"
        assert record.tags == ("london",)

    def test_put_persists_synchronously(self, annotation_store, storage):
        annotation_store.put("1000", setup="breakout", initial_stop_loss=1.095)

        reloaded = AnnotationStore(storage)
        assert reloaded.get("1000").setup == "breakout"
        assert reloaded.get("1000").initial_stop_loss == 1.095

    def test_wire_format_on_disk(self, annotation_store, storage):
        annotation_store.put("1000", followed_rules=["A+ setup"])
        with open(storage.data_dir / f"{JOURNAL_DATA_KEY}.json") as f:
            data = json.load(f)
        assert data["1000"]["followedRules"] == ["A+ setup"]
        assert data["1000"]["initialStopLoss"] is None

    def test_put_publishes_change(self, annotation_store, recorded_events):
        annotation_store.put("1000", notes="x")
        assert recorded_events == [(EventType.ANNOTATIONS_CHANGED, {"trade_ids": ["1000"]})]

    def test_unknown_field_rejected_without_write(self, annotation_store, recorded_events):
        with pytest.raises(ValueError):
            annotation_store.put("1000", pnl=5)
        assert annotation_store.get("1000") is None
        assert recorded_events == []

    def test_get_all_tags_sorted_unique(self, annotation_store):
        annotation_store.put("1", tags=["london", "fomo"])
        annotation_store.put("2", tags=["fomo", "asia"])
        assert annotation_store.get_all_tags() == ["asia", "fomo", "london"]

    def test_overlay_replaces_whole_records(self, annotation_store, recorded_events):
        annotation_store.put("1", notes="local", setup="range")
        annotation_store.put("2", notes="keep")
        recorded_events.clear()

        annotation_store.overlay({"1": AnnotationRecord(notes="foreign")})

        assert annotation_store.get("1") == AnnotationRecord(notes="foreign")
        assert annotation_store.get("2").notes == "keep"
        assert len(recorded_events) == 1

    def test_all_returns_copy(self, annotation_store):
        annotation_store.put("1", notes="a")
        snapshot = annotation_store.all()
        snapshot.clear()
        assert "1" in annotation_store

    def test_corrupt_file_starts_empty(self, storage):
        storage.data_dir.mkdir(parents=True)
        (storage.data_dir / f"{JOURNAL_DATA_KEY}.json").write_text("{not json")
        assert len(AnnotationStore(storage)) == 0

    def test_malformed_entry_skipped(self, storage):
        storage.set(JOURNAL_DATA_KEY, {"1": "garbage", "2": {"notes": "ok"}})
        store = AnnotationStore(storage)
        assert store.get("1") is None
        assert store.get("2").notes == "ok"

    def test_failed_write_leaves_store_unchanged(self, annotation_store, storage, recorded_events, monkeypatch):
        annotation_store.put("1000", notes="saved")
        recorded_events.clear()

        def failing_set(key, value):
            raise OSError("disk full")

        monkeypatch.setattr(storage, "set", failing_set)

        with pytest.raises(OSError):
            annotation_store.put("1000", notes="never saved")
        with pytest.raises(OSError):
            annotation_store.put("2000", tags=["new"])

        assert annotation_store.get("1000").notes == "saved"
        assert "2000" not in annotation_store
        assert recorded_events == []

    def test_failed_overlay_leaves_store_unchanged(self, annotation_store, storage, recorded_events, monkeypatch):
        monkeypatch.setattr(storage, "set", MagicMock(side_effect=OSError("read-only")))

        with pytest.raises(OSError):
            annotation_store.overlay({"77": AnnotationRecord(notes="foreign")})

        assert len(annotation_store) == 0
        assert annotation_store.to_wire() == {}
        assert recorded_events == []

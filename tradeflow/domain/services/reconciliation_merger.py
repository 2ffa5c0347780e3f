"""Reconciliation of the broker ledger with the local annotation overlay."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Protocol

from ...models.annotation import AnnotationRecord
from ...models.trade import Trade


class AnnotationSource(Protocol):
    """Read side of the annotation store."""

    def get(self, trade_id: str) -> Optional[AnnotationRecord]: ...


def apply_annotation(trade: Trade, record: Optional[AnnotationRecord]) -> Trade:
    """
    Overlay one annotation record onto a broker trade.

    Only annotation-owned fields are written. Without a pinned initial stop
    the live stop-loss stands in.
    """
    if record is None:
        return replace(
            trade,
            notes="",
            setup="",
            mistake="",
            emotion="",
            tags=(),
            followed_rules=(),
            initial_stop_loss=trade.stop_loss,
        )

    initial_stop = record.initial_stop_loss
    return replace(
        trade,
        notes=record.notes,
        setup=record.setup,
        mistake=record.mistake,
        emotion=record.emotion,
        tags=record.tags,
        followed_rules=record.followed_rules,
        initial_stop_loss=initial_stop if initial_stop is not None else trade.stop_loss,
    )


class ReconciliationMerger:
    """
    Produces the unified trade list.

    Pure: the output depends only on the ledger trades and the records
    currently in the store, so merging twice with unchanged inputs gives
    equal results.
    """

    def merge(self, ledger_trades: Iterable[Trade], annotations: AnnotationSource) -> List[Trade]:
        return [apply_annotation(trade, annotations.get(trade.id)) for trade in ledger_trades]

    def merge_one(self, trade: Trade, annotations: AnnotationSource) -> Trade:
        return apply_annotation(trade, annotations.get(trade.id))

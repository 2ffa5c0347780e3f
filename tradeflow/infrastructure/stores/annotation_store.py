"""Annotation store: the locally owned overlay keyed by broker trade id."""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from ...domain.events.event_types import EventType
from ...models.annotation import AnnotationRecord
from ...utils.logging_setup import get_logger
from .local_storage import JOURNAL_DATA_KEY, LocalStorage

if TYPE_CHECKING:
    from ...domain.interfaces.event_bus import EventBus

logger = get_logger(__name__)


class AnnotationStore:
    """
    Trade id -> AnnotationRecord map persisted through LocalStorage.

    Every mutation persists synchronously and then publishes
    ``ANNOTATIONS_CHANGED`` with the affected trade ids. A failed write
    (``OSError``) propagates and leaves the in-memory map unchanged.
    """

    def __init__(self, storage: LocalStorage, event_bus: Optional["EventBus"] = None) -> None:
        self._storage = storage
        self._event_bus = event_bus
        self._records: Dict[str, AnnotationRecord] = self.from_wire(
            storage.get(JOURNAL_DATA_KEY, {}) or {}
        )

    def get(self, trade_id: str) -> Optional[AnnotationRecord]:
        return self._records.get(trade_id)

    def put(self, trade_id: str, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> AnnotationRecord:
        """
        Merge fields into the record for a trade, creating it if needed.

        Args:
            trade_id: Broker trade id.
            fields: Attribute name -> value (``notes``, ``tags``, ``initial_stop_loss``...).
            **kwargs: Same as ``fields``, for keyword-style calls.

        Returns:
            The stored record.

        Raises:
            ValueError: If a field is not an annotation field.
        """
        updates = dict(fields or {})
        updates.update(kwargs)
        current = self._records.get(trade_id, AnnotationRecord())
        record = current.merged(updates)

        candidate = dict(self._records)
        candidate[trade_id] = record
        self._commit(candidate)
        logger.debug(f"Annotation updated for trade {trade_id}: {sorted(updates)}")
        self._notify([trade_id])
        return record

    def all(self) -> Dict[str, AnnotationRecord]:
        """Copy of the full id -> record map."""
        return dict(self._records)

    def overlay(self, records: Mapping[str, AnnotationRecord]) -> None:
        """
        Replace whole records per id (ids not given are untouched).

        One persist and one notification for the batch.
        """
        if not records:
            return
        candidate = dict(self._records)
        candidate.update(records)
        self._commit(candidate)
        logger.info(f"Overlaid {len(records)} annotation records")
        self._notify(list(records))

    def get_all_tags(self) -> List[str]:
        """Deduplicated, sorted tags across all records."""
        return sorted({tag for record in self._records.values() for tag in record.tags})

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._records

    def to_wire(self) -> Dict[str, Dict[str, Any]]:
        return {trade_id: record.to_wire() for trade_id, record in self._records.items()}

    @staticmethod
    def from_wire(data: Mapping[str, Any]) -> Dict[str, AnnotationRecord]:
        records: Dict[str, AnnotationRecord] = {}
        for trade_id, raw in data.items():
            if not isinstance(raw, Mapping):
                logger.warning(f"Skipping malformed annotation for trade {trade_id}")
                continue
            try:
                records[str(trade_id)] = AnnotationRecord.from_wire(raw)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed annotation for trade {trade_id}: {e}")
        return records

    def _commit(self, candidate: Dict[str, AnnotationRecord]) -> None:
        # Memory only changes once the write has landed
        self._storage.set(
            JOURNAL_DATA_KEY,
            {trade_id: record.to_wire() for trade_id, record in candidate.items()},
        )
        self._records = candidate

    def _notify(self, trade_ids: List[str]) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(EventType.ANNOTATIONS_CHANGED, {"trade_ids": trade_ids})

"""
Backup bundle export and merge-import.

Export collects every store into one versioned JSON bundle. Import validates
the whole bundle before touching any store, then overlays it:

- strategies: per-id replacement (a foreign strategy fully replaces the
  local one with the same id; local-only strategies are kept)
- journalData: per-trade-id replacement of whole annotation records
- watchlist / uiPrefs / journalConfig: replaced when present
- settings: non-null values restored, null values ignored
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError

from ..domain.exceptions import MalformedBackup
from ..infrastructure.stores.annotation_store import AnnotationStore
from ..infrastructure.stores.workspace_store import SETTING_KEYS, WorkspaceStore
from ..models.annotation import AnnotationRecord
from ..models.backup import BACKUP_VERSION, BackupSnapshot
from ..models.strategy import Strategy
from ..utils.logging_setup import get_logger
from ..utils.timezone import format_iso_z, now_utc

logger = get_logger(__name__)

INVALID_FORMAT_MESSAGE = "Invalid backup file format."


@dataclass(frozen=True)
class ImportSummary:
    """What an import changed."""
    strategies: int
    annotations: int
    settings: int
    message: str = "Data restored successfully!"


class BackupService:
    """Builds and absorbs backup bundles for one local workspace."""

    def __init__(self, annotation_store: AnnotationStore, workspace_store: WorkspaceStore) -> None:
        self._annotations = annotation_store
        self._workspace = workspace_store

    def export_bundle(self) -> BackupSnapshot:
        """Snapshot all local state into a validated bundle."""
        return BackupSnapshot.model_validate({
            "timestamp": format_iso_z(now_utc()),
            "version": BACKUP_VERSION,
            "strategies": [s.to_wire() for s in self._workspace.get_strategies()],
            "journalData": self._annotations.to_wire(),
            "watchlist": self._workspace.get_watchlist(),
            "uiPrefs": self._workspace.get_ui_prefs(),
            "journalConfig": self._workspace.get_journal_config(),
            "settings": self._workspace.get_settings(),
        })

    def export_json(self) -> str:
        return json.dumps(self.export_bundle().to_wire(), indent=2)

    @staticmethod
    def parse(data: Union[str, bytes, Mapping[str, Any]]) -> BackupSnapshot:
        """
        Decode and validate a bundle.

        Raises:
            MalformedBackup: Invalid JSON, wrong shape, or neither strategies
                nor journalData present.
        """
        try:
            if isinstance(data, (str, bytes)):
                data = json.loads(data)
        except ValueError as e:
            raise MalformedBackup(f"Import failed: {e}") from e

        if not isinstance(data, Mapping):
            raise MalformedBackup(INVALID_FORMAT_MESSAGE)
        if data.get("strategies") is None and data.get("journalData") is None:
            raise MalformedBackup(INVALID_FORMAT_MESSAGE)

        try:
            return BackupSnapshot.model_validate(data)
        except ValidationError as e:
            raise MalformedBackup(f"{INVALID_FORMAT_MESSAGE} {e.error_count()} validation error(s)") from e

    def import_bundle(self, data: Union[str, bytes, Mapping[str, Any]]) -> ImportSummary:
        """
        Merge a foreign bundle into local state.

        Nothing is written unless the whole bundle validates.

        Raises:
            MalformedBackup: See ``parse``.
        """
        snapshot = self.parse(data)

        strategies = None
        if snapshot.strategies is not None:
            merged: Dict[str, Strategy] = {s.id: s for s in self._workspace.get_strategies()}
            for entry in snapshot.strategies:
                merged[entry.id] = Strategy(
                    id=entry.id,
                    name=entry.name,
                    description=entry.description,
                    entry_rules=tuple(entry.entry_rules),
                    exit_rules=tuple(entry.exit_rules),
                )
            strategies = list(merged.values())

        records: Dict[str, AnnotationRecord] = {}
        for trade_id, entry in (snapshot.journal_data or {}).items():
            try:
                records[trade_id] = AnnotationRecord.from_wire(entry.model_dump(by_alias=True))
            except (TypeError, ValueError) as e:
                raise MalformedBackup(f"Invalid journal entry for trade {trade_id}: {e}") from e

        settings = {
            key: value
            for key, value in (snapshot.settings or {}).items()
            if value is not None and key in SETTING_KEYS
        }
        ignored = set(snapshot.settings or {}) - set(SETTING_KEYS)
        if ignored:
            logger.warning(f"Ignoring unknown settings in backup: {sorted(ignored)}")

        self._annotations.overlay(records)
        if strategies is not None:
            self._workspace.save_strategies(strategies)
        if snapshot.watchlist is not None:
            self._workspace.save_watchlist(snapshot.watchlist)
        if snapshot.ui_prefs:
            self._workspace.save_ui_prefs(snapshot.ui_prefs)
        if snapshot.journal_config:
            self._workspace.save_journal_config(snapshot.journal_config)
        if settings:
            self._workspace.save_settings(settings)

        summary = ImportSummary(
            strategies=len(snapshot.strategies or []),
            annotations=len(records),
            settings=len(settings),
        )
        logger.info(
            f"Backup imported (version {snapshot.version}): {summary.strategies} strategies, "
            f"{summary.annotations} annotation records, {summary.settings} settings"
        )
        return summary

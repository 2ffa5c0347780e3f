"""Event types published on the journal engine's event bus."""

from __future__ import annotations
from enum import Enum


class EventType(Enum):
    """Engine event types."""
    # Local data mutations (observed by the backup mirror)
    ANNOTATIONS_CHANGED = "annotations_changed"
    STRATEGIES_CHANGED = "strategies_changed"
    WATCHLIST_CHANGED = "watchlist_changed"
    UI_PREFS_CHANGED = "ui_prefs_changed"
    JOURNAL_CONFIG_CHANGED = "journal_config_changed"
    SETTINGS_CHANGED = "settings_changed"

    # Ledger / enrichment
    LEDGER_SYNCED = "ledger_synced"
    LEDGER_SYNC_FAILED = "ledger_sync_failed"
    TRADE_ENRICHED = "trade_enriched"

    # Backup mirror
    SYNC_STATUS_CHANGED = "sync_status_changed"
    BACKUP_IMPORTED = "backup_imported"


# Mutations that make the backup bundle stale
BUNDLE_MUTATION_EVENTS: tuple[EventType, ...] = (
    EventType.ANNOTATIONS_CHANGED,
    EventType.STRATEGIES_CHANGED,
    EventType.WATCHLIST_CHANGED,
    EventType.UI_PREFS_CHANGED,
    EventType.JOURNAL_CONFIG_CHANGED,
    EventType.SETTINGS_CHANGED,
)

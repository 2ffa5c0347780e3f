"""Application layer: event bus, journal session and backup mirror coordination."""

from .simple_event_bus import SimpleEventBus
from .backup_sync_coordinator import BackupSyncCoordinator
from .journal_session import JournalSession

__all__ = ["SimpleEventBus", "BackupSyncCoordinator", "JournalSession"]

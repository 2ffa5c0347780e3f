"""
Backup sync coordinator.

Mirrors the local workspace to an external JSON file. Every bundle mutation
event (re)starts a debounce timer so bursts of edits coalesce into one
write. Writes are serialized: while one is in flight, further requests
collapse into a single follow-up write of the latest bundle.

Losing write permission deactivates the mirror and records the error once;
auto-sync stays off until the user reconnects.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Set, Union

from ..domain.events.event_types import BUNDLE_MUTATION_EVENTS, EventType
from ..domain.exceptions import PermissionRevoked
from ..domain.interfaces.event_bus import EventBus
from ..infrastructure.stores.workspace_store import WorkspaceStore
from ..infrastructure.sync.file_target import FileSyncTarget
from ..models.sync_status import SyncStatus
from ..services.backup_service import BackupService, ImportSummary
from ..utils.logging_setup import get_logger
from ..utils.timezone import now_utc

logger = get_logger(__name__)

PathLike = Union[str, Path]
TargetSelector = Callable[[], Union[PathLike, Awaitable[PathLike]]]

DEFAULT_DEBOUNCE_SECONDS = 2.0
NO_TARGET_MESSAGE = "No sync file configured."


class BackupSyncCoordinator:
    """Debounced, single-writer mirror of the backup bundle."""

    def __init__(
        self,
        backup_service: BackupService,
        workspace_store: WorkspaceStore,
        event_bus: EventBus,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._backup = backup_service
        self._workspace = workspace_store
        self._event_bus = event_bus
        self._debounce_seconds = debounce_seconds

        self._target: Optional[FileSyncTarget] = None
        self._status = SyncStatus()
        self._subscribed = False

        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()
        self._rerun_requested = False
        self._write_count = 0

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def write_count(self) -> int:
        """Number of completed writes to the external file."""
        return self._write_count

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, target_selector: TargetSelector) -> SyncStatus:
        """
        Choose a target file, remember it and write the current bundle.

        Args:
            target_selector: Returns (or resolves to) the file path to mirror into.

        Returns:
            Status after the initial write.
        """
        path = target_selector()
        if inspect.isawaitable(path):
            path = await path

        self._target = FileSyncTarget(path)
        self._workspace.remember_sync_handle(str(self._target.path))
        self._set_status(SyncStatus(is_active=True, file_name=self._target.file_name))
        self._subscribe()
        logger.info(f"Backup mirror connected: {self._target.path}")

        await self.manual_sync()
        return self._status

    async def reconnect(self) -> SyncStatus:
        """Re-arm the remembered target after a permission loss."""
        handle = self._workspace.get_sync_handle()
        if handle is None:
            self._set_status(replace(self._status, error=NO_TARGET_MESSAGE))
            return self._status
        return await self.connect(lambda: handle)

    def restore(self) -> SyncStatus:
        """
        Re-arm the remembered target at startup without writing.

        Status is optimistically active; the first write re-checks permission.
        """
        handle = self._workspace.get_sync_handle()
        if handle is None:
            return self._status

        self._target = FileSyncTarget(handle)
        self._set_status(SyncStatus(is_active=True, file_name=self._target.file_name))
        self._subscribe()
        logger.info(f"Backup mirror restored: {self._target.path}")
        return self._status

    async def disconnect(self) -> SyncStatus:
        """Stop mirroring and forget the target."""
        self._cancel_debounce()
        await self._wait_idle()
        self._unsubscribe()
        self._target = None
        self._workspace.remember_sync_handle(None)
        self._set_status(SyncStatus())
        logger.info("Backup mirror disconnected")
        return self._status

    async def close(self) -> None:
        """Flush pending work and detach from the event bus."""
        await self.flush()
        self._unsubscribe()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def manual_sync(self) -> SyncStatus:
        """Write the current bundle now (queued behind an in-flight write)."""
        self._cancel_debounce()
        if self._target is None:
            self._set_status(replace(self._status, error=NO_TARGET_MESSAGE))
            return self._status
        await self._request_write()
        await self._wait_idle()
        return self._status

    async def flush(self) -> None:
        """Run a pending debounced write immediately and wait for all writes."""
        if self._debounce_task is not None and not self._debounce_task.done():
            self._cancel_debounce()
            await self._request_write()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._wait_idle()

    def import_bundle(self, data: Union[str, bytes, Mapping[str, Any]]) -> ImportSummary:
        """
        Merge a foreign bundle into local state.

        Store mutations publish their own change events, which schedule the
        mirror write.

        Raises:
            MalformedBackup: The bundle was rejected; nothing changed.
        """
        summary = self._backup.import_bundle(data)
        self._event_bus.publish(EventType.BACKUP_IMPORTED, summary)
        return summary

    def _on_data_changed(self, payload: Any) -> None:
        if not self._status.is_active or self._target is None:
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Data changed outside the event loop; mirror write skipped")
            return

        self._cancel_debounce()
        task = asyncio.create_task(self._debounced_write())
        self._debounce_task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _debounced_write(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        # Past the timer: a new change must not cancel the write itself
        self._debounce_task = None
        await self._request_write()

    async def _request_write(self) -> None:
        if self._write_lock.locked():
            self._rerun_requested = True
            logger.debug("Mirror write in flight, follow-up queued")
            return

        async with self._write_lock:
            while True:
                self._rerun_requested = False
                await self._write_once()
                if not self._rerun_requested:
                    break

    async def _write_once(self) -> None:
        target = self._target
        if target is None or not self._status.is_active:
            return

        data = self._backup.export_json()
        try:
            await target.write(data)
        except PermissionRevoked as e:
            self._deactivate(str(e))
            return

        self._write_count += 1
        self._status = replace(self._status, last_sync_time=now_utc(), error=None)
        logger.debug(f"Mirror written: {target.path} ({len(data)} bytes)")

    def _deactivate(self, message: str) -> None:
        if not self._status.is_active:
            return
        logger.warning(f"Backup mirror deactivated: {message}")
        self._set_status(replace(self._status, is_active=False, error=message))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _wait_idle(self) -> None:
        async with self._write_lock:
            pass

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        self._event_bus.publish(EventType.SYNC_STATUS_CHANGED, status)

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        for event_type in BUNDLE_MUTATION_EVENTS:
            self._event_bus.subscribe(event_type, self._on_data_changed)
        self._subscribed = True

    def _unsubscribe(self) -> None:
        if not self._subscribed:
            return
        for event_type in BUNDLE_MUTATION_EVENTS:
            self._event_bus.unsubscribe(event_type, self._on_data_changed)
        self._subscribed = False

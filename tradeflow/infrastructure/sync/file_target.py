"""External backup mirror: a user-chosen JSON file outside the data directory."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from uuid import uuid4

from ...domain.exceptions import PermissionRevoked
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

PERMISSION_MESSAGE = "Permission needed. Please Reconnect."


class FileSyncTarget:
    """
    Write target for the backup mirror.

    Write permission is re-checked before every write; losing it raises
    ``PermissionRevoked`` instead of an OS error.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def file_name(self) -> str:
        return self._path.name

    def has_write_permission(self) -> bool:
        """Writable file, or a writable directory to create it in."""
        if self._path.exists():
            return self._path.is_file() and os.access(self._path, os.W_OK)
        parent = self._path.parent
        return parent.is_dir() and os.access(parent, os.W_OK | os.X_OK)

    async def write(self, data: str) -> None:
        """
        Replace the file contents.

        Raises:
            PermissionRevoked: Write access is gone or the write failed.
        """
        if not self.has_write_permission():
            raise PermissionRevoked(PERMISSION_MESSAGE)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_sync, data)

    def _write_sync(self, data: str) -> None:
        temp_path = self._path.with_name(f".{self._path.name}.{uuid4().hex}.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(temp_path, self._path)
        except OSError as e:
            logger.warning(f"Write to {self._path} failed: {e}")
            raise PermissionRevoked(PERMISSION_MESSAGE) from e
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def read(self) -> str:
        """Current mirror contents (used to verify a write landed)."""
        return self._path.read_text(encoding="utf-8")

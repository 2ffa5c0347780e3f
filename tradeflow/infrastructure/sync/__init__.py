"""External backup mirror targets."""

from .file_target import FileSyncTarget, PERMISSION_MESSAGE

__all__ = ["FileSyncTarget", "PERMISSION_MESSAGE"]

"""External file mirror status."""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SyncStatus:
    """State of the backup mirror as shown to the user."""

    is_active: bool = False
    last_sync_time: Optional[datetime] = None
    file_name: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "file_name": self.file_name,
            "error": self.error,
        }

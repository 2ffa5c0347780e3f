"""Local key/value persistence.

Each key is stored as one JSON document ``<data_dir>/<key>.json``. Writes use
a temp file plus atomic rename so a crash never leaves a half-written value.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

from ...utils.logging_setup import get_logger

logger = get_logger(__name__)

# Persisted keys
JOURNAL_DATA_KEY = "tradeflow_journal_data"
STRATEGIES_KEY = "tradeflow_strategies"
WATCHLIST_KEY = "tradeflow_watchlist"
UI_PREFS_KEY = "tradeflow_ui_prefs"
JOURNAL_CONFIG_KEY = "tradeflow_journal_config"
SETTINGS_KEY = "tradeflow_settings"
SYNC_HANDLE_KEY = "tradeflow_sync_handle"


class LocalStorage:
    """JSON document store rooted at a data directory."""

    def __init__(self, data_dir: str | Path) -> None:
        self._dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a stored value.

        A missing or corrupt document yields ``default``; corruption is logged
        and the file is left in place for inspection.
        """
        path = self._path_for(key)
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        """Persist a JSON-serializable value (atomic rename)."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        temp_path = path.with_suffix(f".{uuid4().hex}.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            os.replace(temp_path, path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()

    def keys(self) -> Iterator[str]:
        if not self._dir.exists():
            return iter(())
        return (p.stem for p in sorted(self._dir.glob("*.json")))

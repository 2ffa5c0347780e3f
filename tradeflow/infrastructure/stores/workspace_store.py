"""Workspace store: playbook strategies, watchlist, UI prefs, journal config and settings."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, TYPE_CHECKING
from uuid import uuid4

from ...domain.events.event_types import EventType
from ...models.strategy import Strategy
from ...utils.logging_setup import get_logger
from .local_storage import (
    JOURNAL_CONFIG_KEY,
    LocalStorage,
    SETTINGS_KEY,
    STRATEGIES_KEY,
    SYNC_HANDLE_KEY,
    UI_PREFS_KEY,
    WATCHLIST_KEY,
)

if TYPE_CHECKING:
    from ...domain.interfaces.event_bus import EventBus

logger = get_logger(__name__)

DEFAULT_WATCHLIST = ["USD_JPY", "EUR_JPY", "GBP_JPY", "EUR_USD"]
DEFAULT_UI_PREFS: Dict[str, Any] = {"sidebarCollapsed": False}

SETTING_KEYS = (
    "oanda_key",
    "oanda_account_id",
    "oanda_env",
    "gemini_api_key",
    "date_format",
    "timezone",
    "currency",
    "auto_sync_oanda",
    "chart_hollow",
    "chart_upColor",
    "chart_downColor",
    "theme",
)


def _new_strategy_id() -> str:
    return uuid4().hex[:9]


class WorkspaceStore:
    """
    Non-trade local state included in backup bundles.

    Each setter persists and publishes its own change event so the backup
    mirror picks it up.
    """

    def __init__(self, storage: LocalStorage, event_bus: Optional["EventBus"] = None) -> None:
        self._storage = storage
        self._event_bus = event_bus

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def get_strategies(self) -> List[Strategy]:
        """
        Load strategies, regenerating ids that collide with an earlier entry.

        A repaired list is written back immediately.
        """
        raw = self._storage.get(STRATEGIES_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Stored strategies are not a list, ignoring")
            return []

        seen: set[str] = set()
        strategies: List[Strategy] = []
        repaired = False
        for item in raw:
            if not isinstance(item, Mapping) or "id" not in item:
                repaired = True
                continue
            strategy = Strategy.from_wire(item)
            if strategy.id in seen:
                strategy = Strategy(
                    id=_new_strategy_id(),
                    name=strategy.name,
                    description=strategy.description,
                    entry_rules=strategy.entry_rules,
                    exit_rules=strategy.exit_rules,
                )
                repaired = True
            seen.add(strategy.id)
            strategies.append(strategy)

        if repaired:
            logger.info("Fixed duplicate or malformed strategy ids on load")
            self._storage.set(STRATEGIES_KEY, [s.to_wire() for s in strategies])
        return strategies

    def save_strategies(self, strategies: Iterable[Strategy]) -> None:
        self._storage.set(STRATEGIES_KEY, [s.to_wire() for s in strategies])
        self._publish(EventType.STRATEGIES_CHANGED)

    def upsert_strategy(self, strategy: Strategy) -> None:
        """Insert or replace a strategy by id, keeping list order."""
        strategies = self.get_strategies()
        for i, existing in enumerate(strategies):
            if existing.id == strategy.id:
                strategies[i] = strategy
                break
        else:
            strategies.append(strategy)
        self.save_strategies(strategies)

    # -------------------------------------------------------------------------
    # Watchlist / UI prefs / journal config
    # -------------------------------------------------------------------------

    def get_watchlist(self) -> List[str]:
        watchlist = self._storage.get(WATCHLIST_KEY)
        if not isinstance(watchlist, list):
            return list(DEFAULT_WATCHLIST)
        return [str(s) for s in watchlist]

    def save_watchlist(self, watchlist: Iterable[str]) -> None:
        self._storage.set(WATCHLIST_KEY, list(watchlist))
        self._publish(EventType.WATCHLIST_CHANGED)

    def get_ui_prefs(self) -> Dict[str, Any]:
        prefs = self._storage.get(UI_PREFS_KEY)
        if not isinstance(prefs, dict):
            return dict(DEFAULT_UI_PREFS)
        return prefs

    def save_ui_prefs(self, prefs: Mapping[str, Any]) -> None:
        self._storage.set(UI_PREFS_KEY, dict(prefs))
        self._publish(EventType.UI_PREFS_CHANGED)

    def get_journal_config(self) -> Optional[Dict[str, Any]]:
        config = self._storage.get(JOURNAL_CONFIG_KEY)
        return config if isinstance(config, dict) else None

    def save_journal_config(self, config: Mapping[str, Any]) -> None:
        self._storage.set(JOURNAL_CONFIG_KEY, dict(config))
        self._publish(EventType.JOURNAL_CONFIG_CHANGED)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_settings(self) -> Dict[str, Optional[str]]:
        """All known setting keys; unset ones map to None."""
        stored = self._storage.get(SETTINGS_KEY, {}) or {}
        return {key: stored.get(key) for key in SETTING_KEYS}

    def get_setting(self, key: str) -> Optional[str]:
        return self.get_settings().get(key)

    def save_settings(self, values: Mapping[str, Optional[str]]) -> None:
        """
        Update settings; a None value clears the key.

        Raises:
            ValueError: If a key is not a known setting.
        """
        unknown = set(values) - set(SETTING_KEYS)
        if unknown:
            raise ValueError(f"Unknown setting keys: {sorted(unknown)}")

        stored = dict(self._storage.get(SETTINGS_KEY, {}) or {})
        for key, value in values.items():
            if value is None:
                stored.pop(key, None)
            else:
                stored[key] = str(value)
        self._storage.set(SETTINGS_KEY, stored)
        self._publish(EventType.SETTINGS_CHANGED)

    # -------------------------------------------------------------------------
    # Sync handle
    # -------------------------------------------------------------------------

    def get_sync_handle(self) -> Optional[str]:
        handle = self._storage.get(SYNC_HANDLE_KEY)
        return str(handle) if handle else None

    def remember_sync_handle(self, path: Optional[str]) -> None:
        """Remember (or forget, with None) the external mirror path. Not part of the bundle."""
        if path is None:
            self._storage.remove(SYNC_HANDLE_KEY)
        else:
            self._storage.set(SYNC_HANDLE_KEY, path)

    def _publish(self, event_type: EventType) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event_type, None)

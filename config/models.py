"""Configuration data models."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass
class BrokerConfig:
    """OANDA v20 REST configuration."""
    api_key: str
    account_id: str
    environment: str  # "practice" or "live" (resolved from "auto" at load time)
    request_timeout_sec: float = 30.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.account_id)


@dataclass
class StorageConfig:
    """Local annotation/workspace storage configuration."""
    data_dir: str


@dataclass
class SyncConfig:
    """External backup mirror configuration."""
    debounce_seconds: float
    file: Optional[str] = None  # Mirror target restored at startup when set


@dataclass
class EnrichmentConfig:
    """Transaction log walker and lazy enrichment configuration."""
    scan_window: int  # Max transaction ids scanned forward for a late stop-loss
    page_size: int  # Trades per journal page (the visible set)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    json: bool
    log_dir: str
    console: bool


@dataclass
class AppConfig:
    """Complete application configuration."""
    env: str
    broker: BrokerConfig
    storage: StorageConfig
    sync: SyncConfig
    enrichment: EnrichmentConfig
    logging: LoggingConfig
    raw: Dict[str, Any]  # Raw merged config dict

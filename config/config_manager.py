"""
Configuration manager with environment-based loading.

Supports:
- Base configuration (base.yaml)
- Environment-specific overrides (practice.yaml, live.yaml)
- Secrets loading (secrets.yaml - gitignored)
- OANDA_API_KEY / OANDA_ACCOUNT_ID environment variable overrides
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any, Mapping, Optional
import os
import yaml
import logging

from tradeflow.domain.exceptions import ConfigurationError

from .models import (
    AppConfig,
    BrokerConfig,
    StorageConfig,
    SyncConfig,
    EnrichmentConfig,
    LoggingConfig,
)


logger = logging.getLogger(__name__)

ENVIRONMENTS = ("practice", "live")


def detect_environment(account_id: str, configured: str = "auto") -> str:
    """
    Resolve the OANDA environment for an account.

    Live account ids start with "001", practice ids with "101". An explicit
    "practice"/"live" setting is overridden when the account id says otherwise.

    Args:
        account_id: OANDA account id (e.g. "101-004-1234567-001").
        configured: Configured environment ("auto", "practice" or "live").

    Returns:
        "practice" or "live".
    """
    if account_id.startswith("001"):
        detected = "live"
    elif account_id.startswith("101"):
        detected = "practice"
    else:
        detected = None

    if detected and configured in ENVIRONMENTS and detected != configured:
        logger.warning(
            f"Account id {account_id} looks {detected}, overriding configured '{configured}'"
        )
    if detected:
        return detected
    if configured in ENVIRONMENTS:
        return configured
    return "live"


class ConfigManager:
    """
    Configuration manager with environment support.

    Loads configuration in this order:
    1. base.yaml (default config)
    2. {env}.yaml (environment-specific, e.g., practice.yaml)
    3. secrets.yaml (if exists, gitignored)
    4. Environment variables (OANDA_API_KEY, OANDA_ACCOUNT_ID)

    Later sources override earlier ones.
    """

    def __init__(
        self,
        config_dir: str | Path = "config",
        env: str = "practice",
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize config manager.

        Args:
            config_dir: Directory containing config files.
            env: Environment overlay name (practice, live, etc).
            environ: Environment variables (defaults to os.environ).
        """
        self.config_dir = Path(config_dir)
        self.env = env
        self.environ = os.environ if environ is None else environ
        self.config: Dict[str, Any] = {}

    def load(self) -> AppConfig:
        """
        Load configuration from YAML files.

        Returns:
            AppConfig object.

        Raises:
            ConfigurationError: If base config is missing or invalid.
        """
        base_path = self.config_dir / "base.yaml"
        if not base_path.exists():
            raise ConfigurationError(f"Base config not found: {base_path}")

        self.config = self._load_yaml(base_path)
        logger.info(f"Loaded base config from {base_path}")

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            self.config = self._merge_dicts(self.config, self._load_yaml(env_path))
            logger.info(f"Loaded {self.env} config from {env_path}")

        secrets_path = self.config_dir / "secrets.yaml"
        if secrets_path.exists():
            self.config = self._merge_dicts(self.config, self._load_yaml(secrets_path))
            logger.info("Loaded secrets")

        return self._parse_config()

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load YAML file."""
        try:
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    def _merge_dicts(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _parse_config(self) -> AppConfig:
        """Parse raw dict into AppConfig."""
        try:
            broker_raw = self.config.get("broker", {})
            api_key = self.environ.get("OANDA_API_KEY") or broker_raw.get("api_key") or ""
            account_id = self.environ.get("OANDA_ACCOUNT_ID") or broker_raw.get("account_id") or ""
            configured_env = str(broker_raw.get("environment", "auto")).lower()
            if configured_env not in ENVIRONMENTS + ("auto",):
                raise ConfigurationError(f"Unknown broker environment: {configured_env}")

            broker = BrokerConfig(
                api_key=str(api_key),
                account_id=str(account_id),
                environment=detect_environment(str(account_id), configured_env),
                request_timeout_sec=float(broker_raw.get("request_timeout_sec", 30.0)),
            )

            storage_raw = self.config.get("storage", {})
            storage = StorageConfig(
                data_dir=storage_raw.get("data_dir", "./data"),
            )

            sync_raw = self.config.get("sync", {})
            sync = SyncConfig(
                debounce_seconds=float(sync_raw.get("debounce_seconds", 2.0)),
                file=sync_raw.get("file"),
            )
            if sync.debounce_seconds < 0:
                raise ConfigurationError("sync.debounce_seconds must be >= 0")

            enrichment_raw = self.config.get("enrichment", {})
            enrichment = EnrichmentConfig(
                scan_window=int(enrichment_raw.get("scan_window", 100)),
                page_size=int(enrichment_raw.get("page_size", 20)),
            )
            if enrichment.scan_window <= 0 or enrichment.page_size <= 0:
                raise ConfigurationError("enrichment.scan_window and page_size must be positive")

            logging_raw = self.config.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_raw.get("level", "INFO"),
                json=logging_raw.get("json", True),
                log_dir=logging_raw.get("log_dir", "./logs"),
                console=logging_raw.get("console", False),
            )

            return AppConfig(
                env=self.env,
                broker=broker,
                storage=storage,
                sync=sync,
                enrichment=enrichment,
                logging=logging_config,
                raw=self.config,
            )

        except ConfigurationError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Failed to parse config: {e}") from e

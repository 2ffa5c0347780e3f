"""Tests for ConfigManager layering, env overrides and environment detection."""

from __future__ import annotations

import pytest
import yaml

from config.config_manager import ConfigManager, detect_environment
from tradeflow.domain.exceptions import ConfigurationError


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))


@pytest.fixture
def config_dir(tmp_path):
    write_yaml(tmp_path / "base.yaml", {
        "broker": {"api_key": "", "account_id": "", "environment": "auto"},
        "storage": {"data_dir": "./data"},
        "sync": {"debounce_seconds": 2.0},
        "enrichment": {"scan_window": 100, "page_size": 20},
        "logging": {"level": "INFO", "json": True, "log_dir": "./logs", "console": False},
    })
    return tmp_path


class TestConfigManager:

    def test_base_defaults(self, config_dir):
        config = ConfigManager(config_dir, env="practice", environ={}).load()

        assert config.sync.debounce_seconds == 2.0
        assert config.sync.file is None
        assert config.enrichment.scan_window == 100
        assert not config.broker.has_credentials

    def test_env_and_secrets_overlay(self, config_dir):
        write_yaml(config_dir / "practice.yaml", {"enrichment": {"page_size": 50}})
        write_yaml(config_dir / "secrets.yaml", {"broker": {"api_key": "secret", "account_id": "101-004-1-001"}})

        config = ConfigManager(config_dir, env="practice", environ={}).load()

        assert config.enrichment.page_size == 50
        assert config.enrichment.scan_window == 100
        assert config.broker.api_key == "secret"
        assert config.broker.environment == "practice"

    def test_environment_variables_win(self, config_dir):
        write_yaml(config_dir / "secrets.yaml", {"broker": {"api_key": "file", "account_id": "101-1"}})

        config = ConfigManager(config_dir, environ={
            "OANDA_API_KEY": "env-token",
            "OANDA_ACCOUNT_ID": "001-001-1-001",
        }).load()

        assert config.broker.api_key == "env-token"
        assert config.broker.environment == "live"

    def test_missing_base_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path, environ={}).load()

    @pytest.mark.parametrize("override", [
        {"broker": {"environment": "sandbox"}},
        {"sync": {"debounce_seconds": -1}},
        {"enrichment": {"scan_window": 0}},
        {"enrichment": {"page_size": "many"}},
    ])
    def test_invalid_values_raise(self, config_dir, override):
        write_yaml(config_dir / "practice.yaml", override)
        with pytest.raises(ConfigurationError):
            ConfigManager(config_dir, env="practice", environ={}).load()

    def test_invalid_yaml_raises(self, config_dir):
        (config_dir / "practice.yaml").write_text("broker: [unclosed")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_dir, env="practice", environ={}).load()


class TestDetectEnvironment:

    @pytest.mark.parametrize("account_id,configured,expected", [
        ("001-001-1234567-001", "auto", "live"),
        ("101-004-1234567-001", "auto", "practice"),
        ("101-004-1234567-001", "live", "practice"),
        ("999-1", "practice", "practice"),
        ("", "auto", "live"),
    ])
    def test_detection(self, account_id, configured, expected):
        assert detect_environment(account_id, configured) == expected

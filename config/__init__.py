"""Configuration management."""

from .config_manager import ConfigManager, detect_environment
from .models import AppConfig

__all__ = ["ConfigManager", "AppConfig", "detect_environment"]

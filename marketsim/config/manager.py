"""Centralized configuration management with schema validation."""
from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .schemas import Config
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_CONFIG_PATH = "configs/default.yaml"


class ConfigManager:
    """Configuration manager with Pydantic validation.

    Usage:
        config = ConfigManager.from_yaml("configs/default.yaml")
        speed = config.get("simulation.speed_multiplier")
        config.set("portfolio.initial_cash", 25_000)
        series_config = config.get_section("series")
    """

    def __init__(self, config: Optional[Config] = None):
        self._config = config or Config()
        self._config_path: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: str | Path) -> ConfigManager:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValidationError: If config doesn't match schema
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}

        try:
            config = Config(**config_dict)
            LOGGER.info(f"Configuration loaded and validated from {config_path}")
        except ValidationError as e:
            LOGGER.error(f"Configuration validation failed: {e}")
            raise

        manager = cls(config)
        manager._config_path = config_path
        return manager

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> ConfigManager:
        """Build from a dictionary; raises ValidationError on schema mismatch."""
        return cls(Config(**config_dict))

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Example:
            >>> config.get("series.max_length")
            100
        """
        value = self._config
        for k in key.split("."):
            if hasattr(value, k):
                value = getattr(value, k)
            else:
                return default
        return value

    def get_section(self, section: str) -> Optional[Any]:
        if hasattr(self._config, section):
            return getattr(self._config, section)
        return None

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Raises:
            ValueError: If key path is invalid
            ValidationError: If value doesn't match schema
        """
        keys = key.split(".")
        obj = self._config
        for k in keys[:-1]:
            if hasattr(obj, k):
                obj = getattr(obj, k)
            else:
                raise ValueError(f"Invalid configuration path: {key}")
        if not hasattr(obj, keys[-1]):
            raise ValueError(f"Invalid configuration path: {key}")
        setattr(obj, keys[-1], value)

        LOGGER.debug(f"Configuration updated: {key} = {value}")

    def to_dict(self) -> Dict[str, Any]:
        return self._config.model_dump()

    def to_yaml(self, path: str | Path) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        LOGGER.info(f"Configuration saved to {output_path}")

    def merge(self, other: Dict[str, Any] | ConfigManager) -> None:
        """Deep-merge another configuration into this one and revalidate."""
        if isinstance(other, ConfigManager):
            other_dict = other.to_dict()
        else:
            other_dict = other

        merged = self._deep_merge(self.to_dict(), other_dict)
        self._config = Config(**merged)
        LOGGER.info("Configuration merged")

    @staticmethod
    def _deep_merge(base: Dict, override: Dict) -> Dict:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @property
    def config(self) -> Config:
        return self._config


_global_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Global configuration, read from $MARKETSIM_CONFIG (after loading .env)
    or configs/default.yaml, falling back to schema defaults.
    """
    global _global_config
    if _global_config is None:
        load_dotenv()
        config_path = Path(os.getenv("MARKETSIM_CONFIG", DEFAULT_CONFIG_PATH))

        if config_path.exists():
            _global_config = ConfigManager.from_yaml(config_path)
        else:
            _global_config = ConfigManager()
            LOGGER.info("Using default configuration")

    return _global_config


def set_global_config(config: ConfigManager) -> None:
    global _global_config
    _global_config = config


def reset_global_config() -> None:
    global _global_config
    _global_config = None

# ABOUTME: Shared utilities for the typing tutor engine
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


class ConfigManager:
    """Configuration management with validation."""

    def __init__(self, config_path: Union[str, Path] = "config.yaml"):
        self.config_path = Path(config_path)
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration, filling anything missing from the defaults."""
        defaults = self._default_config()
        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logging.warning(f"Config file {self.config_path} not found, using defaults")
            return defaults
        except yaml.YAMLError as e:
            logging.error(f"Error parsing config file: {e}")
            return defaults

        if not isinstance(config, dict):
            logging.error(f"Config file {self.config_path} is not a mapping, using defaults")
            return defaults

        for section, values in defaults.items():
            user_values = config.get(section)
            if isinstance(user_values, dict):
                merged = dict(values)
                merged.update(user_values)
                config[section] = merged
            else:
                config[section] = values
        return config

    def _default_config(self) -> Dict[str, Any]:
        """Default configuration values."""
        return {
            "session": {
                "idle_timeout_ms": 5000,
                "tick_interval_ms": 100,
                "blocking_errors": True,
            },
            "analytics": {
                "min_character_samples": 5,
                "min_bigram_samples": 3,
                "weakest_limit": 10,
            },
            "output": {
                "data_directory": "./data",
                "log_level": "INFO",
                "log_file": "typing_tutor.log",
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with dot notation."""
        keys = key.split(".")
        value = self.config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value


def setup_logging(level: str = "INFO", log_file: Optional[str] = "typing_tutor.log") -> None:
    """Configure logging for the application."""
    handlers: list = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def generate_session_id() -> str:
    """Generate unique session identifier."""
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"

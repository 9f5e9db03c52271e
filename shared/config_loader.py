#!/usr/bin/env python3
"""
Config Loader Module

Loads session keeper configuration from a local JSON file and merges it over
built-in defaults, so a missing file or a partial "session_keeper" section
still yields a complete set of settings.

Config file layout (config/config.json):
    {
        "session_keeper": {
            "refresh_interval_seconds": 1200,
            "session_url": "https://app.example.com/api/auth/session",
            ...
        },
        "logging": {"log_file": "logs/session_keeper.log", "log_level": "INFO"},
        "notifications": {"pubsub_enabled": false}
    }

Environment overrides:
    SESSION_KEEPER_CONFIG       path to the config file
    SESSION_ENDPOINT_URL        session endpoint (sign-out URL is derived)
    SESSION_KEEPER_STORAGE_DIR  durable storage directory
    LOG_LEVEL                   logging level
"""

import os
import json
import logging
from dataclasses import dataclass, fields, asdict
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.json"

# Global reference (set when config is loaded)
_config_loader_instance: Optional['ConfigLoader'] = None


def _coerce(key: str, value: Any, default: Any) -> Any:
    """
    Cast a config value to the type of its default.

    Raises:
        ValueError: If the value is missing or would be silently altered
                    (a fractional count, or null for a string setting)
    """
    if value is None:
        raise ValueError(f"Invalid value for {key}: null")

    if isinstance(default, int) and isinstance(value, float) and not value.is_integer():
        raise ValueError(f"Invalid value for {key}: {value!r} is not a whole number")

    try:
        return type(default)(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key}: {value!r}") from e


@dataclass
class SessionKeeperSettings:
    """Tunable constants for the session keeper. Durations are in seconds."""
    refresh_interval_seconds: float = 20 * 60.0
    refresh_buffer_seconds: float = 300.0
    activity_refresh_threshold_seconds: float = 600.0
    activity_throttle_seconds: float = 1.0
    max_token_retries: int = 3
    backoff_base_delay_seconds: float = 1.0
    failure_grace_seconds: float = 3.0
    auto_save_interval_seconds: float = 30.0
    max_init_attempts: int = 3
    init_retry_base_delay_seconds: float = 1.0
    max_idle_seconds: float = 24 * 60 * 60.0
    sign_out_callback_url: str = "/"
    session_url: str = "http://localhost:3000/api/auth/session"
    signout_url: str = "http://localhost:3000/api/auth/signout"
    storage_dir: str = "data/storage"
    origin: str = "http://localhost:3000"

    def validate(self):
        """
        Raises:
            ValueError: If a numeric setting is out of range
        """
        positive = (
            "refresh_interval_seconds", "activity_throttle_seconds",
            "backoff_base_delay_seconds", "auto_save_interval_seconds",
            "init_retry_base_delay_seconds", "max_idle_seconds",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        non_negative = ("refresh_buffer_seconds", "activity_refresh_threshold_seconds", "failure_grace_seconds")
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")

        for name in ("max_token_retries", "max_init_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")

    @classmethod
    def from_dict(cls, section: Dict[str, Any]) -> 'SessionKeeperSettings':
        """Build settings from a config section, ignoring unknown keys."""
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in section.items():
            if key not in known:
                logger.warning(f"Ignoring unknown session_keeper setting: {key}")
                continue
            values[key] = _coerce(key, value, known[key].default)
        settings = cls(**values)
        settings.validate()
        return settings


class ConfigLoader:
    """
    Configuration loader for the session keeper.

    Usage:
        loader = ConfigLoader("config/config.json")
        config = loader.load_config()
        settings = loader.get_settings()
    """

    def __init__(self, local_config_path: Optional[str] = None):
        """
        Args:
            local_config_path: Path to the JSON config file. Defaults to
                               $SESSION_KEEPER_CONFIG or config/config.json.
        """
        self.local_config_path = (
            local_config_path
            or os.environ.get("SESSION_KEEPER_CONFIG")
            or DEFAULT_CONFIG_PATH
        )
        self._config: Optional[Dict[str, Any]] = None
        self._settings: Optional[SessionKeeperSettings] = None

    def load_config(self) -> Dict[str, Any]:
        """
        Load configuration (cached after the first call).

        Returns:
            dict: Full configuration with a complete "session_keeper" section

        Raises:
            ValueError: If the file is not valid JSON or a setting is invalid
        """
        if self._config is not None:
            return self._config

        config = self._load_local_config()
        section = dict(config.get("session_keeper", {}))
        self._apply_env_overrides(section, config)

        self._settings = SessionKeeperSettings.from_dict(section)
        config["session_keeper"] = asdict(self._settings)
        config.setdefault("logging", {
            "log_file": "logs/session_keeper.log",
            "log_level": "INFO",
            "console_output": True
        })
        config.setdefault("notifications", {"pubsub_enabled": False})
        self._config = config

        # Store global reference
        global _config_loader_instance
        _config_loader_instance = self

        return self._config

    def get_settings(self) -> SessionKeeperSettings:
        if self._settings is None:
            self.load_config()
        return self._settings

    def _load_local_config(self) -> Dict[str, Any]:
        if not os.path.exists(self.local_config_path):
            logger.info(f"No config file at {self.local_config_path} - using defaults")
            return {}

        try:
            with open(self.local_config_path, "r") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Config file {self.local_config_path} is not valid JSON: {e}") from e

        logger.info(f"Loaded local config from: {self.local_config_path}")
        return config

    @staticmethod
    def _apply_env_overrides(section: Dict[str, Any], config: Dict[str, Any]):
        session_url = os.environ.get("SESSION_ENDPOINT_URL")
        if session_url:
            section["session_url"] = session_url
            section["signout_url"] = session_url.rsplit("/", 1)[0] + "/signout"

        storage_dir = os.environ.get("SESSION_KEEPER_STORAGE_DIR")
        if storage_dir:
            section["storage_dir"] = storage_dir

        log_level = os.environ.get("LOG_LEVEL")
        if log_level:
            config.setdefault("logging", {})["log_level"] = log_level.upper()


def get_config_loader() -> Optional[ConfigLoader]:
    """
    Get the global ConfigLoader instance.

    Returns:
        ConfigLoader: The loader instance, or None if not initialized
    """
    return _config_loader_instance


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Convenience function for loading configuration."""
    loader = ConfigLoader(config_path)
    return loader.load_config()

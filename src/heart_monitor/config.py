"""Configuration management for the heart monitor."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import yaml


@dataclass
class ScanConfig:
    """Configuration for advertisement scanning."""

    adapter: str = "hci0"
    timeout_sec: Optional[float] = None  # None: scan until Enter


@dataclass
class SessionConfig:
    """Configuration for the heart rate session."""

    connect_timeout_sec: float = 10.0
    poll_interval_sec: float = 0.05
    release_handler_on_reject: bool = True


@dataclass
class LoggingConfig:
    """Configuration for the NDJSON session log."""

    enabled: bool = True
    dir: str = "./logs"
    file_prefix: str = "heart_monitor"
    mode: str = "regular"  # regular or verbose
    verbose_whitelist: List[str] = None

    def __post_init__(self) -> None:
        if self.verbose_whitelist is None:
            self.verbose_whitelist = []


@dataclass
class AppConfig:
    """Main application configuration."""

    scan: ScanConfig = None
    session: SessionConfig = None
    logging: LoggingConfig = None

    def __post_init__(self) -> None:
        if self.scan is None:
            self.scan = ScanConfig()
        if self.session is None:
            self.session = SessionConfig()
        if self.logging is None:
            self.logging = LoggingConfig()


def load_config(config_path: str) -> AppConfig:
    """Load configuration from YAML file with environment variable support."""
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if not raw_config or not isinstance(raw_config, dict):
        raise ValueError(f"Empty or invalid configuration file: {config_path}")

    _substitute_env_vars(raw_config)

    config = AppConfig()

    if raw_config.get("scan"):
        config.scan = ScanConfig(**raw_config["scan"])

    if raw_config.get("session"):
        config.session = SessionConfig(**raw_config["session"])

    if raw_config.get("logging"):
        logging_data = raw_config["logging"]
        # Accept a mapping of message names as well as a list
        if isinstance(logging_data.get("verbose_whitelist"), dict):
            logging_data["verbose_whitelist"] = list(logging_data["verbose_whitelist"].keys())
        config.logging = LoggingConfig(**logging_data)

    return config


def _substitute_env_vars(data: Any) -> None:
    """Recursively substitute environment variables in configuration data."""
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                data[key] = os.getenv(value[2:-1], value)
            else:
                _substitute_env_vars(value)
    elif isinstance(data, list):
        for i, item in enumerate(data):
            if isinstance(item, str) and item.startswith("${") and item.endswith("}"):
                data[i] = os.getenv(item[2:-1], item)
            else:
                _substitute_env_vars(item)


def validate_config(config: AppConfig) -> List[str]:
    """Validate configuration and return list of validation errors."""
    errors = []

    if not config.scan.adapter:
        errors.append("Scan adapter is required")
    if config.scan.timeout_sec is not None and config.scan.timeout_sec <= 0:
        errors.append("Scan timeout_sec must be positive")

    if config.session.connect_timeout_sec <= 0:
        errors.append("Session connect_timeout_sec must be positive")
    if config.session.poll_interval_sec <= 0:
        errors.append("Session poll_interval_sec must be positive")

    if config.logging.mode not in ("regular", "verbose"):
        errors.append(f"Logging mode must be 'regular' or 'verbose', got '{config.logging.mode}'")

    if config.logging.enabled:
        path = Path(config.logging.dir)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create directory logging.dir: {config.logging.dir} - {e}")

    return errors

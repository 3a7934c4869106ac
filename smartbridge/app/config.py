"""
Configuration management for Smart Bridge.

Reads configuration from .env file and environment variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/smartbridge/smartbridge.env")

logger = logging.getLogger(__name__)


def _load_env_file() -> None:
    """Load environment variables from .env file if it exists."""
    env_file = os.getenv("SMARTBRIDGE_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file)

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _read_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be a number)")


def _read_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be an integer)")


@dataclass
class SmartBridgeConfig:
    """Smart Bridge configuration loaded from .env file and environment variables."""

    # Backend
    api_base: str = "http://localhost:8080"
    resolve_timeout_sec: float = 5.0
    resolve_max_attempts: int = 2
    catalog_timeout_sec: float = 10.0

    # End-signal guard
    end_cooldown_ms: int = 350
    min_end_progress_sec: float = 0.25

    # Restricted listening
    preview_cap_sec: float = 40.0

    # Now-playing display
    highlight_sec: float = 100.0
    bridge_delay_min_sec: float = 5.0
    bridge_delay_max_sec: float = 20.0
    bridge_label: str = "…"

    # Collection
    collection_path: str = "/tmp/smartbridge_collection.json"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def end_cooldown_sec(self) -> float:
        return self.end_cooldown_ms / 1000.0

    @classmethod
    def load_config(cls) -> "SmartBridgeConfig":
        """
        Load configuration from environment variables.

        Returns:
            SmartBridgeConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        log_file = os.getenv("SMARTBRIDGE_LOG_FILE")
        if log_file == "":
            log_file = None

        config = cls(
            api_base=os.getenv("SMARTBRIDGE_API_BASE", "http://localhost:8080").rstrip("/"),
            resolve_timeout_sec=_read_float("SMARTBRIDGE_RESOLVE_TIMEOUT_SEC", "5"),
            resolve_max_attempts=_read_int("SMARTBRIDGE_RESOLVE_MAX_ATTEMPTS", "2"),
            catalog_timeout_sec=_read_float("SMARTBRIDGE_CATALOG_TIMEOUT_SEC", "10"),
            end_cooldown_ms=_read_int("SMARTBRIDGE_END_COOLDOWN_MS", "350"),
            min_end_progress_sec=_read_float("SMARTBRIDGE_MIN_END_PROGRESS_SEC", "0.25"),
            preview_cap_sec=_read_float("SMARTBRIDGE_PREVIEW_CAP_SEC", "40"),
            highlight_sec=_read_float("SMARTBRIDGE_HIGHLIGHT_SEC", "100"),
            bridge_delay_min_sec=_read_float("SMARTBRIDGE_BRIDGE_DELAY_MIN_SEC", "5"),
            bridge_delay_max_sec=_read_float("SMARTBRIDGE_BRIDGE_DELAY_MAX_SEC", "20"),
            bridge_label=os.getenv("SMARTBRIDGE_BRIDGE_LABEL", "…"),
            collection_path=os.getenv("SMARTBRIDGE_COLLECTION_PATH", "/tmp/smartbridge_collection.json"),
            log_level=os.getenv("SMARTBRIDGE_LOG_LEVEL", "INFO"),
            log_file=log_file,
        )

        # Validate configuration
        config.validate()

        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.api_base.lower().startswith(("http://", "https://")):
            raise ValueError(f"Invalid api base: {self.api_base} (must be an http(s) URL)")

        if self.resolve_timeout_sec <= 0:
            raise ValueError(f"Invalid resolve timeout: {self.resolve_timeout_sec} (must be > 0)")

        if self.resolve_max_attempts < 1:
            raise ValueError(f"Invalid resolve max attempts: {self.resolve_max_attempts} (must be >= 1)")

        if self.catalog_timeout_sec <= 0:
            raise ValueError(f"Invalid catalog timeout: {self.catalog_timeout_sec} (must be > 0)")

        if self.end_cooldown_ms < 0:
            raise ValueError(f"Invalid end cooldown: {self.end_cooldown_ms} (must be >= 0)")

        if self.min_end_progress_sec < 0:
            raise ValueError(f"Invalid min end progress: {self.min_end_progress_sec} (must be >= 0)")

        if self.preview_cap_sec <= 0:
            raise ValueError(f"Invalid preview cap: {self.preview_cap_sec} (must be > 0)")

        if self.highlight_sec <= 0:
            raise ValueError(f"Invalid highlight duration: {self.highlight_sec} (must be > 0)")

        if self.bridge_delay_min_sec < 0:
            raise ValueError(f"Invalid bridge delay min: {self.bridge_delay_min_sec} (must be >= 0)")

        if self.bridge_delay_min_sec > self.bridge_delay_max_sec:
            raise ValueError(
                f"Invalid bridge delay range: {self.bridge_delay_min_sec}-{self.bridge_delay_max_sec} "
                f"(min must not exceed max)"
            )

        # Validate log level
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(valid_log_levels)})"
            )


def load_config() -> SmartBridgeConfig:
    """
    Load and validate Smart Bridge configuration from environment variables.

    Returns:
        SmartBridgeConfig instance

    Raises:
        ValueError: If configuration is invalid
    """
    config = SmartBridgeConfig.load_config()
    logger.debug(f"Configuration loaded: api_base={config.api_base}, preview_cap={config.preview_cap_sec}s")
    return config

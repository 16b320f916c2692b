"""
Static configuration management for MuseumQuest.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at process startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings (remote store URL, log level) on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Tunable engine behaviour (handled by ConfigManager)
- Runtime configuration changes
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- `Config.load()` runs on module import; `Config.validate()` is called by
  the application context before any remote I/O
- Directory paths are relative to the project root for portability

Environment Variables
---------------------
- ENVIRONMENT: development / testing / staging / production
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON console output (default: production only)
- LOG_TO_FILE: Enable the daily rotating JSON file (default: false)
- LOGS_DIR: Directory for the rotating log file
- CONFIG_DIR: Directory holding YAML defaults (default: <root>/config)
- REDIS_URL: Remote store connection string (default: localhost)
- REDIS_SOCKET_TIMEOUT: Socket timeout in seconds (default: 5)
- REDIS_MAX_CONNECTIONS: Connection pool size (default: 20)
- REDIS_KEY_PREFIX: Namespace for every stored key (default: "mq")
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower().strip())
        except ValueError:
            # Structured logger is not initialized this early
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_REDIS_SCHEMES = ("redis://", "rediss://", "unix://")


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and any parse errors."""

    def __init__(self) -> None:
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}

    def record_env_load(self, key: str, from_env: bool) -> None:
        self.env_vars_loaded[key] = from_env

    def record_validation_error(self, key: str, error: str) -> None:
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the quest engine.

    Usage
    -----
    >>> Config.REDIS_URL
    'redis://localhost:6379/0'
    >>> Config.is_production()
    False
    """

    _metrics: _ConfigLoadMetrics = _ConfigLoadMetrics()
    _validated: bool = False

    # =========================================================================
    # Environment
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = False

    # =========================================================================
    # Directories
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    CONFIG_DIR: Path = PROJECT_ROOT / "config"

    # =========================================================================
    # Remote Store (Redis)
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_KEY_PREFIX: str = "mq"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Parse an integer from the environment with bounds checking.

        Out-of-range or unparsable values fall back to ``default`` with a
        warning instead of failing startup.
        """
        raw_value = os.getenv(key)
        cls._metrics.record_env_load(key, raw_value is not None)

        if raw_value is None:
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        if (min_val is not None and value < min_val) or (
            max_val is not None and value > max_val
        ):
            error = (
                f"{key}={value} outside bounds [{min_val}, {max_val}], "
                f"using default {default}"
            )
            logging.warning(error)
            cls._metrics.record_validation_error(key, error)
            return default

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """Recognizes true/false, yes/no, 1/0, on/off (case-insensitive)."""
        raw_value = os.getenv(key)
        cls._metrics.record_env_load(key, raw_value is not None)

        if raw_value is None:
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
        logging.warning(error)
        cls._metrics.record_validation_error(key, error)
        return default

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        value = os.getenv(key)
        cls._metrics.record_env_load(key, value is not None)
        return value if value else default

    @classmethod
    def _safe_path(cls, key: str, default: Path) -> Path:
        value = os.getenv(key)
        cls._metrics.record_env_load(key, value is not None)
        return Path(value).expanduser() if value else default

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """Load all configuration from environment variables."""
        cls._metrics = _ConfigLoadMetrics()
        cls._validated = False

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_TO_FILE = bool(cls._safe_bool("LOG_TO_FILE", False))

        cls.LOGS_DIR = cls._safe_path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.CONFIG_DIR = cls._safe_path("CONFIG_DIR", cls.PROJECT_ROOT / "config")

        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int(
            "REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60
        )
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int(
            "REDIS_MAX_CONNECTIONS", 20, min_val=1, max_val=500
        )
        cls.REDIS_KEY_PREFIX = cls._safe_str("REDIS_KEY_PREFIX", "mq")

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ConfigurationError
            If the remote store URL is missing or uses an unsupported scheme.
        """
        if cls._validated:
            return

        from museumquest.core.exceptions import ConfigurationError

        logger = logging.getLogger(__name__)

        if not cls.REDIS_URL:
            raise ConfigurationError("REDIS_URL", "REDIS_URL must be set")

        if not cls.REDIS_URL.startswith(VALID_REDIS_SCHEMES):
            raise ConfigurationError(
                "REDIS_URL",
                f"Unsupported remote store URL scheme: {cls.REDIS_URL.split(':', 1)[0]}",
            )

        if cls.LOG_LEVEL not in VALID_LOG_LEVELS:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if cls.is_production() and "localhost" in cls.REDIS_URL:
            logger.warning(
                "Production environment using a localhost remote store - "
                "this may be incorrect"
            )

        cls._validated = True

        logger.info("Configuration loaded", extra=cls._metrics.get_summary())
        if cls._metrics.validation_errors:
            logger.warning(
                "Configuration warnings",
                extra={"warnings": dict(cls._metrics.validation_errors)},
            )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == Environment.DEVELOPMENT.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    # =========================================================================
    # Summary
    # =========================================================================

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Non-sensitive configuration summary for debugging.

        Credentials embedded in ``REDIS_URL`` are never included.
        """
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "log_json": cls.LOG_JSON,
            "log_to_file": cls.LOG_TO_FILE,
            "config_dir": str(cls.CONFIG_DIR),
            "redis_scheme": cls.REDIS_URL.split(":", 1)[0],
            "redis_password_set": "@" in cls.REDIS_URL,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "redis_socket_timeout": cls.REDIS_SOCKET_TIMEOUT,
            "redis_key_prefix": cls.REDIS_KEY_PREFIX,
        }


Config.load()

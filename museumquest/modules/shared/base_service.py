"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the engine's services (leaderboard,
accounts, collection, quest catalogue). Services implement business rules
over the remote store and raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Validation error wrapping

What this class does NOT do:
- Own a remote store connection (services receive a RemoteStore)
- Retry failed writes (that is RetryPolicy's job)

Usage
-----
    class LeaderboardService(BaseService):
        def __init__(self, store, config_manager, logger):
            super().__init__(config_manager, logger)
            self.store = store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Type

if TYPE_CHECKING:
    from logging import Logger

    from museumquest.core.config.manager import ConfigManager


class BaseService:
    """
    Base class for all engine services.

    Args:
        config_manager: ConfigManager class (or a compatible object with ``get``)
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: "Type[ConfigManager]",
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from museumquest.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_config_int(self, key: str, default: int, min_val: int = 1) -> int:
        """Integer config value, falling back to ``default`` when invalid."""
        value = self.get_config(key, default)
        if isinstance(value, bool) or not isinstance(value, int) or value < min_val:
            self.log.warning(
                "Invalid config value, using default",
                extra={"key": key, "value": value, "default": default},
            )
            return default
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def validate_non_empty(self, value: Any, name: str) -> str:
        """
        Validate that ``value`` is a non-blank string and return it stripped.

        Raises:
            ValidationError: If value is empty or not a string
        """
        from .exceptions import ValidationError

        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name, f"{name} must be a non-empty string")
        return value.strip()

    def validate_positive_int(self, value: int, name: str) -> None:
        from .exceptions import ValidationError

        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value}"
            )

"""
Infrastructure exceptions for MuseumQuest.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
remote store failures, configuration errors and background persistence that
could not be completed.

Design Notes
------------
- All infrastructure exceptions inherit from `QuestInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
- Domain exceptions (quest rules, account lookups) live in
  `museumquest.modules.shared.exceptions`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., duplicate submissions)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class QuestInfrastructureException(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(QuestInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class RemoteStoreError(QuestInfrastructureException):
    """
    Raised when a remote store read or write fails.

    Wraps the underlying client error (Redis, network) with the name of the
    store operation and the record key it targeted.

    Args:
        operation: Store operation that failed (e.g. ``"patch_progress"``)
        original_error: The underlying exception
        key: Optional record key involved
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        original_error: Exception,
        key: Optional[str] = None,
        is_retryable: Optional[bool] = None,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        self.key = key
        details: Dict[str, Any] = {
            "operation": operation,
            "error": str(original_error),
            "error_type": type(original_error).__name__,
        }
        if key is not None:
            details["key"] = key
        super().__init__(
            f"Remote store error during {operation}: {original_error}",
            details=details,
            is_retryable=is_retryable,
            error_code="REMOTE_STORE_ERROR",
        )


class TransientSyncFailure(QuestInfrastructureException):
    """
    A background persist that exhausted its retry budget and was dropped.

    Never raised to the caller of a UI operation: the reconciler builds one,
    logs ``to_dict()`` and carries on. Local state stays authoritative for
    the session until the next reconciliation repairs drift.

    Args:
        quest_id: Quest the persist was issued for
        kind: Kind of persist (``"patch"``, ``"delete"``, ``"hints"``, ...)
        attempts: How many attempts were made
        original_error: Last error seen
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        quest_id: str,
        kind: str,
        attempts: int,
        original_error: Exception,
    ) -> None:
        self.quest_id = quest_id
        self.kind = kind
        self.attempts = attempts
        self.original_error = original_error
        super().__init__(
            f"Background {kind} for quest '{quest_id}' dropped after {attempts} attempt(s)",
            details={
                "quest_id": quest_id,
                "kind": kind,
                "attempts": attempts,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="TRANSIENT_SYNC_FAILURE",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: BaseException) -> bool:
    """True if ``exc`` is an infrastructure error flagged as retryable."""
    if isinstance(exc, QuestInfrastructureException):
        return exc.is_retryable
    return False


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """
    Severity used for logging ``exc``.

    Both exception hierarchies carry a severity; anything else is an ERROR.
    """
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity.ERROR


def should_alert(exc: BaseException) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)

"""
Domain exceptions for MuseumQuest.

Purpose
-------
Define the structured, domain-specific exception hierarchy for quest rules.
These exceptions are raised by services for business rule violations and
visitor-facing errors. The presentation layer translates them into
messages.

Design Notes
------------
- All domain exceptions inherit from `QuestDomainException`.
- Each exception carries `message`, `details`, `severity`, `is_retryable`
  and `error_code`, like the infrastructure hierarchy in
  `museumquest.core.exceptions`, and shares its `ErrorSeverity`.
- A wrong, duplicate or out-of-order artefact is NOT an exception: it is a
  `ValidationRejection` value returned by the submission validator.
- `CascadeFailure` is never raised. It is collected into the summary of an
  account deletion so one unwritable quest does not block the deletion.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from museumquest.core.exceptions import ErrorSeverity


class QuestDomainException(Exception):
    """
    Base exception for all domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
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


class AlreadyActiveError(QuestDomainException):
    """
    Raised when a quest is accepted while another quest is still active.

    Surfaced to the visitor, never retried.

    Args:
        active_quest_id: Quest that is currently in progress
        requested_quest_id: Quest the visitor tried to accept
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, active_quest_id: str, requested_quest_id: str) -> None:
        self.active_quest_id = active_quest_id
        self.requested_quest_id = requested_quest_id
        super().__init__(
            f"Quest '{active_quest_id}' is already active; finish or cancel it "
            f"before accepting '{requested_quest_id}'",
            details={
                "active_quest_id": active_quest_id,
                "requested_quest_id": requested_quest_id,
            },
            error_code="QUEST_ALREADY_ACTIVE",
        )


class QuestUnavailableError(QuestDomainException):
    """
    Raised when a quest is accepted outside its availability window.

    Args:
        quest_id: Quest the visitor tried to accept
        status: Schedule status at the time of the request ("upcoming", "past")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, quest_id: str, status: str) -> None:
        self.quest_id = quest_id
        self.status = status
        super().__init__(
            f"Quest '{quest_id}' is not currently available ({status})",
            details={"quest_id": quest_id, "status": status},
            error_code="QUEST_UNAVAILABLE",
        )


class NoActiveQuestError(QuestDomainException):
    """Raised when an operation needs an active quest and there is none."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(
            f"No active quest for '{action}'",
            details={"action": action},
            error_code="NO_ACTIVE_QUEST",
        )


class NotFoundError(QuestDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Quest", "User")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(QuestDomainException):
    """
    Raised when input fails validation (empty ids, malformed email or scan).

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class CascadeFailure(QuestDomainException):
    """
    One quest's leaderboard update failed during an account deletion.

    Collected into the deletion summary for an operator to retry.

    Args:
        quest_id: Quest whose leaderboard could not be written
        user_id: User being removed
        original_error: The underlying exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, quest_id: str, user_id: str, original_error: BaseException) -> None:
        self.quest_id = quest_id
        self.user_id = user_id
        self.original_error = original_error
        super().__init__(
            f"Leaderboard update for quest '{quest_id}' failed: {original_error}",
            details={
                "quest_id": quest_id,
                "user_id": user_id,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="CASCADE_FAILURE",
        )

"""
Shared foundations for the service modules.

- BaseService: config access, structured logging, argument validation
- Domain exceptions: visitor-facing and operator-facing errors

Usage
-----
    from museumquest.modules.shared import BaseService, NotFoundError
"""

from .base_service import BaseService
from .exceptions import (
    AlreadyActiveError,
    CascadeFailure,
    NoActiveQuestError,
    NotFoundError,
    QuestDomainException,
    QuestUnavailableError,
    ValidationError,
)

__all__ = [
    "BaseService",
    "QuestDomainException",
    "AlreadyActiveError",
    "QuestUnavailableError",
    "NoActiveQuestError",
    "NotFoundError",
    "ValidationError",
    "CascadeFailure",
]

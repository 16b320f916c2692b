"""
Input Validation Layer for MuseumQuest

Purpose
-------
Provide a centralized validation layer for raw inputs reaching the engine:
identifiers typed or scanned by visitors, operator-supplied emails and the
decoded text of an artefact QR code.

Responsibilities
----------------
- Validate identifiers (quest, artefact, user) for emptiness, length and
  characters that would break store key layout
- Validate email addresses for operator tooling
- Parse scanned QR payloads into an artefact id
- Raise ValidationError with user-friendly messages

Non-Responsibilities
--------------------
- Quest rules such as order or duplicates (SubmissionValidator)
- Existence checks against the remote store (services)

Observability
-------------
Every validation failure is logged at debug level with field_name,
raw_value (repr) and the reason.

Dependencies
------------
- museumquest.modules.shared.exceptions.ValidationError
- museumquest.core.logging.logger.get_logger
"""

from __future__ import annotations

import json
import re
from typing import Any, NoReturn
from urllib.parse import parse_qs, urlparse

from museumquest.core.logging.logger import get_logger
from museumquest.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_IDENTIFIER_LENGTH = 128
MAX_EMAIL_LENGTH = 254
UNFAMILIAR_SCAN_MESSAGE = (
    "Unfamiliar QR code detected. This is not a valid artefact QR code."
)

# ":" separates key segments in the remote store; "*?[]" are SCAN globs
_FORBIDDEN_ID_CHARS = re.compile(r"[:\s*?\[\]]")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """
    Centralized helper to log and raise a ValidationError.

    All validation failures go through this function to ensure consistent,
    structured logging and error construction.
    """
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Centralized input validation.

    All validation methods:
    - Are stateless and deterministic
    - Return validated values on success
    - Raise ValidationError on failure (never silently fail)
    """

    # =========================================================================
    # IDENTIFIERS
    # =========================================================================

    @staticmethod
    def validate_identifier(value: Any, field_name: str) -> str:
        """
        Validate a quest, artefact or user identifier.

        Args:
            value: Raw identifier
            field_name: Name of field for error messages/logging

        Returns:
            The identifier with surrounding whitespace removed

        Raises:
            ValidationError: If empty, too long, or contains key separators
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(
                field_name, value, f"Must be text, got {type(value).__name__}"
            )

        cleaned = value.strip()
        if not cleaned:
            _raise_validation_error(field_name, value, "Cannot be empty")

        if len(cleaned) > MAX_IDENTIFIER_LENGTH:
            _raise_validation_error(
                field_name,
                value,
                f"Must be at most {MAX_IDENTIFIER_LENGTH} characters",
            )

        if _FORBIDDEN_ID_CHARS.search(cleaned):
            _raise_validation_error(
                field_name, value, "Contains characters that are not allowed"
            )

        return cleaned

    @staticmethod
    def validate_email(value: Any, field_name: str = "email") -> str:
        """
        Validate and normalise an email address (stripped, lower-cased).

        Raises:
            ValidationError: If the value does not look like an email
        """
        if not isinstance(value, str) or not value.strip():
            _raise_validation_error(field_name, value, "Email is required")

        cleaned = value.strip().lower()
        if len(cleaned) > MAX_EMAIL_LENGTH or not _EMAIL_PATTERN.match(cleaned):
            _raise_validation_error(field_name, value, "Must be a valid email address")

        return cleaned

    # =========================================================================
    # SCAN PAYLOADS
    # =========================================================================

    @staticmethod
    def parse_scan_payload(text: Any) -> str:
        """
        Extract an artefact id from the decoded text of a QR code.

        Two encodings are accepted:

        - a URL carrying the id in its ``id`` query parameter
          (``https://museum.example/artefact?id=A1``)
        - a JSON object with an ``artefactId`` key (``{"artefactId": "A1"}``)

        Raises:
            ValidationError: (field ``scan``) for anything else
        """
        if not isinstance(text, str) or not text.strip():
            _raise_validation_error("scan", text, UNFAMILIAR_SCAN_MESSAGE)

        payload = text.strip()

        if payload.startswith("http"):
            query = parse_qs(urlparse(payload).query)
            candidates = query.get("id") or []
            if not candidates or not candidates[0].strip():
                _raise_validation_error("scan", text, UNFAMILIAR_SCAN_MESSAGE)
            return InputValidator.validate_identifier(candidates[0], "artefact_id")

        try:
            decoded = json.loads(payload)
        except ValueError:
            _raise_validation_error("scan", text, UNFAMILIAR_SCAN_MESSAGE)

        if not isinstance(decoded, dict) or not decoded.get("artefactId"):
            _raise_validation_error("scan", text, UNFAMILIAR_SCAN_MESSAGE)

        return InputValidator.validate_identifier(decoded["artefactId"], "artefact_id")

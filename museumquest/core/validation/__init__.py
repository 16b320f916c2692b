"""
Validation package.

Exposes ``InputValidator`` for identifiers, emails and scanned QR payloads.
Business rules live in the services, not here.
"""

from museumquest.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]

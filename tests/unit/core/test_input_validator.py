"""
Unit tests for InputValidator.

Tests identifier and email validation and QR scan payload parsing.
"""

import pytest

from museumquest.core.validation.input_validator import (
    MAX_IDENTIFIER_LENGTH,
    UNFAMILIAR_SCAN_MESSAGE,
    InputValidator,
)
from museumquest.modules.shared.exceptions import ValidationError


class TestValidateIdentifier:
    """Test validate_identifier."""

    def test_strips_whitespace(self):
        assert InputValidator.validate_identifier("  A-12 ", "artefact_id") == "A-12"

    @pytest.mark.parametrize(
        "value",
        [None, 42, "", "   ", "a:b", "a b", "a*", "a?", "a[1]", "x" * (MAX_IDENTIFIER_LENGTH + 1)],
    )
    def test_rejects(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_identifier(value, "artefact_id")

        assert exc_info.value.field == "artefact_id"


class TestValidateEmail:
    """Test validate_email."""

    def test_normalises(self):
        assert InputValidator.validate_email("  Visitor@Example.ORG ") == "visitor@example.org"

    @pytest.mark.parametrize("value", [None, "", "visitor", "a@b", "two@@example.org"])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_email(value)


class TestParseScanPayload:
    """Test parse_scan_payload."""

    def test_url_with_id(self):
        payload = "https://museum.example/artefact?id=A1&lang=en"

        assert InputValidator.parse_scan_payload(payload) == "A1"

    def test_json_object(self):
        assert InputValidator.parse_scan_payload('{"artefactId": "B7"}') == "B7"

    @pytest.mark.parametrize(
        "payload",
        [
            "",
            "hello world",
            "https://museum.example/artefact",
            "https://museum.example/artefact?id=",
            '{"name": "vase"}',
            "[1, 2]",
            None,
        ],
    )
    def test_unfamiliar_payloads(self, payload):
        """Test anything that is not an artefact code gets the unfamiliar-code message."""
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.parse_scan_payload(payload)

        assert exc_info.value.field == "scan"
        assert exc_info.value.validation_message == UNFAMILIAR_SCAN_MESSAGE

    def test_id_still_validated(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.parse_scan_payload('{"artefactId": "a:b"}')

        assert exc_info.value.field == "artefact_id"

"""
Unit tests for the logging subsystem.

Tests LogContext propagation, record enrichment, the JSON formatter and
the queue-backed setup/shutdown cycle.
"""

import json
import logging

import pytest

from museumquest.core.logging.logger import (
    ContextFilter,
    JSONFormatter,
    LogContext,
    clear_log_context,
    get_log_context,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture(autouse=True)
def empty_log_context():
    clear_log_context()
    yield
    clear_log_context()


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="museumquest.modules.progress.store",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Artefact submitted",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    """Test context propagation."""

    def test_scoped_to_block(self):
        with LogContext(user_id="u-1", quest_id="Q1", operation="submit_artefact"):
            context = get_log_context()

        assert context["user_id"] == "u-1"
        assert context["quest_id"] == "Q1"
        assert context["correlation_id"]
        assert get_log_context() == {}

    def test_nested_context_keeps_correlation_id(self):
        with LogContext(user_id="u-1", correlation_id="abc123"):
            with LogContext(quest_id="Q1"):
                inner = get_log_context()

        assert inner["user_id"] == "u-1"
        assert inner["quest_id"] == "Q1"
        assert inner["correlation_id"] == "abc123"

    @pytest.mark.asyncio
    async def test_async_context(self):
        async with LogContext(operation="resume"):
            assert get_log_context()["operation"] == "resume"

        assert "operation" not in get_log_context()

    def test_set_and_clear(self):
        set_log_context(user_id="u-9", component="cli", command="leaderboard")

        assert get_log_context() == {"user_id": "u-9", "component": "cli", "command": "leaderboard"}

        clear_log_context()
        assert get_log_context() == {}


@pytest.mark.unit
class TestRecordEnrichment:
    """Test ContextFilter and JSONFormatter."""

    def test_filter_fills_from_context(self):
        record = _record()

        with LogContext(user_id="u-1", quest_id="Q1"):
            ContextFilter().filter(record)

        assert record.user_id == "u-1"
        assert record.quest_id == "Q1"
        assert record.component == "store"
        assert record.operation == "N/A"

    def test_explicit_extra_wins(self):
        record = _record(quest_id="Q2")

        with LogContext(quest_id="Q1"):
            ContextFilter().filter(record)

        assert record.quest_id == "Q2"

    def test_json_output(self):
        """Test context attributes are top-level and other extras are nested."""
        # Arrange
        record = _record(submitted_count=2)
        with LogContext(user_id="u-1"):
            ContextFilter().filter(record)

        # Act
        payload = json.loads(JSONFormatter().format(record))

        # Assert
        assert payload["message"] == "Artefact submitted"
        assert payload["level"] == "INFO"
        assert payload["user_id"] == "u-1"
        assert "quest_id" not in payload
        assert payload["extra"] == {"submitted_count": 2}


@pytest.mark.unit
class TestSetup:
    """Test setup_logging / shutdown_logging."""

    def test_health_follows_lifecycle(self):
        setup_logging()
        try:
            setup_logging()
            logging.getLogger("tests.logging").info("hello")

            health = get_logging_health()

            assert health.initialized
            assert health.queue_max_size > 0
            assert health.records_enqueued >= 1
            assert health.records_dropped == 0
        finally:
            shutdown_logging()

        assert not get_logging_health().initialized

"""
Unit Tests for the QuestProgress Domain Model
=============================================

Purpose
-------
Test the record-level invariants of QuestProgress and the domain events
its mutations emit.

Test Coverage
-------------
- Creation on accept and the accepted event
- Submissions (order kept, duplicates refused, frozen after completion)
- Attempt counters and displayed hints (monotonic)
- Completion and time taken
- Stored record and flat field encoding

Testing Strategy
----------------
- Unit tests (fast, no store)
- AAA pattern (Arrange, Act, Assert)
- Test one behavior per test
"""

from datetime import datetime, timedelta, timezone

import pytest

from museumquest.domain.models.base import DomainValidationError
from museumquest.domain.models.progress import (
    QuestProgress,
    hint_key,
    progress_record_from_fields,
    progress_record_to_fields,
)

START = datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def progress() -> QuestProgress:
    """Fresh progress with the accepted event already consumed."""
    record = QuestProgress.start("u-1", "Q1", START)
    record.clear_domain_events()
    return record


# ============================================================================
# CREATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestProgressStart:
    """Test QuestProgress.start."""

    def test_start_sets_identity_and_empty_state(self):
        # Act
        progress = QuestProgress.start("u-1", "Q1", START)

        # Assert
        assert progress.id == ("u-1", "Q1")
        assert progress.accepted_at == START
        assert progress.submitted_artefact_ids == ()
        assert progress.attempts == {}
        assert progress.displayed_hints == ()
        assert not progress.is_completed

    def test_start_emits_accepted_event_with_all_fields(self):
        """Test the accepted event carries the whole flat record."""
        progress = QuestProgress.start("u-1", "Q1", START)

        events = progress.get_pending_events()

        assert [e.event_name for e in events] == ["progress.accepted"]
        fields = events[0].payload["fields"]
        assert fields["userId"] == "u-1"
        assert fields["questId"] == "Q1"
        assert fields["acceptedAt"] == START.isoformat()
        assert fields["submittedArtefactIds"] == []
        assert fields["completed"] is False
        assert "completedAt" not in fields

    def test_blank_ids_rejected(self):
        with pytest.raises(DomainValidationError):
            QuestProgress.start("", "Q1", START)


# ============================================================================
# SUBMISSIONS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSubmissions:
    """Test add_submission."""

    def test_keeps_insertion_order(self, progress):
        progress.add_submission("C")
        progress.add_submission("A")

        assert progress.submitted_artefact_ids == ("C", "A")
        assert progress.submitted_count == 2

    def test_event_carries_full_list(self, progress):
        """Test each submission event carries the whole submitted list."""
        progress.add_submission("A")
        progress.add_submission("B")

        events = progress.clear_domain_events()

        assert events[-1].event_name == "progress.artefact_submitted"
        assert events[-1].payload["submitted_artefact_ids"] == ["A", "B"]

    def test_duplicate_refused(self, progress):
        progress.add_submission("A")

        with pytest.raises(DomainValidationError):
            progress.add_submission("A")

        assert progress.submitted_artefact_ids == ("A",)

    def test_no_submissions_after_completion(self, progress):
        progress.add_submission("A")
        progress.complete(START + timedelta(minutes=5))

        with pytest.raises(DomainValidationError):
            progress.add_submission("B")

    def test_constructor_rejects_duplicate_ids(self):
        with pytest.raises(DomainValidationError):
            QuestProgress("u-1", "Q1", START, submitted_artefact_ids=["A", "A"])


# ============================================================================
# ATTEMPTS AND HINTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestAttemptsAndHints:
    """Test attempt counters and displayed hint keys."""

    def test_attempts_increase_per_artefact(self, progress):
        assert progress.record_attempt("B") == 1
        assert progress.record_attempt("B") == 2
        assert progress.record_attempt("C") == 1

        assert progress.attempts == {"B": 2, "C": 1}
        assert progress.attempts_for("A") == 0

    def test_attempt_event_carries_new_count(self, progress):
        progress.record_attempt("B")
        progress.record_attempt("B")

        payload = progress.clear_domain_events()[-1].payload

        assert payload == {"quest_id": "Q1", "artefact_id": "B", "attempts": 2}

    def test_attempts_keep_counting_after_completion(self, progress):
        """Test counters are never reset, even once the quest is completed."""
        progress.add_submission("A")
        progress.complete(START)

        assert progress.record_attempt("A") == 1

    def test_mark_hints_returns_only_new_keys(self, progress):
        first = progress.mark_hints_displayed(["B-0"])
        second = progress.mark_hints_displayed(["B-0", "B-1"])

        assert first == ["B-0"]
        assert second == ["B-1"]
        assert progress.displayed_hints == ("B-0", "B-1")

    def test_no_event_when_nothing_new(self, progress):
        progress.mark_hints_displayed(["B-0"])
        progress.clear_domain_events()

        assert progress.mark_hints_displayed(["B-0"]) == []
        assert progress.get_pending_events() == []

    def test_hint_key_format(self):
        assert hint_key("B", 1) == "B-1"


# ============================================================================
# COMPLETION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestCompletion:
    """Test complete() and time taken."""

    def test_time_taken_in_seconds(self, progress):
        progress.complete(START + timedelta(minutes=2, seconds=3))

        assert progress.is_completed
        assert progress.time_taken_seconds == 123.0

    def test_completed_event_carries_submissions(self, progress):
        progress.add_submission("A")
        progress.complete(START + timedelta(seconds=10))

        event = progress.clear_domain_events()[-1]

        assert event.event_name == "progress.completed"
        assert event.payload["submitted_artefact_ids"] == ["A"]
        assert event.payload["time_taken_seconds"] == 10.0

    def test_completed_at_set_once(self, progress):
        progress.complete(START)

        with pytest.raises(DomainValidationError):
            progress.complete(START + timedelta(seconds=1))

    def test_no_time_taken_before_completion(self, progress):
        assert progress.time_taken_seconds is None


# ============================================================================
# CONVERSION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestConversion:
    """Test stored record and flat field encoding."""

    def test_to_fields_flattens_maps(self, progress):
        """Test attempts and hints become one field per entry."""
        progress.add_submission("A")
        progress.record_attempt("B")
        progress.mark_hints_displayed(["B-0"])

        fields = progress.to_fields()

        assert fields["submittedArtefactIds"] == ["A"]
        assert fields["attempts.B"] == 1
        assert fields["displayedHints.B-0"] is True
        assert "attempts" not in fields

    def test_from_fields_restores_record(self):
        record = progress_record_from_fields(
            {
                "userId": "u-1",
                "questId": "Q1",
                "acceptedAt": START.isoformat(),
                "submittedArtefactIds": ["A"],
                "attempts.B": 3,
                "displayedHints.B-0": True,
                "displayedHints.B-1": False,
            }
        )

        assert record["attempts"] == {"B": 3}
        assert record["displayedHints"] == ["B-0"]
        assert record["submittedArtefactIds"] == ["A"]

    def test_field_codec_is_symmetric(self, progress):
        progress.add_submission("A")
        progress.record_attempt("B")
        progress.mark_hints_displayed(["B-0"])

        restored = QuestProgress.from_record(
            progress_record_from_fields(progress_record_to_fields(progress.to_record()))
        )

        assert restored.to_record() == progress.to_record()

    def test_from_record_tolerates_partial_records(self):
        """Test duplicates, bad counts and a missing acceptedAt are tolerated."""
        # Arrange
        record = {
            "userId": "u-1",
            "questId": "Q1",
            "completedAt": "2025-06-01T10:05:00Z",
            "submittedArtefactIds": ["A", "A", "B"],
            "attempts": {"A": "2", "B": -1, "C": "x", "D": True},
            "displayedHints": {"B-0": True, "B-1": False},
        }

        # Act
        progress = QuestProgress.from_record(record)

        # Assert
        assert progress.submitted_artefact_ids == ("A", "B")
        assert progress.attempts == {"A": 2}
        assert progress.displayed_hints == ("B-0",)
        assert progress.accepted_at == progress.completed_at

    def test_from_record_needs_a_timestamp(self):
        with pytest.raises(DomainValidationError):
            QuestProgress.from_record({"userId": "u-1", "questId": "Q1"})

"""
Unit Tests for Progress Reconciliation Merge
============================================

Purpose
-------
Test the per-field merge of a local and a remote QuestProgress, and the
repair fields pushed back to the remote copy.

Test Coverage
-------------
- Remote authoritative submissions, sanitized against the quest
- Element-wise max of attempts, union of displayed hints
- completedAt derived from counts
- Repair fields for a missing or stale remote record

Testing Strategy
----------------
- Unit tests (fast, no store)
- AAA pattern (Arrange, Act, Assert)
"""

from datetime import datetime, timedelta, timezone

import pytest

from museumquest.domain.models.progress import QuestProgress
from museumquest.modules.progress.merge import merge_progress, repair_fields, sanitize_submissions

START = datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)
NOW = START + timedelta(minutes=30)


def _progress(quest_id="Q1", submitted=(), attempts=None, hints=(), completed_at=None, accepted_at=START):
    return QuestProgress(
        "u-1",
        quest_id,
        accepted_at,
        submitted_artefact_ids=submitted,
        attempts=attempts or {},
        displayed_hints=hints,
        completed_at=completed_at,
    )


@pytest.mark.unit
class TestSanitizeSubmissions:
    """Test sanitize_submissions."""

    def test_sequential_cut_at_first_out_of_order(self, sequential_quest):
        assert sanitize_submissions(["A", "C", "B"], sequential_quest) == ["A"]

    def test_drops_foreign_and_duplicate_ids(self, open_quest):
        assert sanitize_submissions(["Z", "Q", "Z", "X"], open_quest) == ["Z", "X"]

    def test_sequential_foreign_ids_dropped_before_prefix(self, sequential_quest):
        assert sanitize_submissions(["A", "ghost", "B"], sequential_quest) == ["A", "B"]


@pytest.mark.unit
class TestMergeProgress:
    """Test merge_progress field rules."""

    def test_both_missing(self, sequential_quest):
        assert merge_progress(None, None, sequential_quest, NOW) is None

    def test_remote_submissions_win(self, sequential_quest):
        """Test the remote submission log is authoritative."""
        # Arrange
        local = _progress(submitted=["A"])
        remote = _progress(submitted=["A", "B"])

        # Act
        merged = merge_progress(local, remote, sequential_quest, NOW)

        # Assert
        assert merged.submitted_artefact_ids == ("A", "B")

    def test_attempts_max_and_hints_union(self, sequential_quest):
        local = _progress(attempts={"B": 3, "C": 1}, hints=["B-0", "B-1"])
        remote = _progress(attempts={"B": 1, "A": 2}, hints=["B-0"])

        merged = merge_progress(local, remote, sequential_quest, NOW)

        assert merged.attempts == {"A": 2, "B": 3, "C": 1}
        assert set(merged.displayed_hints) == {"B-0", "B-1"}

    def test_accepted_at_from_remote(self, sequential_quest):
        local = _progress(accepted_at=START + timedelta(minutes=1))
        remote = _progress(accepted_at=START)

        assert merge_progress(local, remote, sequential_quest, NOW).accepted_at == START

    def test_local_only_kept(self, sequential_quest):
        local = _progress(submitted=["A"], attempts={"B": 1})

        merged = merge_progress(local, None, sequential_quest, NOW)

        assert merged.submitted_artefact_ids == ("A",)
        assert merged.attempts == {"B": 1}

    def test_inputs_not_modified(self, sequential_quest):
        local = _progress(attempts={"B": 3})
        remote = _progress(submitted=["A"])

        merge_progress(local, remote, sequential_quest, NOW)

        assert local.submitted_artefact_ids == ()
        assert remote.attempts == {}


@pytest.mark.unit
class TestMergeCompletion:
    """Test completedAt derivation."""

    def test_remote_completed_at_kept(self, sequential_quest):
        done = START + timedelta(minutes=10)
        remote = _progress(submitted=["A", "B", "C"], completed_at=done)

        merged = merge_progress(None, remote, sequential_quest, NOW)

        assert merged.completed_at == done

    def test_count_complete_without_timestamp_uses_now(self, open_quest):
        """Test a remote record with every artefact but no completedAt is completed now."""
        remote = _progress("Q2", submitted=["Z", "Y", "X"])

        merged = merge_progress(None, remote, open_quest, NOW)

        assert merged.is_completed
        assert merged.completed_at == NOW

    def test_local_completed_at_used_when_remote_lacks_it(self, sequential_quest):
        done = START + timedelta(minutes=10)
        local = _progress(submitted=["A", "B", "C"], completed_at=done)
        remote = _progress(submitted=["A", "B", "C"])

        merged = merge_progress(local, remote, sequential_quest, NOW)

        assert merged.completed_at == done

    def test_completed_at_dropped_when_count_incomplete(self, sequential_quest):
        """Test a record never carries completedAt without every artefact."""
        remote = _progress(submitted=["A", "C"], completed_at=START + timedelta(minutes=5))

        merged = merge_progress(None, remote, sequential_quest, NOW)

        assert merged.submitted_artefact_ids == ("A",)
        assert not merged.is_completed


@pytest.mark.unit
class TestRepairFields:
    """Test repair_fields."""

    def test_full_fields_when_remote_missing(self, sequential_quest):
        local = _progress(submitted=["A"], attempts={"B": 1})
        merged = merge_progress(local, None, sequential_quest, NOW)

        fields = repair_fields(merged, None)

        assert fields == merged.to_fields()

    def test_only_missing_fields(self, sequential_quest):
        """Test fields the remote already has right are not rewritten."""
        # Arrange
        local = _progress(submitted=["A"], attempts={"B": 2}, hints=["B-0"])
        remote = _progress(submitted=["A"], attempts={"B": 1})
        merged = merge_progress(local, remote, sequential_quest, NOW)

        # Act
        fields = repair_fields(merged, remote)

        # Assert
        assert fields == {"attempts.B": 2, "displayedHints.B-0": True}

    def test_nothing_when_in_sync(self, sequential_quest):
        remote = _progress(submitted=["A"], attempts={"B": 1})
        merged = merge_progress(remote, remote, sequential_quest, NOW)

        assert repair_fields(merged, remote) == {}

    def test_completion_repaired(self, open_quest):
        remote = _progress("Q2", submitted=["Z", "Y", "X"])
        merged = merge_progress(None, remote, open_quest, NOW)

        fields = repair_fields(merged, remote)

        assert "submittedArtefactIds" not in fields
        assert fields["completedAt"] == NOW.isoformat()
        assert fields["completed"] is True

    def test_sanitized_submissions_written_back(self, sequential_quest):
        remote = _progress(submitted=["A", "C"])
        merged = merge_progress(None, remote, sequential_quest, NOW)

        assert repair_fields(merged, remote) == {"submittedArtefactIds": ["A"]}

"""
Unit Tests for ApplicationContext
=================================

Purpose
-------
Test startup, service wiring, per-user sessions and shutdown with an
injected in-memory store (Redis is never touched).

Test Coverage
-------------
- Initialization order and guards
- Failed initialization surfaces as RuntimeError
- Sessions are cached per user and drained on close
- A full quest completion through a session reaches the leaderboard and
  the user collection

Testing Strategy
----------------
- InMemoryRemoteStore injected into the context
- Every test shuts the context down to stop the logging listener
"""

import pytest

from museumquest.core.config.config import Config
from museumquest.core.exceptions import ConfigurationError
from museumquest.core.infra.application_context import ApplicationContext
from museumquest.modules.progress.store import SessionState


@pytest.fixture
def context(memory_store) -> ApplicationContext:
    return ApplicationContext(store=memory_store)


@pytest.mark.unit
class TestLifecycle:
    """Test initialize and shutdown."""

    @pytest.mark.asyncio
    async def test_initialize_wires_services(self, context, memory_store):
        await context.initialize()
        try:
            assert context.is_initialized
            assert context.store is memory_store
            assert context.leaderboard is not None
            assert context.leaderboard_cascade is not None
            assert context.collection is not None
            assert context.catalog is not None
            assert context.accounts is not None
        finally:
            await context.shutdown()

        assert not context.is_initialized

    def test_services_need_initialize(self, context):
        with pytest.raises(RuntimeError):
            _ = context.leaderboard

    @pytest.mark.asyncio
    async def test_double_initialize_refused(self, context):
        await context.initialize()
        try:
            with pytest.raises(RuntimeError):
                await context.initialize()
        finally:
            await context.shutdown()

    @pytest.mark.asyncio
    async def test_failed_initialize(self, context, mocker):
        mocker.patch.object(
            Config,
            "validate",
            side_effect=ConfigurationError("REDIS_URL", "REDIS_URL must be set"),
        )

        with pytest.raises(RuntimeError) as exc_info:
            await context.initialize()

        assert isinstance(exc_info.value.__cause__, ConfigurationError)
        assert not context.is_initialized

    @pytest.mark.asyncio
    async def test_shutdown_without_initialize(self, context):
        await context.shutdown()

        assert not context.is_initialized


@pytest.mark.unit
class TestSessions:
    """Test per-user sessions."""

    @pytest.mark.asyncio
    async def test_session_cached_per_user(self, context):
        await context.initialize()
        try:
            first = context.open_session("u-1")

            assert context.open_session("u-1") is first
            assert context.open_session("u-2") is not first
        finally:
            await context.shutdown()

    @pytest.mark.asyncio
    async def test_completion_through_session(self, context, memory_store, sequential_quest):
        """Test a completed quest lands on the leaderboard and the collection."""
        # Arrange
        await context.initialize()
        try:
            await memory_store.put_quest(sequential_quest.to_record())
            await memory_store.put_user({"userId": "u-1", "email": "visitor@example.org"})
            session = context.open_session("u-1")

            # Act
            session.accept_quest(sequential_quest)
            for artefact_id in ("A", "B", "C"):
                session.submit_artefact(artefact_id)
            state = session.state
            await context.close_session("u-1")

            # Assert
            assert state is SessionState.COMPLETED
            assert session.state is SessionState.IDLE
            rows = await context.leaderboard.fastest("Q1")
            assert [(r["user_id"], r["email"]) for r in rows] == [("u-1", "visitor@example.org")]
            user = await memory_store.get_user("u-1")
            assert user["artefacts_collected"] == ["A", "B", "C"]
            assert memory_store.progress_fields("u-1", "Q1")["completed"] is True
        finally:
            await context.shutdown()

    @pytest.mark.asyncio
    async def test_close_unknown_session(self, context):
        await context.initialize()
        try:
            await context.close_session("nobody")
        finally:
            await context.shutdown()

"""
Pytest Configuration and Fixtures for MuseumQuest Tests
=======================================================

Purpose
-------
Centralized fixtures for the MuseumQuest test suite: test environment,
configuration reset, quest factories, in-memory and failure-injecting
stores, a controllable clock, and a Redis testcontainer.

Architecture Notes
------------------
- Unit tests use ``InMemoryRemoteStore`` (fast, isolated)
- ``FlakyStore`` wraps the in-memory store to inject failures and hold
  calls open, for retry, cancellation and cascade tests
- Integration tests use testcontainers (real Redis) and skip when Docker
  is unavailable
- Retry backoff is set to zero so retry tests do not sleep
"""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("REDIS_KEY_PREFIX", "mqtest")

import pytest
from testcontainers.redis import RedisContainer

from museumquest.core.config.config import Config
from museumquest.core.config.manager import ConfigManager
from museumquest.core.exceptions import RemoteStoreError
from museumquest.core.logging.logger import get_logger
from museumquest.core.store.memory import InMemoryRemoteStore
from museumquest.domain.models.quest import Quest
from museumquest.modules.progress.store import ProgressStore
from museumquest.modules.progress.sync import SyncReconciler

logger = get_logger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def engine_config() -> Generator[None, None, None]:
    """
    Fresh ConfigManager per test, loaded from ``config/`` with zero backoff.
    """
    ConfigManager.reset()
    ConfigManager.load(Config.CONFIG_DIR)
    ConfigManager.set_override("sync.retry.initial_delay_seconds", 0.0)
    ConfigManager.set_override("sync.retry.max_delay_seconds", 0.0)
    ConfigManager.set_override("sync.retry.jitter", False)
    yield
    ConfigManager.reset()


# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 6, 1, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# QUEST FACTORIES
# ============================================================================


def build_quest_record(
    quest_id: str = "Q1",
    quest_type: str = "sequential",
    artefacts: Sequence[str] = ("A", "B", "C"),
    hints: Optional[Dict[str, List[str]]] = None,
    date_range: Optional[Dict[str, Any]] = None,
    prize: Optional[Dict[str, Any]] = None,
    leaderboard: Optional[List[Dict[str, Any]]] = None,
    title: Optional[str] = None,
) -> Dict[str, Any]:
    """Stored quest record in the shape the admin console writes."""
    hints = hints or {}
    record: Dict[str, Any] = {
        "quest_id": quest_id,
        "title": title or f"Quest {quest_id}",
        "description": "",
        "questType": quest_type,
        "artefacts": [
            {
                "artefactId": artefact_id,
                "name": f"Artefact {artefact_id}",
                "hints": [
                    {"description": text, "displayAfterAttempts": index + 1}
                    for index, text in enumerate(hints.get(artefact_id, []))
                ],
                "hintDisplayMode": "sequential",
            }
            for artefact_id in artefacts
        ],
        "leaderboard": list(leaderboard or []),
    }
    if date_range is not None:
        record["dateRange"] = date_range
    if prize is not None:
        record["prize"] = prize
    return record


@pytest.fixture
def quest_record_factory() -> Callable[..., Dict[str, Any]]:
    return build_quest_record


@pytest.fixture
def quest_factory() -> Callable[..., Quest]:
    def factory(**kwargs: Any) -> Quest:
        return Quest.from_record(build_quest_record(**kwargs))

    return factory


@pytest.fixture
def sequential_quest(quest_factory) -> Quest:
    """Quest Q1, sequential, artefacts [A, B, C], two hints on B."""
    return quest_factory(
        quest_id="Q1",
        quest_type="sequential",
        artefacts=("A", "B", "C"),
        hints={"B": ["Look near the window", "It is made of bronze"]},
        prize={"title": "Explorer badge", "description": "Finished Q1"},
    )


@pytest.fixture
def open_quest(quest_factory) -> Quest:
    """Quest Q2, open, artefacts [X, Y, Z]."""
    return quest_factory(quest_id="Q2", quest_type="open", artefacts=("X", "Y", "Z"))


# ============================================================================
# STORES
# ============================================================================


@dataclass
class _FailureRule:
    remaining: int
    error: BaseException
    match: Optional[Callable[..., bool]]


class FlakyStore(InMemoryRemoteStore):
    """
    In-memory store with failure injection and call gating.

    Usage:
        store.fail("set_leaderboard", times=-1, match=lambda qid, _: qid == "Q2")
        gate = store.hold("get_progress")   # call blocks until gate.set()

    ``get_user`` yields once after reading, so concurrent collection updates
    can interleave.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: Dict[str, List[tuple]] = defaultdict(list)
        self._failures: Dict[str, List[_FailureRule]] = defaultdict(list)
        self._gates: Dict[str, asyncio.Event] = {}

    def fail(
        self,
        method: str,
        times: int = 1,
        error: Optional[BaseException] = None,
        match: Optional[Callable[..., bool]] = None,
    ) -> None:
        """Fail the next ``times`` matching calls (-1 for every call)."""
        error = error or RemoteStoreError(method, ConnectionError("injected failure"))
        self._failures[method].append(_FailureRule(times, error, match))

    def hold(self, method: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[method] = gate
        return gate

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls[method].append(args)
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()
        for rule in self._failures[method]:
            if rule.remaining == 0:
                continue
            if rule.match is not None and not rule.match(*args):
                continue
            if rule.remaining > 0:
                rule.remaining -= 1
            raise rule.error

    async def get_progress(self, user_id, quest_id):
        await self._enter("get_progress", user_id, quest_id)
        return await super().get_progress(user_id, quest_id)

    async def patch_progress(self, user_id, quest_id, fields, replace=False):
        await self._enter("patch_progress", user_id, quest_id, dict(fields))
        await super().patch_progress(user_id, quest_id, fields, replace=replace)

    async def delete_progress(self, user_id, quest_id):
        await self._enter("delete_progress", user_id, quest_id)
        await super().delete_progress(user_id, quest_id)

    async def get_quest(self, quest_id):
        await self._enter("get_quest", quest_id)
        return await super().get_quest(quest_id)

    async def scan_quests(self):
        await self._enter("scan_quests")
        return await super().scan_quests()

    async def set_leaderboard(self, quest_id, entries):
        await self._enter("set_leaderboard", quest_id, entries)
        await super().set_leaderboard(quest_id, entries)

    async def get_user(self, user_id):
        await self._enter("get_user", user_id)
        record = await super().get_user(user_id)
        # Hand control back after the read, like a network round trip, so
        # overlapping read-merge-replace cycles interleave
        await asyncio.sleep(0)
        return record

    async def replace_user_collection(self, user_id, artefacts_collected, completed_quests):
        await self._enter("replace_user_collection", user_id)
        await super().replace_user_collection(user_id, artefacts_collected, completed_quests)

    async def delete_user(self, user_id):
        await self._enter("delete_user", user_id)
        return await super().delete_user(user_id)


@pytest.fixture
def memory_store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


# ============================================================================
# PROGRESS FIXTURES
# ============================================================================


@pytest.fixture
def reconciler(flaky_store) -> SyncReconciler:
    return SyncReconciler(flaky_store, user_id="u-1")


@pytest.fixture
def progress_store(reconciler, clock) -> ProgressStore:
    """ProgressStore for user u-1 without completion side effects."""
    return ProgressStore("u-1", reconciler, clock=clock)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container():
    """
    Start a Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Skips the requesting tests when Docker is not available.
    """
    try:
        container = RedisContainer(image="redis:7-alpine")
        container.start()
    except Exception as exc:
        pytest.skip(f"Redis testcontainer unavailable: {exc}")

    logger.info(
        "Redis testcontainer started",
        extra={
            "host": container.get_container_host_ip(),
            "port": container.get_exposed_port(6379),
        },
    )

    yield container

    container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


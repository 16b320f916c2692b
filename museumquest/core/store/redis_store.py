"""
Redis-backed remote store for MuseumQuest.

Purpose
-------
Implement the RemoteStore contract over the redis-py asyncio client owned
by RedisService.

Key Layout
----------
- ``{prefix}:progress:{user_id}:{quest_id}``  hash, one field per flat
  progress field (``attempts.<id>``, ``displayedHints.<key>``, ...)
- ``{prefix}:quest:{quest_id}``  hash with ``definition`` and ``leaderboard``
- ``{prefix}:user:{user_id}``  hash, one field per top-level user attribute

Every hash value is JSON encoded so types survive the round trip. A
partial progress update is a single HSET of the changed fields only.

Architecture Notes
------------------
- Scans use SCAN MATCH through ``scan_iter``; KEYS is never issued
- Creation with ``replace=True`` runs DEL + HSET in one MULTI/EXEC
- Every Redis error is wrapped in RemoteStoreError naming the operation
"""

from __future__ import annotations

import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from museumquest.core.config.config import Config
from museumquest.core.exceptions import RemoteStoreError
from museumquest.core.logging.logger import get_logger
from museumquest.core.redis.service import RedisService
from museumquest.core.store.base import RemoteStore
from museumquest.domain.models.progress import progress_record_from_fields

logger = get_logger(__name__)

T = TypeVar("T")


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _decode_hash(raw: Mapping[str, str]) -> Dict[str, Any]:
    return {field: json.loads(value) for field, value in raw.items()}


class RedisRemoteStore(RemoteStore):
    """
    RemoteStore over Redis hashes.

    Parameters
    ----------
    client : Optional[AsyncRedis]
        Client to use; defaults to ``RedisService.client()`` at call time.
    prefix : Optional[str]
        Key namespace; defaults to ``Config.REDIS_KEY_PREFIX``.
    """

    def __init__(self, client: Optional[AsyncRedis] = None, prefix: Optional[str] = None) -> None:
        self._client = client
        self._prefix = prefix or Config.REDIS_KEY_PREFIX

    @property
    def client(self) -> AsyncRedis:
        return self._client if self._client is not None else RedisService.client()

    # ═══════════════════════════════════════════════════════════════════════
    # KEYS
    # ═══════════════════════════════════════════════════════════════════════

    def progress_key(self, user_id: str, quest_id: str) -> str:
        return f"{self._prefix}:progress:{user_id}:{quest_id}"

    def quest_key(self, quest_id: str) -> str:
        return f"{self._prefix}:quest:{quest_id}"

    def user_key(self, user_id: str) -> str:
        return f"{self._prefix}:user:{user_id}"

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════════════

    async def _run(
        self,
        operation: str,
        key: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        start_time = time.monotonic()
        try:
            result = await call()
        except RedisError as exc:
            logger.warning(
                "Remote store operation failed",
                extra={
                    "store_operation": operation,
                    "key": key,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise RemoteStoreError(operation, exc, key=key) from exc
        except ValueError as exc:
            # Corrupt JSON in a stored field; retrying cannot help
            raise RemoteStoreError(operation, exc, key=key, is_retryable=False) from exc

        logger.debug(
            "Remote store operation",
            extra={
                "store_operation": operation,
                "key": key,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # PROGRESS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_progress(self, user_id: str, quest_id: str) -> Optional[Dict[str, Any]]:
        key = self.progress_key(user_id, quest_id)

        async def call() -> Optional[Dict[str, Any]]:
            raw = await self.client.hgetall(key)
            if not raw:
                return None
            return progress_record_from_fields(_decode_hash(raw))

        return await self._run("get_progress", key, call)

    async def patch_progress(
        self,
        user_id: str,
        quest_id: str,
        fields: Mapping[str, Any],
        replace: bool = False,
    ) -> None:
        key = self.progress_key(user_id, quest_id)
        mapping = {field: _encode(value) for field, value in fields.items()}

        async def call() -> None:
            if replace:
                async with self.client.pipeline(transaction=True) as pipe:
                    pipe.delete(key)
                    if mapping:
                        pipe.hset(key, mapping=mapping)
                    await pipe.execute()
            elif mapping:
                await self.client.hset(key, mapping=mapping)

        await self._run("patch_progress", key, call)

    async def delete_progress(self, user_id: str, quest_id: str) -> None:
        key = self.progress_key(user_id, quest_id)

        async def call() -> None:
            await self.client.delete(key)

        await self._run("delete_progress", key, call)

    # ═══════════════════════════════════════════════════════════════════════
    # QUESTS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _quest_from_hash(raw: Mapping[str, Optional[str]]) -> Optional[Dict[str, Any]]:
        definition = raw.get("definition")
        if definition is None:
            return None
        record = json.loads(definition)
        leaderboard = raw.get("leaderboard")
        record["leaderboard"] = json.loads(leaderboard) if leaderboard else []
        return record

    async def get_quest(self, quest_id: str) -> Optional[Dict[str, Any]]:
        key = self.quest_key(quest_id)

        async def call() -> Optional[Dict[str, Any]]:
            return self._quest_from_hash(await self.client.hgetall(key))

        return await self._run("get_quest", key, call)

    async def scan_quests(self) -> List[Dict[str, Any]]:
        pattern = self.quest_key("*")

        async def call() -> List[Dict[str, Any]]:
            quests: List[Dict[str, Any]] = []
            async for key in self.client.scan_iter(match=pattern, count=200):
                record = self._quest_from_hash(await self.client.hgetall(key))
                if record is not None:
                    quests.append(record)
            return quests

        return await self._run("scan_quests", pattern, call)

    async def put_quest(self, record: Mapping[str, Any]) -> None:
        definition = {k: v for k, v in record.items() if k != "leaderboard"}
        key = self.quest_key(str(definition["quest_id"]))
        mapping = {
            "definition": _encode(definition),
            "leaderboard": _encode(list(record.get("leaderboard") or [])),
        }

        async def call() -> None:
            await self.client.hset(key, mapping=mapping)

        await self._run("put_quest", key, call)

    async def set_leaderboard(self, quest_id: str, entries: List[Dict[str, Any]]) -> None:
        key = self.quest_key(quest_id)

        async def call() -> None:
            await self.client.hset(key, "leaderboard", _encode(list(entries)))

        await self._run("set_leaderboard", key, call)

    # ═══════════════════════════════════════════════════════════════════════
    # USERS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        key = self.user_key(user_id)

        async def call() -> Optional[Dict[str, Any]]:
            raw = await self.client.hgetall(key)
            return _decode_hash(raw) if raw else None

        return await self._run("get_user", key, call)

    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        wanted = email.strip().lower()
        pattern = self.user_key("*")

        async def call() -> Optional[Dict[str, Any]]:
            async for key in self.client.scan_iter(match=pattern, count=200):
                raw_email = await self.client.hget(key, "email")
                if raw_email is None:
                    continue
                if str(json.loads(raw_email)).strip().lower() == wanted:
                    raw = await self.client.hgetall(key)
                    return _decode_hash(raw) if raw else None
            return None

        return await self._run("find_user_by_email", pattern, call)

    async def put_user(self, record: Mapping[str, Any]) -> None:
        key = self.user_key(str(record["userId"]))
        mapping = {field: _encode(value) for field, value in record.items()}

        async def call() -> None:
            await self.client.hset(key, mapping=mapping)

        await self._run("put_user", key, call)

    async def replace_user_collection(
        self,
        user_id: str,
        artefacts_collected: List[str],
        completed_quests: List[Dict[str, Any]],
    ) -> None:
        key = self.user_key(user_id)
        mapping = {
            "userId": _encode(user_id),
            "artefacts_collected": _encode(list(artefacts_collected)),
            "completed_quests": _encode(list(completed_quests)),
        }

        async def call() -> None:
            await self.client.hset(key, mapping=mapping)

        await self._run("replace_user_collection", key, call)

    async def delete_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        key = self.user_key(user_id)

        async def call() -> Optional[Dict[str, Any]]:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hgetall(key)
                pipe.delete(key)
                raw, _ = await pipe.execute()
            return _decode_hash(raw) if raw else None

        return await self._run("delete_user", key, call)

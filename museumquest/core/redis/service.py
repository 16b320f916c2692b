"""
RedisService: async Redis client lifecycle for MuseumQuest.

Purpose
-------
Own the single redis-py asyncio client used by the remote store adapter:
create it from Config, verify it, expose it, report health and close it.

Responsibilities
----------------
- Initialize and manage a singleton Redis connection pool
- Verify connectivity with PING on startup and on demand
- Expose the client to the remote store adapter
- Shut down gracefully

Non-Responsibilities
--------------------
- Key layout and record encoding (RedisRemoteStore)
- Retries (RetryPolicy, applied by the sync layer)
- Business logic of any kind

Configuration
-------------
- Config.REDIS_URL
- Config.REDIS_SOCKET_TIMEOUT
- Config.REDIS_MAX_CONNECTIONS

Architecture Notes
------------------
- redis-py asyncio client with connection pooling and decoded responses
- retry_on_timeout is disabled; retries are a sync-layer decision
- Initialization is idempotent and guarded by an asyncio.Lock
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from museumquest.core.config.config import Config
from museumquest.core.logging.logger import get_logger

logger = get_logger(__name__)


def _url_scheme(url: str) -> str:
    return url.split("://")[0] if "://" in url else "unknown"


class RedisService:
    """
    Singleton async Redis client holder.

    Example
    -------
    >>> await RedisService.initialize()
    >>> client = RedisService.client()
    >>> await RedisService.shutdown()
    """

    _client: Optional[AsyncRedis] = None
    _init_lock: Optional[asyncio.Lock] = None
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the client and verify it with PING.

        Idempotent. Safe to call multiple times.

        Raises
        ------
        RuntimeError
            If the connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = url or Config.REDIS_URL
            start_time = time.monotonic()
            client: AsyncRedis = AsyncRedis.from_url(
                url,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                encoding="utf-8",
                decode_responses=True,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                retry_on_timeout=False,
                health_check_interval=30,
            )

            try:
                await client.ping()
            except (RedisError, OSError) as exc:
                await client.aclose()
                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": _url_scheme(url),
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            cls._is_healthy = True

            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": _url_scheme(url),
                    "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                    "max_connections": Config.REDIS_MAX_CONNECTIONS,
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call even if not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except (RedisError, OSError) as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """PING the server; returns False instead of raising."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        start_time = time.monotonic()
        try:
            pong = await cls._client.ping()
        except (RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        cls._is_healthy = bool(pong)
        logger.debug(
            "Redis health check",
            extra={
                "healthy": cls._is_healthy,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return cls._is_healthy

    @classmethod
    def is_healthy(cls) -> bool:
        """Cached health status without performing I/O."""
        return cls._is_healthy

    @classmethod
    def get_status(cls) -> Dict[str, Any]:
        return {"initialized": cls._client is not None, "healthy": cls._is_healthy}

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENT ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

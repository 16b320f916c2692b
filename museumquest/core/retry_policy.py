"""
Retry policy for background persistence.

Purpose
-------
Run a remote store operation with a small, bounded retry budget and
exponential backoff.

Handles:
- Connection errors
- Timeout errors
- Remote store errors flagged as retryable

Responsibilities
----------------
- Execute operations with automatic retry on transient failures
- Apply exponential backoff between retries
- Enforce the hard cap of one retry per operation
- Log retry attempts and outcomes
- Re-raise permanent failures immediately

Non-Responsibilities
--------------------
- Dropping or absorbing failures (SyncReconciler decides that)
- Queueing work for later replay

Configuration Keys
------------------
- sync.retry.max_attempts         : int (default 2, capped at 2)
- sync.retry.initial_delay_seconds: float (default 0.25)
- sync.retry.max_delay_seconds    : float (default 1.0)
- sync.retry.backoff_multiplier   : float (default 2.0)
- sync.retry.jitter               : bool (default True)

Architecture Notes
------------------
- delay = min(initial * multiplier^(attempt-1), max_delay), ±10% jitter
- An operation is never attempted more than twice: retrying a per-record
  partial update indefinitely risks overwriting newer state with stale state.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from museumquest.core.config.manager import ConfigManager
from museumquest.core.exceptions import is_transient_error
from museumquest.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS_CAP = 2


class RetryPolicy:
    """
    Bounded retry with exponential backoff for remote store operations.

    Example
    -------
    >>> policy = RetryPolicy()
    >>> await policy.execute(lambda: store.patch_progress(...), "patch_progress")
    """

    # Transient exceptions that should be retried
    RETRYABLE_EXCEPTIONS = (
        RedisConnectionError,
        RedisTimeoutError,
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
    )

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        backoff_multiplier: Optional[float] = None,
        jitter: Optional[bool] = None,
    ) -> None:
        configured = (
            max_attempts
            if max_attempts is not None
            else self._get_config_int("sync.retry.max_attempts", 2)
        )
        self._max_attempts = max(1, min(configured, MAX_ATTEMPTS_CAP))
        self._initial_delay = (
            initial_delay
            if initial_delay is not None
            else self._get_config_float("sync.retry.initial_delay_seconds", 0.25)
        )
        self._max_delay = (
            max_delay
            if max_delay is not None
            else self._get_config_float("sync.retry.max_delay_seconds", 1.0)
        )
        self._backoff_multiplier = (
            backoff_multiplier
            if backoff_multiplier is not None
            else self._get_config_float("sync.retry.backoff_multiplier", 2.0)
        )
        self._jitter = (
            jitter if jitter is not None else self._get_config_bool("sync.retry.jitter", True)
        )

        if configured > MAX_ATTEMPTS_CAP:
            logger.warning(
                "Retry attempts capped",
                extra={"configured": configured, "cap": MAX_ATTEMPTS_CAP},
            )

        logger.debug(
            "RetryPolicy initialized",
            extra={
                "max_attempts": self._max_attempts,
                "initial_delay_seconds": self._initial_delay,
                "max_delay_seconds": self._max_delay,
                "backoff_multiplier": self._backoff_multiplier,
                "jitter_enabled": self._jitter,
            },
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    # ═══════════════════════════════════════════════════════════════════════
    # RETRY EXECUTION
    # ═══════════════════════════════════════════════════════════════════════

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.RETRYABLE_EXCEPTIONS) or is_transient_error(exc)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Execute operation with retry logic.

        Parameters
        ----------
        operation : Callable
            Zero-argument callable returning a fresh awaitable per attempt
        operation_name : str
            Human-readable operation name for logging
        max_attempts : Optional[int]
            Override default max attempts (still capped at 2)

        Raises
        ------
        Exception
            The last exception once the budget is exhausted, or the first
            non-transient exception.
        """
        attempts = self._max_attempts if max_attempts is None else max_attempts
        attempts = max(1, min(attempts, MAX_ATTEMPTS_CAP))

        for attempt in range(1, attempts + 1):
            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self.is_retryable(exc):
                    logger.error(
                        "Operation failed with non-retryable error",
                        extra={
                            "operation": operation_name,
                            "attempt": attempt,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise

                if attempt >= attempts:
                    logger.warning(
                        "Operation failed after all retries",
                        extra={
                            "operation": operation_name,
                            "attempts": attempt,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise

                delay = self._calculate_delay(attempt)
                logger.warning(
                    "Operation failed, retrying",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "total_attempts": attempts,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "retry_delay_seconds": round(delay, 3),
                    },
                )
                await asyncio.sleep(delay)
                continue

            if attempt > 1:
                logger.info(
                    "Operation succeeded after retry",
                    extra={"operation": operation_name, "attempt": attempt},
                )
            return result

        raise RuntimeError(f"Operation '{operation_name}' made no attempts")

    # ═══════════════════════════════════════════════════════════════════════
    # BACKOFF CALCULATION
    # ═══════════════════════════════════════════════════════════════════════

    def _calculate_delay(self, attempt: int) -> float:
        delay = self._initial_delay * (self._backoff_multiplier ** (attempt - 1))
        delay = min(delay, self._max_delay)

        if self._jitter:
            jitter_amount = delay * 0.1
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _get_config_int(key: str, default: int) -> int:
        val: Any = ConfigManager.get(key)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        return default

    @staticmethod
    def _get_config_float(key: str, default: float) -> float:
        val: Any = ConfigManager.get(key)
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            return float(val)
        return default

    @staticmethod
    def _get_config_bool(key: str, default: bool) -> bool:
        val: Any = ConfigManager.get(key)
        if isinstance(val, bool):
            return val
        return default

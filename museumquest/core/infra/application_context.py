"""
Application Context - MuseumQuest Infrastructure Orchestration
==============================================================

Purpose
-------
Wire configuration, logging, the Redis client and the engine services in
dependency order, hand out one ProgressStore per signed-in visitor, and
tear everything down in reverse order.

Responsibilities
----------------
- Validate static Config and start logging
- Load ConfigManager YAML defaults
- Initialize RedisService and the remote store adapter
- Build the services (cascade, leaderboard, collection, catalog, accounts)
- Open per-user sessions and drain their background work on shutdown

Non-Responsibilities
--------------------
- Business logic (delegated to the services)
- Request handling (the CLI or a host application calls in)

Initialization Order:
    1. Config.validate() + setup_logging()
    2. ConfigManager.load()
    3. RedisService.initialize() + RedisRemoteStore (skipped when a store
       is injected)
    4. Services

Shutdown Order (Reverse):
    1. Drain open sessions
    2. Close the store
    3. RedisService.shutdown()
    4. shutdown_logging()
"""

from __future__ import annotations

import time
from typing import Dict, Optional

from museumquest.core.config.config import Config
from museumquest.core.config.manager import ConfigManager
from museumquest.core.logging.logger import get_logger, setup_logging, shutdown_logging
from museumquest.core.redis.service import RedisService
from museumquest.core.retry_policy import RetryPolicy
from museumquest.core.store.base import RemoteStore
from museumquest.core.store.redis_store import RedisRemoteStore
from museumquest.modules.accounts.service import AccountDeletionService
from museumquest.modules.collection.service import UserCollectionService
from museumquest.modules.leaderboard.cascade import LeaderboardCascade
from museumquest.modules.leaderboard.service import LeaderboardService
from museumquest.modules.progress.store import ProgressStore
from museumquest.modules.progress.sync import SyncReconciler
from museumquest.modules.quests.catalog import QuestCatalog

logger = get_logger(__name__)

SESSION_DRAIN_TIMEOUT_SECONDS = 5.0


class ApplicationContext:
    """
    Kernel for infrastructure orchestration and dependency injection.

    Usage:
        context = ApplicationContext()
        await context.initialize()
        store = context.open_session("u-1")
        ...
        await context.shutdown()

    Args:
        store: Inject a RemoteStore (tests, offline mode); Redis is not
            touched when one is given.
    """

    def __init__(self, store: Optional[RemoteStore] = None) -> None:
        self._injected_store = store
        self._store: Optional[RemoteStore] = store
        self._owns_redis = False

        self._cascade: Optional[LeaderboardCascade] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._collection: Optional[UserCollectionService] = None
        self._catalog: Optional[QuestCatalog] = None
        self._accounts: Optional[AccountDeletionService] = None
        self._sessions: Dict[str, ProgressStore] = {}
        self._reconcilers: Dict[str, SyncReconciler] = {}
        self._initialized = False

        logger.debug("ApplicationContext created")

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all components in dependency order.

        Raises:
            RuntimeError: If already initialized or initialization fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        start_time = time.perf_counter()

        try:
            Config.validate()
            setup_logging()
            logger.info("Application context initializing", extra=Config.get_config_summary())

            ConfigManager.load(Config.CONFIG_DIR)

            if self._store is None:
                await RedisService.initialize()
                self._owns_redis = True
                self._store = RedisRemoteStore()
                logger.info("✓ RedisService initialized")

            self._build_services(self._store)

            self._initialized = True
            logger.info(
                "✓ Application context initialized",
                extra={"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)},
            )

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    def _build_services(self, store: RemoteStore) -> None:
        retry_policy = RetryPolicy()
        self._cascade = LeaderboardCascade(
            store,
            ConfigManager,
            get_logger("museumquest.modules.leaderboard.cascade"),
            retry_policy=retry_policy,
        )
        self._leaderboard = LeaderboardService(
            store, ConfigManager, get_logger("museumquest.modules.leaderboard.service")
        )
        self._collection = UserCollectionService(
            store, ConfigManager, get_logger("museumquest.modules.collection.service")
        )
        self._catalog = QuestCatalog(
            store, ConfigManager, get_logger("museumquest.modules.quests.catalog")
        )
        self._accounts = AccountDeletionService(
            store,
            self._cascade,
            ConfigManager,
            get_logger("museumquest.modules.accounts.service"),
        )

    # ========================================================================
    # SESSIONS
    # ========================================================================

    def open_session(self, user_id: str) -> ProgressStore:
        """
        ProgressStore for ``user_id``; the same instance while it stays open.
        """
        self._require_initialized()
        existing = self._sessions.get(user_id)
        if existing is not None:
            return existing

        reconciler = SyncReconciler(self.store, user_id)
        session = ProgressStore(
            user_id,
            reconciler,
            cascade=self._cascade,
            collection=self._collection,
        )
        self._sessions[user_id] = session
        self._reconcilers[user_id] = reconciler
        logger.info("Session opened", extra={"user_id": user_id})
        return session

    async def close_session(self, user_id: str) -> None:
        """Sign the user out and wait for their non-cancellable work."""
        session = self._sessions.pop(user_id, None)
        reconciler = self._reconcilers.pop(user_id, None)
        if session is None or reconciler is None:
            return
        session.sign_out()
        await reconciler.drain(timeout=SESSION_DRAIN_TIMEOUT_SECONDS)
        logger.info("Session closed", extra={"user_id": user_id, **reconciler.stats})

    # ========================================================================
    # SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Shut down in reverse dependency order."""
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        for user_id, reconciler in list(self._reconcilers.items()):
            try:
                await reconciler.drain(timeout=SESSION_DRAIN_TIMEOUT_SECONDS)
            except Exception as exc:
                logger.error(
                    "Error draining session",
                    extra={"user_id": user_id, "error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
        self._sessions.clear()
        self._reconcilers.clear()

        await self._close_infrastructure()

        self._initialized = False
        logger.info("✓ Application context shutdown complete")
        shutdown_logging()

    async def _close_infrastructure(self) -> None:
        if self._store is not None:
            try:
                await self._store.close()
            except Exception as exc:
                logger.error(
                    "Error closing store",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        if self._owns_redis:
            try:
                await RedisService.shutdown()
                logger.info("✓ RedisService shut down")
            except Exception as exc:
                logger.error(
                    "Error shutting down Redis",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
            self._owns_redis = False

    async def _emergency_shutdown(self) -> None:
        """Best-effort cleanup when initialization fails partway through."""
        logger.warning("Performing emergency shutdown")
        await self._close_infrastructure()
        self._store = self._injected_store

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ApplicationContext not initialized")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def store(self) -> RemoteStore:
        if not self._initialized or self._store is None:
            raise RuntimeError("RemoteStore not available: ApplicationContext not initialized")
        return self._store

    @property
    def leaderboard_cascade(self) -> LeaderboardCascade:
        if not self._initialized or self._cascade is None:
            raise RuntimeError("LeaderboardCascade not available: ApplicationContext not initialized")
        return self._cascade

    @property
    def leaderboard(self) -> LeaderboardService:
        if not self._initialized or self._leaderboard is None:
            raise RuntimeError("LeaderboardService not available: ApplicationContext not initialized")
        return self._leaderboard

    @property
    def collection(self) -> UserCollectionService:
        if not self._initialized or self._collection is None:
            raise RuntimeError("UserCollectionService not available: ApplicationContext not initialized")
        return self._collection

    @property
    def catalog(self) -> QuestCatalog:
        if not self._initialized or self._catalog is None:
            raise RuntimeError("QuestCatalog not available: ApplicationContext not initialized")
        return self._catalog

    @property
    def accounts(self) -> AccountDeletionService:
        if not self._initialized or self._accounts is None:
            raise RuntimeError("AccountDeletionService not available: ApplicationContext not initialized")
        return self._accounts

from museumquest.core.store.base import RemoteStore
from museumquest.core.store.memory import InMemoryRemoteStore
from museumquest.core.store.redis_store import RedisRemoteStore

__all__ = ["RemoteStore", "InMemoryRemoteStore", "RedisRemoteStore"]

"""
Storage module: Remote key-value store clients.

Provides:
- KeyValueClient: structural protocol consumed by the session layer
- InMemoryKeyValueClient: TTL-aware dictionary client for tests/dev
- RedisKeyValueClient: redis.asyncio-backed production client
"""

from kvsession.core.config import StoreBackend, StoreConfig
from kvsession.storage.protocols import KeyValueClient
from kvsession.storage.memory import InMemoryKeyValueClient
from kvsession.storage.redis_store import RedisKeyValueClient


def create_client(config: StoreConfig) -> KeyValueClient:
    """Build the client selected by config.backend (not yet connected)."""
    if config.backend is StoreBackend.REDIS:
        return RedisKeyValueClient(config)
    return InMemoryKeyValueClient()


__all__ = [
    "KeyValueClient",
    "InMemoryKeyValueClient",
    "RedisKeyValueClient",
    "create_client",
]

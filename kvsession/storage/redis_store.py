"""
Redis Key-Value Client
======================

Production KeyValueClient backed by Redis/Valkey through redis.asyncio.

Session records are opaque transcoder output, so each key holds a plain
string value written with SET ... EX. Redis expires keys server-side;
the housekeeper detects such silent expiry with EXISTS.

Error Mapping:
--------------
| redis exception          | StoreUnavailable factory |
|--------------------------|--------------------------|
| redis.TimeoutError       | timeout                  |
| redis.ConnectionError    | connection_failed        |
| any other RedisError     | operation_failed         |

Thread Safety:
-------------
- Connection pool is thread-safe (redis-py internal locking)
- All operations are async and non-blocking
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from kvsession.core.config import StoreConfig
from kvsession.core.errors import StoreUnavailable
from kvsession.core.types import Result, Ok, Err

logger = logging.getLogger(__name__)


class RedisKeyValueClient:
    """
    Redis-backed session store client.

    Example:
        >>> client = RedisKeyValueClient(StoreConfig(backend=StoreBackend.REDIS))
        >>> await client.connect()
        >>> await client.put("kvsession:abc", b"...", 1800)
        >>> await client.close()

    An already-constructed redis.asyncio client may be injected, in which
    case connect() only verifies it with PING.
    """

    __slots__ = ("_config", "_client", "_connected")

    def __init__(
        self,
        config: StoreConfig,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._connected = client is not None

    async def connect(self) -> Result[None, StoreUnavailable]:
        """
        Open the connection pool and verify it with PING.

        Returns:
            Ok(None) on success, Err(StoreUnavailable) on failure.
        """
        if self._client is None:
            self._client = aioredis.Redis(
                host=self._config.host,
                port=self._config.port,
                db=self._config.db,
                password=self._config.password,
                socket_timeout=self._config.socket_timeout_ms / 1000,
                socket_connect_timeout=self._config.socket_timeout_ms / 1000,
            )
        try:
            await self._client.ping()
        except RedisError as e:
            self._connected = False
            return Err(StoreUnavailable.connection_failed(
                self._config.host, self._config.port, cause=e,
            ))
        self._connected = True
        logger.info(f"Connected to session store at {self._config.url}")
        return Ok(None)

    async def close(self) -> None:
        """Close the connection pool. Safe to call multiple times."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._connected = False

    def _error(self, operation: str, key: str, error: RedisError, started: float) -> StoreUnavailable:
        if isinstance(error, RedisTimeoutError):
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return StoreUnavailable.timeout(operation, elapsed_ms, cause=error)
        if isinstance(error, RedisConnectionError):
            return StoreUnavailable.connection_failed(
                self._config.host, self._config.port, cause=error,
            )
        return StoreUnavailable.operation_failed(operation, key, cause=error)

    async def put(
        self,
        key: str,
        data: bytes,
        ttl_seconds: int,
    ) -> Result[None, StoreUnavailable]:
        if not self._connected or self._client is None:
            return Err(StoreUnavailable.not_connected("put"))
        started = time.perf_counter()
        try:
            await self._client.set(key, data, ex=ttl_seconds if ttl_seconds > 0 else None)
        except RedisError as e:
            return Err(self._error("put", key, e, started))
        return Ok(None)

    async def get(self, key: str) -> Result[Optional[bytes], StoreUnavailable]:
        if not self._connected or self._client is None:
            return Err(StoreUnavailable.not_connected("get"))
        started = time.perf_counter()
        try:
            data = await self._client.get(key)
        except RedisError as e:
            return Err(self._error("get", key, e, started))
        if data is None:
            return Ok(None)
        if isinstance(data, str):
            # Pool configured with decode_responses=True
            data = data.encode("latin-1")
        return Ok(data)

    async def delete(self, key: str) -> Result[bool, StoreUnavailable]:
        if not self._connected or self._client is None:
            return Err(StoreUnavailable.not_connected("delete"))
        started = time.perf_counter()
        try:
            deleted = await self._client.delete(key)
        except RedisError as e:
            return Err(self._error("delete", key, e, started))
        return Ok(deleted > 0)

    async def exists(self, key: str) -> Result[bool, StoreUnavailable]:
        if not self._connected or self._client is None:
            return Err(StoreUnavailable.not_connected("exists"))
        started = time.perf_counter()
        try:
            count = await self._client.exists(key)
        except RedisError as e:
            return Err(self._error("exists", key, e, started))
        return Ok(count > 0)

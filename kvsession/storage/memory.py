"""
In-Memory Key-Value Client

Development and test double for the remote store. Mirrors memcached/Redis
TTL semantics: an expired key is indistinguishable from a missing one.

Not suitable for production: records are neither shared across processes
nor durable across restarts.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from kvsession.core.types import Result, Ok, Err
from kvsession.core.errors import StoreUnavailable


@dataclass(slots=True)
class _Record:
    data: bytes
    expires_at: Optional[float]  # clock seconds; None = never

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryKeyValueClient:
    """
    Dictionary-backed KeyValueClient with lazy TTL expiry.

    Args:
        clock: Monotonic seconds source; injectable so tests can move time.

    Usage:
        client = InMemoryKeyValueClient()
        await client.put("kvsession:abc", b"...", ttl_seconds=1800)
        result = await client.get("kvsession:abc")
    """

    __slots__ = ("_data", "_lock", "_clock", "_available", "_closed")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, _Record] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._available = True
        self._closed = False

    def set_available(self, available: bool) -> None:
        """Simulate a store outage (False) or recovery (True)."""
        self._available = available

    def _check(self, operation: str, key: str) -> Optional[StoreUnavailable]:
        if self._closed:
            return StoreUnavailable.not_connected(operation)
        if not self._available:
            return StoreUnavailable.operation_failed(
                operation, key, ConnectionError("store unavailable"),
            )
        return None

    async def put(
        self,
        key: str,
        data: bytes,
        ttl_seconds: int,
    ) -> Result[None, StoreUnavailable]:
        error = self._check("put", key)
        if error:
            return Err(error)
        async with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
            self._data[key] = _Record(data=bytes(data), expires_at=expires_at)
        return Ok(None)

    async def get(self, key: str) -> Result[Optional[bytes], StoreUnavailable]:
        error = self._check("get", key)
        if error:
            return Err(error)
        async with self._lock:
            record = self._data.get(key)
            if record is None:
                return Ok(None)
            if record.is_expired(self._clock()):
                del self._data[key]
                return Ok(None)
            return Ok(record.data)

    async def delete(self, key: str) -> Result[bool, StoreUnavailable]:
        error = self._check("delete", key)
        if error:
            return Err(error)
        async with self._lock:
            record = self._data.pop(key, None)
            return Ok(record is not None and not record.is_expired(self._clock()))

    async def exists(self, key: str) -> Result[bool, StoreUnavailable]:
        result = await self.get(key)
        if result.is_err():
            return result
        return Ok(result.unwrap() is not None)

    async def close(self) -> None:
        self._closed = True

    def __len__(self) -> int:
        """Stored record count, including not-yet-reaped expired ones."""
        return len(self._data)

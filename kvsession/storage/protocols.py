"""
Remote Store Protocol: Key-Value Client Abstraction

The session layer only needs put/get/delete with a per-key TTL. Any
memcached- or Redis-like service can back it by implementing this
structural protocol (PEP 544).

Design Principles:
    - Result[T, StoreUnavailable] instead of exceptions for I/O failure
    - Ok(None) from get() means NotFound, which is not an error
    - Async-first; clients never block the event loop
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from kvsession.core.types import Result
from kvsession.core.errors import StoreUnavailable


@runtime_checkable
class KeyValueClient(Protocol):
    """Protocol for the remote session store."""

    async def put(
        self,
        key: str,
        data: bytes,
        ttl_seconds: int,
    ) -> Result[None, StoreUnavailable]:
        """Store bytes under key. ttl_seconds <= 0 means no expiry."""
        ...

    async def get(self, key: str) -> Result[Optional[bytes], StoreUnavailable]:
        """Fetch bytes; Ok(None) when the key is absent or expired."""
        ...

    async def delete(self, key: str) -> Result[bool, StoreUnavailable]:
        """Remove key; Ok(True) if something was deleted."""
        ...

    async def exists(self, key: str) -> Result[bool, StoreUnavailable]:
        """Check for a live (unexpired) key."""
        ...

    async def close(self) -> None:
        """Release connections. Safe to call multiple times."""
        ...

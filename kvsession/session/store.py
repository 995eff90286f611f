"""
Session Store: Transcoder + Key-Value Client

Persists SessionState records under namespaced keys:

    key = key_prefix + cluster_id + key_suffix

Failure policy:
    save()   EncodingError propagates (session data must not be dropped
             silently); store failures come back as Err after retries.
    load()   DecodingError and StoreUnavailable are logged and reported as
             "not found" (None), so the request path starts a fresh session
             instead of failing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Type, TypeVar

from kvsession.core.config import StoreConfig
from kvsession.core.errors import DecodingError, StoreUnavailable
from kvsession.core.types import Result
from kvsession.observability.metrics import SessionMetrics
from kvsession.reliability.retry import RetryPolicy, retry_result
from kvsession.session.state import EncodedRecord, SessionState
from kvsession.storage.protocols import KeyValueClient

if TYPE_CHECKING:
    from kvsession.transcoder.base import Transcoder

logger = logging.getLogger(__name__)

S = TypeVar("S")


class SessionStore:
    """
    Remote persistence for session state.

    Usage:
        store = SessionStore(InMemoryKeyValueClient(), CompactBinaryTranscoder())
        result = await store.save(state)
        restored = await store.load(state.session_id)
    """

    __slots__ = ("_client", "_transcoder", "_config", "_retry", "_metrics")

    def __init__(
        self,
        client: KeyValueClient,
        transcoder: Transcoder,
        config: Optional[StoreConfig] = None,
        metrics: Optional[SessionMetrics] = None,
    ) -> None:
        self._client = client
        self._transcoder = transcoder
        self._config = config or StoreConfig()
        self._retry = RetryPolicy(
            max_retries=self._config.retry_max_attempts,
            base_delay_ms=self._config.retry_base_delay_ms,
        )
        self._metrics = metrics if metrics is not None else SessionMetrics()

    @property
    def client(self) -> KeyValueClient:
        return self._client

    @property
    def transcoder(self) -> Transcoder:
        return self._transcoder

    def key_for(self, cluster_id: str) -> str:
        return f"{self._config.key_prefix}{cluster_id}{self._config.key_suffix}"

    def encode_record(self, state: SessionState) -> EncodedRecord:
        """
        Raises:
            EncodingError: an attribute cannot be represented
        """
        return EncodedRecord(
            key=self.key_for(state.session_id),
            data=self._transcoder.encode(state),
            ttl_seconds=state.record_ttl(self._config.default_ttl_seconds),
        )

    # =========================================================================
    # OPERATIONS
    # =========================================================================
    async def save(self, state: SessionState) -> Result[EncodedRecord, StoreUnavailable]:
        record = self.encode_record(state)
        result = await retry_result(
            lambda: self._client.put(record.key, record.data, record.ttl_seconds),
            policy=self._retry,
            operation=f"put {record.key}",
        )
        if result.is_err():
            logger.warning(f"Failed to save session {state.session_id}: {result.error}")
            return result
        logger.debug(f"Saved session {state.session_id} ({record.size} bytes, ttl={record.ttl_seconds}s)")
        return result.map(lambda _: record)

    async def load(
        self,
        cluster_id: str,
        shape: Type[S] = SessionState,
    ) -> Optional[S]:
        key = self.key_for(cluster_id)
        result = await retry_result(
            lambda: self._client.get(key),
            policy=self._retry,
            operation=f"get {key}",
        )
        if result.is_err():
            logger.warning(f"Session {cluster_id} unreadable, treating as absent: {result.error}")
            return None

        data = result.unwrap()
        if data is None:
            return None

        try:
            return self._transcoder.decode(data, shape)
        except DecodingError as e:
            self._metrics.decode_failures.inc(encoding=self._transcoder.encoding)
            logger.warning(f"Session {cluster_id} undecodable, treating as absent: {e}")
            return None

    async def delete(self, cluster_id: str) -> Result[bool, StoreUnavailable]:
        key = self.key_for(cluster_id)
        return await retry_result(
            lambda: self._client.delete(key),
            policy=self._retry,
            operation=f"delete {key}",
        )

    async def exists(
        self,
        cluster_id: str,
        policy: Optional[RetryPolicy] = None,
    ) -> Result[bool, StoreUnavailable]:
        key = self.key_for(cluster_id)
        return await retry_result(
            lambda: self._client.exists(key),
            policy=policy or self._retry,
            operation=f"exists {key}",
        )

    async def close(self) -> None:
        await self._client.close()

"""
Context Set Resolver: Which Local Contexts Handle Sessions

Contexts register themselves on start and deregister on stop; nothing is
discovered by introspecting the server. contexts() returns a point-in-time
tuple that is cached until the next topology change.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# =============================================================================
# CONTEXT PROTOCOL
# =============================================================================
@runtime_checkable
class SessionContext(Protocol):
    """
    Callbacks the registry and housekeeper invoke on a local context.

    invalidate_local and update_session_id are fan-out targets;
    is_live backs SessionHandle.resolve().
    """

    @property
    def name(self) -> str:
        ...

    @property
    def is_running(self) -> bool:
        ...

    def is_live(self, session: Any) -> bool:
        ...

    def invalidate_local(self, session_id: str) -> None:
        ...

    def update_session_id(
        self,
        old_cluster_id: str,
        old_node_id: Optional[str],
        new_cluster_id: str,
        new_extended_id: str,
    ) -> None:
        ...

    def invalidate_session(self, session: Any) -> None:
        ...


# =============================================================================
# RESOLVER
# =============================================================================
class ContextSetResolver:
    """
    Explicit registry of running contexts.

    Usage:
        resolver = ContextSetResolver()
        resolver.register(context)
        for ctx in resolver.contexts():
            ctx.invalidate_local(session_id)
    """

    __slots__ = ("_contexts", "_snapshot", "_lock")

    def __init__(self) -> None:
        # dict keeps registration order
        self._contexts: dict[int, SessionContext] = {}
        self._snapshot: Optional[tuple[SessionContext, ...]] = None
        self._lock = threading.Lock()

    def register(self, context: SessionContext) -> None:
        with self._lock:
            if id(context) in self._contexts:
                return
            self._contexts[id(context)] = context
            self._snapshot = None
        logger.debug(f"Context registered: {context.name}")

    def deregister(self, context: SessionContext) -> None:
        with self._lock:
            if self._contexts.pop(id(context), None) is None:
                return
            self._snapshot = None
        logger.debug(f"Context deregistered: {context.name}")

    def contexts(self) -> tuple[SessionContext, ...]:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = tuple(self._contexts.values())
            return self._snapshot

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def __contains__(self, context: object) -> bool:
        with self._lock:
            return self._contexts.get(id(context)) is context

"""
Session Registry: Cluster Id -> Local Session Handles

Tracks which cluster session ids are live in this process and which local
contexts hold a session object for each, without keeping any session
object alive.

Locking:
    One re-entrant lock guards the whole map. Every mutation of a given id
    (add, remove, invalidate, renew) is a single critical section, so
    concurrent callers see a consistent order per id.

    invalidate_all removes the entry inside the lock and runs the context
    callbacks after releasing it; whichever caller removed the entry owns
    the invalidation, any concurrent caller gets an empty set.

    renew_session_id notifies contexts inside the critical section so no
    other caller can observe the handle set half-migrated.

Ids:
    Every operation accepts a cluster id or an extended id (cluster id
    plus ".node" suffix); lookups always use the cluster id.

Lifecycle:
    Constructed once per process, start() on server start, stop() on
    shutdown (clears every entry), passed by reference to every context.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from kvsession.core.config import IdConfig
from kvsession.core.errors import RegistryInconsistency
from kvsession.observability.metrics import SessionMetrics
from kvsession.session.contexts import ContextSetResolver
from kvsession.session.handle import SessionHandle
from kvsession.session.ids import SessionIdGenerator

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Process-wide session identity registry.

    Usage:
        registry = SessionRegistry(ContextSetResolver(), IdConfig(node_name="node0"))
        registry.start()

        cluster_id = registry.new_session_id()
        registry.add_handle(cluster_id, SessionHandle(session, context))

        new_id = registry.renew_session_id(cluster_id, "node0")
        registry.invalidate_all(new_id)
    """

    __slots__ = ("_entries", "_lock", "_ids", "_resolver", "_metrics", "_running")

    def __init__(
        self,
        resolver: Optional[ContextSetResolver] = None,
        id_config: Optional[IdConfig] = None,
        metrics: Optional[SessionMetrics] = None,
    ) -> None:
        self._entries: dict[str, set[SessionHandle]] = {}
        self._lock = threading.RLock()
        self._ids = SessionIdGenerator(id_config)
        self._resolver = resolver if resolver is not None else ContextSetResolver()
        self._metrics = metrics if metrics is not None else SessionMetrics()
        self._running = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    def start(self) -> None:
        with self._lock:
            self._running = True
        logger.info(f"Session registry started (node={self._ids.node_name})")

    def stop(self) -> None:
        with self._lock:
            count = len(self._entries)
            for handles in self._entries.values():
                for handle in handles:
                    handle.release()
            self._entries.clear()
            self._running = False
            self._metrics.registered_ids.set(0)
        logger.info(f"Session registry stopped, cleared {count} ids")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def resolver(self) -> ContextSetResolver:
        return self._resolver

    @property
    def metrics(self) -> SessionMetrics:
        return self._metrics

    @property
    def node_name(self) -> str:
        return self._ids.node_name

    # =========================================================================
    # IDS
    # =========================================================================
    def new_session_id(self, seed: Optional[int] = None) -> str:
        """Fresh cluster id not currently registered."""
        with self._lock:
            return self._ids.new_id(self._entries.__contains__, seed)

    def extended_id(self, cluster_id: str, node: Optional[str] = None) -> str:
        return self._ids.extended_id(cluster_id, node)

    def cluster_id(self, extended_id: str) -> str:
        return self._ids.cluster_id(extended_id)

    # =========================================================================
    # QUERIES
    # =========================================================================
    def is_in_use(self, session_id: str) -> bool:
        """
        True iff some registered handle for session_id still resolves.

        Unresolvable handles found on the way are pruned.
        """
        session_id = self._ids.cluster_id(session_id)
        with self._lock:
            handles = self._entries.get(session_id)
            if handles is None:
                return False
            self._prune(session_id, handles)
            return session_id in self._entries

    def get_sessions(self, session_id: str) -> list[Any]:
        """Live session objects for session_id; dead handles are skipped."""
        session_id = self._ids.cluster_id(session_id)
        with self._lock:
            handles = tuple(self._entries.get(session_id, ()))
        sessions = []
        for handle in handles:
            session = handle.resolve()
            if session is not None:
                sessions.append(session)
        return sessions

    @property
    def session_ids(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # =========================================================================
    # MUTATIONS
    # =========================================================================
    def add_handle(self, session_id: str, handle: SessionHandle) -> None:
        session_id = self._ids.cluster_id(session_id)
        with self._lock:
            handles = self._entries.get(session_id)
            if handles is None:
                handles = self._entries[session_id] = set()
            handles.add(handle)
            self._metrics.registered_ids.set(len(self._entries))
        self._metrics.handles_added.inc()

    def remove_handle(self, session_id: str, handle: SessionHandle) -> None:
        """
        Remove handle and any unresolvable siblings.

        The entry is deleted once no handle is left.
        """
        session_id = self._ids.cluster_id(session_id)
        with self._lock:
            handles = self._entries.get(session_id)
            if handles is None:
                return
            if handle in handles:
                handles.discard(handle)
                self._metrics.handles_removed.inc()
            self._prune(session_id, handles)

    def invalidate_all(self, session_id: str) -> frozenset[SessionHandle]:
        """
        Remove the entry for session_id and invalidate every live session.

        Returns the removed handle set, or an empty set when another caller
        already removed it.
        """
        session_id = self._ids.cluster_id(session_id)
        with self._lock:
            handles = self._entries.pop(session_id, None)
            self._metrics.registered_ids.set(len(self._entries))

        if not handles:
            return frozenset()

        invalidated = 0
        for handle in handles:
            session = handle.resolve()
            if session is None:
                continue
            handle.context.invalidate_session(session)
            invalidated += 1

        self._metrics.invalidations.inc()
        logger.debug(
            f"Invalidated {session_id}: {invalidated} of {len(handles)} handles live"
        )
        return frozenset(handles)

    def renew_session_id(
        self,
        old_id: str,
        node: str,
        seed: Optional[int] = None,
    ) -> str:
        """
        Move every handle of old_id to a freshly generated id.

        Each live handle's context is told about the change. Handles whose
        context is no longer running are dropped rather than migrated. An
        unknown old_id still yields a usable new id.

        Raises:
            RegistryInconsistency: the new id is already registered
        """
        old_cluster_id = self._ids.cluster_id(old_id)
        old_node_id = self._ids.node_id(old_id)

        with self._lock:
            new_cluster_id = self.new_session_id(seed)
            if new_cluster_id in self._entries:
                raise RegistryInconsistency.violation(
                    new_cluster_id, "renewal target id already registered",
                )
            new_extended_id = self._ids.extended_id(new_cluster_id, node)

            handles = self._entries.pop(old_cluster_id, None)
            migrated: set[SessionHandle] = set()
            for handle in handles or ():
                session = handle.resolve()
                if session is None or not handle.context.is_running:
                    handle.release()
                    continue
                handle.context.update_session_id(
                    old_cluster_id, old_node_id, new_cluster_id, new_extended_id,
                )
                migrated.add(handle)

            if migrated:
                self._entries[new_cluster_id] = migrated
            self._metrics.registered_ids.set(len(self._entries))

        self._metrics.renewals.inc(node=node)
        logger.debug(
            f"Renewed {old_cluster_id} -> {new_cluster_id} "
            f"({len(migrated)} handles migrated)"
        )
        return new_cluster_id

    def expire_all(self, session_id: str, reason: str = "requested") -> int:
        """
        Ask every registered context to invalidate its copy of session_id.

        The entry itself is left alone; each context's invalidation path
        removes it. Returns the number of contexts notified.
        """
        session_id = self._ids.cluster_id(session_id)
        contexts = self._resolver.contexts()
        for context in contexts:
            context.invalidate_local(session_id)
        self._metrics.expiries.inc(reason=reason)
        logger.debug(f"Expired {session_id} across {len(contexts)} contexts ({reason})")
        return len(contexts)

    # =========================================================================
    # RECLAMATION
    # =========================================================================
    def sweep_unresolvable(self) -> list[str]:
        """
        Prune dead handles from every entry.

        Returns the ids whose entries were removed because nothing in them
        resolved any more.
        """
        removed = []
        with self._lock:
            for session_id, handles in list(self._entries.items()):
                self._prune(session_id, handles)
                if session_id not in self._entries:
                    removed.append(session_id)
        return removed

    def _prune(self, session_id: str, handles: set[SessionHandle]) -> None:
        # caller holds self._lock
        dead = [h for h in handles if h.resolve() is None]
        for handle in dead:
            handles.discard(handle)
            handle.release()
        if dead:
            self._metrics.handles_removed.inc(len(dead))
        if not handles:
            del self._entries[session_id]
            self._metrics.registered_ids.set(len(self._entries))

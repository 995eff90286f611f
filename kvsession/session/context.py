"""
Local Session Context: In-Process Sessions for One Web Application

LocalSessionContext owns the Session objects of one application boundary
and implements the SessionContext callbacks the registry fans out to.

Lock order:
    registry lock -> context lock. The registry calls update_session_id
    while holding its own lock, so this module never calls into the
    registry while holding the context lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from kvsession.core import constants as C
from kvsession.session.handle import SessionHandle
from kvsession.session.registry import SessionRegistry
from kvsession.session.state import SessionState

logger = logging.getLogger(__name__)


# =============================================================================
# SESSION
# =============================================================================
class Session:
    """
    One context's in-process view of a cluster session.

    invalidate() moves the session to its terminal state exactly once and
    asks the registry to invalidate every other context's copy.
    """

    __slots__ = ("_context", "_cluster_id", "_extended_id", "_state", "_valid", "_lock", "__weakref__")

    def __init__(
        self,
        context: LocalSessionContext,
        cluster_id: str,
        extended_id: str,
        state: SessionState,
    ) -> None:
        self._context = context
        self._cluster_id = cluster_id
        self._extended_id = extended_id
        self._state = state
        self._valid = True
        self._lock = threading.Lock()

    @property
    def context(self) -> LocalSessionContext:
        return self._context

    @property
    def cluster_id(self) -> str:
        return self._cluster_id

    @property
    def extended_id(self) -> str:
        return self._extended_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_valid(self) -> bool:
        return self._valid

    def get_attribute(self, name: str, default: Any = None) -> Any:
        self._check_valid()
        return self._state.get_attribute(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        self._check_valid()
        self._state.set_attribute(name, value)

    def access(self) -> None:
        self._check_valid()
        self._state.access()

    def invalidate(self) -> bool:
        """Returns False when the session was already invalid."""
        if not self._mark_invalid():
            return False
        self._context._on_invalidated(self)
        return True

    def _mark_invalid(self) -> bool:
        with self._lock:
            if not self._valid:
                return False
            self._valid = False
            return True

    def _rename(self, cluster_id: str, extended_id: str) -> None:
        self._cluster_id = cluster_id
        self._extended_id = extended_id
        self._state.session_id = cluster_id

    def _check_valid(self) -> None:
        if not self._valid:
            raise RuntimeError(f"Session {self._cluster_id} has been invalidated")

    def __repr__(self) -> str:
        return f"Session({self._extended_id!r}, valid={self._valid})"


# =============================================================================
# CONTEXT
# =============================================================================
class LocalSessionContext:
    """
    Reference SessionContext keeping sessions in a dict.

    Usage:
        context = LocalSessionContext("/shop", registry)
        context.start()
        session = context.new_session()
        session.set_attribute("user", "alice")
        context.renew_session_id(session)
        session.invalidate()
        context.stop()
    """

    __slots__ = ("_name", "_registry", "_max_inactive", "_sessions", "_lock", "_running")

    def __init__(
        self,
        name: str,
        registry: SessionRegistry,
        max_inactive_interval: int = C.DEFAULT_MAX_INACTIVE_S,
    ) -> None:
        self._name = name
        self._registry = registry
        self._max_inactive = max_inactive_interval
        self._sessions: dict[str, tuple[Session, SessionHandle]] = {}
        self._lock = threading.Lock()
        self._running = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    def start(self) -> None:
        self._running = True
        self._registry.resolver.register(self)
        logger.info(f"Context {self._name} started")

    def stop(self) -> None:
        """
        Drop every local session and deregister.

        Sessions are invalidated locally only; other contexts sharing an id
        keep their copies.
        """
        self._running = False
        with self._lock:
            entries = list(self._sessions.values())
            self._sessions.clear()
        for session, handle in entries:
            session._mark_invalid()
            self._registry.remove_handle(session.cluster_id, handle)
            handle.release()
        self._registry.resolver.deregister(self)
        logger.info(f"Context {self._name} stopped, dropped {len(entries)} sessions")

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================
    def new_session(
        self,
        session_id: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> Session:
        """
        Create a session and register its handle.

        Pass session_id to join an id already in use by another context
        (the same cluster session seen from this application).
        """
        if not self._running:
            raise RuntimeError(f"Context {self._name} is not running")

        if session_id is None:
            cluster_id = self._registry.new_session_id(seed)
        else:
            cluster_id = self._registry.cluster_id(session_id)

        session = Session(
            self,
            cluster_id,
            self._registry.extended_id(cluster_id),
            SessionState(session_id=cluster_id, max_inactive_interval=self._max_inactive),
        )
        handle = SessionHandle(session, self)
        with self._lock:
            self._sessions[cluster_id] = (session, handle)
        self._registry.add_handle(cluster_id, handle)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        cluster_id = self._registry.cluster_id(session_id)
        with self._lock:
            entry = self._sessions.get(cluster_id)
        if entry is None or not entry[0].is_valid:
            return None
        return entry[0]

    def remove_session(self, session: Session) -> bool:
        """Forget a session locally without invalidating other contexts."""
        handle = self._drop(session)
        if handle is None:
            return False
        self._registry.remove_handle(session.cluster_id, handle)
        handle.release()
        return True

    def renew_session_id(self, session: Session, node: Optional[str] = None) -> str:
        """Give session (and every context sharing it) a fresh id."""
        node = node if node is not None else self._registry.node_name
        return self._registry.renew_session_id(session.extended_id, node)

    # =========================================================================
    # REGISTRY CALLBACKS
    # =========================================================================
    def is_live(self, session: Any) -> bool:
        return (
            self._running
            and isinstance(session, Session)
            and session.context is self
            and session.is_valid
        )

    def invalidate_local(self, session_id: str) -> None:
        session = self.get_session(session_id)
        if session is not None:
            session.invalidate()

    def update_session_id(
        self,
        old_cluster_id: str,
        old_node_id: Optional[str],
        new_cluster_id: str,
        new_extended_id: str,
    ) -> None:
        with self._lock:
            entry = self._sessions.pop(old_cluster_id, None)
            if entry is None:
                return
            entry[0]._rename(new_cluster_id, new_extended_id)
            self._sessions[new_cluster_id] = entry
        logger.debug(
            f"Context {self._name}: {old_cluster_id} (node {old_node_id}) -> {new_extended_id}"
        )

    def invalidate_session(self, session: Any) -> None:
        # Registry already removed the entry; only local cleanup remains
        if not session._mark_invalid():
            return
        handle = self._drop(session)
        if handle is not None:
            handle.release()

    # =========================================================================
    # INTERNALS
    # =========================================================================
    def _on_invalidated(self, session: Session) -> None:
        cluster_id = session.cluster_id
        self._registry.invalidate_all(cluster_id)
        handle = self._drop(session)
        if handle is not None:
            self._registry.remove_handle(cluster_id, handle)
            handle.release()
        logger.debug(f"Context {self._name}: invalidated {cluster_id}")

    def _drop(self, session: Session) -> Optional[SessionHandle]:
        with self._lock:
            entry = self._sessions.get(session.cluster_id)
            if entry is None or entry[0] is not session:
                return None
            del self._sessions[session.cluster_id]
            return entry[1]

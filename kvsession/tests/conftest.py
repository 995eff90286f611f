"""
Shared fixtures for the kvsession test suite.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional

import pytest

from kvsession.core.config import IdConfig
from kvsession.session import ContextSetResolver, LocalSessionContext, SessionRegistry
from kvsession.storage import InMemoryKeyValueClient


# =============================================================================
# TEST DOUBLES
# =============================================================================
class FakeSession:
    """Minimal weak-referenceable session object."""

    def __init__(self, label: str = "") -> None:
        self.label = label
        self.valid = True
        self.invalidations = 0


class RecordingContext:
    """SessionContext that records every callback it receives."""

    def __init__(self, name: str = "ctx", running: bool = True) -> None:
        self.name = name
        self.is_running = running
        self.invalidated_local: list[str] = []
        self.updates: list[tuple[str, Optional[str], str, str]] = []
        self.invalidated: list[Any] = []

    def is_live(self, session: Any) -> bool:
        return self.is_running and session.valid

    def invalidate_local(self, session_id: str) -> None:
        self.invalidated_local.append(session_id)

    def update_session_id(
        self,
        old_cluster_id: str,
        old_node_id: Optional[str],
        new_cluster_id: str,
        new_extended_id: str,
    ) -> None:
        self.updates.append((old_cluster_id, old_node_id, new_cluster_id, new_extended_id))

    def invalidate_session(self, session: Any) -> None:
        session.valid = False
        session.invalidations += 1
        self.invalidated.append(session)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# FIXTURES
# =============================================================================
@pytest.fixture
def resolver() -> ContextSetResolver:
    return ContextSetResolver()


@pytest.fixture
def registry(resolver: ContextSetResolver) -> Iterator[SessionRegistry]:
    registry = SessionRegistry(resolver, IdConfig(worker_name="w1", node_name="node0"))
    registry.start()
    yield registry
    registry.stop()


@pytest.fixture
def shop(registry: SessionRegistry) -> Iterator[LocalSessionContext]:
    context = LocalSessionContext("/shop", registry)
    context.start()
    yield context
    context.stop()


@pytest.fixture
def account(registry: SessionRegistry) -> Iterator[LocalSessionContext]:
    context = LocalSessionContext("/account", registry)
    context.start()
    yield context
    context.stop()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_client(clock: FakeClock) -> InMemoryKeyValueClient:
    return InMemoryKeyValueClient(clock=clock)

"""
Local Context and Resolver Test Suite

Covers:
- ContextSetResolver registration and snapshot caching
- LocalSessionContext session lifecycle against a real registry
- Cross-context invalidation and renewal propagation
- expire_all driving each context's own invalidation path

Run: python -m pytest kvsession/tests/test_context.py -v
"""

from __future__ import annotations

import pytest

from kvsession.session import (
    ContextSetResolver,
    LocalSessionContext,
    SessionContext,
    SessionRegistry,
)
from kvsession.tests.conftest import RecordingContext


# =============================================================================
# RESOLVER
# =============================================================================
def test_resolver_register_and_deregister():
    resolver = ContextSetResolver()
    a, b = RecordingContext("a"), RecordingContext("b")

    resolver.register(a)
    resolver.register(b)
    resolver.register(a)

    assert len(resolver) == 2
    assert a in resolver
    assert resolver.contexts() == (a, b)

    resolver.deregister(a)
    assert a not in resolver
    assert resolver.contexts() == (b,)


def test_resolver_snapshot_cached_until_topology_changes():
    resolver = ContextSetResolver()
    a, b = RecordingContext("a"), RecordingContext("b")
    resolver.register(a)

    first = resolver.contexts()
    assert resolver.contexts() is first

    resolver.register(b)
    second = resolver.contexts()
    assert second is not first
    assert second == (a, b)
    # earlier snapshots are point-in-time and unaffected
    assert first == (a,)


def test_deregister_unknown_context_is_noop():
    resolver = ContextSetResolver()
    resolver.deregister(RecordingContext())
    assert len(resolver) == 0


def test_local_context_satisfies_protocol(registry: SessionRegistry):
    assert isinstance(LocalSessionContext("/x", registry), SessionContext)


# =============================================================================
# LOCAL CONTEXT LIFECYCLE
# =============================================================================
def test_start_and_stop_register_with_resolver(registry: SessionRegistry):
    context = LocalSessionContext("/x", registry)

    context.start()
    assert context in registry.resolver
    assert context.is_running

    context.stop()
    assert context not in registry.resolver
    assert not context.is_running


def test_new_session_registers_handle(shop: LocalSessionContext, registry: SessionRegistry):
    session = shop.new_session()

    assert registry.is_in_use(session.cluster_id)
    assert session.extended_id == f"{session.cluster_id}.node0"
    assert session.state.session_id == session.cluster_id
    assert shop.get_session(session.extended_id) is session
    assert registry.get_sessions(session.cluster_id) == [session]


def test_new_session_requires_running_context(registry: SessionRegistry):
    context = LocalSessionContext("/x", registry)

    with pytest.raises(RuntimeError):
        context.new_session()


def test_remove_session_only_affects_local_copy(
    shop: LocalSessionContext,
    account: LocalSessionContext,
    registry: SessionRegistry,
):
    session = shop.new_session()
    shared = account.new_session(session.cluster_id)

    assert shop.remove_session(session)
    assert not shop.remove_session(session)

    assert shop.get_session(session.cluster_id) is None
    assert shared.is_valid
    assert registry.get_sessions(session.cluster_id) == [shared]


def test_stop_drops_sessions_without_invalidating_others(
    registry: SessionRegistry,
    account: LocalSessionContext,
):
    shop = LocalSessionContext("/shop", registry)
    shop.start()
    session = shop.new_session()
    shared = account.new_session(session.cluster_id)

    shop.stop()

    assert not session.is_valid
    assert shared.is_valid
    assert registry.get_sessions(session.cluster_id) == [shared]


# =============================================================================
# CROSS-CONTEXT PROPAGATION
# =============================================================================
def test_invalidate_propagates_to_other_contexts(
    shop: LocalSessionContext,
    account: LocalSessionContext,
    registry: SessionRegistry,
):
    session = shop.new_session()
    shared = account.new_session(session.extended_id)

    assert session.invalidate()

    assert not session.is_valid
    assert not shared.is_valid
    assert not registry.is_in_use(session.cluster_id)
    assert shop.get_session(session.cluster_id) is None
    assert account.get_session(session.cluster_id) is None
    assert len(shop) == 0
    assert len(account) == 0


def test_invalidate_is_terminal_and_runs_once(shop: LocalSessionContext, registry: SessionRegistry):
    session = shop.new_session()

    assert session.invalidate()
    assert not session.invalidate()
    assert registry.metrics.invalidations.get() == 1

    with pytest.raises(RuntimeError):
        session.set_attribute("user", "alice")


def test_renew_propagates_new_id_to_all_contexts(
    shop: LocalSessionContext,
    account: LocalSessionContext,
    registry: SessionRegistry,
):
    session = shop.new_session()
    session.set_attribute("user", "alice")
    shared = account.new_session(session.cluster_id)
    old_id = session.cluster_id

    new_id = shop.renew_session_id(session, "node1")

    assert session.cluster_id == new_id
    assert session.extended_id == f"{new_id}.node1"
    assert session.state.session_id == new_id
    assert session.get_attribute("user") == "alice"
    assert shared.cluster_id == new_id
    assert account.get_session(new_id) is shared
    assert shop.get_session(old_id) is None
    assert not registry.is_in_use(old_id)
    assert registry.is_in_use(new_id)


def test_expire_all_invalidates_every_copy(
    shop: LocalSessionContext,
    account: LocalSessionContext,
    registry: SessionRegistry,
):
    session = shop.new_session()
    shared = account.new_session(session.cluster_id)

    notified = registry.expire_all(session.cluster_id)

    assert notified == 2
    assert not session.is_valid
    assert not shared.is_valid
    assert not registry.is_in_use(session.cluster_id)


def test_expire_all_for_unknown_id_is_harmless(shop: LocalSessionContext, registry: SessionRegistry):
    session = shop.new_session()

    assert registry.expire_all("unknown") == 1
    assert session.is_valid

#!/usr/bin/env python3
"""
kvsession demo

Walks through the session lifecycle on one node with two contexts sharing
a cluster session: create, persist, renew, invalidate, reclaim.

Usage:
    python -m kvsession

    # Against a real Redis, with the XML encoding
    KVSESSION_STORE_BACKEND=redis KVSESSION_ENCODING=structured-text python -m kvsession
"""

from __future__ import annotations

import asyncio
import sys

from kvsession.core.config import KVSessionConfig, StoreBackend
from kvsession.observability.logging import LogLevel, StructuredLogger, setup_logging
from kvsession.session import (
    ContextSetResolver,
    Housekeeper,
    LocalSessionContext,
    SessionRegistry,
    SessionStore,
)
from kvsession.storage import create_client
from kvsession.transcoder import create_transcoder


async def demo_local_mode() -> None:
    print("\n" + "=" * 60)
    print("kvsession - Session Lifecycle Demo")
    print("=" * 60 + "\n")

    config_result = KVSessionConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)

    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    print("✓ Configuration loaded and validated")
    print(f"  Node: {config.ids.node_name}")
    print(f"  Encoding: {config.transcoder.encoding.value}")
    print(f"  Store: {config.store.backend.value}")

    setup_logging(LogLevel.from_name(config.observability.log_level), json_output=config.observability.log_json)
    log = StructuredLogger("kvsession.demo").with_extra(node=config.ids.node_name)

    # Remote store
    client = create_client(config.store)
    if config.store.backend is StoreBackend.REDIS:
        connected = await client.connect()
        if connected.is_err():
            print(f"Store error: {connected.error}")
            sys.exit(1)
        print(f"\n✓ Connected to {config.store.url}")

    transcoder = create_transcoder(config.transcoder)
    registry = SessionRegistry(ContextSetResolver(), config.ids)
    store = SessionStore(client, transcoder, config.store, registry.metrics)
    housekeeper = Housekeeper(registry, store, config.housekeeper)

    registry.start()
    shop = LocalSessionContext("/shop", registry)
    account = LocalSessionContext("/account", registry)
    shop.start()
    account.start()

    print("\n--- Demo Operations ---\n")

    # 1. Create a session in one context and join it from another
    session = shop.new_session()
    session.set_attribute("user", "alice")
    session.set_attribute("count", 3)
    account.new_session(session.extended_id)
    print(f"1. Created {session.extended_id} shared by {len(registry.get_sessions(session.cluster_id))} contexts")

    # 2. Persist and read back
    saved = await store.save(session.state)
    if saved.is_ok():
        record = saved.unwrap()
        print(f"2. Saved {record.key} ({record.size} bytes, ttl={record.ttl_seconds}s)")
    else:
        print(f"   Error: {saved.error}")

    restored = await store.load(session.cluster_id)
    if restored is not None:
        print(f"   Restored attributes: {restored.attributes}")
    else:
        print("   Not found")

    # 3. Renew the id (e.g. after login)
    old_id = session.cluster_id
    with StructuredLogger.context(session_id=old_id):
        new_id = shop.renew_session_id(session)
        log.info("Renewed session id", new_session_id=new_id)
    print(f"3. Renewed {old_id} -> {new_id}")
    print(f"   in use: old={registry.is_in_use(old_id)} new={registry.is_in_use(new_id)}")
    print(f"   /account follows: {account.get_session(new_id) is not None}")

    # 4. Invalidate from one context, the other follows
    session.invalidate()
    print(f"4. Invalidated {new_id}: in use={registry.is_in_use(new_id)}, /account copy={account.get_session(new_id)}")
    deleted = (await store.delete(old_id)).unwrap_or(False)
    print(f"   Stored record removed: {deleted}")

    # 5. Housekeeping
    orphan = shop.new_session()
    shop.remove_session(orphan)
    report = await housekeeper.run_once()
    print(f"5. Sweep: reclaimed={len(report.reclaimed)} checked={report.checked} expired={len(report.expired)}")

    # 6. Metrics
    print("\n6. Metrics:")
    for name, value in registry.metrics.snapshot().items():
        print(f"   {name}: {value:g}")

    # Cleanup
    await housekeeper.stop()
    account.stop()
    shop.stop()
    registry.stop()
    await store.close()

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo_local_mode()
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        print(f"Error: {e}")
        raise


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

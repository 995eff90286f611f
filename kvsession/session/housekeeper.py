"""
Housekeeper: Periodic Registry Reclamation

One asyncio task ticks every interval_seconds. Each tick starts a sweep
unless the previous one is still running, in which case the tick is
skipped (and counted), never queued.

Sweep:
    1. registry.sweep_unresolvable() drops entries with no live handle.
    2. With a SessionStore attached and check_remote_expiry set, each id
       that was already registered at the previous sweep is looked up in
       the store; ids whose record is gone (TTL elapsed remotely) are
       expired across all contexts via registry.expire_all().

Ids first seen in the current sweep are skipped by step 2, since a
session created moments ago may not have been written to the store yet.

A sweep is bounded by sweep_timeout_seconds. Timeouts, store errors and
unexpected exceptions are logged; the next tick simply tries again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from kvsession.core.config import HousekeeperConfig
from kvsession.observability.metrics import SessionMetrics
from kvsession.reliability.retry import RetryPolicy
from kvsession.session.registry import SessionRegistry
from kvsession.session.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    """Outcome of one sweep."""
    reclaimed: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    checked: int = 0
    store_error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.store_error is None


class Housekeeper:
    """
    Single periodic reclamation worker.

    Usage:
        housekeeper = Housekeeper(registry, store, HousekeeperConfig(interval_seconds=60))
        await housekeeper.start()
        ...
        await housekeeper.stop()
    """

    __slots__ = (
        "_registry", "_store", "_config", "_metrics",
        "_task", "_sweep_task", "_sweep_lock", "_seen",
    )

    def __init__(
        self,
        registry: SessionRegistry,
        store: Optional[SessionStore] = None,
        config: Optional[HousekeeperConfig] = None,
        metrics: Optional[SessionMetrics] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._config = config or HousekeeperConfig()
        self._metrics = metrics if metrics is not None else registry.metrics
        self._task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None
        self._sweep_lock = asyncio.Lock()
        self._seen: set[str] = set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sweeping(self) -> bool:
        return self._sweep_lock.locked()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Housekeeper started (interval={self._config.interval_seconds}s, "
            f"timeout={self._config.sweep_timeout_seconds}s)"
        )

    async def stop(self) -> None:
        for task in (self._task, self._sweep_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._sweep_task = None
        logger.info("Housekeeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval_seconds)
            self.tick()

    def tick(self) -> bool:
        """
        Launch a sweep in the background unless one is in flight.

        Returns False when the tick was skipped.
        """
        if self.sweeping or (self._sweep_task is not None and not self._sweep_task.done()):
            self._metrics.skipped_ticks.inc()
            logger.debug("Housekeeper tick skipped, previous sweep still running")
            return False
        self._sweep_task = asyncio.create_task(self._guarded_sweep())
        return True

    # =========================================================================
    # SWEEP
    # =========================================================================
    async def run_once(self) -> SweepReport:
        """
        Run one sweep now, waiting for any in-flight sweep first.

        Raises:
            asyncio.TimeoutError: the sweep exceeded sweep_timeout_seconds
        """
        async with self._sweep_lock:
            return await asyncio.wait_for(
                self._sweep(), timeout=self._config.sweep_timeout_seconds,
            )

    async def _guarded_sweep(self) -> Optional[SweepReport]:
        try:
            return await self.run_once()
        except asyncio.TimeoutError:
            self._metrics.sweep_failures.inc(reason="timeout")
            logger.warning(
                f"Housekeeper sweep exceeded {self._config.sweep_timeout_seconds}s, "
                f"retrying next tick"
            )
        except Exception as e:
            self._metrics.sweep_failures.inc(reason="error")
            logger.error(f"Housekeeper sweep failed: {e}", exc_info=True)
        return None

    async def _sweep(self) -> SweepReport:
        started = time.monotonic()
        report = SweepReport()

        report.reclaimed = self._registry.sweep_unresolvable()
        if report.reclaimed:
            self._metrics.reclaimed_ids.inc(len(report.reclaimed))

        current = self._registry.session_ids
        if self._store is not None and self._config.check_remote_expiry:
            candidates = [sid for sid in current if sid in self._seen]
            await self._check_remote(candidates, report)
        self._seen = set(self._registry.session_ids)

        report.duration_ms = (time.monotonic() - started) * 1000
        self._metrics.sweeps.inc()
        if report.store_error is not None:
            self._metrics.sweep_failures.inc(reason="store")

        logger.debug(
            f"Housekeeper sweep: reclaimed={len(report.reclaimed)} "
            f"checked={report.checked} expired={len(report.expired)} "
            f"in {report.duration_ms:.1f}ms"
        )
        return report

    async def _check_remote(self, session_ids: list[str], report: SweepReport) -> None:
        # one attempt per id; the next tick retries
        policy = RetryPolicy.no_retry()
        for session_id in session_ids:
            result = await self._store.exists(session_id, policy=policy)
            if result.is_err():
                report.store_error = str(result.error)
                logger.warning(
                    f"Housekeeper stopped remote expiry check at {session_id}",
                    extra={"error": result.error.to_dict()},
                )
                return
            report.checked += 1
            if not result.unwrap():
                self._registry.expire_all(session_id, reason="remote")
                report.expired.append(session_id)

"""
Session Metrics: In-Process Counters and Gauges

Thread-safe metric primitives shared by request threads (registry calls)
and the housekeeper task. Values can be exported with collect().
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Iterator, Sequence


def _label_key(label_names: tuple[str, ...], labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple((name, labels.get(name, "")) for name in label_names)


class Counter:
    """
    Monotonically increasing counter metric.

    Usage:
        renewals = Counter("session_renewals_total", ["node"])
        renewals.inc(node="node0")
    """

    __slots__ = ("_name", "_help", "_label_names", "_values", "_lock")

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
    ) -> None:
        self._name = name
        self._help = help_text
        self._label_names = tuple(label_names)
        self._values: dict[tuple[tuple[str, str], ...], float] = defaultdict(float)
        self._lock = threading.Lock()

    def inc(self, value: float = 1.0, **labels: str) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        key = _label_key(self._label_names, labels)
        with self._lock:
            self._values[key] += value

    def get(self, **labels: str) -> float:
        key = _label_key(self._label_names, labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def collect(self) -> Iterator[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield (dict(key), value)

    @property
    def name(self) -> str:
        return self._name


class Gauge:
    """Gauge metric that can go up and down."""

    __slots__ = ("_name", "_help", "_value", "_lock")

    def __init__(self, name: str, help_text: str = "") -> None:
        self._name = name
        self._help = help_text
        self._value = 0.0
        self._lock = threading.Lock()

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    def inc(self, value: float = 1.0) -> None:
        with self._lock:
            self._value += value

    def dec(self, value: float = 1.0) -> None:
        with self._lock:
            self._value -= value

    def get(self) -> float:
        with self._lock:
            return self._value

    @property
    def name(self) -> str:
        return self._name


class SessionMetrics:
    """
    Metric bundle for one registry and its housekeeper.

    A fresh instance per registry keeps tests isolated; there is no
    process-global metrics registry.
    """

    __slots__ = (
        "handles_added", "handles_removed", "invalidations", "renewals",
        "expiries", "sweeps", "sweep_failures", "skipped_ticks",
        "reclaimed_ids", "decode_failures", "registered_ids",
    )

    def __init__(self) -> None:
        self.handles_added = Counter("session_handles_added_total")
        self.handles_removed = Counter("session_handles_removed_total")
        self.invalidations = Counter("session_invalidations_total")
        self.renewals = Counter("session_renewals_total", ["node"])
        self.expiries = Counter("session_expiries_total", ["reason"])
        self.sweeps = Counter("housekeeper_sweeps_total")
        self.sweep_failures = Counter("housekeeper_sweep_failures_total", ["reason"])
        self.skipped_ticks = Counter("housekeeper_skipped_ticks_total")
        self.reclaimed_ids = Counter("housekeeper_reclaimed_ids_total")
        self.decode_failures = Counter("session_decode_failures_total", ["encoding"])
        self.registered_ids = Gauge("session_registered_ids")

    def snapshot(self) -> dict[str, float]:
        """Flat view of every unlabelled total, for logs and demos."""
        return {
            "handles_added": self.handles_added.get(),
            "handles_removed": self.handles_removed.get(),
            "invalidations": self.invalidations.get(),
            "renewals": sum(v for _, v in self.renewals.collect()),
            "expiries": sum(v for _, v in self.expiries.collect()),
            "sweeps": self.sweeps.get(),
            "sweep_failures": sum(v for _, v in self.sweep_failures.collect()),
            "skipped_ticks": self.skipped_ticks.get(),
            "reclaimed_ids": self.reclaimed_ids.get(),
            "registered_ids": self.registered_ids.get(),
        }

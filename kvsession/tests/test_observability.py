"""
Observability and Reliability Test Suite

Covers:
- Counter/Gauge semantics and the SessionMetrics snapshot
- JSON log formatting with context-variable fields
- retry_result backoff over Result-returning calls

Run: python -m pytest kvsession/tests/test_observability.py -v
"""

from __future__ import annotations

import json
import logging

import pytest

from kvsession.core.errors import StoreUnavailable
from kvsession.core.types import Err, Ok
from kvsession.observability.logging import JsonFormatter, LogLevel, StructuredLogger, TextFormatter
from kvsession.observability.metrics import Counter, Gauge, SessionMetrics
from kvsession.reliability.retry import RetryPolicy, calculate_backoff, retry_result


# =============================================================================
# METRICS
# =============================================================================
def test_counter_tracks_labels_separately():
    counter = Counter("expiries", ["reason"])

    counter.inc(reason="remote")
    counter.inc(2, reason="remote")
    counter.inc(reason="requested")

    assert counter.get(reason="remote") == 3
    assert counter.get(reason="requested") == 1
    assert counter.get(reason="timeout") == 0
    assert sorted(v for _, v in counter.collect()) == [1, 3]


def test_counter_rejects_decrement():
    with pytest.raises(ValueError):
        Counter("c").inc(-1)


def test_gauge_moves_both_ways():
    gauge = Gauge("ids")
    gauge.inc(3)
    gauge.dec()
    assert gauge.get() == 2
    gauge.set(0)
    assert gauge.get() == 0


def test_snapshot_sums_labelled_counters():
    metrics = SessionMetrics()
    metrics.renewals.inc(node="node0")
    metrics.renewals.inc(node="node1")
    metrics.sweeps.inc()

    snapshot = metrics.snapshot()

    assert snapshot["renewals"] == 2
    assert snapshot["sweeps"] == 1
    assert snapshot["expiries"] == 0


# =============================================================================
# LOGGING
# =============================================================================
def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({
        "name": "kvsession.test",
        "levelno": logging.INFO,
        "levelname": "INFO",
        "msg": message,
    })
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extra_fields():
    line = JsonFormatter().format(_record("Renewed session", session_id="abc"))

    data = json.loads(line)
    assert data["message"] == "Renewed session"
    assert data["level"] == "INFO"
    assert data["logger"] == "kvsession.test"
    assert data["session_id"] == "abc"
    assert "@timestamp" in data


def test_json_formatter_includes_context_fields():
    with StructuredLogger.context(node="node3", context="/shop"):
        data = json.loads(JsonFormatter().format(_record("inside")))

    outside = json.loads(JsonFormatter().format(_record("outside")))

    assert data["node"] == "node3"
    assert data["context"] == "/shop"
    assert "node" not in outside


def test_structured_logger_default_extra(caplog: pytest.LogCaptureFixture):
    log = StructuredLogger("kvsession.test").with_extra(node="node0")

    with caplog.at_level(logging.INFO, logger="kvsession.test"):
        log.info("Swept registry", reclaimed=2)

    record = caplog.records[-1]
    assert record.getMessage() == "Swept registry"
    assert record.node == "node0"
    assert record.reclaimed == 2


def test_text_formatter_appends_session_fields():
    with StructuredLogger.context(session_id="w1abc"):
        line = TextFormatter().format(_record("Invalidated"))

    assert "| INFO     | kvsession.test | Invalidated" in line
    assert line.endswith("| session_id=w1abc")


def test_log_level_from_name():
    assert LogLevel.from_name("warning") is LogLevel.WARNING


# =============================================================================
# RETRY
# =============================================================================
def test_backoff_is_capped_without_jitter():
    assert calculate_backoff(0, 10, 100, 2.0, jitter=False) == 10
    assert calculate_backoff(2, 10, 100, 2.0, jitter=False) == 40
    assert calculate_backoff(10, 10, 100, 2.0, jitter=False) == 100


def test_backoff_jitter_stays_in_range():
    for attempt in range(5):
        assert 0 <= calculate_backoff(attempt, 10, 100, 2.0, jitter=True) <= 100


async def test_retry_result_stops_at_first_ok():
    outcomes = [Err(StoreUnavailable.timeout("get", 50)), Ok(b"v")]
    calls = []

    async def call():
        calls.append(1)
        return outcomes[len(calls) - 1]

    result = await retry_result(call, RetryPolicy(max_retries=3, base_delay_ms=1))

    assert result.unwrap() == b"v"
    assert len(calls) == 2


async def test_retry_result_returns_last_err_when_exhausted():
    calls = []

    async def call():
        calls.append(1)
        return Err(StoreUnavailable.timeout("get", 50))

    result = await retry_result(call, RetryPolicy(max_retries=2, base_delay_ms=1))

    assert result.is_err()
    assert len(calls) == 3


async def test_no_retry_policy_calls_once():
    calls = []

    async def call():
        calls.append(1)
        return Err("down")

    await retry_result(call, RetryPolicy.no_retry())

    assert len(calls) == 1

"""
Observability module: Metrics and structured logging.
"""

from kvsession.observability.metrics import Counter, Gauge, SessionMetrics
from kvsession.observability.logging import StructuredLogger, LogLevel, setup_logging

__all__ = [
    "Counter",
    "Gauge",
    "SessionMetrics",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
]

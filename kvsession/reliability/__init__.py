"""
Reliability module: Retry policies for remote store calls.
"""

from kvsession.reliability.retry import RetryPolicy, retry_result, calculate_backoff

__all__ = ["RetryPolicy", "retry_result", "calculate_backoff"]

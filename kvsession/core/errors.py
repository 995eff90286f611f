"""
Error Hierarchy for kvsession

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation across cluster nodes

Propagation policy:
    EncodingError / DecodingError   raised by transcoders, surfaced to the
                                    persistence layer; a decode failure
                                    means "session absent", never partial.
    StoreUnavailable                carried in Err(...) by key-value clients.
    RegistryInconsistency           fatal invariant violation, never retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from kvsession.core.types import now_ms


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Transcoder errors
    - 2xxx: Remote store errors
    - 3xxx: Registry errors
    """

    # Transcoder errors (1xxx)
    ENCODING_UNREPRESENTABLE = 1001
    ENCODING_FAILED = 1002
    DECODING_MALFORMED = 1101
    DECODING_TRUNCATED = 1102
    DECODING_CHECKSUM_MISMATCH = 1103
    DECODING_UNRESOLVABLE_TYPE = 1104

    # Remote store errors (2xxx)
    STORE_CONNECTION_FAILED = 2001
    STORE_TIMEOUT = 2002
    STORE_OPERATION_FAILED = 2003
    STORE_NOT_CONNECTED = 2004

    # Registry errors (3xxx)
    REGISTRY_INCONSISTENCY = 3001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class KVSessionError(Exception):
    """
    Base class for all kvsession errors.

    Provides a unique error id, an error code, a creation timestamp
    (epoch ms) and an optional cause for root cause analysis.
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp_ms: int = field(default_factory=now_ms)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_ms": self.timestamp_ms,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# TRANSCODER ERRORS
# =============================================================================
@dataclass
class TranscoderError(KVSessionError):
    """Common parent of encode and decode failures."""


@dataclass
class EncodingError(TranscoderError):
    """Session state cannot be represented by the active encoding."""

    @classmethod
    def unrepresentable(
        cls,
        path: str,
        value_type: str,
        encoding: str,
        cause: Optional[BaseException] = None,
    ) -> EncodingError:
        """An attribute value has no representation in this encoding."""
        return cls(
            code=ErrorCode.ENCODING_UNREPRESENTABLE,
            message=f"Attribute '{path}' of type {value_type} is not representable as {encoding}",
            cause=cause,
            context={"path": path, "value_type": value_type, "encoding": encoding},
        )

    @classmethod
    def failed(
        cls,
        encoding: str,
        cause: Optional[BaseException] = None,
    ) -> EncodingError:
        """Encoder failed for a reason not tied to a single attribute."""
        return cls(
            code=ErrorCode.ENCODING_FAILED,
            message=f"Failed to encode session state as {encoding}: {cause}",
            cause=cause,
            context={"encoding": encoding},
        )


@dataclass
class DecodingError(TranscoderError):
    """Bytes cannot be turned back into session state."""

    @classmethod
    def malformed(
        cls,
        encoding: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> DecodingError:
        """Input does not follow the encoding's grammar."""
        return cls(
            code=ErrorCode.DECODING_MALFORMED,
            message=f"Malformed {encoding} record: {reason}",
            cause=cause,
            context={"encoding": encoding, "reason": reason},
        )

    @classmethod
    def truncated(
        cls,
        encoding: str,
        expected_bytes: int,
        actual_bytes: int,
    ) -> DecodingError:
        """Fewer bytes than the record header announces."""
        return cls(
            code=ErrorCode.DECODING_TRUNCATED,
            message=f"Truncated {encoding} record: expected {expected_bytes}B, got {actual_bytes}B",
            context={
                "encoding": encoding,
                "expected_bytes": expected_bytes,
                "actual_bytes": actual_bytes,
            },
        )

    @classmethod
    def checksum_mismatch(
        cls,
        encoding: str,
        expected: int,
        actual: int,
    ) -> DecodingError:
        """Body does not match its recorded checksum."""
        return cls(
            code=ErrorCode.DECODING_CHECKSUM_MISMATCH,
            message=f"Corrupted {encoding} record: crc {actual:#010x} != {expected:#010x}",
            context={"encoding": encoding, "expected": expected, "actual": actual},
        )

    @classmethod
    def unresolvable_type(
        cls,
        encoding: str,
        type_name: str,
        cause: Optional[BaseException] = None,
    ) -> DecodingError:
        """Record references a type unknown in this environment."""
        return cls(
            code=ErrorCode.DECODING_UNRESOLVABLE_TYPE,
            message=f"Cannot resolve type '{type_name}' while decoding {encoding}",
            cause=cause,
            context={"encoding": encoding, "type_name": type_name},
        )


# =============================================================================
# REMOTE STORE ERRORS
# =============================================================================
@dataclass
class StoreUnavailable(KVSessionError):
    """
    The remote key-value store could not serve a request.

    Reported by collaborators; the session layer degrades reads to
    "not found" and surfaces writes as Err.
    """

    @classmethod
    def connection_failed(
        cls,
        host: str,
        port: int,
        cause: Optional[BaseException] = None,
    ) -> StoreUnavailable:
        return cls(
            code=ErrorCode.STORE_CONNECTION_FAILED,
            message=f"Failed to connect to key-value store at {host}:{port}",
            cause=cause,
            context={"host": host, "port": port},
        )

    @classmethod
    def timeout(
        cls,
        operation: str,
        duration_ms: int,
        cause: Optional[BaseException] = None,
    ) -> StoreUnavailable:
        return cls(
            code=ErrorCode.STORE_TIMEOUT,
            message=f"Store operation '{operation}' timed out after {duration_ms}ms",
            cause=cause,
            context={"operation": operation, "duration_ms": duration_ms},
        )

    @classmethod
    def operation_failed(
        cls,
        operation: str,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> StoreUnavailable:
        return cls(
            code=ErrorCode.STORE_OPERATION_FAILED,
            message=f"Store operation '{operation}' failed for key '{key}': {cause}",
            cause=cause,
            context={"operation": operation, "key": key},
        )

    @classmethod
    def not_connected(cls, operation: str) -> StoreUnavailable:
        return cls(
            code=ErrorCode.STORE_NOT_CONNECTED,
            message=f"Store operation '{operation}' attempted before connect()",
            context={"operation": operation},
        )


# =============================================================================
# REGISTRY ERRORS
# =============================================================================
@dataclass
class RegistryInconsistency(KVSessionError):
    """
    The registry observed a state its locking discipline forbids.

    This is a programming-invariant violation and must not be retried.
    """

    @classmethod
    def violation(cls, session_id: str, detail: str) -> RegistryInconsistency:
        return cls(
            code=ErrorCode.REGISTRY_INCONSISTENCY,
            message=f"Registry invariant violated for '{session_id}': {detail}",
            context={"session_id": session_id, "detail": detail},
        )

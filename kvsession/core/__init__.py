"""
Core module: Type definitions, error hierarchy, and configuration.

- Result monad for fallible remote-store I/O
- Error hierarchy with codes and factories
- Configuration management with validation
"""

from kvsession.core.types import (
    Result,
    Ok,
    Err,
    now_ms,
)
from kvsession.core.errors import (
    ErrorCode,
    KVSessionError,
    TranscoderError,
    EncodingError,
    DecodingError,
    StoreUnavailable,
    RegistryInconsistency,
)
from kvsession.core.config import (
    KVSessionConfig,
    IdConfig,
    TranscoderConfig,
    StoreConfig,
    HousekeeperConfig,
    ObservabilityConfig,
    Encoding,
    StoreBackend,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "now_ms",
    "ErrorCode",
    "KVSessionError",
    "TranscoderError",
    "EncodingError",
    "DecodingError",
    "StoreUnavailable",
    "RegistryInconsistency",
    "KVSessionConfig",
    "IdConfig",
    "TranscoderConfig",
    "StoreConfig",
    "HousekeeperConfig",
    "ObservabilityConfig",
    "Encoding",
    "StoreBackend",
]

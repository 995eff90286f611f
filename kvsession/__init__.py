"""
kvsession: Distributed HTTP Session Identity over a Shared Key-Value Store

Session state lives in a remote key-value store (Redis, memcached-like)
instead of only in process memory. This package provides:
- Session Registry: which cluster session ids are live, across which local
  contexts, without holding session objects alive
- Transcoders: pluggable session state <-> bytes encodings
  (compact-binary, structured-text)
- Housekeeper: periodic reclamation and remote-expiry detection
- Session Store: namespaced, TTL-bounded persistence with graceful
  degradation to "session not found"

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from kvsession.core.types import Result, Ok, Err
from kvsession.core.errors import (
    KVSessionError,
    EncodingError,
    DecodingError,
    StoreUnavailable,
    RegistryInconsistency,
)
from kvsession.core.config import KVSessionConfig, Encoding

from kvsession.session import (
    SessionState,
    EncodedRecord,
    SessionHandle,
    SessionContext,
    ContextSetResolver,
    SessionRegistry,
    Session,
    LocalSessionContext,
    SessionStore,
    Housekeeper,
    SweepReport,
)

from kvsession.transcoder import (
    Transcoder,
    CompactBinaryTranscoder,
    StructuredTextTranscoder,
    create_transcoder,
)

from kvsession.storage import (
    KeyValueClient,
    InMemoryKeyValueClient,
    RedisKeyValueClient,
    create_client,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "KVSessionError",
    "EncodingError",
    "DecodingError",
    "StoreUnavailable",
    "RegistryInconsistency",
    "KVSessionConfig",
    "Encoding",
    # Session
    "SessionState",
    "EncodedRecord",
    "SessionHandle",
    "SessionContext",
    "ContextSetResolver",
    "SessionRegistry",
    "Session",
    "LocalSessionContext",
    "SessionStore",
    "Housekeeper",
    "SweepReport",
    # Transcoder
    "Transcoder",
    "CompactBinaryTranscoder",
    "StructuredTextTranscoder",
    "create_transcoder",
    # Storage
    "KeyValueClient",
    "InMemoryKeyValueClient",
    "RedisKeyValueClient",
    "create_client",
]

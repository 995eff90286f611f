"""
Configuration Management for kvsession

Provides validated configuration with sensible defaults.
Supports environment variable overrides (prefix KVSESSION_).

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from kvsession.core.types import Result, Ok, Err
from kvsession.core import constants as C


class Encoding(Enum):
    """Transcoder variants selectable per deployment."""

    COMPACT_BINARY = "compact-binary"
    STRUCTURED_TEXT = "structured-text"


class StoreBackend(Enum):
    """Remote key-value store implementations."""

    MEMORY = "memory"
    REDIS = "redis"


@dataclass(frozen=True)
class IdConfig:
    """Session id generation."""

    # Prefix baked into every cluster id minted by this node
    worker_name: str = ""
    # Discriminator appended to form the extended id
    node_name: str = "node0"


@dataclass(frozen=True)
class TranscoderConfig:
    """Session state encoding."""

    encoding: Encoding = Encoding.COMPACT_BINARY
    class_loader_hint: Optional[str] = None
    compression_threshold: int = C.COMPRESSION_THRESHOLD


@dataclass(frozen=True)
class StoreConfig:
    """Remote key-value store configuration."""

    backend: StoreBackend = StoreBackend.MEMORY
    key_prefix: str = C.DEFAULT_KEY_PREFIX
    key_suffix: str = C.DEFAULT_KEY_SUFFIX
    default_ttl_seconds: int = C.DEFAULT_RECORD_TTL_S
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout_ms: int = 2 * C.SECOND_MS
    retry_max_attempts: int = C.RETRY_MAX_ATTEMPTS
    retry_base_delay_ms: int = C.RETRY_BASE_MS

    @property
    def url(self) -> str:
        """Redis connection URL (password omitted)."""
        return f"redis://{self.host}:{self.port}/{self.db}"


@dataclass(frozen=True)
class HousekeeperConfig:
    """Periodic registry sweep."""

    interval_seconds: float = C.HOUSEKEEPER_INTERVAL_S
    sweep_timeout_seconds: float = C.HOUSEKEEPER_SWEEP_TIMEOUT_S
    check_remote_expiry: bool = True


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class KVSessionConfig:
    """Root configuration."""

    ids: IdConfig = field(default_factory=IdConfig)
    transcoder: TranscoderConfig = field(default_factory=TranscoderConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    housekeeper: HousekeeperConfig = field(default_factory=HousekeeperConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[KVSessionConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with KVSESSION_.
        Example: KVSESSION_ENCODING=structured-text, KVSESSION_REDIS_HOST
        """
        try:
            ids = IdConfig(
                worker_name=os.getenv("KVSESSION_WORKER_NAME", ""),
                node_name=os.getenv("KVSESSION_NODE_NAME", "node0"),
            )

            transcoder = TranscoderConfig(
                encoding=Encoding(os.getenv("KVSESSION_ENCODING", "compact-binary")),
                class_loader_hint=os.getenv("KVSESSION_CLASS_LOADER_HINT") or None,
                compression_threshold=int(
                    os.getenv("KVSESSION_COMPRESSION_THRESHOLD", str(C.COMPRESSION_THRESHOLD))
                ),
            )

            store = StoreConfig(
                backend=StoreBackend(os.getenv("KVSESSION_STORE_BACKEND", "memory")),
                key_prefix=os.getenv("KVSESSION_KEY_PREFIX", C.DEFAULT_KEY_PREFIX),
                key_suffix=os.getenv("KVSESSION_KEY_SUFFIX", C.DEFAULT_KEY_SUFFIX),
                default_ttl_seconds=int(
                    os.getenv("KVSESSION_DEFAULT_TTL", str(C.DEFAULT_RECORD_TTL_S))
                ),
                host=os.getenv("KVSESSION_REDIS_HOST", "localhost"),
                port=int(os.getenv("KVSESSION_REDIS_PORT", "6379")),
                db=int(os.getenv("KVSESSION_REDIS_DB", "0")),
                password=os.getenv("KVSESSION_REDIS_PASSWORD") or None,
            )

            housekeeper = HousekeeperConfig(
                interval_seconds=float(
                    os.getenv("KVSESSION_SCAVENGE_INTERVAL", str(C.HOUSEKEEPER_INTERVAL_S))
                ),
                sweep_timeout_seconds=float(
                    os.getenv("KVSESSION_SWEEP_TIMEOUT", str(C.HOUSEKEEPER_SWEEP_TIMEOUT_S))
                ),
                check_remote_expiry=os.getenv(
                    "KVSESSION_CHECK_REMOTE_EXPIRY", "true"
                ).lower() in ("1", "true", "yes"),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv("KVSESSION_LOG_LEVEL", "INFO").upper(),
                log_json=os.getenv("KVSESSION_LOG_JSON", "true").lower() in ("1", "true", "yes"),
            )

            return Ok(cls(
                ids=ids,
                transcoder=transcoder,
                store=store,
                housekeeper=housekeeper,
                observability=observability,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.ids.node_name:
            return Err("node_name must not be empty")
        if C.EXTENDED_ID_SEPARATOR in self.ids.node_name:
            return Err(f"node_name must not contain '{C.EXTENDED_ID_SEPARATOR}'")
        if C.EXTENDED_ID_SEPARATOR in self.ids.worker_name:
            return Err(f"worker_name must not contain '{C.EXTENDED_ID_SEPARATOR}'")
        if self.store.default_ttl_seconds < 0:
            return Err("default_ttl_seconds must be >= 0")
        if self.store.default_ttl_seconds > C.MAX_RELATIVE_TTL_S:
            return Err(f"default_ttl_seconds must be <= {C.MAX_RELATIVE_TTL_S}")
        if self.store.retry_max_attempts < 0:
            return Err("retry_max_attempts must be >= 0")
        if self.housekeeper.interval_seconds <= 0:
            return Err("housekeeper interval must be > 0")
        if self.housekeeper.sweep_timeout_seconds <= 0:
            return Err("housekeeper sweep timeout must be > 0")
        if self.observability.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return Err(f"Unknown log level '{self.observability.log_level}'")
        return Ok(None)

"""
Session State: Serializable Session Payload

SessionState is what transcoders encode and decode: the attribute map plus
the timing metadata a node needs to decide whether a session is still
valid. EncodedRecord is the transcoder output paired with its namespaced
store key and TTL.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from kvsession.core import constants as C
from kvsession.core.types import now_ms


_REQUIRED_FIELDS = (
    "session_id",
    "created_at_ms",
    "accessed_at_ms",
    "last_accessed_at_ms",
    "max_inactive_interval",
    "version",
)


@dataclass(slots=True)
class SessionState:
    """
    Attribute map plus metadata for one cluster session.

    Timestamps are epoch milliseconds; max_inactive_interval is seconds,
    with NEVER_EXPIRES (-1) meaning the session only ends on invalidation.
    """

    session_id: str
    created_at_ms: int = field(default_factory=now_ms)
    accessed_at_ms: int = 0
    last_accessed_at_ms: int = 0
    max_inactive_interval: int = C.DEFAULT_MAX_INACTIVE_S
    version: int = 0
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id must be non-empty")
        if self.accessed_at_ms == 0:
            self.accessed_at_ms = self.created_at_ms
        if self.last_accessed_at_ms == 0:
            self.last_accessed_at_ms = self.created_at_ms

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    def access(self, at_ms: Optional[int] = None) -> None:
        """Record a request touching this session."""
        self.last_accessed_at_ms = self.accessed_at_ms
        self.accessed_at_ms = at_ms if at_ms is not None else now_ms()

    def is_expired(self, at_ms: Optional[int] = None) -> bool:
        if self.max_inactive_interval <= 0:
            return False
        at_ms = at_ms if at_ms is not None else now_ms()
        return at_ms - self.accessed_at_ms > self.max_inactive_interval * 1000

    def record_ttl(self, default_ttl_seconds: int) -> int:
        """TTL for the remote record; falls back to the store default."""
        if self.max_inactive_interval > 0:
            return min(self.max_inactive_interval, C.MAX_RELATIVE_TTL_S)
        return default_ttl_seconds

    # -------------------------------------------------------------------------
    # ATTRIBUTES
    # -------------------------------------------------------------------------

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        self.attributes[name] = value
        self.version += 1

    def remove_attribute(self, name: str) -> Any:
        value = self.attributes.pop(name, None)
        self.version += 1
        return value

    # -------------------------------------------------------------------------
    # SERIALIZATION
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping handed to transcoders."""
        return {
            "session_id": self.session_id,
            "created_at_ms": self.created_at_ms,
            "accessed_at_ms": self.accessed_at_ms,
            "last_accessed_at_ms": self.last_accessed_at_ms,
            "max_inactive_interval": self.max_inactive_interval,
            "version": self.version,
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionState:
        """
        Rebuild state from a decoded mapping.

        Raises:
            ValueError: missing or mistyped fields
        """
        missing = [name for name in _REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"missing fields: {', '.join(missing)}")
        if not isinstance(data["session_id"], str):
            raise ValueError("session_id must be a string")
        for name in _REQUIRED_FIELDS[1:]:
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
        attributes = data.get("attributes", {})
        if not isinstance(attributes, Mapping):
            raise ValueError("attributes must be a mapping")
        return cls(
            session_id=data["session_id"],
            created_at_ms=data["created_at_ms"],
            accessed_at_ms=data["accessed_at_ms"],
            last_accessed_at_ms=data["last_accessed_at_ms"],
            max_inactive_interval=data["max_inactive_interval"],
            version=data["version"],
            attributes=dict(attributes),
        )


@dataclass(frozen=True, slots=True)
class EncodedRecord:
    """Transcoder output ready for KeyValueClient.put()."""

    key: str
    data: bytes
    ttl_seconds: int

    @property
    def size(self) -> int:
        return len(self.data)

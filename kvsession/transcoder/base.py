"""
Transcoder Contract

A transcoder is the only coupling point between in-memory SessionState
and the bytes kept in the remote store. Registry and store clients never
learn which variant is active.

Contract:
    encode(state) -> bytes
        raises EncodingError when any attribute is not representable.
    decode(data, shape) -> state
        raises DecodingError on malformed, truncated, corrupted or
        type-unresolvable input; never returns a partial state.
    decode(encode(s), SessionState) == s for every representable s.

Any textual sub-encoding uses a charset fixed by the transcoder, never the
platform default, since records are read back by other nodes.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Type, TypeVar, runtime_checkable

from kvsession.core.errors import DecodingError
from kvsession.session.state import SessionState

S = TypeVar("S")


@runtime_checkable
class Transcoder(Protocol):
    """Protocol every session encoding implements."""

    encoding: str

    def encode(self, state: Any) -> bytes:
        ...

    def decode(self, data: bytes, shape: Type[S] = SessionState) -> S:
        ...


def as_mapping(state: Any) -> Mapping[str, Any]:
    """Accept a SessionState, anything with to_dict(), or a mapping."""
    if isinstance(state, Mapping):
        return state
    to_dict = getattr(state, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Cannot encode {type(state).__name__}: expected SessionState or mapping")


def apply_shape(mapping: Any, shape: Type[S], encoding: str) -> S:
    """
    Turn a decoded mapping into the caller's target representation.

    shape may be dict (raw mapping) or any class with from_dict().
    """
    if not isinstance(mapping, Mapping):
        raise DecodingError.malformed(
            encoding, f"top-level value is {type(mapping).__name__}, expected mapping",
        )
    if shape is dict:
        return dict(mapping)  # type: ignore[return-value]
    from_dict = getattr(shape, "from_dict", None)
    if from_dict is None:
        raise TypeError(f"Shape {shape!r} has no from_dict()")
    try:
        return from_dict(mapping)
    except (KeyError, TypeError, ValueError) as e:
        raise DecodingError.malformed(encoding, f"invalid {shape.__name__}: {e}", cause=e) from e

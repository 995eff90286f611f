"""
Compact Binary Transcoder

Python object serialization (pickle) wrapped in a fixed header, with
LZ4 frame compression for larger bodies.

Record Layout (big-endian):
    magic       2 bytes   b"KS"
    version     1 byte
    flags       1 byte    0x01 = body is LZ4-compressed
    body_len    4 bytes   length of the stored body
    crc32       4 bytes   CRC32 of the stored body
    body        body_len bytes

The CRC covers the stored (possibly compressed) body, so truncation and
bit flips are reported as DecodingError before anything is unpickled.

Unpickling resolves classes through the recorded module path; when a
class_loader_hint module is configured it is consulted for classes whose
recorded module cannot provide them (e.g. a class moved between releases
of the application running on different nodes). Records are only ever
read from the cluster's own session store.
"""

from __future__ import annotations

import importlib
import io
import pickle
import struct
import zlib
from types import ModuleType
from typing import Any, Mapping, Optional, Type, TypeVar

import lz4.frame

from kvsession.core import constants as C
from kvsession.core.config import Encoding
from kvsession.core.errors import DecodingError, EncodingError
from kvsession.session.state import SessionState
from kvsession.transcoder.base import apply_shape, as_mapping

S = TypeVar("S")

_HEADER = struct.Struct(">2sBBII")
FLAG_LZ4 = 0x01


class _SessionUnpickler(pickle.Unpickler):
    """Unpickler with hint-module fallback for class lookup."""

    def __init__(self, file: io.BytesIO, hint: Optional[ModuleType]) -> None:
        super().__init__(file)
        self._hint = hint

    def find_class(self, module: str, name: str) -> Any:
        try:
            return super().find_class(module, name)
        except (ImportError, AttributeError) as e:
            if self._hint is not None and hasattr(self._hint, name):
                return getattr(self._hint, name)
            raise DecodingError.unresolvable_type(
                Encoding.COMPACT_BINARY.value, f"{module}.{name}", cause=e,
            ) from e


class CompactBinaryTranscoder:
    """
    Pickle + LZ4 session transcoder.

    Usage:
        transcoder = CompactBinaryTranscoder()
        data = transcoder.encode(state)
        restored = transcoder.decode(data)
    """

    encoding = Encoding.COMPACT_BINARY.value

    __slots__ = ("_hint_name", "_hint", "_compression_threshold")

    def __init__(
        self,
        class_loader_hint: Optional[str] = None,
        compression_threshold: int = C.COMPRESSION_THRESHOLD,
    ) -> None:
        self._hint_name = class_loader_hint
        self._hint = importlib.import_module(class_loader_hint) if class_loader_hint else None
        self._compression_threshold = compression_threshold

    @property
    def class_loader_hint(self) -> Optional[str]:
        return self._hint_name

    # -------------------------------------------------------------------------
    # ENCODE
    # -------------------------------------------------------------------------

    def encode(self, state: Any) -> bytes:
        mapping = as_mapping(state)
        try:
            body = pickle.dumps(dict(mapping), protocol=C.PICKLE_PROTOCOL)
        except Exception as e:
            raise self._unrepresentable(mapping, e) from e

        flags = 0
        if len(body) >= self._compression_threshold:
            body = lz4.frame.compress(body)
            flags |= FLAG_LZ4

        header = _HEADER.pack(
            C.BINARY_MAGIC,
            C.BINARY_FORMAT_VERSION,
            flags,
            len(body),
            zlib.crc32(body),
        )
        return header + body

    def _unrepresentable(self, mapping: Mapping[str, Any], cause: Exception) -> EncodingError:
        """Name the first attribute pickle refuses, if one can be isolated."""
        attributes = mapping.get("attributes")
        if isinstance(attributes, Mapping):
            for name, value in attributes.items():
                try:
                    pickle.dumps(value, protocol=C.PICKLE_PROTOCOL)
                except Exception as e:
                    return EncodingError.unrepresentable(
                        f"attributes.{name}", type(value).__name__, self.encoding, cause=e,
                    )
        return EncodingError.failed(self.encoding, cause=cause)

    # -------------------------------------------------------------------------
    # DECODE
    # -------------------------------------------------------------------------

    def decode(self, data: bytes, shape: Type[S] = SessionState) -> S:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DecodingError.malformed(self.encoding, f"expected bytes, got {type(data).__name__}")
        data = bytes(data)

        if len(data) < _HEADER.size:
            raise DecodingError.truncated(self.encoding, _HEADER.size, len(data))

        magic, version, flags, body_len, crc = _HEADER.unpack_from(data)
        if magic != C.BINARY_MAGIC:
            raise DecodingError.malformed(self.encoding, f"bad magic {magic!r}")
        if version != C.BINARY_FORMAT_VERSION:
            raise DecodingError.malformed(self.encoding, f"unsupported format version {version}")

        body = data[_HEADER.size:]
        if len(body) < body_len:
            raise DecodingError.truncated(self.encoding, _HEADER.size + body_len, len(data))
        if len(body) > body_len:
            raise DecodingError.malformed(
                self.encoding, f"{len(body) - body_len} trailing bytes after body",
            )

        actual_crc = zlib.crc32(body)
        if actual_crc != crc:
            raise DecodingError.checksum_mismatch(self.encoding, crc, actual_crc)

        if flags & FLAG_LZ4:
            try:
                body = lz4.frame.decompress(body)
            except Exception as e:
                raise DecodingError.malformed(self.encoding, f"lz4 frame: {e}", cause=e) from e

        try:
            mapping = _SessionUnpickler(io.BytesIO(body), self._hint).load()
        except DecodingError:
            raise
        except Exception as e:
            raise DecodingError.malformed(self.encoding, f"unpickling failed: {e}", cause=e) from e

        return apply_shape(mapping, shape, self.encoding)

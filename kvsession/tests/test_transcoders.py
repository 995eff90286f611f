"""
Transcoder Test Suite

Covers:
- Round-trip of session state for both encodings
- Truncated and corrupted input always raising DecodingError
- Unrepresentable attributes raising EncodingError
- Type resolution (class_loader_hint fallback, unknown type tags)
- Fixed document charset of the structured-text encoding
- Variant selection from configuration

Run: python -m pytest kvsession/tests/test_transcoders.py -v
"""

from __future__ import annotations

import pickle
import sys
import threading
import xml.etree.ElementTree as ET
import zlib
from datetime import datetime, timezone

import pytest

from kvsession.core import constants as C
from kvsession.core.config import Encoding, TranscoderConfig
from kvsession.core.errors import DecodingError, EncodingError, ErrorCode
from kvsession.session.state import SessionState
from kvsession.transcoder import (
    CompactBinaryTranscoder,
    StructuredTextTranscoder,
    Transcoder,
    create_transcoder,
)
from kvsession.transcoder.binary import FLAG_LZ4, _HEADER
from kvsession.transcoder.structured import _crc


class Marker:
    """Application class stored as a session attribute."""

    def __init__(self, value: int = 0) -> None:
        self.value = value


class Cart:
    """Alternative decode shape."""

    def __init__(self, data: dict) -> None:
        self.data = data

    @classmethod
    def from_dict(cls, data):
        return cls(dict(data))


def make_state(**attributes) -> SessionState:
    return SessionState(
        session_id="w1abc123",
        created_at_ms=1_700_000_000_000,
        accessed_at_ms=1_700_000_005_000,
        last_accessed_at_ms=1_700_000_001_000,
        max_inactive_interval=1800,
        version=2,
        attributes=attributes,
    )


def binary_record(body: bytes, flags: int = 0) -> bytes:
    return _HEADER.pack(C.BINARY_MAGIC, C.BINARY_FORMAT_VERSION, flags, len(body), zlib.crc32(body)) + body


TRANSCODERS = [CompactBinaryTranscoder(), StructuredTextTranscoder()]
IDS = ["compact-binary", "structured-text"]


# =============================================================================
# ROUND TRIP
# =============================================================================
@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_round_trip_preserves_attributes_and_metadata(transcoder: Transcoder):
    state = make_state(user="alice", count=3)

    restored = transcoder.decode(transcoder.encode(state), SessionState)

    assert restored.attributes == {"user": "alice", "count": 3}
    assert restored == state


@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_round_trip_of_supported_value_types(transcoder: Transcoder):
    state = make_state(
        nothing=None,
        flag=True,
        ratio=0.1,
        big=2 ** 70,
        text="héllo ☃",
        control="tab\tand\x01bell",
        blob=b"\x00\xff\x10",
        when=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        items=[1, "two", [3.0]],
        pair=("a", 1),
        tags={"x", "y"},
        nested={"cart": {"sku": "A-1", "qty": 2}},
    )

    restored = transcoder.decode(transcoder.encode(state))

    assert restored == state


@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_round_trip_of_keys_xml_cannot_carry(transcoder: Transcoder):
    state = make_state(**{"a\x01b": 1, "lone\ud800": "x", "plain": {"in\x1fner": [2]}})

    restored = transcoder.decode(transcoder.encode(state))

    assert restored == state


@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_decode_to_raw_mapping(transcoder: Transcoder):
    state = make_state(user="alice")

    mapping = transcoder.decode(transcoder.encode(state), dict)

    assert mapping == state.to_dict()


@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_decode_to_custom_shape(transcoder: Transcoder):
    cart = transcoder.decode(transcoder.encode(make_state(sku="A-1")), Cart)

    assert isinstance(cart, Cart)
    assert cart.data["attributes"] == {"sku": "A-1"}


@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_encode_accepts_plain_mapping(transcoder: Transcoder):
    state = make_state(user="alice")

    restored = transcoder.decode(transcoder.encode(state.to_dict()))

    assert restored == state


def test_transcoders_satisfy_protocol():
    for transcoder in TRANSCODERS:
        assert isinstance(transcoder, Transcoder)


# =============================================================================
# TRUNCATION AND CORRUPTION
# =============================================================================
@pytest.mark.parametrize("transcoder", TRANSCODERS, ids=IDS)
def test_every_truncation_raises_decoding_error(transcoder: Transcoder):
    data = transcoder.encode(make_state(user="alice", count=3))

    for cut in range(len(data)):
        with pytest.raises(DecodingError):
            transcoder.decode(data[:cut])


def test_binary_bit_flip_detected_by_checksum():
    transcoder = CompactBinaryTranscoder()
    data = bytearray(transcoder.encode(make_state(user="alice")))
    data[-5] ^= 0x40

    with pytest.raises(DecodingError) as exc_info:
        transcoder.decode(bytes(data))

    assert exc_info.value.code is ErrorCode.DECODING_CHECKSUM_MISMATCH


def test_binary_rejects_bad_magic_and_version():
    transcoder = CompactBinaryTranscoder()
    data = transcoder.encode(make_state())

    with pytest.raises(DecodingError) as exc_info:
        transcoder.decode(b"XX" + data[2:])
    assert exc_info.value.code is ErrorCode.DECODING_MALFORMED

    with pytest.raises(DecodingError):
        transcoder.decode(data[:2] + bytes([C.BINARY_FORMAT_VERSION + 1]) + data[3:])


def test_binary_rejects_trailing_bytes():
    transcoder = CompactBinaryTranscoder()
    data = transcoder.encode(make_state())

    with pytest.raises(DecodingError) as exc_info:
        transcoder.decode(data + b"\x00")

    assert exc_info.value.code is ErrorCode.DECODING_MALFORMED


def test_binary_truncated_body_reports_sizes():
    transcoder = CompactBinaryTranscoder()
    data = transcoder.encode(make_state())

    with pytest.raises(DecodingError) as exc_info:
        transcoder.decode(data[:-3])

    error = exc_info.value
    assert error.code is ErrorCode.DECODING_TRUNCATED
    assert error.context["expected_bytes"] == len(data)
    assert error.context["actual_bytes"] == len(data) - 3


def test_binary_rejects_non_mapping_payload():
    transcoder = CompactBinaryTranscoder()

    with pytest.raises(DecodingError):
        transcoder.decode(binary_record(pickle.dumps([1, 2, 3])))


def test_binary_rejects_state_with_missing_fields():
    transcoder = CompactBinaryTranscoder()

    with pytest.raises(DecodingError):
        transcoder.decode(binary_record(pickle.dumps({"session_id": "abc"})))


def test_structured_edit_detected_by_checksum():
    transcoder = StructuredTextTranscoder()
    data = transcoder.encode(make_state(user="alice"))
    tampered = data.replace(b"alice", b"alicf")

    with pytest.raises(DecodingError) as exc_info:
        transcoder.decode(tampered)

    assert exc_info.value.code is ErrorCode.DECODING_CHECKSUM_MISMATCH


@pytest.mark.parametrize("data", [
    b"",
    b"not xml at all",
    b"<other format='1'/>",
    b"<session format='9'><value t='dict'/></session>",
    b"<session format='1'></session>",
    b"<session format='1'><value t='dict'/></session>",
])
def test_structured_rejects_malformed_documents(data: bytes):
    with pytest.raises(DecodingError):
        StructuredTextTranscoder().decode(data)


def test_decode_rejects_non_bytes():
    for transcoder in TRANSCODERS:
        with pytest.raises(DecodingError):
            transcoder.decode("text")


# =============================================================================
# UNREPRESENTABLE ATTRIBUTES
# =============================================================================
def test_binary_names_unpicklable_attribute():
    transcoder = CompactBinaryTranscoder()

    with pytest.raises(EncodingError) as exc_info:
        transcoder.encode(make_state(user="alice", lock=threading.Lock()))

    error = exc_info.value
    assert error.code is ErrorCode.ENCODING_UNREPRESENTABLE
    assert error.context["path"] == "attributes.lock"


def test_structured_rejects_unsupported_type():
    transcoder = StructuredTextTranscoder()

    with pytest.raises(EncodingError) as exc_info:
        transcoder.encode(make_state(handler=object()))

    assert exc_info.value.context["path"] == "attributes.handler"


def test_structured_rejects_non_string_keys():
    transcoder = StructuredTextTranscoder()

    with pytest.raises(EncodingError) as exc_info:
        transcoder.encode(make_state(scores={1: "a"}))

    assert exc_info.value.context["path"] == "attributes.scores[1]"


@pytest.mark.skipif(
    not hasattr(sys, "get_int_max_str_digits") or sys.get_int_max_str_digits() == 0,
    reason="interpreter has no int/str digit limit",
)
def test_structured_rejects_int_beyond_digit_limit():
    transcoder = StructuredTextTranscoder()
    huge = 10 ** (sys.get_int_max_str_digits() + 1)

    with pytest.raises(EncodingError) as exc_info:
        transcoder.encode(make_state(n=huge))

    assert exc_info.value.code is ErrorCode.ENCODING_UNREPRESENTABLE
    assert exc_info.value.context["path"] == "attributes.n"
    assert isinstance(exc_info.value.cause, ValueError)


def test_structured_rejects_application_classes():
    with pytest.raises(EncodingError):
        StructuredTextTranscoder().encode(make_state(marker=Marker(1)))


# =============================================================================
# TYPE RESOLUTION
# =============================================================================
def _relocated_marker_record() -> bytes:
    """Binary record whose Marker class points at a module that does not exist."""
    body = pickle.dumps(make_state(marker=Marker(7)).to_dict(), protocol=C.PICKLE_PROTOCOL)
    module = Marker.__module__.encode("ascii")
    body = body.replace(module, b"x" * len(module))
    return binary_record(body)


def test_binary_unresolvable_class_raises_decoding_error():
    with pytest.raises(DecodingError) as exc_info:
        CompactBinaryTranscoder().decode(_relocated_marker_record())

    assert exc_info.value.code is ErrorCode.DECODING_UNRESOLVABLE_TYPE


def test_binary_class_loader_hint_resolves_moved_class():
    transcoder = CompactBinaryTranscoder(class_loader_hint=Marker.__module__)

    restored = transcoder.decode(_relocated_marker_record())

    marker = restored.attributes["marker"]
    assert type(marker) is Marker
    assert marker.value == 7
    assert transcoder.class_loader_hint == Marker.__module__


def test_structured_unknown_type_tag_raises_decoding_error():
    root = ET.Element("session", {"format": C.TEXT_FORMAT_VERSION})
    value = ET.SubElement(root, "value", {"t": "dict"})
    ET.SubElement(value, "entry", {"k": "amount", "t": "decimal", "v": "1.50"})
    root.set("crc", str(_crc(value)))
    data = ET.tostring(root, encoding=C.TEXT_CHARSET, xml_declaration=True)

    with pytest.raises(DecodingError) as exc_info:
        StructuredTextTranscoder().decode(data, dict)

    assert exc_info.value.code is ErrorCode.DECODING_UNRESOLVABLE_TYPE


# =============================================================================
# ENCODING DETAILS
# =============================================================================
def test_binary_compresses_large_bodies():
    transcoder = CompactBinaryTranscoder(compression_threshold=256)
    state = make_state(note="session " * 500)

    data = transcoder.encode(state)

    assert data[3] & FLAG_LZ4
    assert len(data) < len(pickle.dumps(state.to_dict(), protocol=C.PICKLE_PROTOCOL))
    assert transcoder.decode(data) == state


def test_binary_leaves_small_bodies_uncompressed():
    data = CompactBinaryTranscoder().encode(make_state(user="alice"))

    assert data[:2] == C.BINARY_MAGIC
    assert not data[3] & FLAG_LZ4


def test_structured_uses_fixed_latin1_charset():
    data = StructuredTextTranscoder().encode(make_state(text="snow ☃ café"))

    assert data.startswith(b"<?xml version='1.0' encoding='iso-8859-1'?>")
    assert b"&#9731;" in data
    assert "café".encode("iso-8859-1") in data
    data.decode("iso-8859-1")


# =============================================================================
# SELECTION
# =============================================================================
def test_create_transcoder_selects_variant():
    binary = create_transcoder(TranscoderConfig(encoding=Encoding.COMPACT_BINARY))
    text = create_transcoder(TranscoderConfig(encoding=Encoding.STRUCTURED_TEXT))

    assert isinstance(binary, CompactBinaryTranscoder)
    assert isinstance(text, StructuredTextTranscoder)
    assert binary.encoding == "compact-binary"
    assert text.encoding == "structured-text"


def test_create_transcoder_accepts_encoding_name():
    transcoder = create_transcoder(TranscoderConfig(encoding="structured-text"))

    assert isinstance(transcoder, StructuredTextTranscoder)


def test_create_transcoder_rejects_unknown_encoding():
    with pytest.raises(ValueError):
        create_transcoder(TranscoderConfig(encoding="yaml"))

"""
Structured Text Transcoder

Verbose, human-inspectable XML encoding of session state, written with a
fixed ISO-8859-1 document charset. Characters outside Latin-1 are emitted
as numeric character references, so every node reads the same text no
matter what its locale default is.

Document Shape:
    <?xml version='1.0' encoding='iso-8859-1'?>
    <session format="1" crc="3735928559">
      <value t="dict">
        <entry k="session_id" t="str" v="node0f3k2..." />
        <entry k="attributes" t="dict">
          <entry k="user" t="str" v="alice" />
          <entry k="count" t="int" v="3" />
        </entry>
        ...
      </value>
    </session>

Scalars live in the v attribute (attribute escaping preserves CR, LF and
TAB). The crc attribute is CRC32 over the canonical serialization of
<value>, which catches corruption that still parses as XML.

Supported value types: none, bool, int, float, str, bytes, list, tuple,
set, dict (string keys), datetime. Strings and dict keys holding characters
XML 1.0 cannot carry (control characters, lone surrogates) are stored
base64-encoded (t="strb64" and the kb64 attribute respectively).
"""

from __future__ import annotations

import base64
import binascii
import re
import xml.etree.ElementTree as ET
import zlib
from datetime import datetime
from typing import Any, Optional, Type, TypeVar

from kvsession.core import constants as C
from kvsession.core.config import Encoding
from kvsession.core.errors import DecodingError, EncodingError
from kvsession.session.state import SessionState
from kvsession.transcoder.base import apply_shape, as_mapping

S = TypeVar("S")

# Characters XML 1.0 cannot carry, even as character references
_XML_ILLEGAL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

_ROOT_TAG = "session"
_VALUE_TAG = "value"
_ITEM_TAG = "item"
_ENTRY_TAG = "entry"


def _crc(value_elem: ET.Element) -> int:
    canonical = ET.tostring(value_elem, encoding="unicode")
    return zlib.crc32(canonical.encode("utf-8"))


def _key_attrib(key: str) -> dict[str, str]:
    if _XML_ILLEGAL.search(key):
        raw = key.encode("utf-8", "surrogatepass")
        return {"kb64": base64.b64encode(raw).decode("ascii")}
    return {"k": key}


def _entry_key(entry: ET.Element) -> Optional[str]:
    encoded = entry.get("kb64")
    if encoded is not None:
        return base64.b64decode(encoded, validate=True).decode("utf-8", "surrogatepass")
    return entry.get("k")


class StructuredTextTranscoder:
    """
    XML session transcoder.

    Usage:
        transcoder = StructuredTextTranscoder()
        data = transcoder.encode(state)
        restored = transcoder.decode(data)
    """

    encoding = Encoding.STRUCTURED_TEXT.value
    charset = C.TEXT_CHARSET

    __slots__ = ()

    # -------------------------------------------------------------------------
    # ENCODE
    # -------------------------------------------------------------------------

    def encode(self, state: Any) -> bytes:
        mapping = as_mapping(state)
        root = ET.Element(_ROOT_TAG, {"format": C.TEXT_FORMAT_VERSION})
        try:
            value_elem = self._encode_value(_VALUE_TAG, dict(mapping), "")
        except EncodingError:
            raise
        except RecursionError as e:
            raise EncodingError.failed(self.encoding, cause=e) from e
        root.set("crc", str(_crc(value_elem)))
        root.append(value_elem)
        return ET.tostring(root, encoding=self.charset, xml_declaration=True)

    def _encode_value(self, tag: str, value: Any, path: str) -> ET.Element:
        elem = ET.Element(tag)

        if value is None:
            elem.set("t", "none")
        elif isinstance(value, bool):
            elem.set("t", "bool")
            elem.set("v", "true" if value else "false")
        elif isinstance(value, int):
            elem.set("t", "int")
            try:
                elem.set("v", str(value))
            except ValueError as e:
                # beyond the interpreter's int/str digit limit
                raise EncodingError.unrepresentable(path or "<root>", "int", self.encoding, cause=e) from e
        elif isinstance(value, float):
            elem.set("t", "float")
            elem.set("v", repr(value))
        elif isinstance(value, str):
            if _XML_ILLEGAL.search(value):
                elem.set("t", "strb64")
                raw = value.encode("utf-8", "surrogatepass")
                elem.set("v", base64.b64encode(raw).decode("ascii"))
            else:
                elem.set("t", "str")
                elem.set("v", value)
        elif isinstance(value, (bytes, bytearray)):
            elem.set("t", "bytes")
            elem.set("v", base64.b64encode(bytes(value)).decode("ascii"))
        elif isinstance(value, datetime):
            elem.set("t", "datetime")
            elem.set("v", value.isoformat())
        elif isinstance(value, dict):
            elem.set("t", "dict")
            for key, item in value.items():
                if not isinstance(key, str):
                    raise EncodingError.unrepresentable(
                        f"{path}[{key!r}]", f"dict key {type(key).__name__}", self.encoding,
                    )
                child_path = f"{path}.{key}" if path else key
                child = self._encode_value(_ENTRY_TAG, item, child_path)
                # key attribute goes first so entries read naturally
                child.attrib = {**_key_attrib(key), **child.attrib}
                elem.append(child)
        elif isinstance(value, (list, tuple, set, frozenset)):
            if isinstance(value, list):
                elem.set("t", "list")
            elif isinstance(value, tuple):
                elem.set("t", "tuple")
            else:
                elem.set("t", "set")
            for index, item in enumerate(value):
                elem.append(self._encode_value(_ITEM_TAG, item, f"{path}[{index}]"))
        else:
            raise EncodingError.unrepresentable(path or "<root>", type(value).__name__, self.encoding)

        return elem

    # -------------------------------------------------------------------------
    # DECODE
    # -------------------------------------------------------------------------

    def decode(self, data: bytes, shape: Type[S] = SessionState) -> S:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DecodingError.malformed(self.encoding, f"expected bytes, got {type(data).__name__}")

        try:
            root = ET.fromstring(bytes(data))
        except ET.ParseError as e:
            raise DecodingError.malformed(self.encoding, f"not well-formed XML: {e}", cause=e) from e

        if root.tag != _ROOT_TAG:
            raise DecodingError.malformed(self.encoding, f"unexpected root <{root.tag}>")
        if root.get("format") != C.TEXT_FORMAT_VERSION:
            raise DecodingError.malformed(self.encoding, f"unsupported format {root.get('format')!r}")

        value_elem = root.find(_VALUE_TAG)
        if value_elem is None or len(root) != 1:
            raise DecodingError.malformed(self.encoding, "expected exactly one <value> element")

        try:
            expected_crc = int(root.get("crc", ""))
        except ValueError as e:
            raise DecodingError.malformed(self.encoding, "missing or invalid crc", cause=e) from e
        actual_crc = _crc(value_elem)
        if actual_crc != expected_crc:
            raise DecodingError.checksum_mismatch(self.encoding, expected_crc, actual_crc)

        try:
            mapping = self._decode_value(value_elem)
        except DecodingError:
            raise
        except (TypeError, ValueError, binascii.Error) as e:
            raise DecodingError.malformed(self.encoding, str(e), cause=e) from e

        return apply_shape(mapping, shape, self.encoding)

    def _decode_value(self, elem: ET.Element) -> Any:
        kind = elem.get("t")
        raw = elem.get("v")

        if kind == "none":
            return None
        if kind == "bool":
            if raw not in ("true", "false"):
                raise ValueError(f"invalid bool {raw!r}")
            return raw == "true"
        if kind == "int":
            return int(raw)
        if kind == "float":
            return float(raw)
        if kind == "str":
            if raw is None:
                raise ValueError("str element without value")
            return raw
        if kind == "strb64":
            return base64.b64decode(raw, validate=True).decode("utf-8", "surrogatepass")
        if kind == "bytes":
            return base64.b64decode(raw, validate=True)
        if kind == "datetime":
            return datetime.fromisoformat(raw)
        if kind == "dict":
            result = {}
            for child in elem:
                key = _entry_key(child)
                if child.tag != _ENTRY_TAG or key is None:
                    raise ValueError(f"unexpected <{child.tag}> inside dict")
                result[key] = self._decode_value(child)
            return result
        if kind in ("list", "tuple", "set"):
            items = []
            for child in elem:
                if child.tag != _ITEM_TAG:
                    raise ValueError(f"unexpected <{child.tag}> inside {kind}")
                items.append(self._decode_value(child))
            if kind == "tuple":
                return tuple(items)
            if kind == "set":
                return set(items)
            return items

        raise DecodingError.unresolvable_type(self.encoding, str(kind))

"""
Transcoder module: Session state <-> bytes.

Variants are chosen once, at construction time, from TranscoderConfig;
nothing downstream inspects which one is active.
"""

from kvsession.core.config import Encoding, TranscoderConfig
from kvsession.transcoder.base import Transcoder
from kvsession.transcoder.binary import CompactBinaryTranscoder
from kvsession.transcoder.structured import StructuredTextTranscoder


def create_transcoder(config: TranscoderConfig) -> Transcoder:
    """
    Build the transcoder named by config.encoding.

    Raises:
        ValueError: unknown encoding
    """
    encoding = Encoding(config.encoding)
    if encoding is Encoding.COMPACT_BINARY:
        return CompactBinaryTranscoder(
            class_loader_hint=config.class_loader_hint,
            compression_threshold=config.compression_threshold,
        )
    if encoding is Encoding.STRUCTURED_TEXT:
        return StructuredTextTranscoder()
    raise ValueError(f"Unsupported encoding: {encoding}")


__all__ = [
    "Transcoder",
    "CompactBinaryTranscoder",
    "StructuredTextTranscoder",
    "create_transcoder",
]

"""Decoding of embedded-source blobs."""

import struct
import zlib

from embedsrc.errors import DecodeFailure
from embedsrc.models import EmbeddedSourcePayload

HEADER_SIZE = 4


def parse_payload(blob: bytes) -> EmbeddedSourcePayload:
    """Split a blob into its declared size and body.

    Args:
        blob: Value of an embedded-source CustomDebugInformation record

    Returns:
        The payload with its declared uncompressed size (0 when stored raw)

    Raises:
        DecodeFailure: If the blob is too short to hold the size header
    """
    if len(blob) < HEADER_SIZE:
        raise DecodeFailure(f"blob is {len(blob)} bytes, expected at least {HEADER_SIZE}")

    (declared_size,) = struct.unpack_from("<I", blob, 0)
    return EmbeddedSourcePayload(declared_size=declared_size, data=bytes(blob[HEADER_SIZE:]))


def inflate_exact(data: bytes, expected_size: int) -> bytes:
    """Inflate a raw Deflate stream that must expand to exactly expected_size bytes.

    Output is capped one byte past the expected size so an oversized
    stream is rejected without being fully materialized.

    Raises:
        DecodeFailure: If the stream is malformed, truncated or the wrong size
    """
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        inflated = decompressor.decompress(data, expected_size + 1)
    except zlib.error as exc:
        raise DecodeFailure(f"invalid deflate stream: {exc}") from exc

    if len(inflated) > expected_size:
        raise DecodeFailure(
            f"deflate stream expands past declared size of {expected_size} bytes"
        )
    if not decompressor.eof:
        raise DecodeFailure("deflate stream is truncated")
    if len(inflated) != expected_size:
        raise DecodeFailure(
            f"deflate stream expands to {len(inflated)} bytes, declared {expected_size}"
        )
    return inflated


def decode_embedded_source(blob: bytes) -> str:
    """Decode an embedded-source blob into source text.

    Args:
        blob: Value of an embedded-source CustomDebugInformation record

    Returns:
        The source text. A leading byte-order mark is kept as U+FEFF.

    Raises:
        DecodeFailure: If the blob is truncated, the compressed data is
            invalid or the wrong size, or the text is not valid UTF-8
    """
    return decode_payload(parse_payload(blob))


def decode_payload(payload: EmbeddedSourcePayload) -> str:
    """Decode an already parsed payload into source text."""
    raw = payload.data
    if payload.compressed:
        raw = inflate_exact(payload.data, payload.declared_size)

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeFailure(f"source is not valid UTF-8: {exc}") from exc

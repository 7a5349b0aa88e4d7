"""Gzip encoding of stored payloads.

Whether a payload is compressed is recorded next to it (blob metadata), so
readers never rely on the current configuration to decide how to decode.
"""

import gzip

from azstore.constants import COMPRESSED_METADATA


def encode_payload(data: bytes) -> bytes:
    """Gzip ``data`` at the best compression level. Empty input stays empty."""
    if not data:
        return b""
    return gzip.compress(data, compresslevel=9, mtime=0)


def decode_payload(data: bytes) -> bytes:
    """Reverse ``encode_payload``."""
    if not data:
        return b""
    return gzip.decompress(data)


def compression_metadata(compressed: bool) -> dict[str, str]:
    """Metadata to store with a payload."""
    return {COMPRESSED_METADATA: "true"} if compressed else {}


def is_compressed(metadata: dict[str, str] | None) -> bool:
    """Return True if the stored metadata marks the payload as compressed.

    Records written before compression existed carry no marker and are read
    as-is.
    """
    if not metadata:
        return False
    return metadata.get(COMPRESSED_METADATA, "").lower() == "true"

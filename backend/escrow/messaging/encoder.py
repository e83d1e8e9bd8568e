"""
MessagePack encoder/decoder for the invocation journal.

Journal documents are dicts of plain values; instruction payloads and
account data travel as msgpack bin.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Error raised when a journal document cannot be decoded."""


MAX_DOCUMENT_LEN = 16 * 1024 * 1024

# Bounds on a single decoded document. Journals are written by this process,
# so anything beyond them is corruption.
_UNPACK_LIMITS = {
    "max_str_len": 4 * 1024,  # base58 keys, enum codes
    "max_bin_len": 64 * 1024,  # instruction data
    "max_array_len": 1_000_000,  # journal entries
    "max_map_len": 64,
    "max_ext_len": 0,
}


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data, use_bin_type=True)


def decode(data: bytes) -> dict[str, Any]:
    """Decode one journal document. Raises DecodeError for oversize, corrupt or non-map input."""
    if len(data) > MAX_DOCUMENT_LEN:
        raise DecodeError(f"document too large: {len(data)} bytes (max {MAX_DOCUMENT_LEN})")
    try:
        document = msgpack.unpackb(data, raw=False, **_UNPACK_LIMITS)
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e
    if not isinstance(document, dict):
        raise DecodeError(f"expected a map at top level, got {type(document).__name__}")
    return document

# backend/media/ebml.py
"""
EBML primitive decoding helpers (pure).

EBML (the container syntax under Matroska/MKV) encodes every element as:
    element id   (vint, 1-4 bytes, length marker kept)
    data size    (vint, 1-8 bytes, length marker stripped)
    payload      (data size bytes, or open-ended for masters of unknown size)

Incomplete input is NOT an error here: helpers return None so an incremental
reader can wait for more bytes. Malformed input raises ElementParseError.
"""

from __future__ import annotations

import struct
from typing import Optional, Tuple

from constants import (
    EBML_MAX_ID_LENGTH,
    EBML_MAX_SIZE_LENGTH,
    SIMPLE_BLOCK_HEADER_BYTES,
)


# Data size whose value bits are all ones: "size unknown" (live streams)
UNKNOWN_SIZE: int = -1


# -------------------------
# Exceptions
# -------------------------

class ElementParseError(ValueError):
    """
    Raised when fragment element data is malformed or truncated.

    The element stream cannot be resynchronized after this error; callers
    must reconnect to the source.
    """


# -------------------------
# Variable-length integers
# -------------------------

def _vint_length(first_byte: int, max_length: int) -> int:
    mask = 0x80
    for length in range(1, max_length + 1):
        if first_byte & mask:
            return length
        mask >>= 1
    raise ElementParseError(
        f"Invalid vint leading byte 0x{first_byte:02x} (max length {max_length})"
    )


def read_element_id(buf: bytes, offset: int = 0) -> Optional[Tuple[int, int]]:
    """
    Decode an element id at `offset`.

    Returns:
        (element_id, encoded_length), or None if `buf` ends before the id does.
        The id keeps its length marker bits, matching published id tables.
    """
    if offset >= len(buf):
        return None
    length = _vint_length(buf[offset], EBML_MAX_ID_LENGTH)
    if offset + length > len(buf):
        return None
    return int.from_bytes(buf[offset:offset + length], "big"), length


def read_element_size(buf: bytes, offset: int = 0) -> Optional[Tuple[int, int]]:
    """
    Decode an element data size at `offset`.

    Returns:
        (size, encoded_length), or None if more bytes are needed.
        size is UNKNOWN_SIZE when all value bits are set.
    """
    if offset >= len(buf):
        return None
    length = _vint_length(buf[offset], EBML_MAX_SIZE_LENGTH)
    if offset + length > len(buf):
        return None

    raw = int.from_bytes(buf[offset:offset + length], "big")
    value_bits = 7 * length
    value = raw & ((1 << value_bits) - 1)
    if value == (1 << value_bits) - 1:
        return UNKNOWN_SIZE, length
    return value, length


# -------------------------
# Leaf value decoding
# -------------------------

def read_unsigned(data: bytes) -> int:
    """Decode a big-endian unsigned integer payload (0-8 bytes)."""
    if len(data) > 8:
        raise ElementParseError(f"Unsigned integer payload too long: {len(data)} bytes")
    return int.from_bytes(data, "big")


def read_float(data: bytes) -> float:
    """Decode a 0, 4 or 8 byte big-endian IEEE float payload."""
    if not data:
        return 0.0
    if len(data) == 4:
        return struct.unpack(">f", data)[0]
    if len(data) == 8:
        return struct.unpack(">d", data)[0]
    raise ElementParseError(f"Float payload must be 4 or 8 bytes, got {len(data)}")


def read_string(data: bytes) -> str:
    """Decode a UTF-8 string payload; trailing NUL padding is dropped."""
    try:
        return data.rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError as e:
        raise ElementParseError(f"Invalid UTF-8 string payload: {e}") from e


def read_simple_block(payload: bytes) -> Tuple[int, int, int, bytes]:
    """
    Split a SimpleBlock payload into its parts.

    Returns:
        (track_number, relative_timecode, flags, frame_data)
    """
    size = read_element_size(payload, 0)
    if size is None or size[0] == UNKNOWN_SIZE:
        raise ElementParseError("SimpleBlock has an invalid track number")
    track_number, track_len = size

    header_end = track_len + SIMPLE_BLOCK_HEADER_BYTES
    if len(payload) < header_end:
        raise ElementParseError(
            f"SimpleBlock payload too short: {len(payload)} bytes"
        )

    timecode, flags = struct.unpack_from(">hB", payload, track_len)
    return track_number, timecode, flags, payload[header_end:]

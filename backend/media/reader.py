"""
Incremental, non-blocking fragment element reader.

Responsibilities:
- Accept raw media bytes as they arrive (feed / close)
- Produce one element at a time, in stream order
- Report readiness without blocking (might_have_next / next_if_available)

Non-responsibilities:
- No fragment bookkeeping (see media.fragment_visitor)
- No frame grouping (see media.chunk_extractor)
- No network I/O: bytes are pushed in by pump() or the caller

Master elements are emitted as metadata and then descended into, so masters
of unknown size (live streams) never have to be buffered whole.
"""

from __future__ import annotations

from typing import AsyncIterable, Optional

from constants import SIMPLE_BLOCK_FLAG_KEYFRAME, SIMPLE_BLOCK_FLAG_LACING
from media.ebml import (
    UNKNOWN_SIZE,
    ElementParseError,
    read_element_id,
    read_element_size,
    read_float,
    read_simple_block,
    read_string,
    read_unsigned,
)
from media.elements import (
    DataElement,
    Frame,
    MediaElement,
    ValueKind,
    lookup_element,
)


class StreamingElementReader:
    """
    Pull-based element sequence over a push-fed byte buffer.

    Not safe for concurrent readers: the buffer position is shared state
    and must be driven by a single logical reader.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._closed = False
        self.elements_read: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> StreamingElementReader:
        """Build a reader over a complete, already-closed byte string."""
        reader = cls()
        reader.feed(data)
        reader.close()
        return reader

    # -------------------------
    # Input side
    # -------------------------

    def feed(self, data: bytes) -> None:
        """Append newly received bytes."""
        if self._closed:
            raise ValueError("Cannot feed a closed reader")
        self._buf.extend(data)

    def close(self) -> None:
        """Mark end of input. Idempotent."""
        self._closed = True

    @property
    def closed(self) -> bool:
        """True once no more input will arrive."""
        return self._closed

    def buffered_bytes(self) -> int:
        """Unconsumed bytes currently held."""
        return len(self._buf)

    # -------------------------
    # Output side
    # -------------------------

    def might_have_next(self) -> bool:
        """
        Non-blocking readiness check.

        False only once input is closed AND fully consumed. True does NOT
        guarantee next_if_available() returns an element right now.
        """
        return not self._closed or bool(self._buf)

    def next_if_available(self) -> Optional[MediaElement]:
        """
        Return the next complete element, or None if more bytes are needed.

        Raises:
            ElementParseError on malformed data, or on a partial element
            left over after close().
        """
        id_result = read_element_id(self._buf, 0)
        if id_result is None:
            return self._incomplete()
        element_id, id_len = id_result

        size_result = read_element_size(self._buf, id_len)
        if size_result is None:
            return self._incomplete()
        size, size_len = size_result
        header_len = id_len + size_len

        element_type, kind = lookup_element(element_id)

        if kind is ValueKind.MASTER:
            # Descend: children follow as separate elements
            del self._buf[:header_len]
            self.elements_read += 1
            return MediaElement(element_id=element_id, element_type=element_type, size=size)

        if size == UNKNOWN_SIZE:
            raise ElementParseError(
                f"Leaf element 0x{element_id:x} ({element_type.value}) has unknown size"
            )

        end = header_len + size
        if len(self._buf) < end:
            return self._incomplete()

        payload = bytes(self._buf[header_len:end])
        del self._buf[:end]
        self.elements_read += 1
        return _decode_leaf(element_id, size, payload)

    def _incomplete(self) -> None:
        if self._closed and self._buf:
            raise ElementParseError(
                f"Truncated element at end of input ({len(self._buf)} bytes left)"
            )
        return None


def _decode_leaf(element_id: int, size: int, payload: bytes) -> MediaElement:
    element_type, kind = lookup_element(element_id)

    if kind is ValueKind.BLOCK:
        track_number, timecode, flags, data = read_simple_block(payload)
        if flags & SIMPLE_BLOCK_FLAG_LACING:
            raise ElementParseError("Laced SimpleBlocks are not supported")
        return DataElement(
            element_id=element_id,
            element_type=element_type,
            size=size,
            frame=Frame(
                track_number=track_number,
                timecode=timecode,
                keyframe=bool(flags & SIMPLE_BLOCK_FLAG_KEYFRAME),
                data=data,
            ),
        )

    if kind is ValueKind.UNSIGNED:
        value: object = read_unsigned(payload)
    elif kind is ValueKind.FLOAT:
        value = read_float(payload)
    elif kind is ValueKind.STRING:
        value = read_string(payload)
    else:
        value = payload

    return MediaElement(
        element_id=element_id,
        element_type=element_type,
        size=size,
        value=value,
    )


async def pump(reader: StreamingElementReader, source: AsyncIterable[bytes]) -> int:
    """
    Feed an async byte source into the reader until it ends.

    The reader is closed when the source ends or fails; a source failure
    is re-raised to the caller.

    Returns:
        Total bytes fed.
    """
    total = 0
    try:
        async for data in source:
            if data:
                reader.feed(data)
                total += len(data)
    finally:
        reader.close()
    return total

"""
Frame-to-chunk extraction (pure, synchronous).

Purpose:
- Pull single frames out of a lazily produced element sequence
- Group up to N consecutive frames into one contiguous byte chunk
  suitable for a streaming transcription call

Invariants:
- Every element pulled is visited by the metadata visitor BEFORE its
  payload type is tested
- Non-payload elements never contribute bytes to a chunk
- The stop signal is consulted before every frame pull; once set, no
  element is consumed
- Never blocks: if the reader has no complete element buffered, the call
  returns what it has
- A chunk is best-effort up to frame_count frames (no padding, no truncation)

Two result styles are offered:
- read_frame / read_chunk return a tagged ChunkResult so callers can tell
  "try again later" (DRAINED) from "source is done" (EXHAUSTED / STOPPED)
- next_frame / next_chunk return raw bytes, where b"" means "nothing now"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from media.elements import ElementVisitor
from media.reader import StreamingElementReader
from media.stop_signal import StopSignal


class ChunkStatus(str, Enum):
    """
    Outcome of an extraction call.

    DATA:
        At least one frame was extracted.
    DRAINED:
        No complete element is buffered right now; more may arrive.
    EXHAUSTED:
        Input is closed and fully consumed.
    STOPPED:
        The stop signal is set.
    """
    DATA = "data"
    DRAINED = "drained"
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ChunkResult:
    """Tagged extraction result. data is b"" unless status is DATA."""
    status: ChunkStatus
    data: bytes = b""
    frame_count: int = 0

    @property
    def has_data(self) -> bool:
        """True if the result carries bytes."""
        return self.status is ChunkStatus.DATA


_STOPPED = ChunkResult(status=ChunkStatus.STOPPED)
_DRAINED = ChunkResult(status=ChunkStatus.DRAINED)
_EXHAUSTED = ChunkResult(status=ChunkStatus.EXHAUSTED)


# -----------------------------------------------------------------------------
# Single frame
# -----------------------------------------------------------------------------

def read_frame(
    reader: StreamingElementReader,
    visitor: ElementVisitor,
    stop_signal: StopSignal,
) -> ChunkResult:
    """
    Extract the next frame payload.

    Visits every element pulled; returns as soon as a payload element is
    found (does not keep draining).

    Raises:
        ElementParseError if the element data is malformed.
    """
    if stop_signal.should_stop():
        return _STOPPED

    while reader.might_have_next():
        element = reader.next_if_available()
        if element is None:
            return _DRAINED

        element.accept(visitor)

        if element.is_payload:
            data = element.frame_data()
            if data:
                return ChunkResult(status=ChunkStatus.DATA, data=data, frame_count=1)

    return _EXHAUSTED


def next_frame(
    reader: StreamingElementReader,
    visitor: ElementVisitor,
    stop_signal: StopSignal,
) -> bytes:
    """
    Extract the next frame payload as bytes.

    Returns b"" if stopped, drained, or exhausted.
    """
    return read_frame(reader, visitor, stop_signal).data


# -----------------------------------------------------------------------------
# Chunk of frames
# -----------------------------------------------------------------------------

def read_chunk(
    reader: StreamingElementReader,
    visitor: ElementVisitor,
    stop_signal: StopSignal,
    frame_count: int,
) -> ChunkResult:
    """
    Extract up to frame_count frames and concatenate them in order.

    Stops early at the first empty frame result. If any frames were
    collected the result is DATA; otherwise it carries the reason nothing
    was collected.

    Raises:
        ValueError if frame_count < 1.
        ElementParseError if the element data is malformed.
    """
    if frame_count < 1:
        raise ValueError("frame_count must be >= 1")

    frames: list[bytes] = []
    last = _DRAINED
    for _ in range(frame_count):
        last = read_frame(reader, visitor, stop_signal)
        if not last.has_data:
            break
        frames.append(last.data)

    if not frames:
        return last

    return ChunkResult(
        status=ChunkStatus.DATA,
        data=b"".join(frames),
        frame_count=len(frames),
    )


def next_chunk(
    reader: StreamingElementReader,
    visitor: ElementVisitor,
    stop_signal: StopSignal,
    frame_count: int,
) -> bytes:
    """
    Extract up to frame_count frames as one contiguous byte string.

    Returns b"" if no frame was collected.
    """
    return read_chunk(reader, visitor, stop_signal, frame_count).data

# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from media.chunk_extractor import (
    ChunkStatus,
    next_chunk,
    next_frame,
    read_chunk,
    read_frame,
)
from media.ebml import ElementParseError
from media.fragment_visitor import FragmentMetadataVisitor
from media.reader import StreamingElementReader
from media.stop_signal import StopSignal

from mkv_fixtures import ebml_header, mkv_stream, pcm_frame, simple_block


def make(data: bytes, *, closed: bool = True):
    reader = StreamingElementReader()
    reader.feed(data)
    if closed:
        reader.close()
    return reader, FragmentMetadataVisitor(), StopSignal()


# ---------------------------------------------------------------------
# next_frame
# ---------------------------------------------------------------------

def test_next_frame_short_circuits_on_first_payload():
    frames = [pcm_frame(1), pcm_frame(2)]
    reader, visitor, stop = make(mkv_stream(frames))

    assert next_frame(reader, visitor, stop) == frames[0]
    # The second block is still unread
    assert visitor.frames_visited == 1
    assert next_frame(reader, visitor, stop) == frames[1]
    assert next_frame(reader, visitor, stop) == b""


def test_next_frame_visits_metadata_before_payload():
    reader, visitor, stop = make(mkv_stream([pcm_frame(1)]))

    next_frame(reader, visitor, stop)

    # Header, tracks and cluster were all visited on the way to the block
    assert visitor.doc_type == "matroska"
    assert visitor.fragments_started == 1
    assert visitor.elements_visited == reader.elements_read


# ---------------------------------------------------------------------
# next_chunk
# ---------------------------------------------------------------------

def test_chunk_concatenates_up_to_frame_count():
    frames = [pcm_frame(i) for i in range(5)]
    reader, visitor, stop = make(mkv_stream(frames))

    assert next_chunk(reader, visitor, stop, 3) == b"".join(frames[:3])
    assert next_chunk(reader, visitor, stop, 3) == b"".join(frames[3:])
    assert next_chunk(reader, visitor, stop, 3) == b""


@pytest.mark.parametrize("available", [1, 2, 3])
def test_fewer_frames_than_requested_returns_what_is_there(available: int):
    frames = [pcm_frame(i) for i in range(available)]
    reader, visitor, stop = make(mkv_stream(frames), closed=False)

    result = read_chunk(reader, visitor, stop, 4)

    assert result.status is ChunkStatus.DATA
    assert result.data == b"".join(frames)
    assert result.frame_count == available


def test_empty_sequence_returns_empty_chunk():
    reader, visitor, stop = make(b"")

    assert next_chunk(reader, visitor, stop, 4) == b""
    assert read_chunk(reader, visitor, stop, 4).status is ChunkStatus.EXHAUSTED


def test_metadata_only_sequence_is_visited_but_yields_no_bytes():
    reader, visitor, stop = make(mkv_stream([]))

    assert next_chunk(reader, visitor, stop, 4) == b""
    assert visitor.elements_visited > 0
    assert visitor.fragments_started == 1
    assert visitor.frames_visited == 0


def test_frame_count_must_be_positive():
    reader, visitor, stop = make(b"")

    with pytest.raises(ValueError):
        next_chunk(reader, visitor, stop, 0)


# ---------------------------------------------------------------------
# Stop signal
# ---------------------------------------------------------------------

def test_stop_signal_consumes_nothing_and_is_idempotent():
    data = mkv_stream([pcm_frame(1)])
    reader, visitor, stop = make(data)
    stop.set()

    for _ in range(3):
        assert next_chunk(reader, visitor, stop, 4) == b""
        assert read_frame(reader, visitor, stop).status is ChunkStatus.STOPPED

    assert reader.elements_read == 0
    assert reader.buffered_bytes() == len(data)
    assert visitor.elements_visited == 0


def test_stop_between_frames_ends_chunking():
    frames = [pcm_frame(1), pcm_frame(2)]
    reader, visitor, stop = make(mkv_stream(frames))

    assert next_frame(reader, visitor, stop) == frames[0]
    stop.set()

    assert read_chunk(reader, visitor, stop, 4).status is ChunkStatus.STOPPED


# ---------------------------------------------------------------------
# Drained vs exhausted
# ---------------------------------------------------------------------

def test_open_reader_without_complete_element_is_drained():
    block = simple_block(pcm_frame(7))
    reader, visitor, stop = make(ebml_header() + block[:4], closed=False)

    result = read_chunk(reader, visitor, stop, 4)
    assert result.status is ChunkStatus.DRAINED
    assert result.data == b""

    reader.feed(block[4:])
    assert next_chunk(reader, visitor, stop, 4) == pcm_frame(7)

    reader.close()
    assert read_chunk(reader, visitor, stop, 4).status is ChunkStatus.EXHAUSTED


def test_malformed_element_propagates():
    reader, visitor, stop = make(simple_block(pcm_frame(1))[:-3])

    with pytest.raises(ElementParseError):
        next_chunk(reader, visitor, stop, 4)

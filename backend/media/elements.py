"""
Fragment element primitives.

Pure data containers only.
No parsing, no buffering, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

from constants import (
    EBML_ID_DOC_TYPE,
    EBML_ID_HEADER,
    MKV_ID_AUDIO,
    MKV_ID_BLOCK_GROUP,
    MKV_ID_CHANNELS,
    MKV_ID_CLUSTER,
    MKV_ID_CODEC_ID,
    MKV_ID_INFO,
    MKV_ID_SAMPLING_FREQUENCY,
    MKV_ID_SEEK_HEAD,
    MKV_ID_SEGMENT,
    MKV_ID_SIMPLE_BLOCK,
    MKV_ID_SIMPLE_TAG,
    MKV_ID_TAG,
    MKV_ID_TAG_NAME,
    MKV_ID_TAG_STRING,
    MKV_ID_TAGS,
    MKV_ID_TIMECODE,
    MKV_ID_TIMECODE_SCALE,
    MKV_ID_TRACK_ENTRY,
    MKV_ID_TRACK_NUMBER,
    MKV_ID_TRACKS,
    MKV_ID_VOID,
)


class ElementType(str, Enum):
    """
    Element types understood by the reader.

    Exactly one type (SIMPLE_BLOCK) carries an audio payload.
    Everything the reader does not recognize is reported as UNKNOWN.
    """

    EBML_HEADER = "EBML_HEADER"
    DOC_TYPE = "DOC_TYPE"
    SEGMENT = "SEGMENT"
    SEEK_HEAD = "SEEK_HEAD"
    INFO = "INFO"
    TIMECODE_SCALE = "TIMECODE_SCALE"
    TRACKS = "TRACKS"
    TRACK_ENTRY = "TRACK_ENTRY"
    TRACK_NUMBER = "TRACK_NUMBER"
    CODEC_ID = "CODEC_ID"
    AUDIO = "AUDIO"
    SAMPLING_FREQUENCY = "SAMPLING_FREQUENCY"
    CHANNELS = "CHANNELS"
    CLUSTER = "CLUSTER"
    TIMECODE = "TIMECODE"
    SIMPLE_BLOCK = "SIMPLE_BLOCK"
    BLOCK_GROUP = "BLOCK_GROUP"
    TAGS = "TAGS"
    TAG = "TAG"
    SIMPLE_TAG = "SIMPLE_TAG"
    TAG_NAME = "TAG_NAME"
    TAG_STRING = "TAG_STRING"
    VOID = "VOID"
    UNKNOWN = "UNKNOWN"


class ValueKind(str, Enum):
    """How a leaf element's payload is decoded."""
    MASTER = "master"
    UNSIGNED = "unsigned"
    FLOAT = "float"
    STRING = "string"
    BINARY = "binary"
    BLOCK = "block"


# element id -> (type, value kind)
ELEMENT_TABLE: dict[int, tuple[ElementType, ValueKind]] = {
    EBML_ID_HEADER: (ElementType.EBML_HEADER, ValueKind.MASTER),
    EBML_ID_DOC_TYPE: (ElementType.DOC_TYPE, ValueKind.STRING),
    MKV_ID_SEGMENT: (ElementType.SEGMENT, ValueKind.MASTER),
    MKV_ID_SEEK_HEAD: (ElementType.SEEK_HEAD, ValueKind.BINARY),
    MKV_ID_INFO: (ElementType.INFO, ValueKind.MASTER),
    MKV_ID_TIMECODE_SCALE: (ElementType.TIMECODE_SCALE, ValueKind.UNSIGNED),
    MKV_ID_TRACKS: (ElementType.TRACKS, ValueKind.MASTER),
    MKV_ID_TRACK_ENTRY: (ElementType.TRACK_ENTRY, ValueKind.MASTER),
    MKV_ID_TRACK_NUMBER: (ElementType.TRACK_NUMBER, ValueKind.UNSIGNED),
    MKV_ID_CODEC_ID: (ElementType.CODEC_ID, ValueKind.STRING),
    MKV_ID_AUDIO: (ElementType.AUDIO, ValueKind.MASTER),
    MKV_ID_SAMPLING_FREQUENCY: (ElementType.SAMPLING_FREQUENCY, ValueKind.FLOAT),
    MKV_ID_CHANNELS: (ElementType.CHANNELS, ValueKind.UNSIGNED),
    MKV_ID_CLUSTER: (ElementType.CLUSTER, ValueKind.MASTER),
    MKV_ID_TIMECODE: (ElementType.TIMECODE, ValueKind.UNSIGNED),
    MKV_ID_SIMPLE_BLOCK: (ElementType.SIMPLE_BLOCK, ValueKind.BLOCK),
    MKV_ID_BLOCK_GROUP: (ElementType.BLOCK_GROUP, ValueKind.MASTER),
    MKV_ID_TAGS: (ElementType.TAGS, ValueKind.MASTER),
    MKV_ID_TAG: (ElementType.TAG, ValueKind.MASTER),
    MKV_ID_SIMPLE_TAG: (ElementType.SIMPLE_TAG, ValueKind.MASTER),
    MKV_ID_TAG_NAME: (ElementType.TAG_NAME, ValueKind.STRING),
    MKV_ID_TAG_STRING: (ElementType.TAG_STRING, ValueKind.STRING),
    MKV_ID_VOID: (ElementType.VOID, ValueKind.BINARY),
}


def lookup_element(element_id: int) -> tuple[ElementType, ValueKind]:
    """Return (type, value kind) for an id; unknown ids are opaque binary."""
    return ELEMENT_TABLE.get(element_id, (ElementType.UNKNOWN, ValueKind.BINARY))


class ElementVisitor(Protocol):
    """Anything that can be handed to MediaElement.accept()."""

    def visit(self, element: MediaElement) -> None:
        ...


@dataclass(frozen=True)
class Frame:
    """
    One audio payload unit carried by a SimpleBlock.

    track_number:
        Track the frame belongs to.
    timecode:
        Timecode relative to the enclosing cluster.
    keyframe:
        SimpleBlock keyframe flag.
    data:
        Raw frame payload bytes, consumed into a chunk and then discarded.
    """
    track_number: int
    timecode: int
    keyframe: bool
    data: bytes


@dataclass(frozen=True)
class MediaElement:
    """
    A metadata element produced by the reader.

    Masters carry value=None; their children follow as separate elements.
    """
    element_id: int
    element_type: ElementType
    size: int
    value: Any = None

    @property
    def is_payload(self) -> bool:
        """True if this element carries an audio frame."""
        return self.element_type is ElementType.SIMPLE_BLOCK

    def accept(self, visitor: ElementVisitor) -> None:
        """Hand this element to a visitor for bookkeeping."""
        visitor.visit(self)

    def frame_data(self) -> bytes:
        """Payload bytes; metadata elements carry none."""
        return b""


@dataclass(frozen=True)
class DataElement(MediaElement):
    """A SimpleBlock element carrying exactly one frame."""
    frame: Optional[Frame] = None

    def frame_data(self) -> bytes:
        """Return the frame payload (empty if the block carried none)."""
        if self.frame is None:
            return b""
        return self.frame.data

"""
Fragment metadata bookkeeping.

Every element pulled from the reader is visited here BEFORE it is tested for
payload type, so fragment boundaries, track info and tags stay current even
when the extractor short-circuits on the first frame.

Non-responsibilities:
- No interpretation of tag values (business logic consumes them via on_tag)
- No frame grouping
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from media.elements import ElementType, MediaElement


TagHook = Callable[[str, str], None]


@dataclass
class TrackInfo:
    """Audio track description collected from the Tracks section."""
    track_number: int = 0
    codec_id: str | None = None
    sampling_frequency: float | None = None
    channels: int | None = None


@dataclass
class FragmentMetadata:
    """
    Mutable bookkeeping for the fragment currently being read.

    A fragment starts at each Cluster element.
    """
    index: int
    timecode: int | None = None
    frame_count: int = 0
    tags: dict[str, str] = field(default_factory=dict)


class FragmentMetadataVisitor:
    """
    Metadata-tracking visitor.

    Tags are collected per fragment; a tag seen before the first cluster
    (stream-level tags) is kept in `stream_tags`.
    """

    def __init__(self, *, on_tag: Optional[TagHook] = None) -> None:
        self._on_tag = on_tag

        self.doc_type: str | None = None
        self.timecode_scale: int | None = None
        self.tracks: dict[int, TrackInfo] = {}
        self.stream_tags: dict[str, str] = {}

        self.fragments_started: int = 0
        self.current_fragment: FragmentMetadata | None = None
        self.previous_fragment: FragmentMetadata | None = None

        self.elements_visited: int = 0
        self.frames_visited: int = 0

        self._pending_track: TrackInfo | None = None
        self._pending_tag_name: str | None = None

    # ------------------------------------------------------------------
    # Visitor entry point
    # ------------------------------------------------------------------

    def visit(self, element: MediaElement) -> None:
        """Update bookkeeping for a single element."""
        self.elements_visited += 1
        etype = element.element_type

        if etype is ElementType.DOC_TYPE:
            self.doc_type = element.value
        elif etype is ElementType.TIMECODE_SCALE:
            self.timecode_scale = element.value

        elif etype is ElementType.TRACK_ENTRY:
            self._pending_track = TrackInfo()
        elif etype is ElementType.TRACK_NUMBER:
            self._track().track_number = element.value
            self.tracks[element.value] = self._track()
        elif etype is ElementType.CODEC_ID:
            self._track().codec_id = element.value
        elif etype is ElementType.SAMPLING_FREQUENCY:
            self._track().sampling_frequency = element.value
        elif etype is ElementType.CHANNELS:
            self._track().channels = element.value

        elif etype is ElementType.CLUSTER:
            self._start_fragment()
        elif etype is ElementType.TIMECODE:
            if self.current_fragment is not None:
                self.current_fragment.timecode = element.value

        elif etype is ElementType.SIMPLE_TAG:
            self._pending_tag_name = None
        elif etype is ElementType.TAG_NAME:
            self._pending_tag_name = element.value
        elif etype is ElementType.TAG_STRING:
            self._record_tag(element.value)

        elif element.is_payload:
            self.frames_visited += 1
            if self.current_fragment is not None:
                self.current_fragment.frame_count += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def tag(self, name: str) -> str | None:
        """Latest value for a tag name (current fragment first, then stream)."""
        if self.current_fragment is not None and name in self.current_fragment.tags:
            return self.current_fragment.tags[name]
        return self.stream_tags.get(name)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _track(self) -> TrackInfo:
        if self._pending_track is None:
            # TrackEntry children without a TrackEntry: keep them anyway
            self._pending_track = TrackInfo()
        return self._pending_track

    def _start_fragment(self) -> None:
        self.previous_fragment = self.current_fragment
        self.current_fragment = FragmentMetadata(index=self.fragments_started)
        self.fragments_started += 1

    def _record_tag(self, value: str) -> None:
        name = self._pending_tag_name
        if name is None:
            return
        self._pending_tag_name = None

        if self.current_fragment is not None:
            self.current_fragment.tags[name] = value
        else:
            self.stream_tags[name] = value

        if self._on_tag is not None:
            self._on_tag(name, value)

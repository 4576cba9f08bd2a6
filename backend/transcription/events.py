"""
Inbound notifications from the transcription service.

Events carry data only (no behavior).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StreamResponse:
    """
    Per-attempt response metadata, delivered once the service accepts
    the stream and before any transcript events.
    """
    session_id: str | None
    request_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TranscriptResult:
    """
    One incremental transcription result.

    is_partial:
        True while the service may still revise the text of this result_id.
    """
    result_id: str
    text: str
    is_partial: bool
    start_time: float | None = None
    end_time: float | None = None


@dataclass(frozen=True)
class TranscriptEvent:
    """A stream event carrying zero or more results."""
    results: tuple[TranscriptResult, ...] = ()

    def final_text(self) -> str:
        """Concatenated text of the non-partial results."""
        return " ".join(r.text for r in self.results if not r.is_partial and r.text)

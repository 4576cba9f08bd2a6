"""
Streaming transcription request descriptor.

Rules:
- Requests are immutable.
- The session id is the ONLY field that changes between retry attempts;
  language, encoding and sample rate are carried over verbatim.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace

from constants import (
    DEFAULT_LANGUAGE_CODE,
    DEFAULT_MEDIA_ENCODING,
    DEFAULT_SAMPLE_RATE_HZ,
    MAX_SAMPLE_RATE_HZ,
    MIN_SAMPLE_RATE_HZ,
)


def new_session_id() -> str:
    """Return a globally unique session identifier."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class StreamTranscriptionRequest:
    """
    Immutable descriptor for one streaming transcription session.

    session_id:
        None until the retry client assigns one; regenerated per attempt.
    """
    language_code: str = DEFAULT_LANGUAGE_CODE
    media_encoding: str = DEFAULT_MEDIA_ENCODING
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ
    session_id: str | None = None

    def with_new_session(self) -> StreamTranscriptionRequest:
        """Copy of this request with a freshly generated session id."""
        return replace(self, session_id=new_session_id())

    def validate(self) -> None:
        """
        Raise ValueError if the request can never be sent.

        Checked once, before the first attempt.
        """
        if not self.language_code:
            raise ValueError("language_code must be non-empty")
        if not self.media_encoding:
            raise ValueError("media_encoding must be non-empty")
        if not MIN_SAMPLE_RATE_HZ <= self.sample_rate_hz <= MAX_SAMPLE_RATE_HZ:
            raise ValueError(
                f"sample_rate_hz must be in [{MIN_SAMPLE_RATE_HZ}, {MAX_SAMPLE_RATE_HZ}], "
                f"got {self.sample_rate_hz}"
            )

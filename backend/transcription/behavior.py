"""
Caller behavior contract for streaming transcription.

Key invariants:
- on_response / on_stream may be called many times, across retry attempts.
- on_error / on_complete are final: at most one of them is invoked, at most
  once per top-level call, after retries are exhausted or success occurs.
- An exception raised from on_stream never tears down the stream.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from transcription.events import StreamResponse, TranscriptEvent


class StreamTranscriptionBehavior(ABC):
    """
    Hooks invoked by TranscribeStreamingRetryClient.

    Implementations must not block: hooks run on the event loop.
    """

    @abstractmethod
    def on_response(self, response: StreamResponse) -> None:
        """Called when an attempt's stream is accepted by the service."""
        raise NotImplementedError

    @abstractmethod
    def on_stream(self, event: TranscriptEvent) -> None:
        """Called for every incremental transcription event."""
        raise NotImplementedError

    @abstractmethod
    def on_error(self, error: BaseException) -> None:
        """Final: the call chain failed with `error`."""
        raise NotImplementedError

    @abstractmethod
    def on_complete(self) -> None:
        """Final: the call chain completed successfully."""
        raise NotImplementedError

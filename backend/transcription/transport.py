"""
Streaming sink contract (interface only).

No retries, no backoff, no metrics live here: the transport performs exactly
one attempt per call and reports its outcome by returning or raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterable, Protocol

from transcription.events import StreamResponse, TranscriptEvent
from transcription.request import StreamTranscriptionRequest


class StreamResponseHandler(Protocol):
    """Inbound notification channels of one attempt."""

    def on_response(self, response: StreamResponse) -> None:
        ...

    def on_event(self, event: TranscriptEvent) -> None:
        ...

    def on_error(self, error: BaseException) -> None:
        ...

    def on_complete(self) -> None:
        ...


class TranscriptionTransport(ABC):
    """
    One bidirectional streaming call per start_stream_transcription().

    Contract:
    - Subscribe to `publisher` (async for) and send every chunk.
    - Deliver response metadata and stream events to `handler` before
      returning.
    - Return normally on success; raise on failure, ideally a
      TranscriptionTransportError chained to its cause.
    - Rely on the underlying network stack's own timeouts.
    """

    @abstractmethod
    async def start_stream_transcription(
        self,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        handler: StreamResponseHandler,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources. In-flight calls fail."""
        raise NotImplementedError

# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring
"""
In-memory collaborators for the transcription tests.
"""

from __future__ import annotations

from typing import AsyncIterable, AsyncIterator, Callable

from transcription.behavior import StreamTranscriptionBehavior
from transcription.events import StreamResponse, TranscriptEvent, TranscriptResult
from transcription.request import StreamTranscriptionRequest
from transcription.transport import StreamResponseHandler, TranscriptionTransport


class RecordingBehavior(StreamTranscriptionBehavior):
    def __init__(self, *, raise_on_stream: bool = False, raise_on_final: bool = False) -> None:
        self.responses: list[StreamResponse] = []
        self.events: list[TranscriptEvent] = []
        self.errors: list[BaseException] = []
        self.completions = 0
        self._raise_on_stream = raise_on_stream
        self._raise_on_final = raise_on_final

    def on_response(self, response: StreamResponse) -> None:
        self.responses.append(response)

    def on_stream(self, event: TranscriptEvent) -> None:
        self.events.append(event)
        if self._raise_on_stream:
            raise RuntimeError("hook blew up")

    def on_error(self, error: BaseException) -> None:
        self.errors.append(error)
        if self._raise_on_final:
            raise RuntimeError("on_error blew up")

    def on_complete(self) -> None:
        self.completions += 1
        if self._raise_on_final:
            raise RuntimeError("on_complete blew up")


def transcript(text: str, *, partial: bool = False) -> TranscriptEvent:
    return TranscriptEvent(
        results=(TranscriptResult(result_id="r1", text=text, is_partial=partial),)
    )


class ListPublisher:
    """Re-subscribable publisher that resumes where the last subscriber stopped."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)
        self.subscriptions = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        self.subscriptions += 1
        return self._gen()

    async def _gen(self) -> AsyncIterator[bytes]:
        while self._chunks:
            yield self._chunks.pop(0)


# A step receives (request, chunks received so far) and either returns or raises
Step = Callable[[StreamTranscriptionRequest, list[bytes]], None]


class ScriptedTransport(TranscriptionTransport):
    """
    Fake transport that consumes the publisher, then plays the next scripted
    step. Once the script runs out every attempt succeeds.
    """

    def __init__(self, steps: list[Step] | None = None, *, events_per_attempt: int = 1) -> None:
        self.steps = list(steps or [])
        self.events_per_attempt = events_per_attempt
        self.requests: list[StreamTranscriptionRequest] = []
        self.publishers: list[AsyncIterable[bytes]] = []
        self.chunks: list[list[bytes]] = []
        self.closed = False

    async def start_stream_transcription(
        self,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        handler: StreamResponseHandler,
    ) -> None:
        self.requests.append(request)
        self.publishers.append(publisher)

        received = [chunk async for chunk in publisher]
        self.chunks.append(received)

        handler.on_response(StreamResponse(session_id=request.session_id))
        for i in range(self.events_per_attempt):
            handler.on_event(transcript(f"attempt {len(self.requests)} event {i}"))

        if self.steps:
            self.steps.pop(0)(request, received)

    async def close(self) -> None:
        self.closed = True


def fail_with(error: BaseException) -> Step:
    def step(request: StreamTranscriptionRequest, received: list[bytes]) -> None:  # pylint: disable=unused-argument
        raise error
    return step


def succeed(request: StreamTranscriptionRequest, received: list[bytes]) -> None:  # pylint: disable=unused-argument
    return None

"""
Media-to-transcription bridge for a single logical session.

Owns:
- one StreamingElementReader (fed from the media byte source)
- one FragmentMetadataVisitor
- one StopSignal
- one FrameChunkPublisher (handed unchanged to every retry attempt)

Runs the source pump and the retry client's call chain concurrently and
returns once the terminal outcome is known.

Non-responsibilities:
- No credential resolution / endpoint discovery (transport is injected)
- No interpretation of fragment tags (on_tag hook is caller-supplied)
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterable, Callable, Optional

from config import AppConfig
from constants import CHUNK_FRAME_COUNT_DEFAULT
from media.fragment_visitor import FragmentMetadataVisitor, TagHook
from media.publisher import FrameChunkPublisher
from media.reader import StreamingElementReader, pump
from media.stop_signal import StopSignal
from observability.logger import log_event, now_ms, set_enabled
from transcription.behavior import StreamTranscriptionBehavior
from transcription.request import StreamTranscriptionRequest
from transcription.retry_client import TranscribeStreamingRetryClient


# (tag name, tag value, stop signal) -> None
TagPolicy = Callable[[str, str, StopSignal], None]


class MediaTranscriptionBridge:
    """Relays one media source into one transcription call chain."""

    def __init__(
        self,
        *,
        client: TranscribeStreamingRetryClient,
        request: StreamTranscriptionRequest,
        behavior: StreamTranscriptionBehavior,
        frame_count: int = CHUNK_FRAME_COUNT_DEFAULT,
        tag_policy: Optional[TagPolicy] = None,
        stop_signal: Optional[StopSignal] = None,
    ) -> None:
        self._client = client
        self._request = request
        self._behavior = behavior

        self.stop_signal = stop_signal if stop_signal is not None else StopSignal()
        self.reader = StreamingElementReader()
        self.visitor = FragmentMetadataVisitor(on_tag=self._tag_hook(tag_policy))
        self.publisher = FrameChunkPublisher(
            reader=self.reader,
            visitor=self.visitor,
            stop_signal=self.stop_signal,
            frame_count=frame_count,
        )
        self._running = False

    @classmethod
    def from_config(
        cls,
        *,
        client: TranscribeStreamingRetryClient,
        behavior: StreamTranscriptionBehavior,
        config: AppConfig,
        tag_policy: Optional[TagPolicy] = None,
    ) -> MediaTranscriptionBridge:
        """
        Build a bridge whose request and chunking come from AppConfig.

        Also applies the process-wide JSON log switch.
        """
        set_enabled(config.enable_json_logs)
        return cls(
            client=client,
            request=StreamTranscriptionRequest(
                language_code=config.language_code,
                media_encoding=config.media_encoding,
                sample_rate_hz=config.sample_rate_hz,
            ),
            behavior=behavior,
            frame_count=config.chunk_frame_count,
            tag_policy=tag_policy,
        )

    def _tag_hook(self, tag_policy: Optional[TagPolicy]) -> Optional[TagHook]:
        if tag_policy is None:
            return None

        def hook(name: str, value: str) -> None:
            tag_policy(name, value, self.stop_signal)

        return hook

    async def run(self, source: AsyncIterable[bytes]) -> None:
        """
        Relay `source` until the call chain reaches a terminal outcome.

        Raises:
            RuntimeError if the bridge is already running.
            The terminal failure of the call chain, if it failed.
        """
        if self._running:
            raise RuntimeError("MediaTranscriptionBridge is already running")
        self._running = True

        log_event({
            "ts_ms": now_ms(),
            "event_type": "BRIDGE_STARTED",
            "language_code": self._request.language_code,
            "sample_rate_hz": self._request.sample_rate_hz,
        })

        pump_task = asyncio.create_task(pump(self.reader, source))
        try:
            terminal = self._client.start_stream_transcription(
                self._request, self.publisher, self._behavior
            )
            await terminal
        finally:
            if not pump_task.done():
                pump_task.cancel()
            results = await asyncio.gather(pump_task, return_exceptions=True)
            self._running = False
            log_event({
                "ts_ms": now_ms(),
                "event_type": "BRIDGE_FINISHED",
                "fragments": self.visitor.fragments_started,
                "frames": self.visitor.frames_visited,
                "chunks": self.publisher.chunks_published,
                "bytes": self.publisher.bytes_published,
                "source_error": _describe_source_result(results[0]),
            })


def _describe_source_result(result: object) -> str | None:
    if isinstance(result, asyncio.CancelledError) or not isinstance(result, BaseException):
        return None
    return repr(result)

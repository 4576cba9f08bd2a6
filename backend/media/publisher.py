"""
Chunk publisher: the outbound audio source of a streaming call.

Bridges the pull-based extractor to the push-based transport. The publisher
is re-subscribable: every `async for` starts a fresh iteration that resumes
from the reader's current position, so the same publisher object can be
handed to each retry attempt.

Non-responsibilities:
- No retry decisions
- No transport I/O
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from constants import CHUNK_FRAME_COUNT_DEFAULT, PUBLISHER_DRAIN_POLL_MS
from media.chunk_extractor import ChunkStatus, read_chunk
from media.elements import ElementVisitor
from media.reader import StreamingElementReader
from media.stop_signal import StopSignal


class FrameChunkPublisher:
    """
    Async iterable of byte chunks.

    Ends when the stop signal is set or the reader is exhausted; waits
    (without blocking the event loop) while the reader is drained.
    """

    def __init__(
        self,
        *,
        reader: StreamingElementReader,
        visitor: ElementVisitor,
        stop_signal: StopSignal,
        frame_count: int = CHUNK_FRAME_COUNT_DEFAULT,
        drain_poll_s: float = PUBLISHER_DRAIN_POLL_MS / 1000.0,
    ) -> None:
        if frame_count < 1:
            raise ValueError("frame_count must be >= 1")
        self._reader = reader
        self._visitor = visitor
        self._stop_signal = stop_signal
        self._frame_count = frame_count
        self._drain_poll_s = drain_poll_s

        self.subscriptions: int = 0
        self.chunks_published: int = 0
        self.bytes_published: int = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        self.subscriptions += 1
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[bytes]:
        while True:
            result = read_chunk(
                self._reader,
                self._visitor,
                self._stop_signal,
                self._frame_count,
            )

            if result.status is ChunkStatus.DATA:
                self.chunks_published += 1
                self.bytes_published += len(result.data)
                yield result.data
            elif result.status is ChunkStatus.DRAINED:
                await asyncio.sleep(self._drain_poll_s)
            else:
                return

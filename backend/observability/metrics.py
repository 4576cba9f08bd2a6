"""
Metric records for the transcription call chain.

Every record is a single JSONL event written through observability.logger:
- METRIC        named numeric value (e.g. transcribe_stream_error 0 / 1)
- METRIC_TIMER  duration of a timed block, tagged with how the block ended

Durations come from the monotonic clock; ts_ms stays wall-clock so events
line up with the rest of the log.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from observability.logger import log_event, now_ms


# Metrics collaborator contract: (metric name, numeric value)
MetricsSink = Callable[[str, float], None]


def record_metric(
    name: str,
    value: float,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Default MetricsSink: one METRIC event per call.

    Safe for concurrent use: each call produces exactly one line.
    """
    log_event({
        "ts_ms": now_ms(),
        "event_type": "METRIC",
        "metric": name,
        "value": value,
        "session_id": session_id,
        "details": details or {},
    })


@dataclass
class Stopwatch:
    """Monotonic stopwatch for one timed block."""
    name: str
    started_ns: int = field(default_factory=time.monotonic_ns)

    def elapsed_ms(self) -> int:
        return (time.monotonic_ns() - self.started_ns) // 1_000_000


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[Stopwatch]:
    """
    Time a block and emit exactly one METRIC_TIMER event when it exits.

    The event is written whether the block returns, raises, or is
    cancelled; `outcome` records which ("ok", "error", "cancelled") and
    the exception is re-raised unchanged.

    Usage:
        with timed("transcribe_attempt_duration", session_id=request.session_id):
            await transport.start_stream_transcription(...)
    """
    watch = Stopwatch(name)
    outcome = "ok"
    error: str | None = None
    try:
        yield watch
    except BaseException as e:
        outcome = "cancelled" if isinstance(e, asyncio.CancelledError) else "error"
        error = type(e).__name__
        raise
    finally:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": watch.elapsed_ms(),
            "outcome": outcome,
            "error_type": error,
            "session_id": session_id,
            "details": details or {},
        })

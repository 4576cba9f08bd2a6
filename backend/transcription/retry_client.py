"""
Resilient streaming transcription client.

Wraps a TranscriptionTransport and drives one call chain per
start_stream_transcription():

    INIT ──> STREAMING ──success──> COMPLETED
                 │
                 └─failure─> retriable? ──yes──> RETRY_WAIT ──> STREAMING (new session id)
                                 │
                                 └─no / exhausted / closed──> FAILED

Guarantees:
- Exactly one attempt in flight per call chain; retries are sequential.
- Every retry gets a fresh session id; all other request fields are kept.
- The terminal future is resolved exactly once (success or last failure).
- The caller's on_complete / on_error hook fires exactly once, before the
  terminal future resolves.
- Exactly one transcribe_stream_error metric per call chain
  (0 = completed, 1 = failed); each attempt also emits a duration timer.
- Backoff is a non-blocking asyncio.sleep; cancelling the driver during
  backoff fails the chain with the failure that triggered the retry.

Non-responsibilities:
- No transport I/O (delegated to the transport)
- No validation that the publisher can be re-subscribed (caller's job)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, AsyncIterable, Optional

from config import AppConfig
from constants import (
    METRIC_VALUE_FAILURE,
    METRIC_VALUE_SUCCESS,
    TRANSCRIBE_ATTEMPT_DURATION_METRIC,
    TRANSCRIBE_MAX_ATTEMPTS_DEFAULT,
    TRANSCRIBE_RETRY_DELAY_MS,
    TRANSCRIBE_STREAM_ERROR_METRIC,
)
from observability.logger import log_event, now_ms
from observability.metrics import MetricsSink, record_metric, timed
from transcription.behavior import StreamTranscriptionBehavior
from transcription.errors import StreamInterruptedError
from transcription.request import StreamTranscriptionRequest
from transcription.response_handler import ResponseHandlerAdapter
from transcription.retry import (
    RetryAttempt,
    RetryClassifier,
    attempts_exhausted,
    next_attempt,
)
from transcription.transport import TranscriptionTransport


class ChainState(str, Enum):
    """Lifecycle of one call chain."""
    INIT = "INIT"
    STREAMING = "STREAMING"
    RETRY_WAIT = "RETRY_WAIT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TranscribeStreamingRetryClient:
    """
    Client wrapper that replays retriable streaming failures.

    Usage:
        async with TranscribeStreamingRetryClient(transport) as client:
            await client.start_stream_transcription(request, publisher, behavior)
    """

    def __init__(
        self,
        transport: TranscriptionTransport,
        *,
        metrics: Optional[MetricsSink] = None,
        classifier: Optional[RetryClassifier] = None,
        retry_delay_s: float = TRANSCRIBE_RETRY_DELAY_MS / 1000.0,
        max_attempts: Optional[int] = TRANSCRIBE_MAX_ATTEMPTS_DEFAULT,
    ) -> None:
        if retry_delay_s < 0:
            raise ValueError("retry_delay_s must be >= 0")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 or None")

        self._transport = transport
        self._metrics: MetricsSink = metrics if metrics is not None else record_metric
        self._classifier = classifier if classifier is not None else RetryClassifier()
        self._retry_delay_s = retry_delay_s
        self._max_attempts = max_attempts

        self._drivers: set[asyncio.Task[None]] = set()
        self._closed = False

    @classmethod
    def from_config(
        cls,
        transport: TranscriptionTransport,
        config: AppConfig,
        **kwargs: Any,
    ) -> TranscribeStreamingRetryClient:
        """Build a client with retry settings taken from AppConfig."""
        return cls(
            transport,
            retry_delay_s=config.retry_delay_ms / 1000.0,
            max_attempts=config.max_attempts,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_stream_transcription(
        self,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        behavior: StreamTranscriptionBehavior,
    ) -> asyncio.Future[None]:
        """
        Start a call chain and return its terminal future.

        Must be called from a running event loop.

        Raises:
            ValueError if an argument is missing or the request is invalid.
            RuntimeError if the client is closed.
        """
        if request is None or publisher is None or behavior is None:
            raise ValueError("request, publisher and behavior are required")
        if self._closed:
            raise RuntimeError("TranscribeStreamingRetryClient is closed")
        request.validate()

        loop = asyncio.get_running_loop()
        terminal: asyncio.Future[None] = loop.create_future()

        driver = loop.create_task(
            self._drive(request.with_new_session(), publisher, behavior, terminal)
        )
        self._drivers.add(driver)
        driver.add_done_callback(self._drivers.discard)
        return terminal

    @property
    def in_flight(self) -> int:
        """Number of call chains not yet finished."""
        return len(self._drivers)

    async def close(self) -> None:
        """
        Close the underlying transport.

        In-flight attempts fail through the transport; chains that are
        waiting to retry fail instead of starting a new attempt.
        """
        if self._closed:
            return
        self._closed = True
        log_event({
            "ts_ms": now_ms(),
            "event_type": "TRANSCRIBE_CLIENT_CLOSED",
            "in_flight": len(self._drivers),
        })
        await self._transport.close()

    async def __aenter__(self) -> TranscribeStreamingRetryClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    # ------------------------------------------------------------------
    # Call chain driver
    # ------------------------------------------------------------------

    async def _drive(
        self,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        behavior: StreamTranscriptionBehavior,
        terminal: asyncio.Future[None],
    ) -> None:
        state = ChainState.INIT
        attempt = RetryAttempt()
        last_failure: Optional[BaseException] = None

        try:
            while True:
                state = ChainState.STREAMING
                self._log_attempt("TRANSCRIBE_ATTEMPT_STARTED", request, attempt)

                handler = ResponseHandlerAdapter(behavior, session_id=request.session_id)
                try:
                    with timed(
                        TRANSCRIBE_ATTEMPT_DURATION_METRIC,
                        session_id=request.session_id,
                        details={"attempt": attempt.number},
                    ):
                        await self._transport.start_stream_transcription(
                            request, publisher, handler
                        )
                except asyncio.CancelledError:
                    raise
                except Exception as e:  # pylint: disable=broad-exception-caught
                    last_failure = e
                    retriable = self._classifier.is_retriable(e)
                    self._log_attempt(
                        "TRANSCRIBE_ATTEMPT_FAILED",
                        request,
                        attempt,
                        error=repr(e),
                        retriable=retriable,
                    )

                    if (
                        not retriable
                        or attempts_exhausted(attempt, self._max_attempts)
                        or self._closed
                    ):
                        state = ChainState.FAILED
                        self._fail(terminal, behavior, e, request, attempt)
                        return

                    state = ChainState.RETRY_WAIT
                    self._log_attempt(
                        "TRANSCRIBE_RETRY_SCHEDULED",
                        request,
                        attempt,
                        delay_ms=int(self._retry_delay_s * 1000),
                    )
                    await asyncio.sleep(self._retry_delay_s)

                    if self._closed:
                        state = ChainState.FAILED
                        self._fail(terminal, behavior, e, request, attempt)
                        return

                    attempt = next_attempt(attempt)
                    request = request.with_new_session()
                    continue

                state = ChainState.COMPLETED
                self._complete(terminal, behavior, request, attempt)
                return

        except asyncio.CancelledError:
            if state is ChainState.RETRY_WAIT and last_failure is not None:
                error: BaseException = last_failure
            else:
                error = StreamInterruptedError(
                    f"Call chain interrupted in state {state.value}"
                )
                error.__cause__ = last_failure
            log_event({
                "ts_ms": now_ms(),
                "event_type": "TRANSCRIBE_CHAIN_INTERRUPTED",
                "session_id": request.session_id,
                "state": state.value,
                "attempt": attempt.number,
            })
            self._fail(terminal, behavior, error, request, attempt)
            raise

    # ------------------------------------------------------------------
    # Terminal transitions (write-once)
    # ------------------------------------------------------------------

    def _complete(
        self,
        terminal: asyncio.Future[None],
        behavior: StreamTranscriptionBehavior,
        request: StreamTranscriptionRequest,
        attempt: RetryAttempt,
    ) -> None:
        if terminal.done():
            return

        self._emit_outcome_metric(METRIC_VALUE_SUCCESS, request)
        self._log_attempt("TRANSCRIBE_STREAM_COMPLETED", request, attempt)
        try:
            behavior.on_complete()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log_hook_error("on_complete", request, e)
        finally:
            terminal.set_result(None)

    def _fail(
        self,
        terminal: asyncio.Future[None],
        behavior: StreamTranscriptionBehavior,
        error: BaseException,
        request: StreamTranscriptionRequest,
        attempt: RetryAttempt,
    ) -> None:
        if terminal.done():
            return

        self._emit_outcome_metric(METRIC_VALUE_FAILURE, request)
        self._log_attempt(
            "TRANSCRIBE_STREAM_FAILED",
            request,
            attempt,
            error=repr(error),
        )
        try:
            behavior.on_error(error)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log_hook_error("on_error", request, e)
        finally:
            terminal.set_exception(error)

    def _emit_outcome_metric(self, value: int, request: StreamTranscriptionRequest) -> None:
        # A broken metrics sink must not keep the terminal future open
        try:
            self._metrics(TRANSCRIBE_STREAM_ERROR_METRIC, value)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "METRIC_SINK_ERROR",
                "session_id": request.session_id,
                "metric": TRANSCRIBE_STREAM_ERROR_METRIC,
                "value": value,
                "error": repr(e),
            })

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log_attempt(
        self,
        event_type: str,
        request: StreamTranscriptionRequest,
        attempt: RetryAttempt,
        **fields: Any,
    ) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": event_type,
            "session_id": request.session_id,
            "attempt": attempt.number,
            **fields,
        })

    def _log_hook_error(
        self,
        hook: str,
        request: StreamTranscriptionRequest,
        error: Exception,
    ) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "BEHAVIOR_HOOK_ERROR",
            "session_id": request.session_id,
            "hook": hook,
            "error": repr(error),
        })

"""
Response handler adapter.

Translates the transport's inbound channels into the caller behavior
contract for one attempt.

Rules:
- Response metadata is forwarded as-is.
- Stream events are forwarded inside an isolating boundary: caller hooks
  must not be allowed to fail the pipeline. A hook exception is logged
  and dropped; the retry machinery only ever sees transport failures.
- Transport-level error/complete signals are NOT forwarded. The retry
  client's terminal future is the single source of truth for terminal
  state, so the caller's final hooks fire exactly once per call chain.
"""

from __future__ import annotations

from observability.logger import log_event, now_ms
from transcription.behavior import StreamTranscriptionBehavior
from transcription.events import StreamResponse, TranscriptEvent


class ResponseHandlerAdapter:
    """Per-attempt adapter from transport channels to caller hooks."""

    def __init__(
        self,
        behavior: StreamTranscriptionBehavior,
        *,
        session_id: str | None = None,
    ) -> None:
        self._behavior = behavior
        self._session_id = session_id
        self.events_delivered: int = 0
        self.hook_errors: int = 0

    def on_response(self, response: StreamResponse) -> None:
        """Forward response metadata synchronously."""
        self._behavior.on_response(response)

    def on_event(self, event: TranscriptEvent) -> None:
        """Forward a stream event; hook failures are logged and dropped."""
        try:
            self._behavior.on_stream(event)
            self.events_delivered += 1
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.hook_errors += 1
            log_event({
                "ts_ms": now_ms(),
                "event_type": "STREAM_HOOK_ERROR",
                "session_id": self._session_id,
                "error": repr(e),
            })

    def on_error(self, error: BaseException) -> None:  # pylint: disable=unused-argument
        """Transport-level error: handled by the retry client, not here."""
        return None

    def on_complete(self) -> None:
        """Transport-level completion: handled by the retry client, not here."""
        return None

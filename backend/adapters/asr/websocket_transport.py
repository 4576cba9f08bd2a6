"""
WebSocket streaming transcription transport.

One websocket connection per attempt:
- Request fields travel as query parameters
  (language-code, media-encoding, sample-rate, session-id).
- Audio chunks are sent as binary messages; an empty binary message marks
  end of audio.
- The service answers with JSON text messages:
    {"type": "response",   "session_id": ..., "request_id": ...}
    {"type": "transcript", "results": [{"result_id", "text", "is_partial",
                                        "start_time", "end_time"}, ...]}
    {"type": "error",      "code": ..., "message": ...}
    {"type": "complete"}

Design constraints:
- Exactly one attempt per call; retries belong to TranscribeStreamingRetryClient.
- Every failure is raised as TranscriptionTransportError tagged with an
  ErrorKind and chained to its cause.
- Sending and receiving run concurrently; whichever fails first fails
  the attempt.
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any, AsyncIterable

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)

from config import AppConfig
from constants import WS_CLOSE_TIMEOUT_S, WS_END_OF_AUDIO, WS_OPEN_TIMEOUT_S
from observability.logger import log_event, now_ms
from transcription.errors import (
    ClientRequestError,
    ErrorKind,
    TranscriptionTransportError,
)
from transcription.events import StreamResponse, TranscriptEvent, TranscriptResult
from transcription.request import StreamTranscriptionRequest
from transcription.transport import StreamResponseHandler, TranscriptionTransport


# Service error codes -> kind (anything else is a service-side error)
_SERVICE_ERROR_KINDS: dict[str, ErrorKind] = {
    "BadRequestException": ErrorKind.CLIENT,
    "BadRequest": ErrorKind.CLIENT,
    "LimitExceededException": ErrorKind.THROTTLED,
    "ThrottlingException": ErrorKind.THROTTLED,
    "ServiceUnavailableException": ErrorKind.SERVICE,
    "InternalFailureException": ErrorKind.SERVICE,
}


# =============================================================================
# Pure helpers
# =============================================================================

def classify_transport_exception(exc: BaseException) -> ErrorKind:
    """Map a low-level exception to an ErrorKind."""
    if isinstance(exc, TranscriptionTransportError):
        return exc.kind
    if isinstance(exc, (InvalidURI, ClientRequestError)):
        return ErrorKind.CLIENT
    if isinstance(exc, InvalidStatus):
        status = exc.response.status_code
        if status == 429:
            return ErrorKind.THROTTLED
        if 400 <= status < 500:
            return ErrorKind.CLIENT
        return ErrorKind.SERVICE
    if isinstance(exc, InvalidHandshake):
        return ErrorKind.SERVICE
    if isinstance(exc, (ConnectionClosed, asyncio.TimeoutError, TimeoutError, OSError)):
        return ErrorKind.TRANSIENT_NETWORK
    if isinstance(exc, (ValueError, TypeError)):
        # Bad audio or bad request data: replay cannot help
        return ErrorKind.CLIENT
    return ErrorKind.UNKNOWN


def build_stream_url(endpoint: str, request: StreamTranscriptionRequest) -> str:
    """
    Append request fields to the endpoint as query parameters.

    Raises:
        ClientRequestError if the endpoint is not a ws:// or wss:// URL.
    """
    parsed = urllib.parse.urlparse(endpoint)
    if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
        raise ClientRequestError(f"Invalid websocket endpoint: {endpoint!r}")

    params: dict[str, str] = {
        "language-code": request.language_code,
        "media-encoding": request.media_encoding,
        "sample-rate": str(request.sample_rate_hz),
    }
    if request.session_id is not None:
        params["session-id"] = request.session_id

    existing = urllib.parse.parse_qsl(parsed.query)
    query = urllib.parse.urlencode(existing + list(params.items()))
    return urllib.parse.urlunparse(parsed._replace(query=query))


def decode_message(raw: str | bytes) -> dict[str, Any]:
    """
    Decode one inbound text message.

    Raises:
        TranscriptionTransportError (SERVICE) if the message is not a JSON object.
    """
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise TranscriptionTransportError(
            f"Undecodable service message: {raw!r:.200}", kind=ErrorKind.SERVICE
        ) from e
    if not isinstance(msg, dict):
        raise TranscriptionTransportError(
            f"Service message is not an object: {raw!r:.200}", kind=ErrorKind.SERVICE
        )
    return msg


def decode_transcript_event(msg: dict[str, Any]) -> TranscriptEvent:
    """Build a TranscriptEvent from a decoded "transcript" message."""
    results: list[TranscriptResult] = []
    for item in msg.get("results") or []:
        results.append(
            TranscriptResult(
                result_id=str(item.get("result_id", "")),
                text=str(item.get("text", "")),
                is_partial=bool(item.get("is_partial", False)),
                start_time=item.get("start_time"),
                end_time=item.get("end_time"),
            )
        )
    return TranscriptEvent(results=tuple(results))


def service_error(msg: dict[str, Any]) -> TranscriptionTransportError:
    """Build the failure for a decoded "error" message."""
    code = str(msg.get("code", ""))
    message = str(msg.get("message", "service reported an error"))
    kind = _SERVICE_ERROR_KINDS.get(code, ErrorKind.SERVICE)
    return TranscriptionTransportError(f"{code}: {message}" if code else message, kind=kind)


# =============================================================================
# Transport
# =============================================================================

class WebSocketTranscriptionTransport(TranscriptionTransport):
    """Streaming sink over a websocket connection."""

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str | None = None,
        open_timeout_s: float = WS_OPEN_TIMEOUT_S,
        close_timeout_s: float = WS_CLOSE_TIMEOUT_S,
    ) -> None:
        self._endpoint = endpoint
        self._api_key = api_key
        self._open_timeout_s = open_timeout_s
        self._close_timeout_s = close_timeout_s

        self._connections: set[ClientConnection] = set()
        self._closed = False

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> WebSocketTranscriptionTransport:
        """
        Build a transport for the endpoint and API key in AppConfig.

        Raises:
            ClientRequestError if TRANSCRIBE_ENDPOINT is not set.
        """
        if not config.transcribe_endpoint:
            raise ClientRequestError("TRANSCRIBE_ENDPOINT is not configured")
        return cls(
            config.transcribe_endpoint,
            api_key=config.transcribe_api_key,
            **kwargs,
        )

    async def start_stream_transcription(
        self,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        handler: StreamResponseHandler,
    ) -> None:
        try:
            if self._closed:
                raise ClientRequestError("Transport is closed")
            url = build_stream_url(self._endpoint, request)
            await self._run_attempt(url, request, publisher, handler)
        except TranscriptionTransportError as e:
            handler.on_error(e)
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            error = TranscriptionTransportError(
                str(e) or repr(e), kind=classify_transport_exception(e)
            )
            handler.on_error(error)
            raise error from e

        handler.on_complete()

    async def close(self) -> None:
        self._closed = True
        connections = list(self._connections)
        self._connections.clear()
        for ws in connections:
            await ws.close()

    # -------------------------------------------------------------------------
    # Attempt internals
    # -------------------------------------------------------------------------

    async def _run_attempt(
        self,
        url: str,
        request: StreamTranscriptionRequest,
        publisher: AsyncIterable[bytes],
        handler: StreamResponseHandler,
    ) -> None:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with ws_connect(
            url,
            additional_headers=headers,
            open_timeout=self._open_timeout_s,
            close_timeout=self._close_timeout_s,
        ) as ws:
            self._connections.add(ws)
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_TRANSCRIBE_CONNECTED",
                "session_id": request.session_id,
            })
            try:
                await self._exchange(ws, publisher, handler)
            finally:
                self._connections.discard(ws)

        if self._closed:
            raise TranscriptionTransportError(
                "Transport closed during stream", kind=ErrorKind.TRANSIENT_NETWORK
            )

    async def _exchange(
        self,
        ws: ClientConnection,
        publisher: AsyncIterable[bytes],
        handler: StreamResponseHandler,
    ) -> None:
        sender = asyncio.create_task(self._send_audio(ws, publisher))
        receiver = asyncio.create_task(self._receive(ws, handler))

        pending: set[asyncio.Task[None]] = {sender, receiver}
        try:
            while receiver in pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    exc = task.exception()
                    if exc is not None:
                        raise exc
        finally:
            for task in (sender, receiver):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)

    async def _send_audio(self, ws: ClientConnection, publisher: AsyncIterable[bytes]) -> None:
        async for chunk in publisher:
            await ws.send(chunk)
        await ws.send(WS_END_OF_AUDIO)

    async def _receive(self, ws: ClientConnection, handler: StreamResponseHandler) -> None:
        async for raw in ws:
            if isinstance(raw, bytes):
                # Service never sends binary; ignore
                continue

            msg = decode_message(raw)
            msg_type = msg.get("type")

            if msg_type == "response":
                handler.on_response(
                    StreamResponse(
                        session_id=msg.get("session_id"),
                        request_id=msg.get("request_id"),
                        raw=msg,
                    )
                )
            elif msg_type == "transcript":
                handler.on_event(decode_transcript_event(msg))
            elif msg_type == "error":
                raise service_error(msg)
            elif msg_type == "complete":
                return

        # Closed (even cleanly) without a "complete" message
        raise TranscriptionTransportError(
            "stream closed before completion", kind=ErrorKind.TRANSIENT_NETWORK
        )

# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

import asyncio
import json
import urllib.parse
from typing import AsyncIterator

import pytest
from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.exceptions import (
    ConnectionClosedError,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)
from websockets.http11 import Response

from config import AppConfig
from adapters.asr.websocket_transport import (
    WebSocketTranscriptionTransport,
    build_stream_url,
    classify_transport_exception,
    decode_message,
    decode_transcript_event,
    service_error,
)
from transcription.errors import (
    ClientRequestError,
    ErrorKind,
    TranscriptionTransportError,
)
from transcription.events import StreamResponse, TranscriptEvent
from transcription.request import StreamTranscriptionRequest
from transcription.retry_client import TranscribeStreamingRetryClient

from transcribe_fakes import ListPublisher, RecordingBehavior


REQUEST = StreamTranscriptionRequest(
    language_code="en-US",
    media_encoding="pcm",
    sample_rate_hz=8000,
    session_id="sess-1",
)


def status_error(code: int, reason: str) -> InvalidStatus:
    return InvalidStatus(Response(code, reason, Headers(), b""))


# ---------------------------------------------------------------------
# URL building
# ---------------------------------------------------------------------

def test_build_stream_url_adds_request_fields():
    url = build_stream_url("wss://asr.example.com/v1/stream?region=eu", REQUEST)

    parsed = urllib.parse.urlparse(url)
    query = dict(urllib.parse.parse_qsl(parsed.query))

    assert parsed.scheme == "wss"
    assert parsed.path == "/v1/stream"
    assert query == {
        "region": "eu",
        "language-code": "en-US",
        "media-encoding": "pcm",
        "sample-rate": "8000",
        "session-id": "sess-1",
    }


def test_build_stream_url_without_session():
    url = build_stream_url("ws://localhost:9000/", StreamTranscriptionRequest())

    assert "session-id" not in url


@pytest.mark.parametrize("endpoint", ["https://asr.example.com", "ws://", "not a url"])
def test_build_stream_url_rejects_non_websocket_endpoints(endpoint: str):
    with pytest.raises(ClientRequestError):
        build_stream_url(endpoint, REQUEST)


# ---------------------------------------------------------------------
# Exception classification
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (InvalidURI("nope://", "bad scheme"), ErrorKind.CLIENT),
        (ClientRequestError("bad"), ErrorKind.CLIENT),
        (status_error(429, "Too Many Requests"), ErrorKind.THROTTLED),
        (status_error(403, "Forbidden"), ErrorKind.CLIENT),
        (status_error(503, "Service Unavailable"), ErrorKind.SERVICE),
        (InvalidHandshake("odd handshake"), ErrorKind.SERVICE),
        (ConnectionClosedError(None, None), ErrorKind.TRANSIENT_NETWORK),
        (TimeoutError(), ErrorKind.TRANSIENT_NETWORK),
        (ConnectionRefusedError(), ErrorKind.TRANSIENT_NETWORK),
        (ValueError("bad audio"), ErrorKind.CLIENT),
        (RuntimeError("???"), ErrorKind.UNKNOWN),
        (TranscriptionTransportError("x", kind=ErrorKind.THROTTLED), ErrorKind.THROTTLED),
    ],
)
def test_classify_transport_exception(exc: BaseException, kind: ErrorKind):
    assert classify_transport_exception(exc) is kind


# ---------------------------------------------------------------------
# Message decoding
# ---------------------------------------------------------------------

def test_decode_message_rejects_garbage():
    with pytest.raises(TranscriptionTransportError) as exc_info:
        decode_message("{not json")
    assert exc_info.value.kind is ErrorKind.SERVICE

    with pytest.raises(TranscriptionTransportError):
        decode_message("[1, 2]")


def test_decode_transcript_event():
    event = decode_transcript_event({
        "type": "transcript",
        "results": [
            {"result_id": "r1", "text": "hello", "is_partial": False, "start_time": 0.0, "end_time": 0.4},
            {"result_id": "r2", "text": "wor", "is_partial": True},
        ],
    })

    assert len(event.results) == 2
    assert event.results[0].end_time == 0.4
    assert event.results[1].is_partial
    assert event.final_text() == "hello"
    assert decode_transcript_event({"type": "transcript"}).results == ()


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("BadRequestException", ErrorKind.CLIENT),
        ("LimitExceededException", ErrorKind.THROTTLED),
        ("InternalFailureException", ErrorKind.SERVICE),
        ("SomethingNew", ErrorKind.SERVICE),
    ],
)
def test_service_error_kinds(code: str, kind: ErrorKind):
    error = service_error({"type": "error", "code": code, "message": "boom"})

    assert error.kind is kind
    assert code in str(error)


# ---------------------------------------------------------------------
# End to end against a local websocket server
# ---------------------------------------------------------------------

class RecordingHandler:
    def __init__(self) -> None:
        self.responses: list[StreamResponse] = []
        self.events: list[TranscriptEvent] = []
        self.errors: list[BaseException] = []
        self.completions = 0

    def on_response(self, response: StreamResponse) -> None:
        self.responses.append(response)

    def on_event(self, event: TranscriptEvent) -> None:
        self.events.append(event)

    def on_error(self, error: BaseException) -> None:
        self.errors.append(error)

    def on_complete(self) -> None:
        self.completions += 1


async def chunks(*items: bytes) -> AsyncIterator[bytes]:
    for item in items:
        yield item


def run_against_server(server_replies: list[dict], audio: list[bytes]):
    received: list[bytes] = []
    paths: list[str] = []
    auth: list[str | None] = []
    handler = RecordingHandler()

    async def serve_one(ws: ServerConnection) -> None:
        paths.append(ws.request.path)
        auth.append(ws.request.headers.get("Authorization"))
        async for msg in ws:
            if msg == b"":
                break
            received.append(msg)
        for reply in server_replies:
            await ws.send(json.dumps(reply))

    async def scenario():
        async with serve(serve_one, "127.0.0.1", 0) as server:
            port = next(iter(server.sockets)).getsockname()[1]
            transport = WebSocketTranscriptionTransport(
                f"ws://127.0.0.1:{port}/stream", api_key="secret", open_timeout_s=5.0
            )
            try:
                await transport.start_stream_transcription(REQUEST, chunks(*audio), handler)
            finally:
                await transport.close()

    return scenario, handler, received, paths, auth


def test_stream_round_trip_over_websocket():
    scenario, handler, received, paths, auth = run_against_server(
        [
            {"type": "response", "session_id": "sess-1", "request_id": "req-9"},
            {"type": "transcript", "results": [{"result_id": "r1", "text": "hi", "is_partial": False}]},
            {"type": "complete"},
        ],
        [b"\x01\x02", b"\x03\x04"],
    )

    asyncio.run(scenario())

    assert received == [b"\x01\x02", b"\x03\x04"]
    assert "session-id=sess-1" in paths[0]
    assert auth == ["Bearer secret"]
    assert [r.request_id for r in handler.responses] == ["req-9"]
    assert [e.final_text() for e in handler.events] == ["hi"]
    assert handler.completions == 1
    assert handler.errors == []


def test_service_error_message_fails_the_attempt():
    scenario, handler, _, _, _ = run_against_server(
        [{"type": "error", "code": "BadRequestException", "message": "unsupported rate"}],
        [b"\x00"],
    )

    with pytest.raises(TranscriptionTransportError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.kind is ErrorKind.CLIENT
    assert handler.errors == [exc_info.value]
    assert handler.completions == 0


def test_invalid_endpoint_fails_as_client_error():
    handler = RecordingHandler()
    transport = WebSocketTranscriptionTransport("http://not-a-websocket")

    with pytest.raises(TranscriptionTransportError) as exc_info:
        asyncio.run(transport.start_stream_transcription(REQUEST, chunks(), handler))

    assert exc_info.value.kind is ErrorKind.CLIENT
    assert isinstance(exc_info.value.__cause__, ClientRequestError)
    assert len(handler.errors) == 1


def test_closed_transport_rejects_attempts():
    handler = RecordingHandler()
    transport = WebSocketTranscriptionTransport("ws://127.0.0.1:9/stream")

    async def scenario():
        await transport.close()
        await transport.start_stream_transcription(REQUEST, chunks(), handler)

    with pytest.raises(TranscriptionTransportError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.kind is ErrorKind.CLIENT


def test_clean_close_without_complete_is_a_transient_failure():
    scenario, handler, _, _, _ = run_against_server(
        [{"type": "transcript", "results": [{"result_id": "r1", "text": "par", "is_partial": True}]}],
        [b"\x00"],
    )

    with pytest.raises(TranscriptionTransportError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.kind is ErrorKind.TRANSIENT_NETWORK
    assert handler.errors == [exc_info.value]
    assert handler.completions == 0


def test_server_close_mid_audio_triggers_a_retry():
    paths: list[str] = []
    received: list[bytes] = []
    behavior = RecordingBehavior()
    metrics: list = []

    async def close_first_then_complete(ws: ServerConnection) -> None:
        paths.append(ws.request.path)
        if len(paths) == 1:
            received.append(await ws.recv())
            await ws.close()
            return
        async for msg in ws:
            if msg == b"":
                break
            received.append(msg)
        await ws.send(json.dumps({"type": "complete"}))

    async def scenario():
        async with serve(close_first_then_complete, "127.0.0.1", 0) as server:
            port = next(iter(server.sockets)).getsockname()[1]
            transport = WebSocketTranscriptionTransport(
                f"ws://127.0.0.1:{port}/stream", open_timeout_s=5.0
            )
            client = TranscribeStreamingRetryClient(
                transport,
                metrics=lambda name, value: metrics.append((name, value)),
                retry_delay_s=0.0,
            )
            try:
                future = client.start_stream_transcription(
                    REQUEST, ListPublisher([b"a", b"b", b"c"]), behavior
                )
                await asyncio.wait_for(future, 10.0)
            finally:
                await transport.close()

    asyncio.run(scenario())

    assert len(paths) == 2
    session_ids = [
        dict(urllib.parse.parse_qsl(urllib.parse.urlparse(p).query))["session-id"] for p in paths
    ]
    assert session_ids[0] != session_ids[1]
    assert received[0] == b"a"
    assert behavior.completions == 1
    assert behavior.errors == []
    assert metrics == [("transcribe_stream_error", 0)]


# ---------------------------------------------------------------------
# Construction from AppConfig
# ---------------------------------------------------------------------

def make_config(endpoint: str | None, api_key: str | None = None) -> AppConfig:
    return AppConfig(
        env="test",
        log_level="INFO",
        enable_json_logs=True,
        transcribe_endpoint=endpoint,
        transcribe_api_key=api_key,
        language_code="en-US",
        media_encoding="pcm",
        sample_rate_hz=8000,
        chunk_frame_count=1,
        retry_delay_ms=0,
        max_attempts=3,
    )


def test_from_config_uses_endpoint_and_api_key():
    transport = WebSocketTranscriptionTransport.from_config(
        make_config("wss://asr.example.com/stream", "secret"), open_timeout_s=2.0
    )

    assert transport._endpoint == "wss://asr.example.com/stream"  # pylint: disable=protected-access
    assert transport._api_key == "secret"  # pylint: disable=protected-access
    assert transport._open_timeout_s == 2.0  # pylint: disable=protected-access


def test_from_config_requires_an_endpoint():
    with pytest.raises(ClientRequestError):
        WebSocketTranscriptionTransport.from_config(make_config(None))

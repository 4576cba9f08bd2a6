"""
Transcription failure taxonomy.

Transports raise TranscriptionTransportError for every failed attempt,
tagged with an ErrorKind and chained to the underlying cause
(`raise TranscriptionTransportError(...) from cause`).
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """
    Failure classification produced by the transport layer.

    CLIENT:
        Malformed or unsendable request; replaying it cannot succeed.
    TRANSIENT_NETWORK:
        Connection reset / dropped / timed out.
    THROTTLED:
        The service asked us to slow down.
    SERVICE:
        Service-side error.
    UNKNOWN:
        Transport could not tell.
    """
    CLIENT = "client"
    TRANSIENT_NETWORK = "transient_network"
    THROTTLED = "throttled"
    SERVICE = "service"
    UNKNOWN = "unknown"


class TranscriptionError(Exception):
    """Base class for transcription errors."""


class ClientRequestError(TranscriptionError):
    """
    The request could not be built or sent (bad parameters, bad endpoint).

    Default non-retriable cause type.
    """


class StreamInterruptedError(TranscriptionError):
    """The call chain was cancelled before it reached a terminal outcome."""


class TranscriptionTransportError(TranscriptionError):
    """One streaming attempt failed."""

    def __init__(self, message: str, *, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.kind.value}] {super().__str__()}"

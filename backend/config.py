"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No streaming or retry logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    CHUNK_FRAME_COUNT_DEFAULT,
    DEFAULT_LANGUAGE_CODE,
    DEFAULT_MEDIA_ENCODING,
    DEFAULT_SAMPLE_RATE_HZ,
    TRANSCRIBE_MAX_ATTEMPTS_DEFAULT,
    TRANSCRIBE_RETRY_DELAY_MS,
)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_optional_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None:
        return default
    if raw.strip() in ("", "0"):
        return None
    value = _env_int(name, 0)
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed downward to the
    session bridge and transport.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Transcription service
    # ------------------------------------------------------------------

    transcribe_endpoint: str | None
    transcribe_api_key: str | None

    language_code: str
    media_encoding: str
    sample_rate_hz: int

    # ------------------------------------------------------------------
    # Streaming / retry
    # ------------------------------------------------------------------

    chunk_frame_count: int
    retry_delay_ms: int
    max_attempts: int | None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed or is out of range.
        """
        config = AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            transcribe_endpoint=os.environ.get("TRANSCRIBE_ENDPOINT"),
            transcribe_api_key=os.environ.get("TRANSCRIBE_API_KEY"),
            language_code=os.environ.get("TRANSCRIBE_LANGUAGE_CODE", DEFAULT_LANGUAGE_CODE),
            media_encoding=os.environ.get("TRANSCRIBE_MEDIA_ENCODING", DEFAULT_MEDIA_ENCODING),
            sample_rate_hz=_env_int("TRANSCRIBE_SAMPLE_RATE_HZ", DEFAULT_SAMPLE_RATE_HZ),

            chunk_frame_count=_env_int("CHUNK_FRAME_COUNT", CHUNK_FRAME_COUNT_DEFAULT),
            retry_delay_ms=_env_int("TRANSCRIBE_RETRY_DELAY_MS", TRANSCRIBE_RETRY_DELAY_MS),
            max_attempts=_env_optional_int(
                "TRANSCRIBE_MAX_ATTEMPTS", TRANSCRIBE_MAX_ATTEMPTS_DEFAULT
            ),
        )

        if config.chunk_frame_count < 1:
            raise ValueError("CHUNK_FRAME_COUNT must be >= 1")
        if config.retry_delay_ms < 0:
            raise ValueError("TRANSCRIBE_RETRY_DELAY_MS must be >= 0")

        return config

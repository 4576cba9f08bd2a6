"""
CONSTANTS
---------
Single source of truth for all behavioral values in the bridge.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Optional

# =============================================================================
# Transcription request defaults
# =============================================================================

DEFAULT_LANGUAGE_CODE: Final[str] = "en-US"
DEFAULT_MEDIA_ENCODING: Final[str] = "pcm"
# Telephony audio (PCM16 mono @ 8kHz)
DEFAULT_SAMPLE_RATE_HZ: Final[int] = 8_000

MIN_SAMPLE_RATE_HZ: Final[int] = 8_000
MAX_SAMPLE_RATE_HZ: Final[int] = 48_000

# =============================================================================
# Retry policy
# =============================================================================

TRANSCRIBE_RETRY_DELAY_MS: Final[int] = 500

# None = retry for as long as failures stay retriable
TRANSCRIBE_MAX_ATTEMPTS_DEFAULT: Final[Optional[int]] = None

# =============================================================================
# Chunking
# =============================================================================

CHUNK_FRAME_COUNT_DEFAULT: Final[int] = 4

# Publisher back-off while the source has no complete element buffered
PUBLISHER_DRAIN_POLL_MS: Final[int] = 20

# =============================================================================
# Observability
# =============================================================================

# Exactly one record per top-level call: 0 = completed, 1 = failed
TRANSCRIBE_STREAM_ERROR_METRIC: Final[str] = "transcribe_stream_error"
TRANSCRIBE_ATTEMPT_DURATION_METRIC: Final[str] = "transcribe_attempt_duration"

METRIC_VALUE_SUCCESS: Final[int] = 0
METRIC_VALUE_FAILURE: Final[int] = 1

# =============================================================================
# Websocket transport
# =============================================================================

WS_OPEN_TIMEOUT_S: Final[float] = 10.0
WS_CLOSE_TIMEOUT_S: Final[float] = 5.0

# Zero-length binary message marks end of audio
WS_END_OF_AUDIO: Final[bytes] = b""

# =============================================================================
# EBML / Matroska element ids
# =============================================================================

EBML_ID_HEADER: Final[int] = 0x1A45DFA3
EBML_ID_DOC_TYPE: Final[int] = 0x4282

MKV_ID_SEGMENT: Final[int] = 0x18538067
MKV_ID_SEEK_HEAD: Final[int] = 0x114D9B74
MKV_ID_INFO: Final[int] = 0x1549A966
MKV_ID_TIMECODE_SCALE: Final[int] = 0x2AD7B1

MKV_ID_TRACKS: Final[int] = 0x1654AE6B
MKV_ID_TRACK_ENTRY: Final[int] = 0xAE
MKV_ID_TRACK_NUMBER: Final[int] = 0xD7
MKV_ID_CODEC_ID: Final[int] = 0x86
MKV_ID_AUDIO: Final[int] = 0xE1
MKV_ID_SAMPLING_FREQUENCY: Final[int] = 0xB5
MKV_ID_CHANNELS: Final[int] = 0x9F

MKV_ID_CLUSTER: Final[int] = 0x1F43B675
MKV_ID_TIMECODE: Final[int] = 0xE7
MKV_ID_SIMPLE_BLOCK: Final[int] = 0xA3
MKV_ID_BLOCK_GROUP: Final[int] = 0xA0

MKV_ID_TAGS: Final[int] = 0x1254C367
MKV_ID_TAG: Final[int] = 0x7373
MKV_ID_SIMPLE_TAG: Final[int] = 0x67C8
MKV_ID_TAG_NAME: Final[int] = 0x45A3
MKV_ID_TAG_STRING: Final[int] = 0x4487

MKV_ID_VOID: Final[int] = 0xEC

# Element ids are 1-4 bytes, sizes 1-8 bytes
EBML_MAX_ID_LENGTH: Final[int] = 4
EBML_MAX_SIZE_LENGTH: Final[int] = 8

# SimpleBlock header after the track vint: int16 timecode + flags byte
SIMPLE_BLOCK_HEADER_BYTES: Final[int] = 3
SIMPLE_BLOCK_FLAG_KEYFRAME: Final[int] = 0x80
SIMPLE_BLOCK_FLAG_LACING: Final[int] = 0x06

"""
Stop signal latch.

Set by business logic outside the bridge (for example when a fragment tag
shows the audio belongs to a different call); consulted by the chunk
extractor before every extraction attempt. Once set it never resets.
"""

from __future__ import annotations

import threading


class StopSignal:
    """Thread-safe, set-once boolean latch."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        """Latch the signal. Idempotent."""
        self._event.set()

    def should_stop(self) -> bool:
        """True once set() has been called."""
        return self._event.is_set()

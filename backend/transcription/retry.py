"""
Retry policy helpers.

Purpose:
- Classify attempt failures as retriable or terminal
- Keep the attempt counter immutable
- Let the retry client make deterministic decisions

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from transcription.errors import ClientRequestError, ErrorKind


DEFAULT_NON_RETRIABLE_CAUSES: tuple[type[BaseException], ...] = (ClientRequestError,)
DEFAULT_NON_RETRIABLE_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.CLIENT})


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable attempt counter.

    Semantics:
    - attempt == 0 represents the initial attempt (no retry yet).
    - attempt >= 1 represents the Nth retry.
    """
    attempt: int = 0

    @property
    def number(self) -> int:
        """1-based attempt number, for logs."""
        return self.attempt + 1


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def attempts_exhausted(current: RetryAttempt, max_attempts: Optional[int]) -> bool:
    """
    True if no further attempt is allowed after `current` failed.

    max_attempts counts every attempt including the first; None = unbounded.
    """
    if max_attempts is None:
        return False
    return current.number >= max_attempts


# =============================================================================
# Classification
# =============================================================================

class RetryClassifier:
    """
    Decide whether a failed attempt may be replayed.

    A failure is terminal if:
    - it carries an ErrorKind (`failure.kind`) listed as non-retriable, or
    - its direct cause (`failure.__cause__`, one level only) is exactly one
      of the non-retriable types (subclasses do NOT match).

    Everything else is retriable, including failures with no cause at all.

    The configuration is fixed at construction and safe to share.
    """

    def __init__(
        self,
        *,
        non_retriable_causes: Iterable[type[BaseException]] = DEFAULT_NON_RETRIABLE_CAUSES,
        non_retriable_kinds: Iterable[ErrorKind] = DEFAULT_NON_RETRIABLE_KINDS,
    ) -> None:
        self._non_retriable_causes: frozenset[type[BaseException]] = frozenset(
            non_retriable_causes
        )
        self._non_retriable_kinds: frozenset[ErrorKind] = frozenset(non_retriable_kinds)

    @property
    def non_retriable_causes(self) -> frozenset[type[BaseException]]:
        """Cause types that make a failure terminal."""
        return self._non_retriable_causes

    def is_retriable(self, failure: BaseException) -> bool:
        """Return True if the attempt that raised `failure` may be retried."""
        kind = getattr(failure, "kind", None)
        if isinstance(kind, ErrorKind) and kind in self._non_retriable_kinds:
            return False

        cause = failure.__cause__
        if cause is None:
            return True

        return type(cause) not in self._non_retriable_causes

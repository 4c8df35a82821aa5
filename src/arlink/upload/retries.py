"""Retry decision logic and backoff computation for submissions.

The submitter wraps a whole submission attempt in a bounded loop.  Each
attempt yields an :class:`Outcome`; whether to go round again is decided by
two pure functions:

* :func:`should_retry` -- decide from the error code and attempt counter.
* :func:`compute_backoff` -- compute the delay before the next attempt.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Generic, TypeVar

from arlink.errors import ArlinkError, is_retryable

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one attempt: either a value or an :class:`ArlinkError`."""

    value: T | None = None
    error: ArlinkError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ArlinkError) -> Outcome[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the captured error."""
        if self.error is not None:
            raise self.error
        if self.value is None:
            raise ValueError("Outcome holds neither a value nor an error")
        return self.value


def should_retry(code: str, attempt: int, max_attempts: int) -> bool:
    """Decide whether a failed attempt should be retried.

    Parameters
    ----------
    code:
        :class:`~arlink.errors.ErrorCode` of the failure.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the first one).

    Returns
    -------
    bool
        ``True`` only for retryable codes while attempts remain.
    """
    if attempt + 1 >= max_attempts:
        return False
    return is_retryable(code)


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    factor: float = 1.5,
    maximum: float = 60.0,
    jitter: bool = False,
) -> float:
    """Compute the delay before the next attempt.

    The delay grows geometrically, ``base * factor ** attempt``, capped at
    *maximum*.  With *jitter* the delay is scaled to between 50 % and 100 %
    of its value.

    Examples
    --------
    >>> [compute_backoff(n, base=1.0, factor=2.0) for n in range(3)]
    [1.0, 2.0, 4.0]
    """
    delay = min(base * (factor ** attempt), maximum)
    if jitter:
        delay *= 0.5 + random.random() * 0.5
    return delay

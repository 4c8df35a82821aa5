"""Cooperative cancellation for long-running pipeline operations.

A :class:`CancellationToken` is created by whoever owns the user request and
passed explicitly into every async call.  Components check it only at
defined suspension points (step boundaries and retry delays), never inside a
toolkit call that cannot itself be interrupted.

:meth:`CancellationToken.cancel` may be called from any thread, for example
from an editor's UI thread while the pipeline runs in an event loop.
"""

from __future__ import annotations

import asyncio
import threading
import time

from arlink.errors import ArlinkCancelledError

# Granularity of :meth:`CancellationToken.wait`.
_WAIT_SLICE_SECONDS = 0.05


class CancellationToken:
    """A thread-safe, one-way cancellation flag.

    Once cancelled, a token stays cancelled.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str = "Operation cancelled by user"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation.  Idempotent."""
        if reason:
            self._reason = reason
        self._event.set()

    def raise_if_cancelled(self, step: str | None = None) -> None:
        """Raise :class:`ArlinkCancelledError` if cancellation was requested.

        Parameters
        ----------
        step:
            Name of the step about to start, recorded in the error context.
        """
        if self._event.is_set():
            raise ArlinkCancelledError(
                message=self._reason,
                context={"step": step} if step else None,
            )

    async def wait(self, seconds: float, step: str | None = None) -> None:
        """Sleep for *seconds*, waking early if cancelled.

        Raises
        ------
        ArlinkCancelledError
            As soon as cancellation is observed, before or during the wait.
        """
        self.raise_if_cancelled(step)
        deadline = time.monotonic() + max(seconds, 0.0)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(min(remaining, _WAIT_SLICE_SECONDS))
            self.raise_if_cancelled(step)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"

"""Progress reporting port.

The pipeline reports ``(message, increment_percent)`` at every step
boundary.  Sinks are purely observational: they cannot slow the pipeline
down or abort it (use a :class:`~arlink.cancellation.CancellationToken`).
"""

from __future__ import annotations

from typing import Protocol


class ProgressSink(Protocol):
    def __call__(self, message: str, increment: float) -> None: ...


def null_progress(message: str, increment: float) -> None:
    """Discard progress reports."""


class ProgressRecorder:
    """A sink that remembers every report.  Handy for tests and CLIs."""

    def __init__(self) -> None:
        self.reports: list[tuple[str, float]] = []

    def __call__(self, message: str, increment: float) -> None:
        self.reports.append((message, increment))

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.reports]

    @property
    def total(self) -> float:
        return sum(increment for _, increment in self.reports)

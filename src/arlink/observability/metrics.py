"""Metrics hook protocol and no-op default implementation.

arlink emits counters, timings and gauges at key points of the pipeline.
By default a :class:`NoopMetricsHook` discards them.  Supply any object
satisfying :class:`MetricsHook` through ``ArlinkConfig(metrics=...)`` to
route them to a backend.  :class:`RecordingMetricsHook` keeps them in
memory, for hosts that display upload statistics and for tests.

Emitted metric names:

* ``arlink.requests_total``          -- counter (tags: method, path, status)
* ``arlink.request_duration_ms``     -- timing
* ``arlink.normalize_duration_ms``   -- timing
* ``arlink.price_fallback_total``    -- counter
* ``arlink.submit_attempts_total``   -- counter
* ``arlink.retries_total``           -- counter (tags: reason)
* ``arlink.upload_success_total``    -- counter
* ``arlink.upload_failure_total``    -- counter (tags: code)
* ``arlink.confirmations_total``     -- counter (tags: status)
* ``arlink.pending_entries``         -- gauge
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


class RecordingMetricsHook:
    """Keep every data point in memory.

    ``counters`` and ``timings`` hold ``(name, tags)`` / ``name`` in
    emission order; ``gauges`` holds the latest value per name.
    """

    def __init__(self) -> None:
        self.counters: list[tuple[str, dict[str, str] | None]] = []
        self.timings: list[str] = []
        self.gauges: dict[str, float] = {}

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        for _ in range(value):
            self.counters.append((name, tags))

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.timings.append(name)

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.gauges[name] = value

    def names(self) -> list[str]:
        """Counter names in emission order."""
        return [name for name, _ in self.counters]

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.counters if n == name)

"""Observability: structured logging and metrics hooks for arlink."""

from __future__ import annotations

from .logger import StructuredFormatter, get_logger
from .metrics import MetricsHook, NoopMetricsHook, RecordingMetricsHook

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "RecordingMetricsHook",
    "StructuredFormatter",
    "get_logger",
]

"""Pipeline configuration for arlink.

:class:`ArlinkConfig` is a dataclass that captures every tuneable knob of the
processing-and-upload pipeline.  One instance is shared by the normalizer,
the cost estimator, the submitter, the confirmation tracker and the ledger.

Two module-level constants describe the media the normalizer accepts:

* :data:`STILL_IMAGE_EXTENSIONS` -- extensions probed as still images.
* :data:`VIDEO_EXTENSIONS` -- extensions rejected outright.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Media constants
# ---------------------------------------------------------------------------

STILL_IMAGE_EXTENSIONS: frozenset[str] = frozenset({
    "jpg", "jpeg", "png", "webp", "avif", "gif",
})
"""Extensions the normalizer will open and probe."""

VIDEO_EXTENSIONS: frozenset[str] = frozenset({
    "mp4", "mov", "avi", "mkv", "webm", "wmv", "flv", "m4v",
})
"""Extensions rejected as video without opening the file."""

CANONICAL_FORMAT = "WEBP"
CANONICAL_CONTENT_TYPE = "image/webp"

DEFAULT_GATEWAY_URL = "https://arweave.net"
DEFAULT_RATE_ORACLE_URL = (
    "https://api.coingecko.com/api/v3/simple/price?ids=arweave&vs_currencies=usd"
)
DEFAULT_LEDGER_KEY = "arlink.uploadStats"

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class ArlinkConfig:
    """Complete configuration for the arlink pipeline.

    Every parameter has a default matching the original editor extension's
    defaults, so ``ArlinkConfig()`` is usable as-is.

    Parameters
    ----------
    gateway_url:
        Arweave gateway root used for pricing, anchors, posting and status.
    rate_oracle_url:
        Full URL of the native-to-fiat rate oracle.
    fiat_currency:
        Key looked up in the rate oracle response (``"usd"``).
    image_quality:
        WebP encoder quality, 1-100.
    image_max_width, image_max_height:
        Bounding box for the fit-within resize.
    scratch_dir:
        Directory for processed artifacts.  ``None`` uses
        ``<tempdir>/arlink``.
    preserve_processed_images:
        Keep processed artifacts after a successful upload.
    enable_metadata_tags:
        Attach descriptive tags (app name, creation date, custom tags) to
        each transaction.  Off by default; ``Content-Type`` is always sent.
    custom_tags:
        User tags as ``"name:value"`` strings.  Only sent when
        ``enable_metadata_tags`` is on.
    app_name:
        Value of the ``App-Name`` metadata tag.
    retry_count:
        Number of retries after the first submission attempt.
    retry_delay:
        Delay in seconds before the first retry.
    retry_backoff:
        Multiplier applied to the delay after each retry (>= 1.0).
    retry_max_delay:
        Upper cap (seconds) on the computed delay.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    check_balance_before_upload:
        Compare wallet balance with the estimated cost before submitting.
    bytes_per_native_unit:
        Fallback pricing constant used when the price oracle is down.
        Roughly 1 GiB per AR; distinctly less accurate than the oracle.
    staleness_hours:
        Age after which a still-pending submission is marked failed.
    poll_interval_seconds:
        Delay between confirmation sweeps when running on a timer.
    ledger_key:
        Storage key of the ledger record in the host key/value store.
    metrics:
        Optional :class:`~arlink.observability.MetricsHook`.
    debug_dump_payload:
        Write the (redacted) transaction payload to *stderr* before posting.
    """

    # ── Network ─────────────────────────────────────────────────────────
    gateway_url: str = DEFAULT_GATEWAY_URL

    rate_oracle_url: str = DEFAULT_RATE_ORACLE_URL

    fiat_currency: str = "usd"

    # ── Images ──────────────────────────────────────────────────────────
    image_quality: int = 90

    image_max_width: int = 1876

    image_max_height: int = 1251

    scratch_dir: str | None = None

    preserve_processed_images: bool = False

    # ── Tags ────────────────────────────────────────────────────────────
    enable_metadata_tags: bool = False

    custom_tags: list[str] = field(default_factory=list)

    app_name: str = "arlink"

    # ── Retry ───────────────────────────────────────────────────────────
    retry_count: int = 3

    retry_delay: float = 1.0

    retry_backoff: float = 1.5

    retry_max_delay: float = 60.0

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Cost ────────────────────────────────────────────────────────────
    check_balance_before_upload: bool = True

    bytes_per_native_unit: int = 1024 * 1024 * 1024

    # ── Confirmation ────────────────────────────────────────────────────
    staleness_hours: float = 24.0

    poll_interval_seconds: float = 30.0

    # ── Ledger ──────────────────────────────────────────────────────────
    ledger_key: str = DEFAULT_LEDGER_KEY

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        for name in ("gateway_url", "rate_oracle_url"):
            parsed = urlparse(getattr(self, name))
            if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
                raise ValueError(
                    f"{name} uses insecure HTTP for non-local host '{parsed.hostname}'. "
                    "Use HTTPS, or target localhost for testing."
                )

        if not 1 <= self.image_quality <= 100:
            raise ValueError(f"image_quality must be in [1, 100], got {self.image_quality}")
        if self.image_max_width < 1 or self.image_max_height < 1:
            raise ValueError(
                "image_max_width and image_max_height must be >= 1, got "
                f"{self.image_max_width}x{self.image_max_height}"
            )
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")
        if self.retry_backoff < 1.0:
            raise ValueError(f"retry_backoff must be >= 1.0, got {self.retry_backoff}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.bytes_per_native_unit <= 0:
            raise ValueError(
                f"bytes_per_native_unit must be > 0, got {self.bytes_per_native_unit}"
            )
        if self.staleness_hours <= 0:
            raise ValueError(f"staleness_hours must be > 0, got {self.staleness_hours}")
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be > 0, got {self.poll_interval_seconds}"
            )

    def custom_tag_pairs(self) -> list[tuple[str, str]]:
        """Parse :attr:`custom_tags` into ``(name, value)`` pairs.

        Entries without a colon, or with an empty name or value, are dropped.
        Only the first colon separates name from value.
        """
        pairs: list[tuple[str, str]] = []
        for raw in self.custom_tags:
            name, sep, value = raw.partition(":")
            name, value = name.strip(), value.strip()
            if sep and name and value:
                pairs.append((name, value))
        return pairs

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any], **overrides: Any) -> ArlinkConfig:
        """Build a config from a host settings mapping.

        Unknown keys are ignored so that settings exported by newer versions
        can still be imported.  *overrides* win over *settings*.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in settings.items() if k in known}
        values.update(overrides)
        return cls(**values)

"""Persisted ledger record: decoding, legacy upgrade and aggregation.

Two record shapes exist.  Both are JSON objects holding aggregate fields
and an ordered ``uploads`` list:

* **v1** (legacy) -- ``totalUploads``, ``totalSizeBytes``, ``totalCostAR``;
  entries carry ``date``, ``fileName``, ``sizeBytes``, ``costAR`` and
  ``txId`` only.
* **v2** (current) -- full :class:`~arlink.models.LedgerEntry` dicts.

Both shapes may be stored with camelCase keys, as the editor extension
wrote them, or with the snake_case keys arlink writes.  The shape is
sniffed by field presence: a record with ``totalSizeBytes`` (or
``total_size_bytes``) is v1.  Decoding happens here and nowhere else; the
rest of the package only ever sees v2 entries, and :func:`needs_rewrite`
tells the ledger when to persist them back in arlink's own form.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from arlink.config import CANONICAL_CONTENT_TYPE
from arlink.errors import ArlinkStorageError
from arlink.models import LedgerAggregate, LedgerEntry, SubmissionStatus

LEGACY_MARKERS = ("totalSizeBytes", "total_size_bytes")
UNKNOWN_FIAT = "0.00"

# camelCase v2 entry keys and their snake_case names.
_CAMEL_ENTRY_KEYS = {
    "fileName": "file_name",
    "originalSizeBytes": "original_size_bytes",
    "uploadedSizeBytes": "uploaded_size_bytes",
    "sizeSavingPercent": "size_saving_percent",
    "costAR": "cost_native",
    "estimatedCostUSD": "cost_fiat",
    "txId": "tx_id",
    "contentType": "content_type",
}


def is_legacy(record: Mapping[str, Any]) -> bool:
    return any(marker in record for marker in LEGACY_MARKERS)


def is_camel_case(record: Mapping[str, Any]) -> bool:
    """Whether *record* was written with the extension's camelCase keys."""
    if "totalUploads" in record or "lastUpdateTime" in record:
        return True
    uploads = record.get("uploads") or []
    return any(isinstance(item, Mapping) and "txId" in item for item in uploads)


def needs_rewrite(record: Mapping[str, Any]) -> bool:
    """Whether *record* must be persisted again in the current shape."""
    return is_legacy(record) or is_camel_case(record)


def _pick(old: Mapping[str, Any], camel: str, snake: str, default: Any) -> Any:
    if camel in old:
        return old[camel]
    return old.get(snake, default)


def _decimal(raw: Any) -> Decimal:
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ArlinkStorageError(
            message=f"Invalid decimal amount in ledger: {raw!r}",
            cause=exc,
        ) from exc


def _decimal_str(value: Decimal) -> str:
    return f"{value:f}"


def upgrade_legacy_entry(old: Mapping[str, Any]) -> LedgerEntry:
    """Upgrade one v1 entry, keeping every field it had."""
    size = int(_pick(old, "sizeBytes", "size_bytes", 0) or 0)
    return LedgerEntry(
        date=str(old.get("date", "")),
        file_name=str(_pick(old, "fileName", "file_name", "")),
        original_size_bytes=size,
        uploaded_size_bytes=size,
        size_saving_percent=0.0,
        cost_native=str(_pick(old, "costAR", "cost_ar", "0")),
        cost_fiat=UNKNOWN_FIAT,
        tx_id=str(_pick(old, "txId", "tx_id", "")),
        status=SubmissionStatus.CONFIRMED,
        content_type=CANONICAL_CONTENT_TYPE,
    )


def _decode_current(item: Mapping[str, Any]) -> LedgerEntry:
    data = dict(item)
    for camel, snake in _CAMEL_ENTRY_KEYS.items():
        if camel in data:
            data[snake] = data.pop(camel)
    return LedgerEntry.from_dict(data)


def decode_entries(record: Mapping[str, Any] | None) -> list[LedgerEntry]:
    """Decode a persisted record of either shape into v2 entries.

    Raises
    ------
    ArlinkStorageError
        If the record is not an object or an entry is malformed.
    """
    if record is None:
        return []
    if not isinstance(record, Mapping):
        raise ArlinkStorageError(
            message=f"Ledger record must be an object, got {type(record).__name__}",
        )
    uploads = record.get("uploads") or []
    try:
        if is_legacy(record):
            return [upgrade_legacy_entry(item) for item in uploads]
        return [_decode_current(item) for item in uploads]
    except (KeyError, TypeError, ValueError) as exc:
        raise ArlinkStorageError(
            message=f"Malformed ledger entry: {exc}",
            cause=exc,
        ) from exc


def compute_aggregate(entries: Iterable[LedgerEntry]) -> LedgerAggregate:
    """Sum *entries* into a :class:`LedgerAggregate`."""
    count = 0
    original = 0
    uploaded = 0
    native = Decimal(0)
    fiat = Decimal(0)
    for entry in entries:
        count += 1
        original += entry.original_size_bytes
        uploaded += entry.uploaded_size_bytes
        native += _decimal(entry.cost_native)
        fiat += _decimal(entry.cost_fiat)
    return LedgerAggregate(
        total_uploads=count,
        total_original_size_bytes=original,
        total_uploaded_size_bytes=uploaded,
        total_size_savings=original - uploaded,
        total_cost_native=_decimal_str(native),
        total_cost_fiat=_decimal_str(fiat),
    )


def encode_record(
    entries: list[LedgerEntry],
    now: datetime | None = None,
) -> dict[str, Any]:
    """Encode *entries* as a v2 record with freshly computed aggregates."""
    agg = compute_aggregate(entries)
    return {
        "total_uploads": agg.total_uploads,
        "total_original_size_bytes": agg.total_original_size_bytes,
        "total_uploaded_size_bytes": agg.total_uploaded_size_bytes,
        "total_size_savings": agg.total_size_savings,
        "total_cost_native": agg.total_cost_native,
        "total_cost_fiat": agg.total_cost_fiat,
        "uploads": [entry.to_dict() for entry in entries],
        "last_update_time": (now or datetime.now(timezone.utc)).isoformat(),
    }

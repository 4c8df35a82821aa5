"""The upload ledger.

:class:`Ledger` keeps every accepted submission in a
:class:`~arlink.ledger.storage.KeyValueStore`.  Each mutation is a single
read-modify-write under one lock, so aggregates always equal the sum of the
entries.  Every method is synchronous and may block on the store, so async
callers run mutations through :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from arlink.config import CANONICAL_CONTENT_TYPE, DEFAULT_LEDGER_KEY
from arlink.models import (
    LedgerAggregate,
    LedgerEntry,
    ProcessedArtifact,
    SubmissionHandle,
    SubmissionStatus,
)
from arlink.observability import NoopMetricsHook

from .schema import UNKNOWN_FIAT, compute_aggregate, decode_entries, encode_record, needs_rewrite
from .storage import KeyValueStore


def make_entry(
    artifact: ProcessedArtifact,
    handle: SubmissionHandle,
    *,
    now: datetime | None = None,
) -> LedgerEntry:
    """Build the pending entry for a freshly accepted submission."""
    return LedgerEntry(
        date=(now or datetime.now(timezone.utc)).isoformat(),
        file_name=os.path.basename(artifact.original_path),
        original_size_bytes=artifact.original_size,
        uploaded_size_bytes=artifact.size_bytes,
        size_saving_percent=artifact.reduction_percent,
        cost_native=handle.cost.native_amount,
        cost_fiat=handle.cost.fiat_amount or UNKNOWN_FIAT,
        tx_id=handle.id,
        status=SubmissionStatus.PENDING,
        content_type=CANONICAL_CONTENT_TYPE,
    )


class Ledger:
    """Durable record of submissions with derived totals.

    Parameters
    ----------
    store:
        Persistence port.
    logger:
        Logger for bookkeeping events.
    key:
        Store key holding the record.
    metrics:
        Optional metrics hook; receives the ``arlink.pending_entries``
        gauge after every mutation.
    clock:
        Returns "now" for ``last_update_time``.  Tests may freeze it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        logger: logging.Logger,
        key: str = DEFAULT_LEDGER_KEY,
        metrics: Any | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._log = logger
        self._key = key
        self._metrics = metrics if metrics is not None else NoopMetricsHook()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    # -- internals ----------------------------------------------------------

    def _load(self) -> list[LedgerEntry]:
        record = self._store.get(self._key)
        entries = decode_entries(record)
        if isinstance(record, Mapping) and needs_rewrite(record):
            self._log.info(
                "Upgraded legacy ledger record",
                extra={"extra_fields": {"op": "ledger_upgrade", "entries": len(entries)}},
            )
            self._save(entries)
        return entries

    def _save(self, entries: list[LedgerEntry]) -> None:
        self._store.set(self._key, encode_record(entries, self._clock()))
        pending = sum(1 for e in entries if e.status is SubmissionStatus.PENDING)
        self._metrics.gauge("arlink.pending_entries", pending)

    # -- mutations ----------------------------------------------------------

    def record(self, entry: LedgerEntry) -> LedgerAggregate:
        """Append *entry* and return the new totals."""
        with self._lock:
            entries = self._load()
            entries.append(entry)
            self._save(entries)
            self._log.info(
                "Recorded submission",
                extra={
                    "extra_fields": {
                        "op": "ledger_record",
                        "tx_id": entry.tx_id,
                        "file_name": entry.file_name,
                        "cost_native": entry.cost_native,
                    }
                },
            )
            return compute_aggregate(entries)

    def update_status(self, tx_id: str, status: SubmissionStatus) -> bool:
        """Set the status of the entry for *tx_id*.

        A no-op (returning ``False``) when *tx_id* is unknown, when the entry
        is already terminal, or when the status is unchanged.
        """
        with self._lock:
            entries = self._load()
            for entry in entries:
                if entry.tx_id != tx_id:
                    continue
                if entry.status.terminal or entry.status is status:
                    return False
                previous = entry.status
                entry.status = status
                self._save(entries)
                self._log.info(
                    "Updated submission status",
                    extra={
                        "extra_fields": {
                            "op": "ledger_update_status",
                            "tx_id": tx_id,
                            "from": previous.value,
                            "to": status.value,
                        }
                    },
                )
                return True
            return False

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._save([])
            self._log.info("Cleared ledger", extra={"extra_fields": {"op": "ledger_clear"}})

    # -- queries ------------------------------------------------------------

    def entries(self) -> list[LedgerEntry]:
        with self._lock:
            return self._load()

    def pending(self) -> list[LedgerEntry]:
        return [e for e in self.entries() if e.status is SubmissionStatus.PENDING]

    def get(self, tx_id: str) -> LedgerEntry | None:
        for entry in self.entries():
            if entry.tx_id == tx_id:
                return entry
        return None

    def aggregate(self) -> LedgerAggregate:
        return compute_aggregate(self.entries())

    def snapshot(self) -> dict[str, Any]:
        """The full current record, aggregates included."""
        with self._lock:
            return encode_record(self._load(), self._clock())

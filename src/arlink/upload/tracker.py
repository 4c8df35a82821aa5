"""Confirmation tracking for accepted submissions.

The gateway answers ``GET /tx/{id}/status`` with:

* ``200`` and a JSON body carrying ``block_height`` once the transaction
  is in a block;
* ``202`` while it waits in the mempool;
* ``404`` when the gateway does not (yet) know it.

:class:`ConfirmationTracker` sweeps the ledger's pending entries, promoting
them to ``confirmed`` on inclusion and to ``failed`` once they have been
pending longer than the staleness threshold.  Sweep failures are logged
per entry and never raised.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from arlink.arweave.transport import AsyncGatewayTransport
from arlink.cancellation import CancellationToken
from arlink.config import ArlinkConfig
from arlink.errors import ArlinkCancelledError, ArlinkError, ArlinkTransientError
from arlink.ledger.ledger import Ledger
from arlink.models import LedgerEntry, SubmissionStatus, TransactionStatus
from arlink.observability import NoopMetricsHook

_STATUS_PENDING_CODES = (202, 404)


def _parse_date(iso: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ConfirmationTracker:
    """Poll the gateway for block inclusion of submitted transactions.

    Parameters
    ----------
    transport:
        Gateway transport.
    config:
        Supplies the staleness threshold and poll interval.
    logger:
        Logger for per-entry sweep results.
    """

    def __init__(
        self,
        transport: AsyncGatewayTransport,
        config: ArlinkConfig,
        logger: logging.Logger,
    ) -> None:
        self._transport = transport
        self._config = config
        self._log = logger
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    @property
    def staleness(self) -> timedelta:
        return timedelta(hours=self._config.staleness_hours)

    async def verify_one(self, tx_id: str) -> TransactionStatus:
        """Query the inclusion state of *tx_id*.

        Raises
        ------
        ArlinkTransientError
            On network failure or an unexpected status.
        """
        path = f"/tx/{tx_id}/status"
        response = await self._transport.request(
            "GET", path, expected=(200, *_STATUS_PENDING_CODES),
        )
        if response.status_code in _STATUS_PENDING_CODES:
            return TransactionStatus(False, 0, SubmissionStatus.PENDING)

        try:
            body = response.json()
        except ValueError:
            # Older gateways answer 200 with a plain-text "Pending".
            return TransactionStatus(False, 0, SubmissionStatus.PENDING)

        if not isinstance(body, dict) or body.get("block_height") is None:
            return TransactionStatus(False, 0, SubmissionStatus.PENDING)
        try:
            confirmations = int(body.get("number_of_confirmations", 0))
        except (TypeError, ValueError) as exc:
            raise ArlinkTransientError(
                message=f"Malformed status body for {tx_id}",
                context={"url": path, "method": "GET", "status_code": 200},
                cause=exc,
            ) from exc
        return TransactionStatus(True, confirmations, SubmissionStatus.CONFIRMED)

    def _is_stale(self, entry: LedgerEntry, now: datetime) -> bool:
        submitted = _parse_date(entry.date)
        if submitted is None:
            return False
        return now - submitted > self.staleness

    async def poll_once(
        self,
        ledger: Ledger,
        cancellation: CancellationToken | None = None,
        now: datetime | None = None,
    ) -> dict[str, SubmissionStatus]:
        """Sweep every pending entry once.

        Returns
        -------
        dict
            ``tx_id -> new status`` for entries whose status changed.

        Raises
        ------
        ArlinkCancelledError
            If *cancellation* fires between two entries.  Entries already
            swept keep their new status.
        """
        now = now or datetime.now(timezone.utc)
        changes: dict[str, SubmissionStatus] = {}

        for entry in await asyncio.to_thread(ledger.pending):
            if cancellation is not None:
                cancellation.raise_if_cancelled("poll")
            try:
                result = await self.verify_one(entry.tx_id)
            except ArlinkError as exc:
                self._log.warning(
                    "Status check failed",
                    extra={
                        "extra_fields": {
                            "op": "poll",
                            "tx_id": entry.tx_id,
                            "error": exc.summary(),
                        }
                    },
                )
                continue

            if result.confirmed:
                new_status = SubmissionStatus.CONFIRMED
            elif self._is_stale(entry, now):
                new_status = SubmissionStatus.FAILED
            else:
                continue

            if await asyncio.to_thread(ledger.update_status, entry.tx_id, new_status):
                changes[entry.tx_id] = new_status
                self._metrics.increment(
                    "arlink.confirmations_total", tags={"status": new_status.value},
                )
                self._log.info(
                    "Submission status changed",
                    extra={
                        "extra_fields": {
                            "op": "poll",
                            "tx_id": entry.tx_id,
                            "status": new_status.value,
                            "confirmations": result.confirmations,
                        }
                    },
                )
        return changes

    async def wait_for_confirmation(
        self,
        tx_id: str,
        cancellation: CancellationToken | None = None,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> TransactionStatus:
        """Poll *tx_id* until it is confirmed or *timeout* elapses.

        Cancelling stops local tracking only; the submission itself stands.
        Transient errors are logged and polling continues.

        Returns
        -------
        TransactionStatus
            The last status observed (pending on timeout).
        """
        token = cancellation or CancellationToken()
        interval = self._config.poll_interval_seconds if interval is None else interval
        waited = 0.0
        last = TransactionStatus(False, 0, SubmissionStatus.PENDING)

        while True:
            token.raise_if_cancelled("wait_for_confirmation")
            try:
                last = await self.verify_one(tx_id)
            except ArlinkTransientError as exc:
                self._log.warning(
                    "Status check failed",
                    extra={"extra_fields": {"op": "wait", "tx_id": tx_id, "error": exc.summary()}},
                )
            if last.confirmed:
                return last
            if timeout is not None and waited + interval > timeout:
                return last
            await token.wait(interval, step="wait_for_confirmation")
            waited += interval

    async def run(
        self,
        ledger: Ledger,
        cancellation: CancellationToken,
        interval: float | None = None,
    ) -> None:
        """Sweep *ledger* every *interval* seconds until cancelled.

        Returns normally once *cancellation* fires.
        """
        interval = self._config.poll_interval_seconds if interval is None else interval
        self._log.info(
            "Confirmation tracker started",
            extra={"extra_fields": {"op": "run", "interval": interval}},
        )
        while not cancellation.cancelled:
            try:
                await self.poll_once(ledger, cancellation)
            except ArlinkCancelledError:
                break
            except ArlinkError as exc:
                self._log.error(
                    "Confirmation sweep failed",
                    extra={"extra_fields": {"op": "run", "error": exc.summary()}},
                )
            try:
                await cancellation.wait(interval, step="poll")
            except ArlinkCancelledError:
                break
        self._log.info("Confirmation tracker stopped", extra={"extra_fields": {"op": "run"}})

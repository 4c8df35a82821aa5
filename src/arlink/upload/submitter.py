"""Build, sign and post storage transactions.

:class:`TransactionSubmitter` turns a processed artifact into an accepted
transaction.  One attempt walks the steps of
:class:`~arlink.upload.state.SubmissionStateMachine`; the whole attempt is
wrapped in a bounded retry loop:

1. Run the attempt and capture its :class:`~arlink.upload.retries.Outcome`.
2. On success -- return the :class:`~arlink.models.SubmissionHandle`.
3. On a non-retryable error (invalid input, cancellation) -- raise it.
4. On a retryable error with attempts left -- wait ``delay`` (cancellable),
   multiply the delay by ``retry_backoff`` and go again.
5. On exhaustion -- raise :class:`~arlink.errors.ArlinkUploadFailedError`
   carrying the last cause.

Each retry re-prices, re-anchors and re-signs, so a request that timed out
after the gateway had accepted it can lead to a second accepted
transaction.  There is no idempotency key to prevent that.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from arlink.arweave.pricing import CostEstimator
from arlink.arweave.transport import AsyncGatewayTransport
from arlink.arweave.transaction import build_transaction, transaction_id, wire_payload
from arlink.arweave.wallet import Wallet
from arlink.cancellation import CancellationToken
from arlink.config import CANONICAL_CONTENT_TYPE, ArlinkConfig
from arlink.errors import (
    ArlinkError,
    ArlinkInvalidInputError,
    ArlinkTransientError,
    ArlinkUploadFailedError,
    ErrorCode,
)
from arlink.links import gateway_url
from arlink.models import ProcessedArtifact, SubmissionHandle, SubmissionStep, Tag
from arlink.observability import NoopMetricsHook
from arlink.progress import ProgressSink, null_progress

from .retries import Outcome, compute_backoff, should_retry
from .state import SubmissionStateMachine

# Unpadded base64url; a length of 1 mod 4 cannot be decoded.
_ANCHOR_RE = re.compile(r"[A-Za-z0-9_-]+")


def build_tags(
    config: ArlinkConfig,
    extra: Iterable[Tag] = (),
    *,
    now: datetime | None = None,
) -> list[Tag]:
    """Tags for an image transaction.

    ``Content-Type`` is always first.  Descriptive tags and the configured
    custom tags follow only when ``enable_metadata_tags`` is on.  *extra*
    tags are always appended.
    """
    tags = [Tag("Content-Type", CANONICAL_CONTENT_TYPE)]
    if config.enable_metadata_tags:
        created = (now or datetime.now(timezone.utc)).isoformat()
        tags.extend([
            Tag("App-Name", config.app_name),
            Tag("Content-Type-Original", "image"),
            Tag("Type", "image"),
            Tag("Created-Date", created),
        ])
        tags.extend(Tag(name, value) for name, value in config.custom_tag_pairs())
    tags.extend(extra)
    return tags


class TransactionSubmitter:
    """Submit processed artifacts as signed data transactions.

    Parameters
    ----------
    transport:
        Gateway transport used for the anchor and the post.
    estimator:
        Prices the artifact at submission time.
    config:
        Supplies retry settings and tagging options.
    logger:
        Logger for attempt diagnostics.
    """

    def __init__(
        self,
        transport: AsyncGatewayTransport,
        estimator: CostEstimator,
        config: ArlinkConfig,
        logger: logging.Logger,
    ) -> None:
        self._transport = transport
        self._estimator = estimator
        self._config = config
        self._log = logger
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    async def submit(
        self,
        wallet: Wallet,
        artifact: ProcessedArtifact,
        tags: Iterable[Tag] | None = None,
        cancellation: CancellationToken | None = None,
        progress: ProgressSink = null_progress,
    ) -> SubmissionHandle:
        """Submit *artifact* and return a pending handle.

        Parameters
        ----------
        wallet:
            Signing wallet.  Read-only for the whole call.
        artifact:
            The bytes to store.
        tags:
            Extra tags appended after the standard ones.
        cancellation:
            Checked before every step and during retry delays.
        progress:
            Receives step reports.

        Raises
        ------
        ArlinkInvalidInputError
            The artifact is missing or empty.
        ArlinkCancelledError
            Cancellation was observed before the post was sent.
        ArlinkUploadFailedError
            Every attempt failed with a transient error.
        """
        token = cancellation or CancellationToken()
        all_tags = build_tags(self._config, tags or ())
        max_attempts = 1 + self._config.retry_count
        last_error: ArlinkError | None = None

        for attempt in range(max_attempts):
            self._metrics.increment("arlink.submit_attempts_total")
            outcome = await self._attempt(wallet, artifact, all_tags, token, progress)
            error = outcome.error
            if error is None:
                self._metrics.increment("arlink.upload_success_total")
                return outcome.unwrap()

            last_error = error
            if not error.retryable:
                self._metrics.increment(
                    "arlink.upload_failure_total", tags={"code": ErrorCode(error.code).value},
                )
                raise error

            self._log.warning(
                "Submission attempt failed",
                extra={
                    "extra_fields": {
                        "op": "submit",
                        "path": artifact.path,
                        "attempt": attempt + 1,
                        "max_attempts": max_attempts,
                        "error": error.summary(),
                    }
                },
            )
            if not should_retry(error.code, attempt, max_attempts):
                break

            delay = compute_backoff(
                attempt,
                base=self._config.retry_delay,
                factor=self._config.retry_backoff,
                maximum=self._config.retry_max_delay,
            )
            self._metrics.increment("arlink.retries_total", tags={"reason": ErrorCode(error.code).value})
            progress(f"Upload failed, retrying in {delay:.1f}s...", 0)
            await token.wait(delay, step="retry_delay")

        self._metrics.increment(
            "arlink.upload_failure_total", tags={"code": "UPLOAD_FAILED"},
        )
        last_summary = last_error.summary() if last_error is not None else None
        self._log.error(
            "Submission failed after all attempts",
            extra={
                "extra_fields": {
                    "op": "submit",
                    "path": artifact.path,
                    "attempts": max_attempts,
                    "last_error": last_summary,
                }
            },
        )
        if last_error is not None:
            raise ArlinkUploadFailedError(
                message=f"Upload failed after {max_attempts} attempts: {last_error.message}",
                context={
                    "attempts": max_attempts,
                    "last_error_code": ErrorCode(last_error.code).value,
                },
                cause=last_error,
            ) from last_error
        raise ArlinkUploadFailedError(
            message=f"Upload failed after {max_attempts} attempts",
            context={"attempts": max_attempts},
        )

    async def _attempt(
        self,
        wallet: Wallet,
        artifact: ProcessedArtifact,
        tags: list[Tag],
        token: CancellationToken,
        progress: ProgressSink,
    ) -> Outcome[SubmissionHandle]:
        fsm = SubmissionStateMachine(token)
        try:
            handle = await self._run_steps(fsm, wallet, artifact, tags, progress)
        except ArlinkError as exc:
            fsm.reset()
            return Outcome.failure(exc)
        return Outcome.success(handle)

    async def _fetch_anchor(self) -> str:
        anchor = await self._transport.get_text("/tx_anchor")
        if not _ANCHOR_RE.fullmatch(anchor) or len(anchor) % 4 == 1:
            raise ArlinkTransientError(
                message=f"Malformed anchor response: {anchor[:64]!r}",
                context={"url": "/tx_anchor", "method": "GET"},
            )
        return anchor

    async def _run_steps(
        self,
        fsm: SubmissionStateMachine,
        wallet: Wallet,
        artifact: ProcessedArtifact,
        tags: list[Tag],
        progress: ProgressSink,
    ) -> SubmissionHandle:
        fsm.advance(SubmissionStep.VALIDATING)
        data = await asyncio.to_thread(_read_artifact, artifact.path)

        fsm.advance(SubmissionStep.PRICING)
        progress("Calculating upload cost...", 5)
        quote = await self._estimator.quote(len(data))

        fsm.advance(SubmissionStep.BUILDING)
        progress("Preparing transaction...", 5)
        anchor = await self._fetch_anchor()
        tx = build_transaction(
            wallet, data, anchor=anchor, reward=quote.winston, tags=tags,
        )

        fsm.advance(SubmissionStep.SIGNING)
        progress("Signing transaction...", 5)
        await asyncio.to_thread(tx.sign)
        tx_id = transaction_id(tx)

        fsm.advance(SubmissionStep.POSTING)
        progress("Uploading to Arweave...", 20)
        response = await self._transport.request(
            "POST", "/tx", json=wire_payload(tx), expected=(200, 202),
        )

        fsm.accept()
        progress("Upload complete!", 5)
        self._log.info(
            "Transaction accepted",
            extra={
                "extra_fields": {
                    "op": "submit",
                    "tx_id": tx_id,
                    "status_code": response.status_code,
                    "data_size": len(data),
                    "reward": quote.winston,
                }
            },
        )
        return SubmissionHandle(
            id=tx_id,
            location_uri=gateway_url(tx_id, self._config.gateway_url),
            cost=quote.estimate,
            pending=True,
        )


def _read_artifact(path: str) -> bytes:
    if not os.path.isfile(path):
        raise ArlinkInvalidInputError(
            message=f"Artifact not found: {path}",
            context={"path": path, "reason": "not_found"},
        )
    data = Path(path).read_bytes()
    if not data:
        raise ArlinkInvalidInputError(
            message=f"Artifact is empty: {path}",
            context={"path": path, "reason": "empty"},
        )
    return data

"""Asynchronous pipeline client.

:class:`AsyncArlinkClient` wires the normalizer, cost estimator, submitter,
confirmation tracker and ledger together behind the operations an editor
integration needs.

Usage::

    import asyncio
    from arlink import AsyncArlinkClient, ArlinkConfig, JsonFileStore, StaticCredentials, Wallet

    async def main():
        wallet = Wallet.from_jwk(open("wallet.json").read())
        async with AsyncArlinkClient(
            ArlinkConfig(),
            store=JsonFileStore("~/.arlink/state.json"),
            credentials=StaticCredentials(wallet),
        ) as client:
            result = await client.upload_image("photo.jpg")
            print(result.snippet)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, Union

import httpx

from arlink.arweave.pricing import CostEstimator
from arlink.arweave.transport import AsyncGatewayTransport
from arlink.arweave.wallet import Wallet
from arlink.cancellation import CancellationToken
from arlink.config import ArlinkConfig
from arlink.errors import (
    ArlinkInsufficientBalanceError,
    ArlinkInvalidInputError,
    ArlinkStorageError,
    ArlinkTransientError,
)
from arlink.image import ImageNormalizer, discard_artifact, probe_image
from arlink.ledger import Ledger, MemoryStore, export_csv, export_json, format_summary, make_entry
from arlink.ledger.storage import KeyValueStore
from arlink.links import markdown_link
from arlink.models import (
    BalanceCheck,
    CostEstimate,
    LedgerAggregate,
    ProcessedArtifact,
    SubmissionStatus,
    Tag,
    UploadResult,
)
from arlink.observability import get_logger
from arlink.progress import ProgressSink, null_progress
from arlink.upload import ConfirmationTracker, TransactionSubmitter

BalanceConfirm = Callable[[BalanceCheck], Union[bool, Awaitable[bool]]]


class CredentialSupplier(Protocol):
    """Supplies the signing wallet, or ``None`` if the user has none.

    ``get_credential`` may be a plain or an ``async`` method.
    """

    def get_credential(self) -> Wallet | None | Awaitable[Wallet | None]: ...


class StaticCredentials:
    """A :class:`CredentialSupplier` holding one fixed wallet."""

    def __init__(self, wallet: Wallet | None) -> None:
        self._wallet = wallet

    def get_credential(self) -> Wallet | None:
        return self._wallet


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class AsyncArlinkClient:
    """Asynchronous image upload client.

    Parameters
    ----------
    config:
        Pipeline configuration.  ``None`` builds one from *kwargs*.
    store:
        Ledger persistence.  Defaults to a :class:`MemoryStore`.
    credentials:
        Supplies the signing wallet on demand.
    http_transport:
        Optional ``httpx`` transport (tests use :class:`httpx.MockTransport`).
    logger:
        Root logger; components receive children of it.  Defaults to
        :func:`~arlink.observability.get_logger`.
    **kwargs:
        Forwarded to :class:`ArlinkConfig` when *config* is ``None``.
    """

    def __init__(
        self,
        config: ArlinkConfig | None = None,
        *,
        store: KeyValueStore | None = None,
        credentials: CredentialSupplier | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config if config is not None else ArlinkConfig(**kwargs)
        self._log = logger if logger is not None else get_logger()
        self._credentials = credentials

        cfg = self._config
        self._transport = AsyncGatewayTransport(
            cfg, self._log.getChild("transport"), transport=http_transport,
        )
        self._normalizer = ImageNormalizer(cfg, self._log.getChild("normalizer"), cfg.metrics)
        self._estimator = CostEstimator(self._transport, cfg, self._log.getChild("pricing"))
        self._submitter = TransactionSubmitter(
            self._transport, self._estimator, cfg, self._log.getChild("submitter"),
        )
        self._tracker = ConfirmationTracker(self._transport, cfg, self._log.getChild("tracker"))
        self._ledger = Ledger(
            store if store is not None else MemoryStore(),
            self._log.getChild("ledger"),
            key=cfg.ledger_key,
            metrics=cfg.metrics,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> ArlinkConfig:
        return self._config

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def tracker(self) -> ConfirmationTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def _wallet(self) -> Wallet:
        wallet = None
        if self._credentials is not None:
            wallet = await _resolve(self._credentials.get_credential())
        if wallet is None:
            raise ArlinkInvalidInputError(
                message="No wallet key configured",
                context={"reason": "no_credential"},
            )
        return wallet

    async def wallet_address(self) -> str:
        """Address of the configured wallet."""
        return (await self._wallet()).address

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    async def estimate_cost(self, byte_length: int) -> CostEstimate:
        return await self._estimator.estimate(byte_length)

    async def wallet_balance(self) -> str:
        """Balance of the configured wallet in AR."""
        wallet = await self._wallet()
        return await self._estimator.get_balance(wallet.address)

    async def check_balance(self, byte_length: int) -> BalanceCheck:
        """Whether the wallet can pay for *byte_length* bytes."""
        wallet = await self._wallet()
        return await self._estimator.check_sufficiency(wallet, byte_length)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process_image(self, path: str, **kwargs: Any) -> ProcessedArtifact:
        """Normalize *path* without uploading it.

        Keyword arguments (``quality``, ``max_width``, ``max_height``,
        ``progress``) are forwarded to :meth:`ImageNormalizer.normalize`.
        """
        return await self._normalizer.async_normalize(path, **kwargs)

    async def upload_image(
        self,
        path: str,
        *,
        cancellation: CancellationToken | None = None,
        progress: ProgressSink = null_progress,
        confirm_insufficient: BalanceConfirm | None = None,
        tags: Iterable[Tag] | None = None,
    ) -> UploadResult:
        """Normalize, upload and record one image.

        Parameters
        ----------
        path:
            Source image.
        cancellation:
            Checked between steps and during retry delays.
        progress:
            Receives ``(message, increment)`` reports.
        confirm_insufficient:
            Called when the balance looks too low; return ``True`` to
            continue anyway.  Without it a low balance aborts the upload.
        tags:
            Extra transaction tags.

        Returns
        -------
        UploadResult
            The pending handle, the artifact, the ledger entry and the
            Markdown snippet.

        Raises
        ------
        ArlinkInvalidInputError
            Missing file or no wallet.
        ArlinkUnsupportedMediaError
            Video, animated or unknown media.
        ArlinkProcessingError
            The image could not be processed.
        ArlinkInsufficientBalanceError
            The balance is too low and the caller declined to continue.
        ArlinkCancelledError
            Cancelled before the transaction was posted.
        ArlinkUploadFailedError
            Every submission attempt failed.
        ArlinkStorageError
            The transaction was accepted but the ledger could not record
            it.  ``context`` carries ``tx_id`` and ``location_uri``.
        """
        token = cancellation or CancellationToken()
        warnings: list[str] = []

        progress("Validating image...", 0)
        asset = await asyncio.to_thread(probe_image, path)

        token.raise_if_cancelled("credential")
        wallet = await self._wallet()

        if self._config.check_balance_before_upload:
            token.raise_if_cancelled("balance")
            progress("Checking wallet balance...", 5)
            try:
                check = await self._estimator.check_sufficiency(wallet, asset.size_bytes)
            except ArlinkTransientError as exc:
                self._log.warning(
                    "Balance check failed, continuing",
                    extra={"extra_fields": {"op": "upload", "error": exc.summary()}},
                )
                warnings.append("Could not verify wallet balance")
            else:
                if not check.sufficient:
                    proceed = False
                    if confirm_insufficient is not None:
                        proceed = bool(await _resolve(confirm_insufficient(check)))
                    if not proceed:
                        raise ArlinkInsufficientBalanceError(
                            message=(
                                f"Wallet balance {check.balance} AR is below the "
                                f"estimated cost {check.required} AR"
                            ),
                            context={"balance": check.balance, "required": check.required},
                        )
                    warnings.append(
                        f"Balance {check.balance} AR may be insufficient "
                        f"(est. {check.required} AR)"
                    )

        token.raise_if_cancelled("normalize")
        artifact = await self._normalizer.async_normalize(path, progress=progress)

        recorded = False
        try:
            handle = await self._submitter.submit(
                wallet, artifact, tags=tags, cancellation=token, progress=progress,
            )
            entry = make_entry(artifact, handle)
            try:
                await asyncio.to_thread(self._ledger.record, entry)
            except ArlinkStorageError as exc:
                self._log.error(
                    "Accepted transaction could not be recorded",
                    extra={
                        "extra_fields": {
                            "op": "upload",
                            "tx_id": handle.id,
                            "location_uri": handle.location_uri,
                            "error": exc.summary(),
                        }
                    },
                )
                raise ArlinkStorageError(
                    message=(
                        f"Transaction {handle.id} was accepted but could not be "
                        f"recorded: {exc.message}"
                    ),
                    context={
                        **exc.context,
                        "tx_id": handle.id,
                        "location_uri": handle.location_uri,
                    },
                    cause=exc,
                ) from exc
            recorded = True
        finally:
            if not recorded or not self._config.preserve_processed_images:
                discard_artifact(artifact)

        snippet = markdown_link(handle.location_uri, asset.path)
        self._log.info(
            "Image uploaded",
            extra={
                "extra_fields": {
                    "op": "upload",
                    "tx_id": handle.id,
                    "file_name": entry.file_name,
                    "reduction_percent": round(artifact.reduction_percent, 2),
                }
            },
        )
        return UploadResult(
            handle=handle,
            artifact=artifact,
            entry=entry,
            snippet=snippet,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Confirmation and statistics
    # ------------------------------------------------------------------

    async def poll_pending(
        self,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, SubmissionStatus]:
        """Sweep pending ledger entries once."""
        return await self._tracker.poll_once(self._ledger, cancellation)

    def statistics(self) -> LedgerAggregate:
        return self._ledger.aggregate()

    def statistics_report(self, recent: int = 10) -> str:
        """Markdown report of totals and the most recent uploads."""
        return format_summary(
            self._ledger.aggregate(), self._ledger.entries(), recent,
            currency=self._config.fiat_currency,
        )

    def export_statistics(self, fmt: str = "json") -> str:
        """Export the ledger as ``"json"`` or ``"csv"`` text."""
        fmt = fmt.lower()
        if fmt == "csv":
            return export_csv(self._ledger.entries(), currency=self._config.fiat_currency)
        if fmt == "json":
            return export_json(self._ledger.snapshot())
        raise ArlinkInvalidInputError(
            message=f"Unknown export format {fmt!r}; expected 'json' or 'csv'",
            context={"reason": "bad_format"},
        )

    def clear_statistics(self) -> None:
        self._ledger.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP transport."""
        await self._transport.close()

    async def __aenter__(self) -> AsyncArlinkClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

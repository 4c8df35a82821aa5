"""arlink -- Optimize images and store them permanently on Arweave.

Public re-exports
-----------------

* **Client:** :class:`AsyncArlinkClient`
* **Configuration:** :class:`ArlinkConfig`
* **Errors:** Every :class:`ArlinkError` subclass and :class:`ErrorCode`
* **Models:** All result dataclasses and enums
* **Building blocks:** the normalizer, estimator, submitter, tracker and
  ledger, for hosts that wire their own pipeline

Usage::

    from arlink import AsyncArlinkClient, StaticCredentials, Wallet

    wallet = Wallet.from_jwk(jwk_text)
    async with AsyncArlinkClient(credentials=StaticCredentials(wallet)) as client:
        result = await client.upload_image("diagram.png")
        print(result.snippet)
"""

from __future__ import annotations

# ── Client ──────────────────────────────────────────────────────────────
from arlink.client import AsyncArlinkClient, CredentialSupplier, StaticCredentials

# ── Building blocks ─────────────────────────────────────────────────────
from arlink.arweave import AsyncGatewayTransport, CostEstimator, DataTransaction, Wallet
from arlink.cancellation import CancellationToken
from arlink.image import ImageNormalizer, discard_artifact, is_image_file, probe_image
from arlink.ledger import JsonFileStore, KeyValueStore, Ledger, MemoryStore
from arlink.links import gateway_url, markdown_link
from arlink.progress import ProgressRecorder, ProgressSink
from arlink.upload import ConfirmationTracker, TransactionSubmitter

# ── Configuration ───────────────────────────────────────────────────────
from arlink.config import (
    STILL_IMAGE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    ArlinkConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from arlink.errors import (
    ArlinkCancelledError,
    ArlinkError,
    ArlinkInsufficientBalanceError,
    ArlinkInvalidInputError,
    ArlinkProcessingError,
    ArlinkStorageError,
    ArlinkTransientError,
    ArlinkUnsupportedMediaError,
    ArlinkUploadFailedError,
    ErrorCode,
    UserNotice,
    user_notice,
)

# ── Models ──────────────────────────────────────────────────────────────
from arlink.models import (
    BalanceCheck,
    CostEstimate,
    ImageAsset,
    LedgerAggregate,
    LedgerEntry,
    ProcessedArtifact,
    SubmissionHandle,
    SubmissionStatus,
    SubmissionStep,
    Tag,
    TransactionStatus,
    UploadResult,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "AsyncArlinkClient",
    "CredentialSupplier",
    "StaticCredentials",
    # Building blocks
    "AsyncGatewayTransport",
    "CancellationToken",
    "ConfirmationTracker",
    "CostEstimator",
    "DataTransaction",
    "ImageNormalizer",
    "JsonFileStore",
    "KeyValueStore",
    "Ledger",
    "MemoryStore",
    "ProgressRecorder",
    "ProgressSink",
    "TransactionSubmitter",
    "Wallet",
    "discard_artifact",
    "gateway_url",
    "is_image_file",
    "markdown_link",
    "probe_image",
    # Configuration
    "ArlinkConfig",
    "STILL_IMAGE_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    # Errors
    "ArlinkCancelledError",
    "ArlinkError",
    "ArlinkInsufficientBalanceError",
    "ArlinkInvalidInputError",
    "ArlinkProcessingError",
    "ArlinkStorageError",
    "ArlinkTransientError",
    "ArlinkUnsupportedMediaError",
    "ArlinkUploadFailedError",
    "ErrorCode",
    "UserNotice",
    "user_notice",
    # Models
    "BalanceCheck",
    "CostEstimate",
    "ImageAsset",
    "LedgerAggregate",
    "LedgerEntry",
    "ProcessedArtifact",
    "SubmissionHandle",
    "SubmissionStatus",
    "SubmissionStep",
    "Tag",
    "TransactionStatus",
    "UploadResult",
]

"""Public data models for arlink.

This module contains every value type, enum and result type that crosses a
component boundary.  All types are plain dataclasses with no behaviour beyond
what is needed for structural equality and (de)serialization of ledger
entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SubmissionStatus(str, Enum):
    """Inclusion state of a submitted transaction, as tracked by the ledger."""

    PENDING = "pending"
    """Accepted by the network, not yet seen in a block."""

    CONFIRMED = "confirmed"
    """Included in a block.  Terminal."""

    FAILED = "failed"
    """Never included within the staleness threshold.  Terminal."""

    @property
    def terminal(self) -> bool:
        return self is not SubmissionStatus.PENDING


class SubmissionStep(str, Enum):
    """Steps of a single submission attempt, in order."""

    IDLE = "idle"
    VALIDATING = "validating"
    PRICING = "pricing"
    BUILDING = "building"
    SIGNING = "signing"
    POSTING = "posting"
    ACCEPTED = "accepted"


# ---------------------------------------------------------------------------
# Image pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageAsset:
    """A validated source image, alive only for one processing run.

    Attributes
    ----------
    path:
        Source file path.
    size_bytes:
        Source file length.
    width, height:
        Pixel dimensions as stored (before any EXIF orientation).
    format:
        Pillow format tag (``"JPEG"``, ``"PNG"``, ``"WEBP"`` ...).
    """

    path: str
    size_bytes: int
    width: int
    height: int
    format: str


@dataclass(frozen=True)
class ProcessedArtifact:
    """Output of :func:`~arlink.image.normalize`.

    The caller owns :attr:`path` and must delete it once consumed unless it
    is the original file (fast path; see :attr:`is_original`).

    Attributes
    ----------
    path:
        Artifact file path.
    original_path:
        The source image path.
    original_size:
        Source length in bytes.
    size_bytes:
        Artifact length in bytes.
    width, height:
        Artifact pixel dimensions.
    format:
        Canonical format tag (``"WEBP"``).
    reduction_percent:
        ``(original_size - size_bytes) / original_size * 100``.  Negative
        when re-encoding grew the file; that is valid.
    """

    path: str
    original_path: str
    original_size: int
    size_bytes: int
    width: int
    height: int
    format: str
    reduction_percent: float

    @property
    def is_original(self) -> bool:
        return self.path == self.original_path


# ---------------------------------------------------------------------------
# Cost
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CostEstimate:
    """Price of storing some bytes, as decimal strings.

    ``fiat_amount`` is ``None`` when the rate oracle was unreachable.
    """

    native_amount: str
    fiat_amount: str | None = None


@dataclass(frozen=True)
class BalanceCheck:
    """Result of :meth:`CostEstimator.check_sufficiency`.

    ``balance`` and ``required`` are echoed exactly as obtained.
    """

    sufficient: bool
    balance: str
    required: str


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Tag:
    """A transaction tag (plain text, encoded on the wire)."""

    name: str
    value: str


@dataclass(frozen=True)
class SubmissionHandle:
    """The network accepted a transaction.  Never mutated afterwards.

    Attributes
    ----------
    id:
        Transaction id (base64url of the signature hash).
    location_uri:
        Gateway URL where the data will be served.
    cost:
        The cost priced at submission time.
    pending:
        Always ``True`` at creation; confirmation lives in the ledger.
    """

    id: str
    location_uri: str
    cost: CostEstimate
    pending: bool = True


@dataclass(frozen=True)
class TransactionStatus:
    """Block-inclusion state returned by :meth:`ConfirmationTracker.verify_one`."""

    confirmed: bool
    confirmations: int
    status: SubmissionStatus


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

@dataclass
class LedgerEntry:
    """One durable submission record.

    Attributes
    ----------
    date:
        ISO-8601 UTC timestamp of the submission.
    file_name:
        Original file name (no directories).
    original_size_bytes, uploaded_size_bytes:
        Source and artifact sizes.
    size_saving_percent:
        Percentage saved by normalization.
    cost_native:
        Native cost as a decimal string.
    cost_fiat:
        Fiat cost as a decimal string (``"0.00"`` when unknown).
    tx_id:
        Submission id.
    status:
        Current :class:`SubmissionStatus`.
    content_type:
        MIME type of the uploaded bytes.
    """

    date: str
    file_name: str
    original_size_bytes: int
    uploaded_size_bytes: int
    size_saving_percent: float
    cost_native: str
    cost_fiat: str
    tx_id: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    content_type: str = "image/webp"

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "file_name": self.file_name,
            "original_size_bytes": self.original_size_bytes,
            "uploaded_size_bytes": self.uploaded_size_bytes,
            "size_saving_percent": self.size_saving_percent,
            "cost_native": self.cost_native,
            "cost_fiat": self.cost_fiat,
            "tx_id": self.tx_id,
            "status": self.status.value,
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerEntry:
        return cls(
            date=str(data["date"]),
            file_name=str(data["file_name"]),
            original_size_bytes=int(data["original_size_bytes"]),
            uploaded_size_bytes=int(data["uploaded_size_bytes"]),
            size_saving_percent=float(data["size_saving_percent"]),
            cost_native=str(data["cost_native"]),
            cost_fiat=str(data["cost_fiat"]),
            tx_id=str(data["tx_id"]),
            status=SubmissionStatus(data["status"]),
            content_type=str(data["content_type"]),
        )


@dataclass(frozen=True)
class LedgerAggregate:
    """Totals derived from all ledger entries.

    Cost totals are decimal strings so that no precision is lost.
    """

    total_uploads: int = 0
    total_original_size_bytes: int = 0
    total_uploaded_size_bytes: int = 0
    total_size_savings: int = 0
    total_cost_native: str = "0"
    total_cost_fiat: str = "0"


# ---------------------------------------------------------------------------
# Pipeline result
# ---------------------------------------------------------------------------

@dataclass
class UploadResult:
    """Everything an editor shim needs after a successful upload.

    Attributes
    ----------
    handle:
        The accepted submission.
    artifact:
        The processed artifact that was uploaded.
    entry:
        The ledger entry recorded for the submission.
    snippet:
        Markdown image link to insert.
    warnings:
        Non-fatal notes (for example "balance may be insufficient").
    """

    handle: SubmissionHandle
    artifact: ProcessedArtifact
    entry: LedgerEntry
    snippet: str
    warnings: list[str] = field(default_factory=list)

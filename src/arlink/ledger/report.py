"""Human- and machine-readable views of the ledger."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from arlink.models import LedgerAggregate, LedgerEntry, SubmissionStatus
from arlink.utils.formatting import format_file_size


def csv_headers(currency: str = "usd") -> tuple[str, ...]:
    """CSV header row, with the fiat column named after *currency*."""
    return (
        "Date",
        "Filename",
        "Original Size (B)",
        "Uploaded Size (B)",
        "Size Savings (%)",
        "Cost (AR)",
        f"Estimated Cost ({currency.upper()})",
        "Transaction ID",
        "Status",
        "Content Type",
    )


CSV_HEADERS = csv_headers()

_STATUS_MARKS = {
    SubmissionStatus.CONFIRMED: "✅",
    SubmissionStatus.PENDING: "⏳",
    SubmissionStatus.FAILED: "❌",
}


def _approx_fiat(amount: object, currency: str) -> str:
    code = currency.upper()
    if code == "USD":
        return f"~ ${amount} USD"
    return f"~ {amount} {code}"


def _display_date(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return iso


def format_summary(
    aggregate: LedgerAggregate,
    entries: Sequence[LedgerEntry],
    recent: int = 10,
    currency: str = "usd",
) -> str:
    """Render a Markdown statistics report.

    The newest *recent* entries are listed, newest first.  Fiat amounts
    are labelled with *currency*.
    """
    if aggregate.total_original_size_bytes > 0:
        avg_savings = aggregate.total_size_savings / aggregate.total_original_size_bytes * 100
    else:
        avg_savings = 0.0
    native = Decimal(aggregate.total_cost_native).quantize(Decimal("0.00000001"))
    fiat = Decimal(aggregate.total_cost_fiat).quantize(Decimal("0.01"))
    total_fiat = _approx_fiat(f"{fiat:f}", currency)

    lines = [
        "# Upload Statistics",
        "",
        "## Summary",
        f"- Total uploads: {aggregate.total_uploads}",
        f"- Total original size: {format_file_size(aggregate.total_original_size_bytes)}",
        f"- Total uploaded size: {format_file_size(aggregate.total_uploaded_size_bytes)}",
        f"- Total size savings: {format_file_size(aggregate.total_size_savings)} "
        f"({avg_savings:.2f}%)",
        f"- Total cost: {native:f} AR ({total_fiat})",
        "",
        "## Recent Uploads",
    ]
    for entry in reversed(list(entries)[-recent:] if recent > 0 else []):
        lines.extend([
            f"- {_STATUS_MARKS[entry.status]} {_display_date(entry.date)}: {entry.file_name}",
            f"  Original: {format_file_size(entry.original_size_bytes)}, "
            f"Uploaded: {format_file_size(entry.uploaded_size_bytes)} "
            f"({entry.size_saving_percent:.2f}% saved)",
            f"  Cost: {entry.cost_native} AR ({_approx_fiat(entry.cost_fiat, currency)})",
            f"  TX: {entry.tx_id}",
            "",
        ])
    return "\n".join(lines).rstrip() + "\n"


def export_json(snapshot: dict[str, Any]) -> str:
    """Serialize a ledger snapshot as indented JSON."""
    return json.dumps(snapshot, indent=2)


def export_csv(entries: Sequence[LedgerEntry], currency: str = "usd") -> str:
    """Serialize *entries* as CSV with a header row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(csv_headers(currency))
    for entry in entries:
        writer.writerow([
            entry.date,
            entry.file_name,
            entry.original_size_bytes,
            entry.uploaded_size_bytes,
            f"{entry.size_saving_percent:.2f}",
            entry.cost_native,
            entry.cost_fiat,
            entry.tx_id,
            entry.status.value,
            entry.content_type,
        ])
    return buf.getvalue()

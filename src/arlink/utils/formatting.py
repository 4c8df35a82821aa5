"""Human-readable formatting helpers."""

from __future__ import annotations


def format_file_size(size_bytes: int) -> str:
    """Format a byte count for display.

    Examples
    --------
    >>> format_file_size(512)
    '512 B'
    >>> format_file_size(1536)
    '1.50 KB'
    >>> format_file_size(3 * 1024 * 1024)
    '3.00 MB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"

"""Embeddable links for uploaded assets."""

from __future__ import annotations

import os

from arlink.config import DEFAULT_GATEWAY_URL


def gateway_url(tx_id: str, gateway: str = DEFAULT_GATEWAY_URL) -> str:
    """URL at which the gateway serves the data of *tx_id*.

    Examples
    --------
    >>> gateway_url("abc")
    'https://arweave.net/abc'
    """
    return f"{gateway.rstrip('/')}/{tx_id}"


def _escape_alt(text: str) -> str:
    return text.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")


def markdown_link(url: str, display_name: str) -> str:
    """Markdown image snippet for *url*.

    The alt text is the file name without directories or extension.

    Examples
    --------
    >>> markdown_link("https://arweave.net/abc", "/tmp/cat photo.png")
    '![cat photo](https://arweave.net/abc)'
    """
    alt = os.path.splitext(os.path.basename(display_name))[0]
    return f"![{_escape_alt(alt)}]({url})"

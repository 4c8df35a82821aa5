"""Credential / payload redaction for safe logging.

Before a transaction payload or a wallet key is written to logs or debug
dumps, :func:`redact` must be applied.  It enforces the following rules:

* **Private JWK members** (``d``, ``p``, ``q``, ``dp``, ``dq``, ``qi``) and
  keys that look secret (``private_key``, ``secret`` ...) are replaced with
  ``<redacted>``.
* **Long base64url blobs** (transaction ``data``, ``owner``, ``signature``)
  are replaced with ``<b64:N_chars>``.
* **Raw bytes** are replaced with ``<binary:N_bytes>``.
"""

from __future__ import annotations

import copy
import re
from typing import Any

_PRIVATE_JWK_MEMBERS: frozenset[str] = frozenset({"d", "p", "q", "dp", "dq", "qi"})

# Substrings: if any of these appear in a key name (case-insensitive), the
# value is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "secret",
    "password",
    "credential",
    "authorization",
    "private_key",
    "api_key",
})

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# Base64url strings longer than this are summarised rather than printed.
_BLOB_LENGTH_THRESHOLD = 128


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value)
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str) and len(value) > _BLOB_LENGTH_THRESHOLD and _B64URL_RE.match(value):
        return f"<b64:{len(value)}_chars>"
    return value


def _redact_dict(d: dict) -> dict:
    result: dict = {}
    for key, value in d.items():
        key_lower = key.lower() if isinstance(key, str) else ""
        if key_lower in _PRIVATE_JWK_MEMBERS or any(
            pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS
        ):
            result[key] = "<redacted>"
        else:
            result[key] = _redact_value(value)
    return result


def redact(payload: dict) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    The original *payload* is never mutated.

    Examples
    --------
    >>> redact({"kty": "RSA", "d": "secret-exponent"})
    {'kty': 'RSA', 'd': '<redacted>'}
    """
    safe = copy.deepcopy(payload)
    return _redact_dict(safe)

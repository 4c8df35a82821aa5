"""Arweave wallet: a JWK key file loaded through ``arweave-python-client``.

The wallet is read-only once created.  Its private members are never
exposed through ``repr`` or logging.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import arweave
from jose.exceptions import JOSEError

from arlink.errors import ArlinkInvalidInputError

# Arweave key files always carry the CRT members.
_REQUIRED_MEMBERS = ("n", "e", "d", "p", "q", "dp", "dq", "qi")


def _text(value: str | bytes) -> str:
    return value.decode("ascii") if isinstance(value, bytes) else value


class Wallet:
    """An RSA signing key and the Arweave identity derived from it.

    Parameters
    ----------
    key:
        The :class:`arweave.Wallet` holding the key.
    """

    __slots__ = ("_key",)

    def __init__(self, key: arweave.Wallet) -> None:
        self._key = key

    @classmethod
    def from_jwk(cls, jwk: Mapping[str, Any] | str) -> Wallet:
        """Load a wallet from a JWK mapping or its JSON text.

        Raises
        ------
        ArlinkInvalidInputError
            If the JWK is not valid JSON, is not an RSA key, lacks one of
            its members, or does not describe a consistent key.
        """
        if isinstance(jwk, str):
            try:
                jwk = json.loads(jwk)
            except ValueError as exc:
                raise ArlinkInvalidInputError(
                    message="Invalid wallet key: not valid JSON",
                    context={"reason": "malformed_json"},
                    cause=exc,
                ) from exc

        if not isinstance(jwk, Mapping):
            raise ArlinkInvalidInputError(
                message="Invalid wallet key: expected a JSON object",
                context={"reason": "not_an_object"},
            )
        if jwk.get("kty") != "RSA":
            raise ArlinkInvalidInputError(
                message="Invalid wallet key: kty must be 'RSA'",
                context={"reason": "wrong_kty"},
            )
        missing = [
            m for m in _REQUIRED_MEMBERS
            if not isinstance(jwk.get(m), str) or not jwk[m]
        ]
        if missing:
            raise ArlinkInvalidInputError(
                message=f"Invalid wallet key: missing members {', '.join(missing)}",
                context={"reason": "missing_members", "missing": missing},
            )

        try:
            # from_data annotates the dict it is given, so hand it a copy.
            key = arweave.Wallet.from_data(dict(jwk))
        except (JOSEError, ValueError, TypeError, KeyError, IndexError) as exc:
            raise ArlinkInvalidInputError(
                message="Invalid wallet key: inconsistent RSA parameters",
                context={"reason": "invalid_key"},
                cause=exc,
            ) from exc
        return cls(key)

    @property
    def key(self) -> arweave.Wallet:
        """The underlying library wallet, used to build transactions."""
        return self._key

    @property
    def owner(self) -> str:
        """The RSA modulus, base64url encoded (transaction ``owner``)."""
        return _text(self._key.owner)

    @property
    def address(self) -> str:
        """The wallet address: base64url of ``sha256(owner)``."""
        return _text(self._key.address)

    def sign(self, message: bytes) -> bytes:
        """Sign *message* with RSA-PSS / SHA-256."""
        return self._key.sign(message)

    def __repr__(self) -> str:
        return f"Wallet(address={self.address!r})"

"""Format-2 data transactions, built and signed with ``arweave-python-client``.

Left to itself the library fetches the anchor and the reward over blocking
``requests`` calls while it builds and signs.  arlink fetches both through
:class:`~arlink.arweave.transport.AsyncGatewayTransport` beforehand and
hands them in, so building and signing never touch the network, and the
signed body is posted through the same transport.

Usage::

    tx = build_transaction(wallet, data, anchor=anchor, reward=quote.winston, tags=tags)
    tx.sign()
    await transport.request("POST", "/tx", json=wire_payload(tx), expected=(200, 202))
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import arweave

from arlink.models import Tag

from .wallet import Wallet


class _AnchoredKey:
    """The library wallet as one transaction sees it: the anchor is fixed.

    Every other attribute is read from the wrapped wallet.
    """

    def __init__(self, key: arweave.Wallet, anchor: str) -> None:
        self._key = key
        self._anchor = anchor

    def get_last_transaction_id(self) -> str:
        return self._anchor

    def __getattr__(self, name: str) -> Any:
        if name in ("_key", "_anchor"):
            raise AttributeError(name)
        return getattr(self._key, name)


class DataTransaction(arweave.Transaction):
    """An :class:`arweave.Transaction` whose anchor and reward are given.

    Parameters
    ----------
    wallet:
        The signing wallet.
    data:
        The bytes to store.
    anchor:
        Result of ``GET /tx_anchor``.
    reward:
        Exact fee in winston.
    """

    def __init__(
        self,
        wallet: Wallet,
        data: bytes,
        *,
        anchor: str,
        reward: int | str,
    ) -> None:
        self._fixed_reward = str(reward)
        super().__init__(
            _AnchoredKey(wallet.key, anchor),
            data=data,
            last_tx=anchor,
            reward=self._fixed_reward,
        )
        self.last_tx = anchor
        self.reward = self._fixed_reward

    def get_reward(self, data_size: Any, target_address: Any = None) -> str:
        return self._fixed_reward


def build_transaction(
    wallet: Wallet,
    data: bytes,
    *,
    anchor: str,
    reward: int | str,
    tags: Iterable[Tag] = (),
) -> DataTransaction:
    """Create an unsigned transaction carrying *data* and *tags*."""
    tx = DataTransaction(wallet, data, anchor=anchor, reward=reward)
    for tag in tags:
        tx.add_tag(tag.name, tag.value)
    return tx


def transaction_id(tx: arweave.Transaction) -> str:
    """The id of a signed transaction, as text."""
    value = tx.id
    return value.decode("ascii") if isinstance(value, bytes) else value


def wire_payload(tx: arweave.Transaction) -> dict[str, Any]:
    """The JSON body for ``POST /tx``, as the library serialises it."""
    return json.loads(tx.json_data)

"""Tests for wallet loading, transaction building and unit helpers."""

from __future__ import annotations

import hashlib
import json

import pytest
import requests
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from jose.utils import base64url_decode, base64url_encode

from arlink.arweave.transaction import (
    DataTransaction,
    build_transaction,
    transaction_id,
    wire_payload,
)
from arlink.arweave.units import ar_to_winston, format_ar, format_decimal, parse_winston
from arlink.arweave.wallet import Wallet
from arlink.errors import ArlinkInvalidInputError
from arlink.models import Tag

PSS = padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32)


def b64url(raw: bytes) -> str:
    return base64url_encode(raw).decode("ascii")


def _decode(text: str) -> bytes:
    return base64url_decode(text.encode("ascii"))


ANCHOR = b64url(b"\x01" * 48)


@pytest.fixture
def offline(monkeypatch):
    """Fail the test if anything reaches for the network over ``requests``."""

    def refuse(self, method, url, *args, **kwargs):
        raise AssertionError(f"unexpected {method} {url}")

    monkeypatch.setattr(requests.sessions.Session, "request", refuse)


# =========================================================================
# Units
# =========================================================================

class TestUnits:
    def test_format_ar_has_twelve_places(self):
        assert format_ar(1) == "0.000000000001"
        assert format_ar(2_500_000_000_000) == "2.500000000000"

    def test_parse_winston(self):
        assert parse_winston(" 42\n") == 42
        with pytest.raises(ValueError):
            parse_winston("-1")
        with pytest.raises(ValueError):
            parse_winston("12.5")

    def test_ar_to_winston(self):
        assert ar_to_winston("1.5") == 1_500_000_000_000
        with pytest.raises(ValueError):
            ar_to_winston("lots")

    def test_format_decimal_pads(self):
        from decimal import Decimal

        assert format_decimal(Decimal(1), 8) == "1.00000000"


# =========================================================================
# Wallet
# =========================================================================

class TestWallet:
    def test_from_jwk_dict(self, jwk, wallet):
        loaded = Wallet.from_jwk(jwk)
        assert loaded.address == wallet.address
        assert loaded.owner == jwk["n"]

    def test_from_jwk_json_text(self, jwk, wallet):
        assert Wallet.from_jwk(json.dumps(jwk)).address == wallet.address

    def test_from_jwk_leaves_input_untouched(self, jwk):
        original = dict(jwk)
        Wallet.from_jwk(jwk)
        assert jwk == original

    def test_address_is_hash_of_owner(self, wallet):
        assert wallet.address == b64url(hashlib.sha256(_decode(wallet.owner)).digest())
        assert len(_decode(wallet.address)) == 32

    def test_sign_is_rsa_pss_sha256(self, wallet, rsa_key):
        signature = wallet.sign(b"message")
        rsa_key.public_key().verify(signature, b"message", PSS, hashes.SHA256())

    def test_repr_hides_private_members(self, jwk):
        text = repr(Wallet.from_jwk(jwk))
        assert jwk["d"] not in text
        assert jwk["p"] not in text
        assert text.startswith("Wallet(address=")

    @pytest.mark.parametrize(
        ("mutate", "reason"),
        [
            (lambda j: {**j, "kty": "EC"}, "wrong_kty"),
            (lambda j: {k: v for k, v in j.items() if k != "d"}, "missing_members"),
            (lambda j: {k: v for k, v in j.items() if k != "qi"}, "missing_members"),
            (lambda j: {**j, "e": ""}, "missing_members"),
            (lambda j: {**j, "q": j["p"]}, "invalid_key"),
        ],
    )
    def test_invalid_jwk(self, jwk, mutate, reason):
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            Wallet.from_jwk(mutate(jwk))
        assert exc_info.value.context["reason"] == reason

    def test_missing_members_are_listed(self, jwk):
        partial = {k: v for k, v in jwk.items() if k not in ("dp", "dq")}
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            Wallet.from_jwk(partial)
        assert exc_info.value.context["missing"] == ["dp", "dq"]

    def test_malformed_json(self):
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            Wallet.from_jwk("{not json")
        assert exc_info.value.context["reason"] == "malformed_json"

    def test_non_object_json(self):
        with pytest.raises(ArlinkInvalidInputError) as exc_info:
            Wallet.from_jwk("[1, 2]")
        assert exc_info.value.context["reason"] == "not_an_object"


# =========================================================================
# Transactions
# =========================================================================

class TestTransaction:
    def test_build_uses_given_anchor_and_reward(self, wallet, offline):
        tx = build_transaction(wallet, b"payload", anchor=ANCHOR, reward=123)
        assert isinstance(tx, DataTransaction)
        assert tx.last_tx == ANCHOR
        assert tx.reward == "123"

    def test_sign_never_touches_the_network(self, wallet, offline):
        tx = build_transaction(
            wallet, b"payload", anchor=ANCHOR, reward=10, tags=[Tag("A", "b")],
        )
        tx.sign()
        assert transaction_id(tx)

    def test_id_is_hash_of_signature(self, wallet, offline):
        tx = build_transaction(wallet, b"payload", anchor=ANCHOR, reward=10)
        tx.sign()
        payload = wire_payload(tx)
        raw_sig = _decode(payload["signature"])
        assert transaction_id(tx) == b64url(hashlib.sha256(raw_sig).digest())
        assert payload["id"] == transaction_id(tx)

    def test_signature_verifies_with_wallet_key(self, wallet, rsa_key, offline):
        tx = build_transaction(wallet, b"payload", anchor=ANCHOR, reward=10)
        tx.sign()
        raw_sig = _decode(wire_payload(tx)["signature"])
        rsa_key.public_key().verify(raw_sig, tx.get_signature_data(), PSS, hashes.SHA256())

    def test_transaction_id_is_text(self, wallet, offline):
        tx = build_transaction(wallet, b"abc", anchor=ANCHOR, reward=5)
        tx.sign()
        assert isinstance(transaction_id(tx), str)

    def test_wire_payload_shape(self, wallet, jwk, offline):
        tx = build_transaction(
            wallet, b"abc", anchor=ANCHOR, reward=5,
            tags=[Tag("Content-Type", "image/webp"), Tag("App-Name", "arlink")],
        )
        tx.sign()
        payload = wire_payload(tx)
        assert payload["id"] == transaction_id(tx)
        assert payload["owner"] == jwk["n"]
        assert payload["last_tx"] == ANCHOR
        assert payload["reward"] == "5"
        assert _decode(payload["data"]) == b"abc"
        assert str(payload["data_size"]) == "3"
        assert len(payload["tags"]) == 2

    def test_reward_is_part_of_the_signed_data(self, wallet, offline):
        a = build_transaction(wallet, b"x", anchor=ANCHOR, reward=1)
        b = build_transaction(wallet, b"x", anchor=ANCHOR, reward=2)
        assert a.get_signature_data() != b.get_signature_data()

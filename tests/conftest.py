"""Shared test fixtures for the arlink test suite."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jose.utils import base64url_encode
from PIL import Image

from arlink.arweave.pricing import CostEstimator
from arlink.arweave.transport import AsyncGatewayTransport
from arlink.arweave.wallet import Wallet
from arlink.config import ArlinkConfig


def b64url(raw: bytes) -> str:
    return base64url_encode(raw).decode("ascii")


ANCHOR = b64url(b"\x07" * 48)


# ---------------------------------------------------------------------------
# Configuration and logging
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path: Path) -> ArlinkConfig:
    """Test configuration with zero retry delays and a private scratch dir."""
    return ArlinkConfig(
        scratch_dir=str(tmp_path / "scratch"),
        retry_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def logger() -> logging.Logger:
    """A plain logger that propagates to the root, so ``caplog`` sees it."""
    return logging.getLogger("tests.arlink")


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def wallet(jwk: dict[str, str]) -> Wallet:
    return Wallet.from_jwk(jwk)


def _int_b64(value: int) -> str:
    return b64url(value.to_bytes((value.bit_length() + 7) // 8, "big"))


@pytest.fixture(scope="session")
def jwk(rsa_key: rsa.RSAPrivateKey) -> dict[str, str]:
    """The session key as an Arweave-style JWK."""
    priv = rsa_key.private_numbers()
    pub = priv.public_numbers
    return {
        "kty": "RSA",
        "n": _int_b64(pub.n),
        "e": _int_b64(pub.e),
        "d": _int_b64(priv.d),
        "p": _int_b64(priv.p),
        "q": _int_b64(priv.q),
        "dp": _int_b64(priv.dmp1),
        "dq": _int_b64(priv.dmq1),
        "qi": _int_b64(priv.iqmp),
    }


# ---------------------------------------------------------------------------
# Fake gateway
# ---------------------------------------------------------------------------

class FakeGateway:
    """Routes gateway and rate-oracle requests to canned responses.

    Every request is appended to :attr:`requests`.  ``post_results`` is
    consumed one item per ``POST /tx``; the last item repeats.  Items are
    status codes or exceptions to raise.  Requests to ``fail_paths`` and a
    failing rate oracle raise ``failure``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.price_winston: str = "1000000"
        self.balance_winston: str = "5000000000000"
        self.anchor: str = ANCHOR
        self.rate: Any = {"arweave": {"usd": 10.0}}
        self.post_results: list[int | Exception] = [200]
        self.status: dict[str, Callable[[], httpx.Response]] = {}
        self.fail_paths: set[str] = set()
        self.fail_rate_oracle: bool = False
        self.failure: type[httpx.TransportError] = httpx.ConnectError

    # -- routing ------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "api.coingecko.com":
            if self.fail_rate_oracle:
                raise self.failure("oracle down", request=request)
            if isinstance(self.rate, str):
                return httpx.Response(200, text=self.rate)
            return httpx.Response(200, json=self.rate)

        for prefix in self.fail_paths:
            if path.startswith(prefix):
                raise self.failure(f"{prefix} unreachable", request=request)

        if path.startswith("/price/"):
            return httpx.Response(200, text=self.price_winston)
        if path == "/tx_anchor":
            return httpx.Response(200, text=self.anchor)
        if path.startswith("/wallet/") and path.endswith("/balance"):
            return httpx.Response(200, text=self.balance_winston)
        if path == "/tx" and request.method == "POST":
            result = self.post_results[0]
            if len(self.post_results) > 1:
                self.post_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return httpx.Response(result, text="OK")
        if path.startswith("/tx/") and path.endswith("/status"):
            tx_id = path.split("/")[2]
            factory = self.status.get(tx_id)
            return factory() if factory else httpx.Response(404, text="Not Found")
        return httpx.Response(404, text="Not Found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # -- inspection ---------------------------------------------------------

    def requests_to(self, path_prefix: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.path.startswith(path_prefix) and (method is None or r.method == method)
        ]

    @property
    def posts(self) -> list[httpx.Request]:
        return self.requests_to("/tx", "POST")

    def posted_payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.posts]

    # -- status helpers -----------------------------------------------------

    def confirm(self, tx_id: str, confirmations: int = 5) -> None:
        body = {
            "block_height": 1_234_567,
            "block_indep_hash": "abc",
            "number_of_confirmations": confirmations,
        }
        self.status[tx_id] = lambda: httpx.Response(200, json=body)

    def mempool(self, tx_id: str) -> None:
        self.status[tx_id] = lambda: httpx.Response(202, text="Pending")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def transport(config: ArlinkConfig, logger: logging.Logger, gateway: FakeGateway):
    t = AsyncGatewayTransport(config, logger, transport=gateway.transport())
    yield t
    await t.close()


@pytest.fixture
def estimator(transport: AsyncGatewayTransport, config: ArlinkConfig, logger: logging.Logger):
    return CostEstimator(transport, config, logger)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def gradient(size: tuple[int, int], mode: str = "RGB") -> Image.Image:
    """A smooth gradient image that compresses well."""
    vert = Image.linear_gradient("L").resize(size)
    horiz = Image.linear_gradient("L").rotate(90).resize(size)
    img = Image.merge("RGB", (horiz, vert, Image.new("L", size, 96)))
    if mode == "RGBA":
        img = img.convert("RGBA")
        img.putalpha(vert)
    return img


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Factory: ``make_image(name, size, fmt=None, mode="RGB", **save_kwargs)``."""

    def _make(
        name: str,
        size: tuple[int, int] = (800, 600),
        fmt: str | None = None,
        mode: str = "RGB",
        **save_kwargs: Any,
    ) -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        gradient(size, mode).save(path, format=fmt, **save_kwargs)
        return path

    return _make


@pytest.fixture
def make_animation(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory for two-frame animations (GIF or APNG)."""

    def _make(name: str, fmt: str) -> Path:
        path = tmp_path / "src" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        red = Image.new("RGB", (64, 64), (255, 0, 0))
        blue = Image.new("RGB", (64, 64), (0, 0, 255))
        red.save(path, format=fmt, save_all=True, append_images=[blue], duration=100, loop=0)
        return path

    return _make

"""Storage cost estimation and balance sufficiency.

Two price sources are combined:

* the gateway price oracle, ``GET /price/{bytes}``, which returns the exact
  fee in winston;
* a rate oracle returning the AR price in a fiat currency.

When the gateway oracle is unreachable, :meth:`CostEstimator.estimate`
falls back to a fixed bytes-per-AR constant.  The fallback is a rough
approximation and is **not** retried.  Fiat conversion is best effort: any
failure yields ``fiat_amount=None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from arlink.config import ArlinkConfig
from arlink.errors import ArlinkError, ArlinkInvalidInputError, ArlinkTransientError
from arlink.models import BalanceCheck, CostEstimate
from arlink.observability import NoopMetricsHook

from .transport import AsyncGatewayTransport
from .units import format_ar, format_decimal, parse_winston, quantize
from .wallet import Wallet

FALLBACK_DECIMAL_PLACES = 8
FIAT_DECIMAL_PLACES = 4


@dataclass(frozen=True)
class PriceQuote:
    """An exact submission-time price.

    ``winston`` goes into the transaction's ``reward`` field.
    """

    winston: int
    estimate: CostEstimate


class CostEstimator:
    """Price storage and look up wallet balances.

    Parameters
    ----------
    transport:
        Gateway transport.
    config:
        Supplies the rate oracle URL, fiat currency and fallback constant.
    logger:
        Logger for degraded-path warnings.
    """

    def __init__(
        self,
        transport: AsyncGatewayTransport,
        config: ArlinkConfig,
        logger: logging.Logger,
    ) -> None:
        self._transport = transport
        self._config = config
        self._log = logger
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    # -- oracles ------------------------------------------------------------

    async def price_winston(self, byte_length: int) -> int:
        """Exact fee for *byte_length* bytes, in winston.

        Raises
        ------
        ArlinkTransientError
            If the oracle is unreachable or answers with garbage.
        """
        text = await self._transport.get_text(f"/price/{byte_length}")
        try:
            return parse_winston(text)
        except ValueError as exc:
            raise ArlinkTransientError(
                message=f"Malformed price response: {text[:64]!r}",
                context={"url": f"/price/{byte_length}", "method": "GET"},
                cause=exc,
            ) from exc

    async def fiat_rate(self) -> Decimal | None:
        """Price of 1 AR in the configured fiat currency, or ``None``."""
        currency = self._config.fiat_currency
        try:
            data: Any = await self._transport.get_json(self._config.rate_oracle_url)
            rate = Decimal(str(data["arweave"][currency]))
        except ArlinkError as exc:
            self._log.warning(
                "Rate oracle unavailable",
                extra={"extra_fields": {"op": "fiat_rate", "error": exc.summary()}},
            )
            return None
        except (KeyError, TypeError, InvalidOperation) as exc:
            self._log.warning(
                "Rate oracle returned an unexpected shape",
                extra={"extra_fields": {"op": "fiat_rate", "error": repr(exc)}},
            )
            return None
        if not rate.is_finite():
            self._log.warning(
                "Rate oracle returned a non-finite rate",
                extra={"extra_fields": {"op": "fiat_rate", "rate": str(rate)}},
            )
            return None
        return rate

    def _fiat(self, native: Decimal, rate: Decimal | None) -> str | None:
        if rate is None:
            return None
        return format_decimal(native * rate, FIAT_DECIMAL_PLACES)

    # -- public API ---------------------------------------------------------

    async def estimate(self, byte_length: int) -> CostEstimate:
        """Estimate the cost of storing *byte_length* bytes.

        Never raises for network trouble: an unreachable price oracle
        triggers the local approximation and an unreachable rate oracle
        leaves ``fiat_amount`` as ``None``.

        Raises
        ------
        ArlinkInvalidInputError
            If *byte_length* is negative.
        """
        _check_length(byte_length)
        try:
            winston = await self.price_winston(byte_length)
        except ArlinkTransientError as exc:
            native = quantize(
                Decimal(byte_length) / Decimal(self._config.bytes_per_native_unit),
                FALLBACK_DECIMAL_PLACES,
            )
            native_str = format_decimal(native, FALLBACK_DECIMAL_PLACES)
            self._metrics.increment("arlink.price_fallback_total")
            self._log.warning(
                "Price oracle unavailable, using approximate fallback price",
                extra={
                    "extra_fields": {
                        "op": "estimate",
                        "byte_length": byte_length,
                        "native_amount": native_str,
                        "error": exc.summary(),
                    }
                },
            )
        else:
            native_str = format_ar(winston)
            native = Decimal(native_str)

        rate = await self.fiat_rate()
        return CostEstimate(native_amount=native_str, fiat_amount=self._fiat(native, rate))

    async def quote(self, byte_length: int) -> PriceQuote:
        """Exact price for a submission.

        Unlike :meth:`estimate` there is no fallback: the reward must be the
        gateway's own figure.

        Raises
        ------
        ArlinkTransientError
            If the price oracle is unreachable.
        """
        _check_length(byte_length)
        winston = await self.price_winston(byte_length)
        native_str = format_ar(winston)
        rate = await self.fiat_rate()
        return PriceQuote(
            winston=winston,
            estimate=CostEstimate(
                native_amount=native_str,
                fiat_amount=self._fiat(Decimal(native_str), rate),
            ),
        )

    async def get_balance(self, address: str) -> str:
        """Balance of *address* in AR, as a 12-place decimal string.

        Raises
        ------
        ArlinkTransientError
            If the gateway is unreachable or the body is not an integer.
        """
        path = f"/wallet/{address}/balance"
        text = await self._transport.get_text(path)
        try:
            return format_ar(parse_winston(text))
        except ValueError as exc:
            raise ArlinkTransientError(
                message=f"Malformed balance response: {text[:64]!r}",
                context={"url": path, "method": "GET"},
                cause=exc,
            ) from exc

    async def check_sufficiency(self, wallet: Wallet, byte_length: int) -> BalanceCheck:
        """Compare the wallet balance with the estimated cost.

        A decision aid only: no transaction is created.
        """
        balance = await self.get_balance(wallet.address)
        required = (await self.estimate(byte_length)).native_amount
        return compare_balance(balance, required)


def compare_balance(balance: str, required: str) -> BalanceCheck:
    """Build a :class:`BalanceCheck`, echoing both amounts verbatim.

    Examples
    --------
    >>> compare_balance("0.5", "1.0")
    BalanceCheck(sufficient=False, balance='0.5', required='1.0')
    """
    return BalanceCheck(
        sufficient=Decimal(balance) >= Decimal(required),
        balance=balance,
        required=required,
    )


def _check_length(byte_length: int) -> None:
    if byte_length < 0:
        raise ArlinkInvalidInputError(
            message=f"Byte length must be non-negative, got {byte_length}",
            context={"reason": "negative_length"},
        )

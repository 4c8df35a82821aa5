"""Conversion between winston and AR.

Arweave prices and balances are integers in winston; 1 AR is 10^12
winston.  Amounts are handled as :class:`~decimal.Decimal` and rendered as
fixed-point strings, never floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

WINSTON_PER_AR = 10 ** 12
AR_DECIMAL_PLACES = 12


def parse_winston(raw: str | int) -> int:
    """Parse a winston amount as returned by the gateway.

    Raises
    ------
    ValueError
        If *raw* is not a non-negative integer.
    """
    value = int(str(raw).strip())
    if value < 0:
        raise ValueError(f"negative winston amount: {raw!r}")
    return value


def winston_to_ar(winston: int) -> Decimal:
    return Decimal(winston) / Decimal(WINSTON_PER_AR)


def ar_to_winston(ar: str | Decimal) -> int:
    """Convert an AR amount to whole winston, truncating sub-winston digits."""
    try:
        amount = Decimal(ar)
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal amount: {ar!r}") from exc
    return int(amount * WINSTON_PER_AR)


def quantize(amount: Decimal, places: int) -> Decimal:
    return amount.quantize(Decimal(1).scaleb(-places))


def format_decimal(amount: Decimal, places: int) -> str:
    """Render *amount* with exactly *places* fractional digits.

    Examples
    --------
    >>> format_decimal(Decimal("1"), 8)
    '1.00000000'
    """
    return f"{quantize(amount, places):f}"


def format_ar(winston: int) -> str:
    """Render a winston amount as an AR string with 12 places.

    Examples
    --------
    >>> format_ar(1_500_000_000_000)
    '1.500000000000'
    """
    return format_decimal(winston_to_ar(winston), AR_DECIMAL_PLACES)

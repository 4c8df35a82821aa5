"""Arweave network layer: transport, wallet, transactions and pricing."""

from .pricing import CostEstimator, PriceQuote, compare_balance
from .transport import AsyncGatewayTransport
from .transaction import DataTransaction, build_transaction, transaction_id, wire_payload
from .units import WINSTON_PER_AR, ar_to_winston, format_ar, winston_to_ar
from .wallet import Wallet

__all__ = [
    "AsyncGatewayTransport",
    "CostEstimator",
    "DataTransaction",
    "PriceQuote",
    "WINSTON_PER_AR",
    "Wallet",
    "ar_to_winston",
    "build_transaction",
    "compare_balance",
    "format_ar",
    "transaction_id",
    "winston_to_ar",
    "wire_payload",
]

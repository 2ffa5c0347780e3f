"""OANDA v20 REST adapter."""

from .client import OandaClient, BASE_URLS
from .ledger_client import BrokerLedgerClient, ConnectionCheck, find_best_match_symbol, normalize_trade

__all__ = [
    "OandaClient",
    "BASE_URLS",
    "BrokerLedgerClient",
    "ConnectionCheck",
    "find_best_match_symbol",
    "normalize_trade",
]

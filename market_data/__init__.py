"""
Market Data - Package.

Upstream collaborators that supply MarketSnapshot and
AccountSnapshot values to the position risk calculator.

Providers:
- IndexerClient: dYdX v4 indexer REST API (httpx)
- StaticMarketDataProvider / StaticAccountDataProvider: in-memory
"""

from .base import AccountDataProvider, MarketDataProvider
from .static import StaticAccountDataProvider, StaticMarketDataProvider
from .indexer import (
    INDEXER_URLS,
    IndexerClient,
    IndexerConfig,
    parse_account,
    parse_funding,
    parse_market,
)


__all__ = [
    "MarketDataProvider",
    "AccountDataProvider",
    "StaticMarketDataProvider",
    "StaticAccountDataProvider",
    "INDEXER_URLS",
    "IndexerClient",
    "IndexerConfig",
    "parse_market",
    "parse_account",
    "parse_funding",
]

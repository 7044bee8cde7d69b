"""
Market Data - Static Providers.

============================================================
PURPOSE
============================================================
In-memory providers backed by plain dictionaries.

Used by tests and by MARKET_DATA_SOURCE=static deployments
that feed snapshots from another process.

============================================================
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from core.exceptions import AccountNotFoundError, MarketNotFoundError
from position_risk.types import AccountSnapshot, FundingRate, MarketSnapshot
from .base import AccountDataProvider, MarketDataProvider


logger = logging.getLogger(__name__)


class StaticMarketDataProvider(MarketDataProvider):
    """Serves market snapshots from memory."""
    
    def __init__(self, markets: Optional[Iterable[MarketSnapshot]] = None):
        self._markets: Dict[str, MarketSnapshot] = {}
        self._funding: Dict[str, List[FundingRate]] = {}
        for snapshot in markets or ():
            self.set_market(snapshot)
    
    @property
    def source_id(self) -> str:
        return "static"
    
    def set_market(self, snapshot: MarketSnapshot) -> None:
        """Insert or replace a market snapshot."""
        self._markets[snapshot.market] = snapshot
    
    async def get_market(self, market: str) -> MarketSnapshot:
        snapshot = self._markets.get(market)
        if snapshot is None:
            raise MarketNotFoundError(market, source=self.source_id)
        return snapshot
    
    def set_funding_history(self, market: str, rates: Sequence[FundingRate]) -> None:
        """Replace the funding history for a market (newest first)."""
        self._funding[market] = list(rates)
    
    async def get_funding_history(self, market: str, limit: int = 50) -> List[FundingRate]:
        if market not in self._markets:
            raise MarketNotFoundError(market, source=self.source_id)
        return self._funding.get(market, [])[:limit]


class StaticAccountDataProvider(AccountDataProvider):
    """Serves account snapshots from memory, keyed by (address, subaccount)."""
    
    def __init__(self, accounts: Optional[Iterable[AccountSnapshot]] = None):
        self._accounts: Dict[tuple, AccountSnapshot] = {}
        for snapshot in accounts or ():
            self.set_account(snapshot)
    
    @property
    def source_id(self) -> str:
        return "static"
    
    def set_account(self, snapshot: AccountSnapshot, subaccount_number: int = 0) -> None:
        """Insert or replace an account snapshot."""
        self._accounts[(snapshot.address, subaccount_number)] = snapshot
    
    async def get_account(self, address: str, subaccount_number: int = 0) -> AccountSnapshot:
        snapshot = self._accounts.get((address, subaccount_number))
        if snapshot is None:
            raise AccountNotFoundError(address, subaccount_number, source=self.source_id)
        return snapshot

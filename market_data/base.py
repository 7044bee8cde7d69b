"""
Market Data - Provider Interfaces.

============================================================
PURPOSE
============================================================
Abstract interfaces for the upstream collaborators that feed
the position risk calculator.

DESIGN PRINCIPLES:
- Venue-agnostic interface
- Providers return position_risk snapshots, never raw payloads
- Fully testable with static providers

============================================================
"""

from abc import ABC, abstractmethod
from typing import List

from position_risk.types import AccountSnapshot, FundingRate, MarketSnapshot


class MarketDataProvider(ABC):
    """
    Supplies per-market reference price, maintenance margin
    fraction, next funding rate and funding history.
    
    Implementations:
    - IndexerClient: dYdX v4 indexer REST API
    - StaticMarketDataProvider: For testing
    """
    
    @property
    @abstractmethod
    def source_id(self) -> str:
        """Get data source identifier."""
        pass
    
    @abstractmethod
    async def get_market(self, market: str) -> MarketSnapshot:
        """
        Get the current snapshot for a market.
        
        Raises:
            MarketNotFoundError: If the market does not exist
            MarketDataError: If the query fails
        """
        pass
    
    @abstractmethod
    async def get_funding_history(self, market: str, limit: int = 50) -> List[FundingRate]:
        """
        Get recent funding settlements for a market, newest first.
        
        Raises:
            MarketNotFoundError: If the market does not exist
            MarketDataError: If the query fails
        """
        pass

class AccountDataProvider(ABC):
    """
    Supplies account equity and open positions.
    
    Implementations:
    - IndexerClient: dYdX v4 indexer REST API
    - StaticAccountDataProvider: For testing
    """
    
    @property
    @abstractmethod
    def source_id(self) -> str:
        """Get data source identifier."""
        pass
    
    @abstractmethod
    async def get_account(self, address: str, subaccount_number: int = 0) -> AccountSnapshot:
        """
        Get the current snapshot for a subaccount.
        
        Raises:
            AccountNotFoundError: If the subaccount does not exist
            MarketDataError: If the query fails
        """
        pass

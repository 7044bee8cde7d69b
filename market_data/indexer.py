"""
Market Data - dYdX v4 Indexer Client.

============================================================
PURPOSE
============================================================
Read-only client for the public dYdX v4 indexer REST API.

ENDPOINTS USED:
- GET /v4/perpetualMarkets?ticker=<market>
- GET /v4/addresses/<address>/subaccountNumber/<n>
- GET /v4/historicalFunding/<market>?limit=<n>

This is NOT an exchange client: it never signs, places or
cancels orders. It only turns indexer payloads into
position_risk snapshots.

============================================================
ERROR MAPPING
============================================================
- 404 / unknown ticker     -> MarketNotFoundError
- 404 on funding history   -> MarketNotFoundError
- 404 on subaccount        -> AccountNotFoundError
- other HTTP status        -> MarketDataError
- timeout / transport      -> MarketDataError
- malformed numeric fields -> MarketDataError

============================================================
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import (
    AccountNotFoundError,
    ConfigurationError,
    InvalidInputError,
    MarketDataError,
    MarketNotFoundError,
)
from position_risk.types import (
    DEFAULT_MAINTENANCE_MARGIN_FRACTION,
    AccountSnapshot,
    FundingRate,
    MarketSnapshot,
    OpenPosition,
    PositionSide,
)
from position_risk.validation import to_decimal
from .base import AccountDataProvider, MarketDataProvider


logger = logging.getLogger(__name__)


INDEXER_URLS: Dict[str, str] = {
    "mainnet": "https://indexer.dydx.trade",
    "testnet": "https://indexer.v4testnet.dydx.exchange",
}


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class IndexerConfig:
    """Indexer connection settings."""
    
    base_url: str = INDEXER_URLS["testnet"]
    """Indexer root URL, without the /v4 suffix."""
    
    timeout_seconds: float = 10.0
    """Per-request timeout."""
    
    @classmethod
    def from_env(cls) -> "IndexerConfig":
        """
        Load configuration from environment variables.
        
        Environment variables:
        - DYDX_NETWORK (mainnet | testnet, default testnet)
        - DYDX_INDEXER_URL (overrides the network default)
        - DYDX_INDEXER_TIMEOUT
        """
        network = os.getenv("DYDX_NETWORK", "testnet").strip().lower()
        if network not in INDEXER_URLS:
            raise ConfigurationError(
                f"Unknown DYDX_NETWORK: {network}",
                config_key="DYDX_NETWORK",
                actual_value=network,
            )
        
        base_url = os.getenv("DYDX_INDEXER_URL") or INDEXER_URLS[network]
        
        timeout = cls.timeout_seconds
        raw_timeout = os.getenv("DYDX_INDEXER_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise ConfigurationError(
                    "DYDX_INDEXER_TIMEOUT must be a number",
                    config_key="DYDX_INDEXER_TIMEOUT",
                    actual_value=raw_timeout,
                    cause=e,
                ) from e
        
        return cls(base_url=base_url.rstrip("/"), timeout_seconds=timeout)


# ============================================================
# CLIENT
# ============================================================

class IndexerClient(MarketDataProvider, AccountDataProvider):
    """
    Async indexer client implementing both provider interfaces.
    
    Owns one httpx.AsyncClient; call aclose() (or use it as an
    async context manager) to release connections.
    """
    
    def __init__(
        self,
        config: Optional[IndexerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        default_mmf: Decimal = DEFAULT_MAINTENANCE_MARGIN_FRACTION,
    ):
        """
        Initialize the client.
        
        Args:
            config: Connection settings. Uses testnet defaults if not provided.
            transport: Optional httpx transport (used by tests).
            default_mmf: Maintenance margin fraction for markets whose
                payload omits one.
        """
        self._config = config or IndexerConfig()
        self._default_mmf = default_mmf
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )
    
    @property
    def source_id(self) -> str:
        return "dydx_indexer"
    
    @property
    def is_closed(self) -> bool:
        return self._client.is_closed
    
    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
    
    async def __aenter__(self) -> "IndexerClient":
        return self
    
    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
    
    # --------------------------------------------------------
    # MARKETS
    # --------------------------------------------------------
    
    async def get_market(self, market: str) -> MarketSnapshot:
        """Fetch one perpetual market."""
        endpoint = "/v4/perpetualMarkets"
        try:
            data = await self._get_json(endpoint, params={"ticker": market})
        except _NotFound:
            raise MarketNotFoundError(market, source=self.source_id, endpoint=endpoint) from None
        
        payload = (data.get("markets") or {}).get(market)
        if not payload:
            raise MarketNotFoundError(market, source=self.source_id, endpoint=endpoint)
        
        try:
            return parse_market(market, payload, default_mmf=self._default_mmf)
        except InvalidInputError as e:
            raise MarketDataError(
                f"Malformed market payload for {market}: {e.message}",
                source=self.source_id,
                endpoint=endpoint,
                cause=e,
            ) from e
    
    async def get_funding_history(self, market: str, limit: int = 50) -> List[FundingRate]:
        """Fetch recent funding settlements, newest first."""
        endpoint = f"/v4/historicalFunding/{market}"
        try:
            data = await self._get_json(endpoint, params={"limit": limit})
        except _NotFound:
            raise MarketNotFoundError(market, source=self.source_id, endpoint=endpoint) from None
        
        try:
            return [parse_funding(market, raw) for raw in data.get("historicalFunding") or []]
        except InvalidInputError as e:
            raise MarketDataError(
                f"Malformed funding payload for {market}: {e.message}",
                source=self.source_id,
                endpoint=endpoint,
                cause=e,
            ) from e
    
    # --------------------------------------------------------
    # ACCOUNTS
    # --------------------------------------------------------
    
    async def get_account(self, address: str, subaccount_number: int = 0) -> AccountSnapshot:
        """Fetch one subaccount with its open perpetual positions."""
        endpoint = f"/v4/addresses/{address}/subaccountNumber/{subaccount_number}"
        try:
            data = await self._get_json(endpoint)
        except _NotFound:
            raise AccountNotFoundError(
                address, subaccount_number, source=self.source_id, endpoint=endpoint
            ) from None
        
        payload = data.get("subaccount")
        if not payload:
            raise AccountNotFoundError(
                address, subaccount_number, source=self.source_id, endpoint=endpoint
            )
        
        try:
            return parse_account(address, payload)
        except InvalidInputError as e:
            raise MarketDataError(
                f"Malformed subaccount payload for {address}: {e.message}",
                source=self.source_id,
                endpoint=endpoint,
                cause=e,
            ) from e
    
    # --------------------------------------------------------
    # HTTP
    # --------------------------------------------------------
    
    async def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.get(endpoint, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise _NotFound() from e
            logger.warning(f"Indexer HTTP {e.response.status_code} on {endpoint}")
            raise MarketDataError(
                f"Indexer HTTP error {e.response.status_code}: {e.response.text[:200]}",
                source=self.source_id,
                endpoint=endpoint,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Indexer timeout on {endpoint}: {e}")
            raise MarketDataError(
                "Indexer request timed out", source=self.source_id, endpoint=endpoint, cause=e
            ) from e
        except httpx.RequestError as e:
            logger.warning(f"Indexer request error on {endpoint}: {e}")
            raise MarketDataError(
                f"Indexer request failed: {e}", source=self.source_id, endpoint=endpoint, cause=e
            ) from e
        except ValueError as e:
            raise MarketDataError(
                "Indexer returned invalid JSON", source=self.source_id, endpoint=endpoint, cause=e
            ) from e
        
        if not isinstance(data, dict):
            raise MarketDataError(
                f"Unexpected indexer response format: {type(data).__name__}",
                source=self.source_id,
                endpoint=endpoint,
            )
        return data


class _NotFound(Exception):
    """Internal signal for a 404 response."""


# ============================================================
# PAYLOAD PARSING
# ============================================================

def parse_market(
    market: str,
    payload: Dict[str, Any],
    default_mmf: Decimal = DEFAULT_MAINTENANCE_MARGIN_FRACTION,
) -> MarketSnapshot:
    """
    Convert an indexer perpetual market payload to a snapshot.

    Missing maintenanceMarginFraction falls back to default_mmf
    and a missing nextFundingRate to 0.
    """
    mmf = payload.get("maintenanceMarginFraction")
    funding = payload.get("nextFundingRate")
    
    return MarketSnapshot(
        market=market,
        oracle_price=to_decimal(payload.get("oraclePrice"), "oraclePrice", positive=True),
        maintenance_margin_fraction=(
            to_decimal(mmf, "maintenanceMarginFraction", non_negative=True)
            if mmf not in (None, "")
            else default_mmf
        ),
        next_funding_rate=(
            to_decimal(funding, "nextFundingRate") if funding not in (None, "") else Decimal("0")
        ),
    )


def parse_account(address: str, payload: Dict[str, Any]) -> AccountSnapshot:
    """
    Convert an indexer subaccount payload to a snapshot.
    
    Position sizes are signed upstream (negative for SHORT);
    snapshots carry the absolute size and an explicit side.
    """
    positions = []
    for market, raw in (payload.get("openPerpetualPositions") or {}).items():
        leverage = raw.get("leverage")
        positions.append(OpenPosition(
            market=raw.get("market") or market,
            side=PositionSide.parse(raw.get("side")),
            size=abs(to_decimal(raw.get("size"), "size")),
            entry_price=to_decimal(raw.get("entryPrice"), "entryPrice"),
            leverage=(
                to_decimal(leverage, "leverage", positive=True)
                if leverage not in (None, "")
                else Decimal("1")
            ),
            unrealized_pnl=to_decimal(raw.get("unrealizedPnl", "0"), "unrealizedPnl"),
            realized_pnl=to_decimal(raw.get("realizedPnl", "0"), "realizedPnl"),
        ))
    
    return AccountSnapshot(
        address=address,
        equity=to_decimal(payload.get("equity", "0"), "equity"),
        positions=tuple(positions),
    )


def parse_funding(market: str, payload: Dict[str, Any]) -> FundingRate:
    """Convert one historicalFunding entry to a FundingRate."""
    raw_time = payload.get("effectiveAt")
    if not isinstance(raw_time, str) or not raw_time:
        raise InvalidInputError("effectiveAt is required", field="effectiveAt", value=raw_time)
    try:
        # fromisoformat rejects the trailing Z on older interpreters
        effective_at = datetime.fromisoformat(raw_time.replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidInputError(
            f"effectiveAt is not an ISO timestamp: {raw_time}", field="effectiveAt", value=raw_time
        ) from e
    
    return FundingRate(
        market=payload.get("ticker") or market,
        rate=to_decimal(payload.get("rate"), "rate"),
        price=to_decimal(payload.get("price"), "price", positive=True),
        effective_at=effective_at,
    )

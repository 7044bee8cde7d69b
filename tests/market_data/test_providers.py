"""
Market Data Provider Tests.

============================================================
PURPOSE
============================================================
Tests for the in-memory providers and the dYdX indexer client.

The indexer client is exercised against httpx.MockTransport;
no test touches the network.

============================================================
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from core.exceptions import (
    AccountNotFoundError,
    ConfigurationError,
    MarketDataError,
    MarketNotFoundError,
)
from market_data import (
    INDEXER_URLS,
    IndexerClient,
    IndexerConfig,
    StaticAccountDataProvider,
    StaticMarketDataProvider,
    parse_market,
)
from position_risk import AccountSnapshot, FundingRate, MarketSnapshot, PositionSide


ADDRESS = "dydx1" + "q" * 38

MARKETS_PAYLOAD = {
    "markets": {
        "BTC-USD": {
            "ticker": "BTC-USD",
            "status": "ACTIVE",
            "oraclePrice": "42500.5",
            "maintenanceMarginFraction": "0.03",
            "initialMarginFraction": "0.05",
            "nextFundingRate": "0.00001",
        }
    }
}

FUNDING_PAYLOAD = {
    "historicalFunding": [
        {
            "ticker": "BTC-USD",
            "rate": "0.0000125",
            "price": "42480.1",
            "effectiveAt": "2024-01-15T08:00:00.000Z",
            "effectiveAtHeight": "1200000",
        },
        {
            "ticker": "BTC-USD",
            "rate": "-0.000003",
            "price": "42390",
            "effectiveAt": "2024-01-15T07:00:00.000Z",
            "effectiveAtHeight": "1199000",
        },
    ]
}

SUBACCOUNT_PAYLOAD = {
    "subaccount": {
        "address": ADDRESS,
        "subaccountNumber": 0,
        "equity": "10000.25",
        "freeCollateral": "8000",
        "openPerpetualPositions": {
            "BTC-USD": {
                "market": "BTC-USD",
                "status": "OPEN",
                "side": "LONG",
                "size": "0.5",
                "entryPrice": "42000",
                "realizedPnl": "0",
                "unrealizedPnl": "250.25",
            },
            "ETH-USD": {
                "market": "ETH-USD",
                "status": "OPEN",
                "side": "SHORT",
                "size": "-3",
                "entryPrice": "2200",
                "realizedPnl": "-1.5",
                "unrealizedPnl": "12",
            },
        },
    }
}


def make_client(handler, **kwargs) -> IndexerClient:
    return IndexerClient(
        IndexerConfig(base_url="https://indexer.test"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(payload, status_code=200):
    return httpx.Response(status_code, content=json.dumps(payload).encode())


# ============================================================
# STATIC PROVIDERS
# ============================================================

class TestStaticProviders:
    """Tests for the in-memory providers."""
    
    @pytest.mark.asyncio
    async def test_known_market(self):
        snapshot = MarketSnapshot(market="BTC-USD", oracle_price=Decimal("42000"))
        provider = StaticMarketDataProvider([snapshot])
        
        assert await provider.get_market("BTC-USD") is snapshot
        assert provider.source_id == "static"
    
    @pytest.mark.asyncio
    async def test_unknown_market(self):
        provider = StaticMarketDataProvider()
        
        with pytest.raises(MarketNotFoundError) as exc_info:
            await provider.get_market("DOGE-USD")
        
        assert exc_info.value.market == "DOGE-USD"
    
    @pytest.mark.asyncio
    async def test_set_market_replaces(self):
        provider = StaticMarketDataProvider([MarketSnapshot("BTC-USD", Decimal("1"))])
        provider.set_market(MarketSnapshot("BTC-USD", Decimal("2")))
        
        assert (await provider.get_market("BTC-USD")).oracle_price == Decimal("2")
    
    @pytest.mark.asyncio
    async def test_accounts(self):
        account = AccountSnapshot(address=ADDRESS, equity=Decimal("100"))
        provider = StaticAccountDataProvider([account])
        
        assert await provider.get_account(ADDRESS) is account
        
        with pytest.raises(AccountNotFoundError):
            await provider.get_account(ADDRESS, subaccount_number=1)
    
    @pytest.mark.asyncio
    async def test_funding_history(self):
        rates = [
            FundingRate(
                "BTC-USD", Decimal("0.0001"), Decimal("42000"),
                datetime(2024, 1, 15, hour, tzinfo=timezone.utc),
            )
            for hour in (8, 7, 6)
        ]
        provider = StaticMarketDataProvider([MarketSnapshot("BTC-USD", Decimal("42000"))])
        provider.set_funding_history("BTC-USD", rates)
        
        assert await provider.get_funding_history("BTC-USD") == rates
        assert await provider.get_funding_history("BTC-USD", limit=2) == rates[:2]
    
    @pytest.mark.asyncio
    async def test_funding_history_known_market_without_settlements(self):
        provider = StaticMarketDataProvider([MarketSnapshot("ETH-USD", Decimal("2000"))])
        
        assert await provider.get_funding_history("ETH-USD") == []
    
    @pytest.mark.asyncio
    async def test_funding_history_unknown_market(self):
        provider = StaticMarketDataProvider()
        
        with pytest.raises(MarketNotFoundError):
            await provider.get_funding_history("DOGE-USD")


# ============================================================
# INDEXER CLIENT
# ============================================================

class TestIndexerMarkets:
    """Tests for IndexerClient.get_market."""
    
    @pytest.mark.asyncio
    async def test_parses_market(self):
        seen = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response(MARKETS_PAYLOAD)
        
        async with make_client(handler) as client:
            market = await client.get_market("BTC-USD")
        
        assert seen[0].url.path == "/v4/perpetualMarkets"
        assert seen[0].url.params["ticker"] == "BTC-USD"
        assert market.oracle_price == Decimal("42500.5")
        assert market.maintenance_margin_fraction == Decimal("0.03")
        assert market.next_funding_rate == Decimal("0.00001")
        assert market.reference_price == Decimal("42500.5")
    
    @pytest.mark.asyncio
    async def test_missing_optional_fields_use_defaults(self):
        payload = {"markets": {"SOL-USD": {"oraclePrice": "95"}}}
        
        async with make_client(lambda request: json_response(payload)) as client:
            market = await client.get_market("SOL-USD")
        
        assert market.maintenance_margin_fraction == Decimal("0.03")
        assert market.next_funding_rate == Decimal("0")
    
    @pytest.mark.asyncio
    async def test_missing_mmf_uses_configured_default(self):
        """A client built with a default mmf applies it to markets that omit one."""
        payload = {"markets": {"SOL-USD": {"oraclePrice": "95"}}}
        
        async with make_client(lambda request: json_response(payload), default_mmf=Decimal("0.05")) as client:
            market = await client.get_market("SOL-USD")
        
        assert market.maintenance_margin_fraction == Decimal("0.05")
    
    @pytest.mark.asyncio
    async def test_payload_mmf_wins_over_default(self):
        async with make_client(lambda request: json_response(MARKETS_PAYLOAD), default_mmf=Decimal("0.05")) as client:
            market = await client.get_market("BTC-USD")
        
        assert market.maintenance_margin_fraction == Decimal("0.03")
    
    @pytest.mark.asyncio
    async def test_unknown_ticker_in_payload(self):
        async with make_client(lambda request: json_response({"markets": {}})) as client:
            with pytest.raises(MarketNotFoundError):
                await client.get_market("NOPE-USD")
    
    @pytest.mark.asyncio
    async def test_404(self):
        async with make_client(lambda request: json_response({"errors": []}, 404)) as client:
            with pytest.raises(MarketNotFoundError):
                await client.get_market("NOPE-USD")
    
    @pytest.mark.asyncio
    async def test_server_error(self):
        async with make_client(lambda request: httpx.Response(503, text="busy")) as client:
            with pytest.raises(MarketDataError) as exc_info:
                await client.get_market("BTC-USD")
        
        assert not isinstance(exc_info.value, MarketNotFoundError)
    
    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)
        
        async with make_client(handler) as client:
            with pytest.raises(MarketDataError, match="request failed"):
                await client.get_market("BTC-USD")
    
    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)
        
        async with make_client(handler) as client:
            with pytest.raises(MarketDataError, match="timed out"):
                await client.get_market("BTC-USD")
    
    @pytest.mark.asyncio
    async def test_malformed_price(self):
        payload = {"markets": {"BTC-USD": {"oraclePrice": "NaN"}}}
        
        async with make_client(lambda request: json_response(payload)) as client:
            with pytest.raises(MarketDataError, match="Malformed market payload"):
                await client.get_market("BTC-USD")
    
    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with make_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(MarketDataError, match="invalid JSON"):
                await client.get_market("BTC-USD")


class TestParseMarket:
    """Tests for parse_market defaults."""
    
    def test_default_mmf_argument(self):
        market = parse_market("SOL-USD", {"oraclePrice": "95"}, default_mmf=Decimal("0.07"))
        
        assert market.maintenance_margin_fraction == Decimal("0.07")
    
    def test_empty_string_mmf_is_missing(self):
        market = parse_market("SOL-USD", {"oraclePrice": "95", "maintenanceMarginFraction": ""})
        
        assert market.maintenance_margin_fraction == Decimal("0.03")


class TestIndexerFunding:
    """Tests for IndexerClient.get_funding_history."""
    
    @pytest.mark.asyncio
    async def test_parses_history(self):
        seen = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response(FUNDING_PAYLOAD)
        
        async with make_client(handler) as client:
            rates = await client.get_funding_history("BTC-USD", limit=2)
        
        assert seen[0].url.path == "/v4/historicalFunding/BTC-USD"
        assert seen[0].url.params["limit"] == "2"
        assert len(rates) == 2
        assert rates[0].market == "BTC-USD"
        assert rates[0].rate == Decimal("0.0000125")
        assert rates[0].price == Decimal("42480.1")
        assert rates[0].effective_at == datetime(2024, 1, 15, 8, tzinfo=timezone.utc)
        assert rates[1].rate == Decimal("-0.000003")
    
    @pytest.mark.asyncio
    async def test_empty_history(self):
        async with make_client(lambda request: json_response({"historicalFunding": []})) as client:
            assert await client.get_funding_history("BTC-USD") == []
    
    @pytest.mark.asyncio
    async def test_404(self):
        async with make_client(lambda request: json_response({"errors": []}, 404)) as client:
            with pytest.raises(MarketNotFoundError):
                await client.get_funding_history("NOPE-USD")
    
    @pytest.mark.asyncio
    async def test_malformed_timestamp(self):
        payload = {"historicalFunding": [{"rate": "0.0001", "price": "1", "effectiveAt": "yesterday"}]}
        
        async with make_client(lambda request: json_response(payload)) as client:
            with pytest.raises(MarketDataError, match="Malformed funding payload"):
                await client.get_funding_history("BTC-USD")


class TestIndexerAccounts:
    """Tests for IndexerClient.get_account."""
    
    @pytest.mark.asyncio
    async def test_parses_subaccount(self):
        seen = []
        
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return json_response(SUBACCOUNT_PAYLOAD)
        
        async with make_client(handler) as client:
            account = await client.get_account(ADDRESS)
        
        assert seen[0].url.path == f"/v4/addresses/{ADDRESS}/subaccountNumber/0"
        assert account.equity == Decimal("10000.25")
        assert len(account.positions) == 2
        
        eth = account.find_position("ETH-USD-SHORT")
        assert eth.side is PositionSide.SHORT
        assert eth.size == Decimal("3")
        assert eth.leverage == Decimal("1")
        assert eth.realized_pnl == Decimal("-1.5")
        
        btc = account.find_position("BTC-USD-LONG")
        assert btc.unrealized_pnl == Decimal("250.25")
    
    @pytest.mark.asyncio
    async def test_no_open_positions(self):
        payload = {"subaccount": {"equity": "5", "openPerpetualPositions": {}}}
        
        async with make_client(lambda request: json_response(payload)) as client:
            account = await client.get_account(ADDRESS, subaccount_number=2)
        
        assert account.positions == ()
    
    @pytest.mark.asyncio
    async def test_404(self):
        async with make_client(lambda request: json_response({}, 404)) as client:
            with pytest.raises(AccountNotFoundError) as exc_info:
                await client.get_account(ADDRESS)
        
        assert exc_info.value.address == ADDRESS


class TestIndexerLifecycle:
    """Tests for client lifecycle."""
    
    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        client = make_client(lambda request: json_response(MARKETS_PAYLOAD))
        
        async with client:
            assert not client.is_closed
        
        assert client.is_closed
        assert client.source_id == "dydx_indexer"


class TestIndexerConfig:
    """Tests for IndexerConfig.from_env."""
    
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("DYDX_NETWORK", "DYDX_INDEXER_URL", "DYDX_INDEXER_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
    
    def test_defaults_to_testnet(self):
        assert IndexerConfig.from_env().base_url == INDEXER_URLS["testnet"]
    
    def test_mainnet(self, monkeypatch):
        monkeypatch.setenv("DYDX_NETWORK", "mainnet")
        
        assert IndexerConfig.from_env().base_url == "https://indexer.dydx.trade"
    
    def test_explicit_url_and_timeout(self, monkeypatch):
        monkeypatch.setenv("DYDX_INDEXER_URL", "http://localhost:3002/")
        monkeypatch.setenv("DYDX_INDEXER_TIMEOUT", "2.5")
        
        config = IndexerConfig.from_env()
        
        assert config.base_url == "http://localhost:3002"
        assert config.timeout_seconds == 2.5
    
    @pytest.mark.parametrize("name,value", [
        ("DYDX_NETWORK", "devnet"),
        ("DYDX_INDEXER_TIMEOUT", "soon"),
    ])
    def test_invalid(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        
        with pytest.raises(ConfigurationError):
            IndexerConfig.from_env()

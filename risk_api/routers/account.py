import asyncio
import logging
from typing import Dict, Iterable, List

from fastapi import APIRouter, Depends

from core.exceptions import MarketNotFoundError
from market_data import AccountDataProvider, MarketDataProvider
from position_risk import MarketSnapshot, PositionRiskAnalyzer
from risk_api.dependencies import (
    enforce_rate_limit,
    get_account_provider,
    get_analyzer,
    get_market_provider,
    get_wallet_address,
)
from risk_api.schemas import ERROR_RESPONSES, AccountRiskResponse, PositionSummaryResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/user",
    tags=["Account Risk"],
    dependencies=[Depends(enforce_rate_limit)],
    responses=ERROR_RESPONSES,
)


async def _load_markets(
    symbols: Iterable[str],
    market_provider: MarketDataProvider,
) -> Dict[str, MarketSnapshot]:
    """Fetch snapshots concurrently, skipping markets the provider no longer lists."""
    symbols = sorted(set(symbols))
    results = await asyncio.gather(
        *(market_provider.get_market(symbol) for symbol in symbols),
        return_exceptions=True,
    )

    markets: Dict[str, MarketSnapshot] = {}
    for symbol, result in zip(symbols, results):
        if isinstance(result, MarketNotFoundError):
            # Delisted markets fall back to entry price
            logger.warning(f"No market data for {symbol}, using entry price")
            continue
        if isinstance(result, BaseException):
            raise result
        markets[symbol] = result
    return markets


@router.get("/risk", response_model=AccountRiskResponse)
async def get_account_risk(
    wallet: str = Depends(get_wallet_address),
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
    account_provider: AccountDataProvider = Depends(get_account_provider),
):
    """
    Account-wide margin ratio, liquidation risk bucket, exposure
    per market and warnings for the caller's subaccount 0.
    """
    account = await account_provider.get_account(wallet)
    markets = await _load_markets((p.market for p in account.positions), market_provider)

    summary = analyzer.assess_account(account, markets)
    return summary.to_dict()


@router.get("/positions", response_model=List[PositionSummaryResponse])
async def get_positions(
    wallet: str = Depends(get_wallet_address),
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
    account_provider: AccountDataProvider = Depends(get_account_provider),
):
    """
    Open positions of the caller's subaccount 0, marked to market
    with their liquidation price.
    """
    account = await account_provider.get_account(wallet)
    markets = await _load_markets((p.market for p in account.positions), market_provider)

    return [
        analyzer.summarize_position(position, markets.get(position.market)).to_dict()
        for position in account.positions
    ]

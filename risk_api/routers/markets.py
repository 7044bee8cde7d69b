from typing import List

from fastapi import APIRouter, Depends, Query

from core.exceptions import InvalidInputError
from market_data import MarketDataProvider
from position_risk import PositionRiskAnalyzer, sanitize_market_symbol
from risk_api.dependencies import enforce_rate_limit, get_analyzer, get_market_provider
from risk_api.schemas import ERROR_RESPONSES, FundingRateResponse, MarketOverviewResponse

router = APIRouter(
    prefix="/api/markets",
    tags=["Market Data"],
    dependencies=[Depends(enforce_rate_limit)],
    responses=ERROR_RESPONSES,
)


def _market_symbol(market: str) -> str:
    symbol = sanitize_market_symbol(market)
    if symbol is None:
        raise InvalidInputError("Valid market symbol required", field="market", value=market)
    return symbol


@router.get("/{market}/data", response_model=MarketOverviewResponse)
async def get_market_data(
    market: str,
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
):
    """Oracle and mark price, maintenance margin fraction and funding."""
    snapshot = await market_provider.get_market(_market_symbol(market))
    return analyzer.describe_market(snapshot).to_dict()


@router.get("/{market}/funding", response_model=List[FundingRateResponse])
async def get_funding_history(
    market: str,
    limit: int = Query(50, ge=1, le=100),
    market_provider: MarketDataProvider = Depends(get_market_provider),
):
    """
    Recent funding settlements, newest first.
    """
    rates = await market_provider.get_funding_history(_market_symbol(market), limit=limit)
    return [rate.to_dict() for rate in rates]

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from market_data import MarketDataProvider
from risk_api.dependencies import get_market_provider
from risk_api.schemas import HealthResponse

router = APIRouter(tags=["System Health"])


@router.get("/health", response_model=HealthResponse)
async def get_health(provider: MarketDataProvider = Depends(get_market_provider)):
    """
    Liveness check. Does not call upstream market data.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        market_data=provider.source_id,
    )

"""
Risk API - Package.

FastAPI service over position_risk and market_data.

    uvicorn risk_api.main:app
"""

from .config import ApiConfig
from .rate_limit import SlidingWindowRateLimiter
from .main import create_app


__all__ = [
    "ApiConfig",
    "SlidingWindowRateLimiter",
    "create_app",
]

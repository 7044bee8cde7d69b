"""
Pydantic schemas for the Risk API.

Request numbers accept JSON numbers or numeric strings and are
parsed to Decimal (NaN and Infinity are rejected). Response
numbers are plain floats.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from position_risk import MarginMode, PositionSide


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


# =======================
# COMMON
# =======================

class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    details: Optional[List[str]] = None


class RateLimitResponse(BaseModel):
    error: str
    retry_after: int


ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid request or input"},
    404: {"model": ErrorResponse, "description": "Market, account or position not found"},
    429: {"model": RateLimitResponse, "description": "Rate limit exceeded"},
    502: {"model": ErrorResponse, "description": "Market data unavailable"},
}


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    market_data: str


# =======================
# 1. LIQUIDATION PRICE
# =======================

class LiquidationPriceRequest(BaseModel):
    market: str = Field(min_length=1)
    side: PositionSide
    size: Decimal = Field(gt=0)
    entry_price: Decimal = Field(gt=0)
    leverage: Decimal
    margin_mode: MarginMode = MarginMode.CROSS
    maintenance_margin_fraction: Optional[Decimal] = Field(default=None, ge=0, lt=1)

    @field_validator("market", mode="before")
    @classmethod
    def normalize_market(cls, v):
        return _upper(v)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return _upper(v)

    @field_validator("margin_mode", mode="before")
    @classmethod
    def normalize_margin_mode(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class LiquidationPriceResponse(BaseModel):
    market: str
    side: str
    liquidation_price: float
    entry_price: float
    leverage: float
    margin_mode: str
    distance_to_liquidation: float


# =======================
# 2. RISK ANALYSIS
# =======================

class AnalyzeRequest(BaseModel):
    """Either a position_id of an open position, or market/size/leverage."""
    position_id: Optional[str] = None
    market: Optional[str] = None
    size: Optional[Decimal] = Field(default=None, gt=0)
    leverage: Optional[Decimal] = None
    side: Optional[PositionSide] = None
    entry_price: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("market", mode="before")
    @classmethod
    def normalize_market(cls, v):
        return _upper(v)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return _upper(v)


class RiskMetricsResponse(BaseModel):
    market: str
    side: Optional[str] = None
    position_size: float
    leverage: float
    notional_value: float
    required_margin: float
    account_equity: float
    margin_usage_percent: float
    funding_rate: float
    daily_funding_cost: float
    risk_score: int
    recommendations: List[str]
    liquidation_price: Optional[float] = None
    distance_to_liquidation: Optional[float] = None


# =======================
# 3. POSITION P&L
# =======================

class PositionPnlRequest(BaseModel):
    market: str = Field(min_length=1)
    side: PositionSide
    size: Decimal = Field(gt=0)
    entry_price: Decimal = Field(gt=0)
    leverage: Decimal
    current_price: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("market", mode="before")
    @classmethod
    def normalize_market(cls, v):
        return _upper(v)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return _upper(v)


class PositionPnlResponse(BaseModel):
    market: str
    side: str
    current_price: float
    notional_value: float
    unrealized_pnl: float
    pnl_percentage: float
    liquidation_price: float
    distance_to_liquidation: float


# =======================
# 4. PRE-TRADE CHECK
# =======================

class PreTradeRequest(BaseModel):
    """
    Raw order parameters. Fields are deliberately loose so that
    every problem is reported in the response instead of a 400.
    """
    market: Optional[Any] = None
    side: Optional[Any] = None
    type: Optional[Any] = None
    size: Optional[Any] = None
    price: Optional[Any] = None
    leverage: Optional[Any] = None


class PreTradeResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    risk: Optional[RiskMetricsResponse] = None


# =======================
# 5. ACCOUNT RISK
# =======================

class AccountRiskResponse(BaseModel):
    address: str
    total_margin_ratio: float
    maintenance_margin: float
    liquidation_risk: str
    exposure_by_market: Dict[str, float]
    warnings: List[str]


class PositionSummaryResponse(BaseModel):
    position_id: str
    market: str
    side: str
    size: float
    entry_price: float
    mark_price: float
    leverage: float
    margin_mode: str
    unrealized_pnl: float
    realized_pnl: float
    liquidation_price: float
    distance_to_liquidation: float


# =======================
# 6. MARKET DATA
# =======================

class MarketOverviewResponse(BaseModel):
    market: str
    oracle_price: float
    mark_price: float
    maintenance_margin_fraction: float
    funding_rate: float
    daily_funding_rate: float


class FundingRateResponse(BaseModel):
    market: str
    rate: float
    price: float
    effective_at: datetime

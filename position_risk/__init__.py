"""
Position Risk - Package.

============================================================
PURPOSE
============================================================
Pure calculation layer that turns position, market and
account numbers into risk-facing metrics for display and
pre-trade guardrails.

============================================================
WHAT IT IS
============================================================
- Closed-form liquidation, P&L, margin and funding math
- Deterministic, banded risk score (0-100)
- Ordered, rule-based recommendations
- Stateless: safe to call concurrently without locks

============================================================
WHAT IT IS NOT
============================================================
- NOT an exchange client (snapshots come from market_data)
- NOT persistent (results live for one request)
- NOT a continuous risk model

============================================================
USAGE
============================================================
    from decimal import Decimal
    from position_risk import PositionRiskCalculator, PositionSide
    
    calc = PositionRiskCalculator()
    
    liq = calc.calculate_liquidation_price(
        Decimal("42000"), Decimal("0.5"), Decimal("5"), PositionSide.LONG
    )
    # Decimal("34860.00")
    
    calc.calculate_risk_score(12, 75)     # 60
    calc.generate_recommendations(3, 20)  # ["Position risk is within acceptable parameters"]

============================================================
"""

# Types
from .types import (
    DEFAULT_MAINTENANCE_MARGIN_FRACTION,
    
    # Enums
    PositionSide,
    OrderSide,
    OrderType,
    MarginMode,
    LiquidationRisk,
    
    # Input types
    PositionSnapshot,
    MarketSnapshot,
    OpenPosition,
    AccountSnapshot,
    FundingRate,
    
    # Output types
    RiskMetrics,
    LiquidationEstimate,
    PositionValuation,
    AccountRiskSummary,
    PositionSummary,
    MarketOverview,
)

# Configuration
from .config import (
    DEFAULT_FUNDING_INTERVALS_PER_DAY,
    FundingConfig,
    LeverageLimits,
    RiskScoreConfig,
    RecommendationConfig,
    AccountRiskConfig,
    PositionRiskConfig,
    get_default_config,
    RECOMMEND_REDUCE_LEVERAGE,
    RECOMMEND_HIGH_MARGIN_USAGE,
    RECOMMEND_HIGH_RISK_PROFILE,
    RECOMMEND_ACCEPTABLE,
)

# Validation
from .validation import (
    to_decimal,
    validate_leverage,
    validate_order_params,
    validate_address,
    validate_dydx_address,
    validate_wallet_address,
    sanitize_market_symbol,
    OrderValidationResult,
)

# Calculator
from .calculator import (
    PositionRiskCalculator,
    calculate_liquidation_price,
    calculate_pnl,
    calculate_pnl_percentage,
    calculate_required_margin,
    calculate_margin_ratio,
    calculate_funding_payment,
    calculate_daily_funding_cost,
    estimate_liquidation_distance,
    calculate_risk_score,
    generate_recommendations,
)

# Analyzer
from .analyzer import PositionRiskAnalyzer


__all__ = [
    "DEFAULT_MAINTENANCE_MARGIN_FRACTION",
    
    # Enums
    "PositionSide",
    "OrderSide",
    "OrderType",
    "MarginMode",
    "LiquidationRisk",
    
    # Input types
    "PositionSnapshot",
    "MarketSnapshot",
    "OpenPosition",
    "AccountSnapshot",
    "FundingRate",
    
    # Output types
    "RiskMetrics",
    "LiquidationEstimate",
    "PositionValuation",
    "AccountRiskSummary",
    "PositionSummary",
    "MarketOverview",
    
    # Configuration
    "DEFAULT_FUNDING_INTERVALS_PER_DAY",
    "FundingConfig",
    "LeverageLimits",
    "RiskScoreConfig",
    "RecommendationConfig",
    "AccountRiskConfig",
    "PositionRiskConfig",
    "get_default_config",
    "RECOMMEND_REDUCE_LEVERAGE",
    "RECOMMEND_HIGH_MARGIN_USAGE",
    "RECOMMEND_HIGH_RISK_PROFILE",
    "RECOMMEND_ACCEPTABLE",
    
    # Validation
    "to_decimal",
    "validate_leverage",
    "validate_order_params",
    "validate_address",
    "validate_dydx_address",
    "validate_wallet_address",
    "sanitize_market_symbol",
    "OrderValidationResult",
    
    # Calculator
    "PositionRiskCalculator",
    "calculate_liquidation_price",
    "calculate_pnl",
    "calculate_pnl_percentage",
    "calculate_required_margin",
    "calculate_margin_ratio",
    "calculate_funding_payment",
    "calculate_daily_funding_cost",
    "estimate_liquidation_distance",
    "calculate_risk_score",
    "generate_recommendations",
    
    # Analyzer
    "PositionRiskAnalyzer",
]


__version__ = "1.0.0"

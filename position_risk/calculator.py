"""
Position Risk - Calculator.

============================================================
PURPOSE
============================================================
Pure functions mapping position and market numbers to
risk-facing metrics:

- Liquidation price
- Unrealized P&L (absolute and percentage)
- Required margin and margin ratio
- Funding payments
- Distance to liquidation
- Banded risk score and ordered recommendations

============================================================
DESIGN PRINCIPLES
============================================================
- Stateless and reentrant: safe to call concurrently
- Decimal arithmetic throughout
- Preconditions validated explicitly; violations raise
  InvalidInputError instead of producing NaN/Infinity
- equity <= 0 is a sentinel (margin ratio 1), not an error

============================================================
LIQUIDATION FORMULA
============================================================
    initial_margin     = entry * size / leverage
    maintenance_margin = entry * size * mmf
    LONG:  entry - (initial_margin - maintenance_margin) / size
    SHORT: entry + (initial_margin - maintenance_margin) / size

LONG positions liquidate on a price decline, SHORT on a
rise, so the distance flips sign by side.

============================================================
"""

from decimal import Decimal
from typing import Any, List, Optional

from core.exceptions import InvalidInputError
from .config import (
    PositionRiskConfig,
    RECOMMEND_ACCEPTABLE,
    RECOMMEND_HIGH_MARGIN_USAGE,
    RECOMMEND_HIGH_RISK_PROFILE,
    RECOMMEND_REDUCE_LEVERAGE,
    ScoreBands,
)
from .types import PositionSide
from .validation import to_decimal


_ONE = Decimal("1")
_HUNDRED = Decimal("100")


class PositionRiskCalculator:
    """
    Stateless position risk calculator.
    
    The only state is the immutable configuration, so a single
    instance can be shared across requests.
    """
    
    def __init__(self, config: Optional[PositionRiskConfig] = None):
        """
        Initialize the calculator.
        
        Args:
            config: Thresholds and constants. Uses defaults if not provided.
        """
        self.config = config or PositionRiskConfig()
    
    # --------------------------------------------------------
    # LIQUIDATION
    # --------------------------------------------------------
    
    def calculate_liquidation_price(
        self,
        entry_price: Any,
        size: Any,
        leverage: Any,
        side: Any,
        maintenance_margin_fraction: Any = None,
    ) -> Decimal:
        """
        Price at which the position's margin falls to maintenance.
        
        The result is not clamped: pathological leverage/margin
        combinations can produce a negative price.
        
        Args:
            entry_price: Entry price, > 0
            size: Position size in base units, > 0
            leverage: Leverage, > 0
            side: LONG or SHORT
            maintenance_margin_fraction: In [0, 1). Defaults to 0.03
            
        Returns:
            Liquidation price
            
        Raises:
            InvalidInputError: If a precondition is violated
        """
        entry = to_decimal(entry_price, "entry_price", positive=True)
        qty = to_decimal(size, "size", positive=True)
        lev = to_decimal(leverage, "leverage", positive=True)
        position_side = PositionSide.parse(side)
        
        if maintenance_margin_fraction is None:
            mmf = self.config.default_maintenance_margin_fraction
        else:
            mmf = to_decimal(maintenance_margin_fraction, "maintenance_margin_fraction", non_negative=True)
            if mmf >= _ONE:
                raise InvalidInputError(
                    "maintenance_margin_fraction must be below 1",
                    field="maintenance_margin_fraction",
                    value=maintenance_margin_fraction,
                )
        
        initial_margin = entry * qty / lev
        maintenance_margin = entry * qty * mmf
        distance = (initial_margin - maintenance_margin) / qty
        
        if position_side is PositionSide.LONG:
            return entry - distance
        return entry + distance
    
    def estimate_liquidation_distance(self, current_price: Any, liquidation_price: Any) -> Decimal:
        """
        Distance from current price to liquidation, in percent.
        
        Raises:
            InvalidInputError: If current_price is zero
        """
        current = to_decimal(current_price, "current_price")
        liquidation = to_decimal(liquidation_price, "liquidation_price")
        
        if current == 0:
            raise InvalidInputError("current_price must not be zero", field="current_price")
        
        return abs((liquidation - current) / current) * _HUNDRED
    
    # --------------------------------------------------------
    # P&L
    # --------------------------------------------------------
    
    def calculate_pnl(self, entry_price: Any, current_price: Any, size: Any, side: Any) -> Decimal:
        """Unrealized P&L in quote units. LONG and SHORT are exact negatives."""
        entry = to_decimal(entry_price, "entry_price")
        current = to_decimal(current_price, "current_price")
        qty = to_decimal(size, "size")
        
        if PositionSide.parse(side) is PositionSide.LONG:
            return (current - entry) * qty
        return (entry - current) * qty
    
    def calculate_pnl_percentage(self, entry_price: Any, current_price: Any, side: Any) -> Decimal:
        """
        Price change relative to entry, signed by side, in percent.
        
        Raises:
            InvalidInputError: If entry_price is zero
        """
        entry = to_decimal(entry_price, "entry_price")
        current = to_decimal(current_price, "current_price")
        
        if entry == 0:
            raise InvalidInputError("entry_price must not be zero", field="entry_price")
        
        if PositionSide.parse(side) is PositionSide.LONG:
            change = (current - entry) / entry
        else:
            change = (entry - current) / entry
        return change * _HUNDRED
    
    # --------------------------------------------------------
    # MARGIN
    # --------------------------------------------------------
    
    def calculate_required_margin(self, notional_value: Any, leverage: Any) -> Decimal:
        """Initial margin needed to carry the notional at the given leverage."""
        notional = to_decimal(notional_value, "notional_value")
        lev = to_decimal(leverage, "leverage", positive=True)
        return notional / lev
    
    def calculate_margin_ratio(self, equity: Any, maintenance_margin: Any) -> Decimal:
        """
        Maintenance margin as a fraction of equity.
        
        Returns 1 (fully at risk) when equity <= 0.
        """
        eq = to_decimal(equity, "equity")
        margin = to_decimal(maintenance_margin, "maintenance_margin")
        
        if eq <= 0:
            return _ONE
        return margin / eq
    
    # --------------------------------------------------------
    # FUNDING
    # --------------------------------------------------------
    
    def calculate_funding_payment(self, notional_value: Any, funding_rate: Any) -> Decimal:
        """Funding paid (positive) or received (negative) for one interval."""
        notional = to_decimal(notional_value, "notional_value")
        rate = to_decimal(funding_rate, "funding_rate")
        return notional * rate
    
    def calculate_daily_funding_cost(self, notional_value: Any, funding_rate: Any) -> Decimal:
        """Funding over one day at the configured settlement cadence."""
        payment = self.calculate_funding_payment(notional_value, funding_rate)
        return payment * self.config.funding.intervals_per_day
    
    # --------------------------------------------------------
    # RISK SCORE
    # --------------------------------------------------------
    
    def calculate_risk_score(self, leverage: Any, margin_usage_percent: Any) -> int:
        """
        Banded risk score in [0, 100].
        
        Sum of a leverage band and a margin-usage band, clamped
        to max_score. Band thresholds are exclusive: exactly 15x
        scores the >10 band.
        """
        lev = to_decimal(leverage, "leverage")
        usage = to_decimal(margin_usage_percent, "margin_usage_percent")
        cfg = self.config.risk_score
        
        score = (
            _band_points(lev, cfg.leverage_bands, cfg.leverage_floor_points)
            + _band_points(usage, cfg.margin_usage_bands, cfg.margin_usage_floor_points)
        )
        return max(0, min(score, cfg.max_score))
    
    def generate_recommendations(self, leverage: Any, margin_usage_percent: Any) -> List[str]:
        """
        Ordered guidance messages.
        
        Every matching rule contributes; the fallback message
        appears only when no rule matched.
        """
        lev = to_decimal(leverage, "leverage")
        usage = to_decimal(margin_usage_percent, "margin_usage_percent")
        cfg = self.config.recommendations
        
        recommendations: List[str] = []
        
        if lev > cfg.reduce_leverage_above:
            recommendations.append(RECOMMEND_REDUCE_LEVERAGE)
        
        if usage > cfg.high_margin_usage_above:
            recommendations.append(RECOMMEND_HIGH_MARGIN_USAGE)
        
        if lev > cfg.high_risk_leverage_above and usage > cfg.high_risk_margin_usage_above:
            recommendations.append(RECOMMEND_HIGH_RISK_PROFILE)
        
        if not recommendations:
            recommendations.append(RECOMMEND_ACCEPTABLE)
        
        return recommendations


def _band_points(value: Decimal, bands: ScoreBands, floor_points: int) -> int:
    for threshold, points in sorted(bands, key=lambda band: band[0], reverse=True):
        if value > threshold:
            return points
    return floor_points


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

_default_calculator = PositionRiskCalculator()


def calculate_liquidation_price(
    entry_price: Any,
    size: Any,
    leverage: Any,
    side: Any,
    maintenance_margin_fraction: Any = None,
) -> Decimal:
    """Liquidation price with default configuration."""
    return _default_calculator.calculate_liquidation_price(
        entry_price, size, leverage, side, maintenance_margin_fraction
    )


def calculate_pnl(entry_price: Any, current_price: Any, size: Any, side: Any) -> Decimal:
    return _default_calculator.calculate_pnl(entry_price, current_price, size, side)


def calculate_pnl_percentage(entry_price: Any, current_price: Any, side: Any) -> Decimal:
    return _default_calculator.calculate_pnl_percentage(entry_price, current_price, side)


def calculate_required_margin(notional_value: Any, leverage: Any) -> Decimal:
    return _default_calculator.calculate_required_margin(notional_value, leverage)


def calculate_margin_ratio(equity: Any, maintenance_margin: Any) -> Decimal:
    return _default_calculator.calculate_margin_ratio(equity, maintenance_margin)


def calculate_funding_payment(notional_value: Any, funding_rate: Any) -> Decimal:
    return _default_calculator.calculate_funding_payment(notional_value, funding_rate)


def calculate_daily_funding_cost(notional_value: Any, funding_rate: Any) -> Decimal:
    """Daily funding at the default three settlements per day."""
    return _default_calculator.calculate_daily_funding_cost(notional_value, funding_rate)


def estimate_liquidation_distance(current_price: Any, liquidation_price: Any) -> Decimal:
    return _default_calculator.estimate_liquidation_distance(current_price, liquidation_price)


def calculate_risk_score(leverage: Any, margin_usage_percent: Any) -> int:
    """Risk score with default bands."""
    return _default_calculator.calculate_risk_score(leverage, margin_usage_percent)


def generate_recommendations(leverage: Any, margin_usage_percent: Any) -> List[str]:
    """Recommendations with default thresholds."""
    return _default_calculator.generate_recommendations(leverage, margin_usage_percent)

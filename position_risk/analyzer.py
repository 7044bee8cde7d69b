"""
Position Risk - Analyzer.

============================================================
PURPOSE
============================================================
Composes calculator operations into the result objects the
HTTP layer returns:

1. LiquidationEstimate  - liquidation price for a described position
2. RiskMetrics          - exposure, margin usage, funding, score
3. PositionValuation    - mark-to-market P&L view
4. AccountRiskSummary   - account-wide margin health
5. PositionSummary      - owner-facing open position view
6. MarketOverview       - reference price and daily funding rate

============================================================
DESIGN PRINCIPLES
============================================================
- No I/O: snapshots are fetched by the caller
- Every number comes from PositionRiskCalculator; no inline
  re-implementation of the formulas
- Margin usage is derived through calculate_margin_ratio so
  zero or negative equity yields 100% instead of Infinity

============================================================
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .calculator import PositionRiskCalculator
from .config import (
    ACCOUNT_WARNING_DIVERSIFIED,
    ACCOUNT_WARNING_HIGH_MARGIN,
    PositionRiskConfig,
)
from .types import (
    AccountRiskSummary,
    AccountSnapshot,
    LiquidationEstimate,
    LiquidationRisk,
    MarginMode,
    MarketOverview,
    MarketSnapshot,
    OpenPosition,
    PositionSide,
    PositionSnapshot,
    PositionSummary,
    PositionValuation,
    RiskMetrics,
)
from .validation import to_decimal


logger = logging.getLogger(__name__)


_ONE = Decimal("1")
_HUNDRED = Decimal("100")


class PositionRiskAnalyzer:
    """
    Builds risk result objects from position, market and account snapshots.
    """
    
    def __init__(
        self,
        calculator: Optional[PositionRiskCalculator] = None,
        config: Optional[PositionRiskConfig] = None,
    ):
        """
        Initialize the analyzer.
        
        Args:
            calculator: Calculator to delegate to. Built from config if not provided.
            config: Configuration. Taken from the calculator if not provided.
        """
        if calculator is None:
            calculator = PositionRiskCalculator(config)
        self.calculator = calculator
        self.config = config or calculator.config
    
    def estimate_liquidation(
        self,
        position: PositionSnapshot,
        margin_mode: MarginMode = MarginMode.CROSS,
    ) -> LiquidationEstimate:
        """
        Liquidation price for a position, distance measured from entry.
        
        Raises:
            InvalidInputError: If the position violates a precondition
        """
        liquidation_price = self.calculator.calculate_liquidation_price(
            position.entry_price,
            position.size,
            position.leverage,
            position.side,
            position.maintenance_margin_fraction,
        )
        distance = self.calculator.estimate_liquidation_distance(
            position.entry_price, liquidation_price
        )
        
        logger.debug(
            f"Liquidation estimate {position.market} {position.side.value}: "
            f"entry={position.entry_price} liq={liquidation_price} dist={distance:.2f}%"
        )
        
        return LiquidationEstimate(
            market=position.market,
            side=position.side,
            liquidation_price=liquidation_price,
            entry_price=position.entry_price,
            leverage=position.leverage,
            margin_mode=margin_mode,
            distance_to_liquidation=distance,
        )
    
    def analyze(
        self,
        market: MarketSnapshot,
        account: AccountSnapshot,
        size: Any,
        leverage: Any,
        side: Optional[PositionSide] = None,
        entry_price: Optional[Any] = None,
    ) -> RiskMetrics:
        """
        Risk metrics for holding `size` of `market` at `leverage`.
        
        Args:
            market: Market snapshot (reference price, mmf, funding)
            account: Account snapshot (equity)
            size: Position size in base units, > 0
            leverage: Leverage, > 0
            side: Position side, enables liquidation fields
            entry_price: Entry price, enables liquidation fields
            
        Returns:
            RiskMetrics
            
        Raises:
            InvalidInputError: On invalid size, leverage or prices
        """
        calc = self.calculator
        
        qty = to_decimal(size, "size", positive=True)
        lev = to_decimal(leverage, "leverage", positive=True)
        price = to_decimal(market.reference_price, "reference_price", positive=True)
        
        notional_value = price * qty
        required_margin = calc.calculate_required_margin(notional_value, lev)
        margin_usage_percent = calc.calculate_margin_ratio(account.equity, required_margin) * _HUNDRED
        daily_funding_cost = calc.calculate_daily_funding_cost(notional_value, market.next_funding_rate)
        
        liquidation_price = None
        distance = None
        if side is not None and entry_price is not None:
            liquidation_price = calc.calculate_liquidation_price(
                entry_price, qty, lev, side, market.maintenance_margin_fraction
            )
            distance = calc.estimate_liquidation_distance(price, liquidation_price)
        
        risk_score = calc.calculate_risk_score(lev, margin_usage_percent)
        recommendations = calc.generate_recommendations(lev, margin_usage_percent)
        
        logger.info(
            f"Risk analysis {market.market}: size={qty} lev={lev} "
            f"usage={margin_usage_percent:.2f}% score={risk_score}"
        )
        
        return RiskMetrics(
            market=market.market,
            position_size=qty,
            leverage=lev,
            notional_value=notional_value,
            required_margin=required_margin,
            account_equity=account.equity,
            margin_usage_percent=margin_usage_percent,
            funding_rate=market.next_funding_rate,
            daily_funding_cost=daily_funding_cost,
            risk_score=risk_score,
            recommendations=recommendations,
            side=side,
            liquidation_price=liquidation_price,
            distance_to_liquidation=distance,
        )
    
    def value_position(self, position: PositionSnapshot, current_price: Any) -> PositionValuation:
        """
        Mark a position to the given price.
        
        Raises:
            InvalidInputError: If current_price is not positive
        """
        calc = self.calculator
        price = to_decimal(current_price, "current_price", positive=True)
        
        liquidation_price = calc.calculate_liquidation_price(
            position.entry_price,
            position.size,
            position.leverage,
            position.side,
            position.maintenance_margin_fraction,
        )
        
        return PositionValuation(
            market=position.market,
            side=position.side,
            current_price=price,
            notional_value=position.size * price,
            unrealized_pnl=calc.calculate_pnl(position.entry_price, price, position.size, position.side),
            pnl_percentage=calc.calculate_pnl_percentage(position.entry_price, price, position.side),
            liquidation_price=liquidation_price,
            distance_to_liquidation=calc.estimate_liquidation_distance(price, liquidation_price),
        )
    
    def summarize_position(
        self,
        position: OpenPosition,
        market: Optional[MarketSnapshot] = None,
    ) -> PositionSummary:
        """
        Owner-facing view of an open position.
        
        Without a market snapshot the entry price stands in for the
        mark price and the default mmf is used.
        """
        calc = self.calculator
        
        if market is not None:
            mark_price = market.reference_price
            mmf = market.maintenance_margin_fraction
            unrealized_pnl = calc.calculate_pnl(
                position.entry_price, mark_price, position.size, position.side
            )
        else:
            mark_price = position.entry_price
            mmf = self.config.default_maintenance_margin_fraction
            unrealized_pnl = position.unrealized_pnl
        
        liquidation_price = calc.calculate_liquidation_price(
            position.entry_price, position.size, position.leverage, position.side, mmf
        )
        
        return PositionSummary(
            position_id=position.position_id,
            market=position.market,
            side=position.side,
            size=position.size,
            entry_price=position.entry_price,
            mark_price=mark_price,
            leverage=position.leverage,
            margin_mode=MarginMode.CROSS,
            unrealized_pnl=unrealized_pnl,
            realized_pnl=position.realized_pnl,
            liquidation_price=liquidation_price,
            distance_to_liquidation=calc.estimate_liquidation_distance(mark_price, liquidation_price),
        )
    
    def describe_market(self, market: MarketSnapshot) -> MarketOverview:
        """Market figures with the funding rate scaled to one day."""
        return MarketOverview(
            market=market.market,
            oracle_price=market.oracle_price,
            mark_price=market.reference_price,
            maintenance_margin_fraction=market.maintenance_margin_fraction,
            funding_rate=market.next_funding_rate,
            daily_funding_rate=self.calculator.calculate_daily_funding_cost(
                _ONE, market.next_funding_rate
            ),
        )
    
    def assess_account(
        self,
        account: AccountSnapshot,
        markets: Mapping[str, MarketSnapshot],
    ) -> AccountRiskSummary:
        """
        Account-wide margin health.
        
        Maintenance margin sums |size| * reference price * mmf per
        open position. Positions whose market snapshot is missing
        fall back to entry price and the default mmf.
        """
        cfg = self.config.account
        
        maintenance_margin = Decimal("0")
        exposure_by_market: Dict[str, Decimal] = {}
        
        for position in account.positions:
            size = abs(position.size)
            snapshot = markets.get(position.market)
            if snapshot is not None:
                price = snapshot.reference_price
                mmf = snapshot.maintenance_margin_fraction
            else:
                price = position.entry_price
                mmf = self.config.default_maintenance_margin_fraction
            
            maintenance_margin += size * price * mmf
            exposure_by_market[position.market] = (
                exposure_by_market.get(position.market, Decimal("0"))
                + size * position.entry_price
            )
        
        margin_ratio = self.calculator.calculate_margin_ratio(account.equity, maintenance_margin)
        
        if margin_ratio > cfg.high_risk_margin_ratio:
            liquidation_risk = LiquidationRisk.HIGH
        elif margin_ratio > cfg.medium_risk_margin_ratio:
            liquidation_risk = LiquidationRisk.MEDIUM
        else:
            liquidation_risk = LiquidationRisk.LOW
        
        warnings = []
        if margin_ratio > cfg.warning_margin_ratio:
            warnings.append(ACCOUNT_WARNING_HIGH_MARGIN)
        if len(exposure_by_market) > cfg.max_markets_before_warning:
            warnings.append(ACCOUNT_WARNING_DIVERSIFIED)
        
        if liquidation_risk is LiquidationRisk.HIGH:
            logger.warning(
                f"Account {account.address} margin ratio {margin_ratio:.4f} is HIGH risk"
            )
        
        return AccountRiskSummary(
            address=account.address,
            total_margin_ratio=margin_ratio,
            maintenance_margin=maintenance_margin,
            liquidation_risk=liquidation_risk,
            exposure_by_market=exposure_by_market,
            warnings=warnings,
        )

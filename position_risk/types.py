"""
Position Risk - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the position risk calculator.

Inputs describe a position, the market it trades in and the
account that holds it. Outputs are derived metrics that are
recomputed on every call and never persisted.

============================================================
DESIGN PRINCIPLES
============================================================
- All types are immutable value objects
- All money and price fields are Decimal
- Enums for discrete values
- to_dict() emits the snake_case transport field names

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.exceptions import InvalidInputError


DEFAULT_MAINTENANCE_MARGIN_FRACTION = Decimal("0.03")
"""Maintenance margin fraction used when a market does not publish one."""


# ============================================================
# ENUMS
# ============================================================


class PositionSide(str, Enum):
    """Direction of a perpetual position."""
    
    LONG = "LONG"
    SHORT = "SHORT"
    
    @classmethod
    def parse(cls, value: Any) -> "PositionSide":
        """
        Convert a side given as enum or case-insensitive string.
        
        Raises:
            InvalidInputError: If the value is not LONG or SHORT
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in cls.__members__:
                return cls[normalized]
        raise InvalidInputError("Side must be LONG or SHORT", field="side", value=value)


class OrderSide(str, Enum):
    """Order direction as submitted to the exchange."""
    
    BUY = "BUY"
    SELL = "SELL"
    
    @property
    def position_side(self) -> PositionSide:
        """Side of the position an opening order creates."""
        return PositionSide.LONG if self is OrderSide.BUY else PositionSide.SHORT


class OrderType(str, Enum):
    """Supported order types."""
    
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class MarginMode(str, Enum):
    """Margin mode, echoed back to callers."""
    
    CROSS = "cross"
    ISOLATED = "isolated"


class LiquidationRisk(str, Enum):
    """Account-level liquidation risk bucket."""
    
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================
# INPUT DATA CONTRACTS
# ============================================================


@dataclass(frozen=True)
class PositionSnapshot:
    """
    A position as described by the caller.
    
    Leverage is expected in [1, 20]; that policy is enforced by
    the request validation layer, not here.
    """
    
    market: str
    side: PositionSide
    size: Decimal
    entry_price: Decimal
    leverage: Decimal
    maintenance_margin_fraction: Decimal = DEFAULT_MAINTENANCE_MARGIN_FRACTION


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Market data supplied by the upstream market-data provider.
    """
    
    market: str
    oracle_price: Decimal
    mark_price: Optional[Decimal] = None
    maintenance_margin_fraction: Decimal = DEFAULT_MAINTENANCE_MARGIN_FRACTION
    next_funding_rate: Decimal = Decimal("0")
    
    @property
    def reference_price(self) -> Decimal:
        """Price used for margin and liquidation math."""
        return self.mark_price if self.mark_price is not None else self.oracle_price


@dataclass(frozen=True)
class OpenPosition:
    """An open position reported by the account-data provider."""
    
    market: str
    side: PositionSide
    size: Decimal
    entry_price: Decimal
    leverage: Decimal = Decimal("1")
    unrealized_pnl: Decimal = Decimal("0")
    realized_pnl: Decimal = Decimal("0")
    
    @property
    def position_id(self) -> str:
        return f"{self.market}-{self.side.value}"


@dataclass(frozen=True)
class AccountSnapshot:
    """
    Account data supplied by the upstream account-data provider.
    
    Equity may be zero or negative; ratio math treats that as
    the fully-at-risk sentinel.
    """
    
    address: str
    equity: Decimal
    positions: Tuple[OpenPosition, ...] = ()
    
    def find_position(self, position_id: str) -> Optional[OpenPosition]:
        """Look up an open position by its "<market>-<side>" identifier."""
        for position in self.positions:
            if position.position_id == position_id:
                return position
        return None


@dataclass(frozen=True)
class FundingRate:
    """One settled funding interval for a market."""
    
    market: str
    rate: Decimal
    price: Decimal
    effective_at: datetime
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market,
            "rate": float(self.rate),
            "price": float(self.price),
            "effective_at": self.effective_at.isoformat(),
        }


# ============================================================
# OUTPUT DATA CONTRACTS
# ============================================================


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


@dataclass(frozen=True)
class RiskMetrics:
    """
    Risk-facing metrics for a (prospective) position.
    
    ============================================================
    OUTPUT GUARANTEES
    ============================================================
    - risk_score: Always 0-100
    - recommendations: Never empty, order is significant
    - liquidation fields: Present only when side and entry
      price are known
    ============================================================
    """
    
    market: str
    position_size: Decimal
    leverage: Decimal
    notional_value: Decimal
    required_margin: Decimal
    account_equity: Decimal
    margin_usage_percent: Decimal
    funding_rate: Decimal
    daily_funding_cost: Decimal
    risk_score: int
    recommendations: List[str] = field(default_factory=list)
    side: Optional[PositionSide] = None
    liquidation_price: Optional[Decimal] = None
    distance_to_liquidation: Optional[Decimal] = None
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "market": self.market,
            "side": self.side.value if self.side else None,
            "position_size": _num(self.position_size),
            "leverage": _num(self.leverage),
            "notional_value": _num(self.notional_value),
            "required_margin": _num(self.required_margin),
            "account_equity": _num(self.account_equity),
            "margin_usage_percent": _num(self.margin_usage_percent),
            "funding_rate": _num(self.funding_rate),
            "daily_funding_cost": _num(self.daily_funding_cost),
            "risk_score": self.risk_score,
            "recommendations": list(self.recommendations),
            "liquidation_price": _num(self.liquidation_price),
            "distance_to_liquidation": _num(self.distance_to_liquidation),
        }


@dataclass(frozen=True)
class LiquidationEstimate:
    """Liquidation price for a position, with distance from entry."""
    
    market: str
    side: PositionSide
    liquidation_price: Decimal
    entry_price: Decimal
    leverage: Decimal
    margin_mode: MarginMode
    distance_to_liquidation: Decimal
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market,
            "side": self.side.value,
            "liquidation_price": float(self.liquidation_price),
            "entry_price": float(self.entry_price),
            "leverage": float(self.leverage),
            "margin_mode": self.margin_mode.value,
            "distance_to_liquidation": float(self.distance_to_liquidation),
        }


@dataclass(frozen=True)
class PositionValuation:
    """Mark-to-market view of a position."""
    
    market: str
    side: PositionSide
    current_price: Decimal
    notional_value: Decimal
    unrealized_pnl: Decimal
    pnl_percentage: Decimal
    liquidation_price: Decimal
    distance_to_liquidation: Decimal
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market,
            "side": self.side.value,
            "current_price": float(self.current_price),
            "notional_value": float(self.notional_value),
            "unrealized_pnl": float(self.unrealized_pnl),
            "pnl_percentage": float(self.pnl_percentage),
            "liquidation_price": float(self.liquidation_price),
            "distance_to_liquidation": float(self.distance_to_liquidation),
        }


@dataclass(frozen=True)
class AccountRiskSummary:
    """Account-wide margin health."""
    
    address: str
    total_margin_ratio: Decimal
    maintenance_margin: Decimal
    liquidation_risk: LiquidationRisk
    exposure_by_market: Dict[str, Decimal] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "total_margin_ratio": float(self.total_margin_ratio),
            "maintenance_margin": float(self.maintenance_margin),
            "liquidation_risk": self.liquidation_risk.value,
            "exposure_by_market": {
                market: float(value) for market, value in self.exposure_by_market.items()
            },
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PositionSummary:
    """
    An open position as displayed to its owner.
    
    Unrealized P&L is marked to the market's reference price when
    a market snapshot is available, otherwise the upstream figure
    is reported.
    """
    
    position_id: str
    market: str
    side: PositionSide
    size: Decimal
    entry_price: Decimal
    mark_price: Decimal
    leverage: Decimal
    margin_mode: MarginMode
    unrealized_pnl: Decimal
    realized_pnl: Decimal
    liquidation_price: Decimal
    distance_to_liquidation: Decimal
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "position_id": self.position_id,
            "market": self.market,
            "side": self.side.value,
            "size": float(self.size),
            "entry_price": float(self.entry_price),
            "mark_price": float(self.mark_price),
            "leverage": float(self.leverage),
            "margin_mode": self.margin_mode.value,
            "unrealized_pnl": float(self.unrealized_pnl),
            "realized_pnl": float(self.realized_pnl),
            "liquidation_price": float(self.liquidation_price),
            "distance_to_liquidation": float(self.distance_to_liquidation),
        }


@dataclass(frozen=True)
class MarketOverview:
    """Reference price, margin and funding figures for one market."""
    
    market: str
    oracle_price: Decimal
    mark_price: Decimal
    maintenance_margin_fraction: Decimal
    funding_rate: Decimal
    daily_funding_rate: Decimal
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "market": self.market,
            "oracle_price": float(self.oracle_price),
            "mark_price": float(self.mark_price),
            "maintenance_margin_fraction": float(self.maintenance_margin_fraction),
            "funding_rate": float(self.funding_rate),
            "daily_funding_rate": float(self.daily_funding_rate),
        }

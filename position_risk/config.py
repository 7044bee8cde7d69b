"""
Position Risk - Configuration.

============================================================
PURPOSE
============================================================
Defines the thresholds and constants used by the position
risk calculator.

All defaults reproduce the venue's published behaviour:
- 3 funding settlements per day (8-hour cadence)
- Leverage between 1x and 20x
- Maintenance margin fraction 0.03 when a market has none

============================================================
THRESHOLD PHILOSOPHY
============================================================
Score bands are (threshold, points) pairs checked from the
highest threshold down. A value scores the points of the
first band whose threshold it strictly exceeds; values that
exceed no threshold score the floor points.

    leverage 15   -> not > 15, is > 10  -> 30 points
    leverage 15.1 -> > 15               -> 40 points

============================================================
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from .types import DEFAULT_MAINTENANCE_MARGIN_FRACTION


# Load environment variables
load_dotenv()


DEFAULT_FUNDING_INTERVALS_PER_DAY = 3
"""Funding settlements per day. dYdX settles every 8 hours."""


ScoreBands = Tuple[Tuple[Decimal, int], ...]


# ============================================================
# FUNDING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class FundingConfig:
    """
    Funding cadence used to annualise per-interval rates.
    """
    
    intervals_per_day: int = DEFAULT_FUNDING_INTERVALS_PER_DAY
    """Number of funding settlements in 24 hours."""
    
    def __post_init__(self) -> None:
        if self.intervals_per_day < 1:
            raise ConfigurationError(
                "intervals_per_day must be at least 1",
                config_key="intervals_per_day",
                actual_value=self.intervals_per_day,
            )


# ============================================================
# LEVERAGE LIMITS
# ============================================================


@dataclass(frozen=True)
class LeverageLimits:
    """
    Leverage range accepted from callers.
    
    The calculator itself accepts any positive leverage; these
    limits are applied when validating requests.
    """
    
    min_leverage: Decimal = Decimal("1")
    max_leverage: Decimal = Decimal("20")
    
    def __post_init__(self) -> None:
        if self.min_leverage <= 0 or self.max_leverage < self.min_leverage:
            raise ConfigurationError(
                f"Invalid leverage limits: {self.min_leverage}-{self.max_leverage}",
                config_key="leverage_limits",
            )
    
    def contains(self, leverage: Decimal) -> bool:
        return self.min_leverage <= leverage <= self.max_leverage


# ============================================================
# RISK SCORE CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskScoreConfig:
    """
    Banded contributions to the 0-100 risk score.
    
    ============================================================
    DEFAULT BANDS
    ============================================================
    Leverage:      >15 -> 40, >10 -> 30, >5 -> 20, else 10
    Margin usage:  >80 -> 40, >60 -> 30, >40 -> 20, else 10
    ============================================================
    """
    
    leverage_bands: ScoreBands = (
        (Decimal("15"), 40),
        (Decimal("10"), 30),
        (Decimal("5"), 20),
    )
    leverage_floor_points: int = 10
    
    margin_usage_bands: ScoreBands = (
        (Decimal("80"), 40),
        (Decimal("60"), 30),
        (Decimal("40"), 20),
    )
    margin_usage_floor_points: int = 10
    
    max_score: int = 100


# ============================================================
# RECOMMENDATION CONFIGURATION
# ============================================================


RECOMMEND_REDUCE_LEVERAGE = "Consider reducing leverage to manage risk"
RECOMMEND_HIGH_MARGIN_USAGE = "High margin usage - consider adding funds or reducing position size"
RECOMMEND_HIGH_RISK_PROFILE = "High risk profile - monitor position closely"
RECOMMEND_ACCEPTABLE = "Position risk is within acceptable parameters"


@dataclass(frozen=True)
class RecommendationConfig:
    """
    Thresholds for the recommendation rules.
    
    Rules are evaluated in declaration order and every matching
    rule contributes its message.
    """
    
    reduce_leverage_above: Decimal = Decimal("10")
    high_margin_usage_above: Decimal = Decimal("70")
    
    # Both must be exceeded
    high_risk_leverage_above: Decimal = Decimal("5")
    high_risk_margin_usage_above: Decimal = Decimal("50")


# ============================================================
# ACCOUNT RISK CONFIGURATION
# ============================================================


ACCOUNT_WARNING_HIGH_MARGIN = "High margin usage detected"
ACCOUNT_WARNING_DIVERSIFIED = "Portfolio heavily diversified"


@dataclass(frozen=True)
class AccountRiskConfig:
    """
    Thresholds applied to the account margin ratio.
    """
    
    high_risk_margin_ratio: Decimal = Decimal("0.7")
    """Margin ratio above which liquidation risk is HIGH."""
    
    medium_risk_margin_ratio: Decimal = Decimal("0.5")
    """Margin ratio above which liquidation risk is MEDIUM."""
    
    warning_margin_ratio: Decimal = Decimal("0.6")
    """Margin ratio above which a warning is attached."""
    
    max_markets_before_warning: int = 5
    """Number of distinct markets tolerated before a warning."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PositionRiskConfig:
    """
    Complete configuration for the position risk calculator.
    """
    
    funding: FundingConfig = field(default_factory=FundingConfig)
    leverage_limits: LeverageLimits = field(default_factory=LeverageLimits)
    risk_score: RiskScoreConfig = field(default_factory=RiskScoreConfig)
    recommendations: RecommendationConfig = field(default_factory=RecommendationConfig)
    account: AccountRiskConfig = field(default_factory=AccountRiskConfig)
    
    default_maintenance_margin_fraction: Decimal = DEFAULT_MAINTENANCE_MARGIN_FRACTION
    
    @classmethod
    def from_env(cls) -> "PositionRiskConfig":
        """
        Load configuration from environment variables.
        
        Environment variables:
        - RISK_FUNDING_INTERVALS_PER_DAY
        - RISK_MIN_LEVERAGE
        - RISK_MAX_LEVERAGE
        - RISK_DEFAULT_MMF
        """
        defaults = cls()
        
        intervals = _env_int("RISK_FUNDING_INTERVALS_PER_DAY")
        funding = (
            FundingConfig(intervals_per_day=intervals)
            if intervals is not None
            else defaults.funding
        )
        
        min_leverage = _env_decimal("RISK_MIN_LEVERAGE")
        max_leverage = _env_decimal("RISK_MAX_LEVERAGE")
        leverage_limits = LeverageLimits(
            min_leverage=min_leverage if min_leverage is not None else defaults.leverage_limits.min_leverage,
            max_leverage=max_leverage if max_leverage is not None else defaults.leverage_limits.max_leverage,
        )
        
        mmf = _env_decimal("RISK_DEFAULT_MMF")
        if mmf is not None and not (Decimal("0") <= mmf < Decimal("1")):
            raise ConfigurationError(
                "RISK_DEFAULT_MMF must be in [0, 1)",
                config_key="RISK_DEFAULT_MMF",
                actual_value=mmf,
            )
        
        return cls(
            funding=funding,
            leverage_limits=leverage_limits,
            default_maintenance_margin_fraction=(
                mmf if mmf is not None else defaults.default_maintenance_margin_fraction
            ),
        )


def get_default_config() -> PositionRiskConfig:
    """Get default configuration."""
    return PositionRiskConfig()


# ============================================================
# ENV HELPERS
# ============================================================


def _env_decimal(name: str) -> Optional[Decimal]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ConfigurationError(
            f"{name} must be a number", config_key=name, actual_value=raw, cause=e
        ) from e
    if not value.is_finite():
        raise ConfigurationError(f"{name} must be finite", config_key=name, actual_value=raw)
    return value


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer", config_key=name, actual_value=raw, cause=e
        ) from e

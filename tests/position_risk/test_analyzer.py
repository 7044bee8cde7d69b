"""
Position Risk Analyzer Tests.

Composition of calculator results into RiskMetrics,
LiquidationEstimate, PositionValuation and AccountRiskSummary.
"""

from decimal import Decimal

import pytest

from core.exceptions import InvalidInputError
from position_risk import (
    AccountSnapshot,
    LiquidationRisk,
    MarginMode,
    MarketSnapshot,
    OpenPosition,
    PositionRiskAnalyzer,
    PositionSide,
    PositionSnapshot,
    RECOMMEND_ACCEPTABLE,
    RECOMMEND_HIGH_MARGIN_USAGE,
)
from position_risk.config import ACCOUNT_WARNING_DIVERSIFIED, ACCOUNT_WARNING_HIGH_MARGIN


BTC = MarketSnapshot(
    market="BTC-USD",
    oracle_price=Decimal("42500"),
    maintenance_margin_fraction=Decimal("0.03"),
    next_funding_rate=Decimal("0.0001"),
)


@pytest.fixture
def analyzer():
    return PositionRiskAnalyzer()


@pytest.fixture
def account():
    return AccountSnapshot(
        address="0x" + "ab" * 20,
        equity=Decimal("10000"),
        positions=(
            OpenPosition("BTC-USD", PositionSide.LONG, Decimal("0.5"), Decimal("42000"), Decimal("5")),
            OpenPosition("ETH-USD", PositionSide.SHORT, Decimal("10"), Decimal("2000")),
        ),
    )


# ============================================================
# RISK METRICS
# ============================================================

class TestAnalyze:
    """Tests for PositionRiskAnalyzer.analyze."""
    
    def test_metrics(self, analyzer, account):
        """Exposure, margin, funding and score for 0.5 BTC at 5x."""
        metrics = analyzer.analyze(BTC, account, "0.5", 5)
        
        assert metrics.notional_value == Decimal("21250")
        assert metrics.required_margin == Decimal("4250")
        assert metrics.margin_usage_percent == Decimal("42.5")
        assert metrics.daily_funding_cost == Decimal("6.375")
        assert metrics.funding_rate == Decimal("0.0001")
        assert metrics.risk_score == 30
        assert metrics.recommendations == [RECOMMEND_ACCEPTABLE]
        assert metrics.liquidation_price is None
    
    def test_liquidation_fields_when_side_and_entry_known(self, analyzer, account):
        """Liquidation distance is measured from the reference price."""
        metrics = analyzer.analyze(BTC, account, "0.5", 5, side=PositionSide.LONG, entry_price=42000)
        
        assert metrics.liquidation_price == Decimal("34860")
        assert metrics.distance_to_liquidation.quantize(Decimal("0.01")) == Decimal("17.98")
    
    def test_zero_equity_uses_full_usage(self, analyzer):
        """Zero equity reports 100% usage instead of dividing by zero."""
        broke = AccountSnapshot(address="0x" + "00" * 20, equity=Decimal("0"))
        
        metrics = analyzer.analyze(BTC, broke, "0.5", 5)
        
        assert metrics.margin_usage_percent == Decimal("100")
        assert metrics.risk_score == 50
        assert metrics.recommendations == [RECOMMEND_HIGH_MARGIN_USAGE]
    
    def test_mark_price_preferred_over_oracle(self, analyzer, account):
        market = MarketSnapshot(market="SOL-USD", oracle_price=Decimal("100"), mark_price=Decimal("101"))
        
        metrics = analyzer.analyze(market, account, 1, 1)
        
        assert metrics.notional_value == Decimal("101")
    
    @pytest.mark.parametrize("size,leverage", [(0, 5), ("-1", 5), (1, 0), (1, "NaN")])
    def test_rejects_invalid_size_and_leverage(self, analyzer, account, size, leverage):
        with pytest.raises(InvalidInputError):
            analyzer.analyze(BTC, account, size, leverage)
    
    def test_to_dict_uses_floats(self, analyzer, account):
        """Serialized metrics carry JSON-friendly numbers."""
        data = analyzer.analyze(BTC, account, "0.5", 5, side=PositionSide.LONG, entry_price=42000).to_dict()
        
        assert data["market"] == "BTC-USD"
        assert data["side"] == "LONG"
        assert data["notional_value"] == 21250.0
        assert data["liquidation_price"] == 34860.0
        assert isinstance(data["risk_score"], int)


# ============================================================
# LIQUIDATION ESTIMATE
# ============================================================

class TestEstimateLiquidation:
    """Tests for PositionRiskAnalyzer.estimate_liquidation."""
    
    def test_distance_from_entry(self, analyzer):
        position = PositionSnapshot("BTC-USD", PositionSide.LONG, Decimal("0.5"), Decimal("42000"), Decimal("5"))
        
        estimate = analyzer.estimate_liquidation(position)
        
        assert estimate.liquidation_price == Decimal("34860")
        assert estimate.distance_to_liquidation == Decimal("17")
        assert estimate.margin_mode is MarginMode.CROSS
    
    def test_margin_mode_is_echoed(self, analyzer):
        position = PositionSnapshot("ETH-USD", PositionSide.SHORT, Decimal("2"), Decimal("2000"), Decimal("10"))
        
        estimate = analyzer.estimate_liquidation(position, MarginMode.ISOLATED)
        
        assert estimate.to_dict()["margin_mode"] == "isolated"
        assert estimate.liquidation_price > Decimal("2000")


# ============================================================
# POSITION VALUATION
# ============================================================

class TestValuePosition:
    """Tests for PositionRiskAnalyzer.value_position."""
    
    def test_long_in_profit(self, analyzer):
        position = PositionSnapshot("BTC-USD", PositionSide.LONG, Decimal("0.5"), Decimal("42000"), Decimal("5"))
        
        valuation = analyzer.value_position(position, "42500")
        
        assert valuation.unrealized_pnl == Decimal("250")
        assert valuation.notional_value == Decimal("21250")
        assert valuation.pnl_percentage.quantize(Decimal("0.0001")) == Decimal("1.1905")
        assert valuation.liquidation_price == Decimal("34860")
    
    def test_rejects_zero_price(self, analyzer):
        position = PositionSnapshot("BTC-USD", PositionSide.LONG, Decimal("0.5"), Decimal("42000"), Decimal("5"))
        
        with pytest.raises(InvalidInputError):
            analyzer.value_position(position, 0)


# ============================================================
# ACCOUNT RISK
# ============================================================

class TestAssessAccount:
    """Tests for PositionRiskAnalyzer.assess_account."""
    
    def test_low_risk(self, analyzer, account):
        """Missing markets fall back to entry price and default mmf."""
        summary = analyzer.assess_account(account, {"BTC-USD": BTC})
        
        # 0.5 * 42500 * 0.03 + 10 * 2000 * 0.03
        assert summary.maintenance_margin == Decimal("1237.5")
        assert summary.total_margin_ratio == Decimal("0.12375")
        assert summary.liquidation_risk is LiquidationRisk.LOW
        assert summary.exposure_by_market == {
            "BTC-USD": Decimal("21000"),
            "ETH-USD": Decimal("20000"),
        }
        assert summary.warnings == []
    
    def test_medium_risk(self, analyzer, account):
        thin = AccountSnapshot(account.address, Decimal("2250"), account.positions)
        
        summary = analyzer.assess_account(thin, {"BTC-USD": BTC})
        
        assert summary.total_margin_ratio == Decimal("0.55")
        assert summary.liquidation_risk is LiquidationRisk.MEDIUM
        assert summary.warnings == []
    
    def test_negative_equity_is_high_risk(self, analyzer, account):
        underwater = AccountSnapshot(account.address, Decimal("-50"), account.positions)
        
        summary = analyzer.assess_account(underwater, {})
        
        assert summary.total_margin_ratio == Decimal("1")
        assert summary.liquidation_risk is LiquidationRisk.HIGH
        assert summary.warnings == [ACCOUNT_WARNING_HIGH_MARGIN]
    
    def test_diversification_warning(self, analyzer):
        positions = tuple(
            OpenPosition(f"M{i}-USD", PositionSide.LONG, Decimal("1"), Decimal("10"))
            for i in range(6)
        )
        wide = AccountSnapshot("0x" + "cd" * 20, Decimal("100000"), positions)
        
        summary = analyzer.assess_account(wide, {})
        
        assert summary.warnings == [ACCOUNT_WARNING_DIVERSIFIED]
        assert summary.to_dict()["liquidation_risk"] == "low"
    
    def test_empty_account(self, analyzer):
        summary = analyzer.assess_account(AccountSnapshot("0x" + "ef" * 20, Decimal("500")), {})
        
        assert summary.maintenance_margin == Decimal("0")
        assert summary.liquidation_risk is LiquidationRisk.LOW


# ============================================================
# POSITION SUMMARY AND MARKET OVERVIEW
# ============================================================

class TestSummarizePosition:
    """Tests for PositionRiskAnalyzer.summarize_position."""
    
    def test_marked_to_market(self, analyzer, account):
        position = account.find_position("BTC-USD-LONG")
        
        summary = analyzer.summarize_position(position, BTC)
        
        assert summary.position_id == "BTC-USD-LONG"
        assert summary.mark_price == Decimal("42500")
        assert summary.unrealized_pnl == Decimal("250")
        assert summary.liquidation_price == Decimal("34860")
        assert float(summary.distance_to_liquidation) == pytest.approx(17.976, abs=1e-3)
        assert summary.margin_mode is MarginMode.CROSS
    
    def test_without_market_uses_entry_and_upstream_pnl(self, analyzer):
        position = OpenPosition(
            "BTC-USD", PositionSide.LONG, Decimal("0.5"), Decimal("42000"), Decimal("5"),
            unrealized_pnl=Decimal("12.5"), realized_pnl=Decimal("-3"),
        )
        
        summary = analyzer.summarize_position(position)
        
        assert summary.mark_price == Decimal("42000")
        assert summary.unrealized_pnl == Decimal("12.5")
        assert summary.realized_pnl == Decimal("-3")
        assert summary.liquidation_price == Decimal("34860")
        assert summary.distance_to_liquidation == Decimal("17")
    
    def test_short_to_dict(self, analyzer):
        position = OpenPosition("ETH-USD", PositionSide.SHORT, Decimal("3"), Decimal("2200"))
        market = MarketSnapshot(market="ETH-USD", oracle_price=Decimal("2000"))
        
        data = analyzer.summarize_position(position, market).to_dict()
        
        assert data["side"] == "SHORT"
        assert data["unrealized_pnl"] == 600.0
        assert data["liquidation_price"] == 4334.0
        assert data["margin_mode"] == "cross"


class TestDescribeMarket:
    """Tests for PositionRiskAnalyzer.describe_market."""
    
    def test_daily_funding_rate(self, analyzer):
        overview = analyzer.describe_market(BTC)
        
        assert overview.mark_price == Decimal("42500")
        assert overview.funding_rate == Decimal("0.0001")
        assert overview.daily_funding_rate == Decimal("0.0003")
    
    def test_mark_price_reported_when_present(self, analyzer):
        market = MarketSnapshot(
            market="SOL-USD", oracle_price=Decimal("95"), mark_price=Decimal("95.5"),
        )
        
        data = analyzer.describe_market(market).to_dict()
        
        assert data["oracle_price"] == 95.0
        assert data["mark_price"] == 95.5
        assert data["maintenance_margin_fraction"] == 0.03

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException

from core.exceptions import InvalidInputError
from market_data import AccountDataProvider, MarketDataProvider
from position_risk import (
    OrderSide,
    OrderType,
    PositionRiskAnalyzer,
    PositionSnapshot,
    sanitize_market_symbol,
    validate_leverage,
    validate_order_params,
)
from risk_api.dependencies import (
    enforce_rate_limit,
    get_account_provider,
    get_analyzer,
    get_market_provider,
    get_wallet_address,
)
from risk_api.schemas import (
    ERROR_RESPONSES,
    AnalyzeRequest,
    LiquidationPriceRequest,
    LiquidationPriceResponse,
    PositionPnlRequest,
    PositionPnlResponse,
    PreTradeRequest,
    PreTradeResponse,
    RiskMetricsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/risk",
    tags=["Position Risk"],
    dependencies=[Depends(enforce_rate_limit)],
    responses=ERROR_RESPONSES,
)


@router.post("/liquidation-price", response_model=LiquidationPriceResponse)
async def liquidation_price(
    body: LiquidationPriceRequest,
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
):
    """
    Liquidation price for a described position.

    The market's maintenance margin fraction is used unless the
    request supplies one.
    """
    leverage = validate_leverage(body.leverage, analyzer.config.leverage_limits)

    mmf = body.maintenance_margin_fraction
    if mmf is None:
        market = await market_provider.get_market(body.market)
        mmf = market.maintenance_margin_fraction

    position = PositionSnapshot(
        market=body.market,
        side=body.side,
        size=body.size,
        entry_price=body.entry_price,
        leverage=leverage,
        maintenance_margin_fraction=mmf,
    )
    return analyzer.estimate_liquidation(position, body.margin_mode).to_dict()


@router.post("/analyze", response_model=RiskMetricsResponse)
async def analyze_position(
    body: AnalyzeRequest,
    wallet: str = Depends(get_wallet_address),
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
    account_provider: AccountDataProvider = Depends(get_account_provider),
):
    """
    Risk metrics for an open position or a hypothetical one.

    Fields missing from the body are taken from the open position
    named by position_id ("<market>-<side>"). Leverage defaults to 1.
    """
    account = await account_provider.get_account(wallet)

    position = None
    if body.position_id:
        position = account.find_position(body.position_id)
        if position is None:
            raise HTTPException(status_code=404, detail=f"Position not found: {body.position_id}")

    market_symbol = body.market or (position.market if position else None)
    if not market_symbol:
        raise InvalidInputError("market or position_id is required", field="market")

    size = body.size if body.size is not None else (position.size if position else None)
    if size is None:
        raise InvalidInputError("size or position_id is required", field="size")

    if body.leverage is not None:
        leverage = validate_leverage(body.leverage, analyzer.config.leverage_limits)
    else:
        leverage = position.leverage if position else Decimal("1")

    side = body.side or (position.side if position else None)
    entry_price = body.entry_price or (position.entry_price if position else None)

    market = await market_provider.get_market(market_symbol)
    metrics = analyzer.analyze(market, account, size, leverage, side=side, entry_price=entry_price)
    return metrics.to_dict()


@router.post("/position-pnl", response_model=PositionPnlResponse)
async def position_pnl(
    body: PositionPnlRequest,
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
):
    """
    Unrealized P&L, P&L % and liquidation distance.

    Marks to current_price when given (default maintenance margin
    fraction), otherwise to the market's mark/oracle price.
    """
    leverage = validate_leverage(body.leverage, analyzer.config.leverage_limits)

    if body.current_price is not None:
        current_price = body.current_price
        mmf = analyzer.config.default_maintenance_margin_fraction
    else:
        market = await market_provider.get_market(body.market)
        current_price = market.reference_price
        mmf = market.maintenance_margin_fraction

    position = PositionSnapshot(
        market=body.market,
        side=body.side,
        size=body.size,
        entry_price=body.entry_price,
        leverage=leverage,
        maintenance_margin_fraction=mmf,
    )
    return analyzer.value_position(position, current_price).to_dict()


@router.post("/pre-trade", response_model=PreTradeResponse)
async def pre_trade_check(
    body: PreTradeRequest,
    wallet: str = Depends(get_wallet_address),
    analyzer: PositionRiskAnalyzer = Depends(get_analyzer),
    market_provider: MarketDataProvider = Depends(get_market_provider),
    account_provider: AccountDataProvider = Depends(get_account_provider),
):
    """
    Validate order parameters and, when valid, report the risk
    the resulting position would carry.

    Invalid orders are a normal response (is_valid=false), not an error.
    """
    result = validate_order_params(body.model_dump(), analyzer.config.leverage_limits)
    if not result.is_valid:
        return PreTradeResponse(is_valid=False, errors=result.errors)

    market_symbol = sanitize_market_symbol(body.market)
    side = OrderSide(body.side).position_side

    account = await account_provider.get_account(wallet)
    market = await market_provider.get_market(market_symbol)

    if body.type == OrderType.LIMIT.value:
        entry_price = body.price
    else:
        entry_price = market.reference_price

    metrics = analyzer.analyze(
        market, account, body.size, body.leverage, side=side, entry_price=entry_price
    )

    logger.info(f"Pre-trade check for {wallet}: {market_symbol} risk score {metrics.risk_score}")

    return PreTradeResponse(
        is_valid=True,
        errors=[],
        risk=RiskMetricsResponse(**metrics.to_dict()),
    )

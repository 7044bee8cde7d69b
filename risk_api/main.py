"""
Risk API - Application.

============================================================
PURPOSE
============================================================
FastAPI service exposing the position risk calculator.

ROUTES:
- GET  /health
- POST /api/risk/liquidation-price
- POST /api/risk/analyze
- POST /api/risk/position-pnl
- POST /api/risk/pre-trade
- GET  /api/user/risk
- GET  /api/user/positions
- GET  /api/markets/{market}/data
- GET  /api/markets/{market}/funding

============================================================
LIFECYCLE
============================================================
The lifespan builds the analyzer, the rate limiter and (unless
injected) the market/account providers, stores them on
app.state, and releases them on shutdown.

Every request is tagged with X-Request-ID (taken from the
request or generated) and the id is bound to the logging
context while the request is served.

============================================================
ERROR MAPPING
============================================================
- request validation / InvalidInputError -> 400
- MarketNotFoundError / AccountNotFoundError -> 404
- RateLimitExceededError -> 429
- MarketDataError -> 502

============================================================
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import (
    AccountNotFoundError,
    InvalidInputError,
    MarketDataError,
    MarketNotFoundError,
    RateLimitExceededError,
)
from core.logging import bind_request_id, reset_request_id, setup_logging
from market_data import (
    AccountDataProvider,
    IndexerClient,
    IndexerConfig,
    MarketDataProvider,
    StaticAccountDataProvider,
    StaticMarketDataProvider,
)
from position_risk import PositionRiskAnalyzer, PositionRiskConfig, __version__

from .config import ApiConfig
from .rate_limit import SlidingWindowRateLimiter
from .routers import account, health, markets, risk


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    config: Optional[ApiConfig] = None,
    market_provider: Optional[MarketDataProvider] = None,
    account_provider: Optional[AccountDataProvider] = None,
    risk_config: Optional[PositionRiskConfig] = None,
) -> FastAPI:
    """
    Build the application.
    
    Args:
        config: Service configuration. Loaded from env if not provided.
        market_provider: Market data source. Built from config if not provided.
        account_provider: Account data source. Built from config if not provided.
        risk_config: Calculator configuration. Loaded from env if not provided.
    """
    config = config or ApiConfig.from_env()
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client: Optional[IndexerClient] = None
        market_source, account_source = market_provider, account_provider
        risk_cfg = risk_config or PositionRiskConfig.from_env()
        
        if market_source is None or account_source is None:
            if config.market_data_source == "static":
                market_source = market_source or StaticMarketDataProvider()
                account_source = account_source or StaticAccountDataProvider()
            else:
                owned_client = IndexerClient(
                    IndexerConfig.from_env(),
                    default_mmf=risk_cfg.default_maintenance_margin_fraction,
                )
                market_source = market_source or owned_client
                account_source = account_source or owned_client
        
        app.state.market_provider = market_source
        app.state.account_provider = account_source
        app.state.analyzer = PositionRiskAnalyzer(config=risk_cfg)
        app.state.rate_limiter = SlidingWindowRateLimiter(
            limit=config.rate_limit_requests,
            window_seconds=config.rate_limit_window_seconds,
        )
        
        logger.info(
            f"Risk API started: market_data={market_source.source_id} "
            f"rate_limit={config.rate_limit_requests}/{config.rate_limit_window_seconds}s"
        )
        
        try:
            yield
        finally:
            app.state.rate_limiter.clear()
            if owned_client is not None:
                await owned_client.aclose()
            logger.info("Risk API stopped")
    
    setup_logging(level=config.log_level, log_format=config.log_format)
    
    app = FastAPI(
        title="Position Risk API",
        description="Liquidation, P&L, margin and funding risk for perpetual positions.",
        version=__version__,
        lifespan=lifespan,
    )
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip()[:64] or uuid.uuid4().hex
        token = bind_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
            )
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    
    _register_exception_handlers(app)
    
    app.include_router(health.router)
    app.include_router(risk.router)
    app.include_router(account.router)
    app.include_router(markets.router)
    
    return app


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _register_exception_handlers(app: FastAPI) -> None:
    
    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            details.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})
    
    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content={"error": "Invalid input", "message": exc.message})
    
    @app.exception_handler(MarketNotFoundError)
    @app.exception_handler(AccountNotFoundError)
    async def handle_not_found(request: Request, exc: MarketDataError):
        return JSONResponse(status_code=404, content={"error": "Not found", "message": exc.message})
    
    @app.exception_handler(MarketDataError)
    async def handle_market_data_error(request: Request, exc: MarketDataError):
        logger.error(exc.to_log_format())
        return JSONResponse(
            status_code=502,
            content={"error": "Market data unavailable", "message": exc.message},
        )
    
    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content={"error": "Rate limit exceeded", "retry_after": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )
    
    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


app = create_app()


def main() -> None:
    config = ApiConfig.from_env()
    uvicorn.run(
        "risk_api.main:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()

"""
Risk API - Request Dependencies.

Everything a route needs is looked up on app.state, which the
application lifespan populates. Nothing here is module-global.
"""

from fastapi import Depends, Header, Request

from core.exceptions import InvalidInputError
from market_data import AccountDataProvider, MarketDataProvider
from position_risk import PositionRiskAnalyzer, validate_wallet_address

from .rate_limit import SlidingWindowRateLimiter


def get_analyzer(request: Request) -> PositionRiskAnalyzer:
    return request.app.state.analyzer


def get_market_provider(request: Request) -> MarketDataProvider:
    return request.app.state.market_provider


def get_account_provider(request: Request) -> AccountDataProvider:
    return request.app.state.account_provider


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def get_wallet_address(x_wallet_address: str = Header(default="")) -> str:
    """
    Require a well-formed X-Wallet-Address header.
    
    Accepts a Base (0x...) or dYdX chain (dydx1...) address.
    """
    address = x_wallet_address.strip()
    if not address:
        raise InvalidInputError("Wallet address required", field="X-Wallet-Address")
    if not validate_wallet_address(address):
        raise InvalidInputError(
            "Invalid wallet address", field="X-Wallet-Address", value=address
        )
    return address


def enforce_rate_limit(
    request: Request,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Count the request against the caller's window.
    
    Keyed by a well-formed wallet header, else the client host, so
    arbitrary header values cannot mint new identifiers.
    """
    identifier = request.headers.get("x-wallet-address", "").strip()
    if not identifier or not validate_wallet_address(identifier):
        identifier = request.client.host if request.client else "anonymous"
    limiter.hit(identifier)

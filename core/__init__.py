"""
Core Module Package.

Shared infrastructure for every other package.

Components:
- exceptions: Custom exception hierarchy
- logging: Root logger configuration and request correlation
"""

from .exceptions import (
    Severity,
    TradingException,
    ConfigurationError,
    InvalidInputError,
    MarketDataError,
    MarketNotFoundError,
    AccountNotFoundError,
    RateLimitExceededError,
)
from .logging import (
    JsonFormatter,
    bind_request_id,
    get_request_id,
    reset_request_id,
    setup_logging,
)


__all__ = [
    "Severity",
    "TradingException",
    "ConfigurationError",
    "InvalidInputError",
    "MarketDataError",
    "MarketNotFoundError",
    "AccountNotFoundError",
    "RateLimitExceededError",
    "setup_logging",
    "JsonFormatter",
    "bind_request_id",
    "get_request_id",
    "reset_request_id",
]

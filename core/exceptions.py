"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy shared by the risk service.

- Provides a small, explicit taxonomy
- Lets the HTTP layer map failures to status codes
- Carries context for structured logging

============================================================
EXCEPTION HIERARCHY
============================================================
TradingException (base)
├── ConfigurationError
├── InvalidInputError
├── MarketDataError
│   ├── MarketNotFoundError
│   └── AccountNotFoundError
└── RateLimitExceededError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""
    
    LOW = "low"
    """Caller mistake, informational."""
    
    MEDIUM = "medium"
    """Upstream or transient issue."""
    
    HIGH = "high"
    """Service cannot operate correctly."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class TradingException(Exception):
    """
    Base exception for all risk service errors.
    
    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - timestamp: when the error occurred
    """
    
    default_severity: Severity = Severity.MEDIUM
    
    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        
        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        
        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }
    
    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(TradingException):
    """Error in configuration."""
    
    default_severity = Severity.HIGH
    
    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        
        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]
        
        super().__init__(message, context=context, **kwargs)


# ============================================================
# INPUT ERRORS
# ============================================================

class InvalidInputError(TradingException):
    """
    A calculation precondition was violated.
    
    Raised for non-positive prices, sizes or leverage where a
    division would occur, and for non-finite numbers. The core
    never returns NaN or Infinity in place of this error.
    """
    
    default_severity = Severity.LOW
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        
        super().__init__(message, context=context, **kwargs)
        self.field = field


# ============================================================
# MARKET DATA ERRORS
# ============================================================

class MarketDataError(TradingException):
    """Upstream market or account data could not be fetched."""
    
    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        
        if source:
            context["source"] = source
        if endpoint:
            context["endpoint"] = endpoint
        
        super().__init__(message, context=context, **kwargs)


class MarketNotFoundError(MarketDataError):
    """Requested market does not exist upstream."""
    
    default_severity = Severity.LOW
    
    def __init__(self, market: str, **kwargs):
        context = kwargs.pop("context", {})
        context["market"] = market
        super().__init__(f"Market not found: {market}", context=context, **kwargs)
        self.market = market


class AccountNotFoundError(MarketDataError):
    """Requested account/subaccount does not exist upstream."""
    
    default_severity = Severity.LOW
    
    def __init__(self, address: str, subaccount_number: int = 0, **kwargs):
        context = kwargs.pop("context", {})
        context["address"] = address
        context["subaccount_number"] = subaccount_number
        super().__init__(
            f"Account not found: {address}/{subaccount_number}",
            context=context,
            **kwargs,
        )
        self.address = address


# ============================================================
# RATE LIMIT ERRORS
# ============================================================

class RateLimitExceededError(TradingException):
    """Caller exceeded the request budget for the current window."""
    
    default_severity = Severity.LOW
    
    def __init__(self, identifier: str, retry_after: int, **kwargs):
        context = kwargs.pop("context", {})
        context["identifier"] = identifier
        context["retry_after"] = retry_after
        super().__init__("Rate limit exceeded", context=context, **kwargs)
        self.retry_after = retry_after

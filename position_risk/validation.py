"""
Position Risk - Input Validation.

============================================================
PURPOSE
============================================================
Parses and validates caller-supplied numbers before they
reach the calculator.

VALIDATION STEPS:
1. Convert strings/ints/floats to Decimal
2. Reject bool, None, NaN and Infinity
3. Enforce sign preconditions where a division would occur
4. Enforce leverage limits on caller-supplied leverage

CRITICAL PRINCIPLE:
    "Fail fast. Never let NaN or Infinity reach a response."

============================================================
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from core.exceptions import InvalidInputError
from .config import LeverageLimits
from .types import OrderSide, OrderType


logger = logging.getLogger(__name__)


_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
_DYDX_ADDRESS_PATTERN = re.compile(r"^dydx1[02-9ac-hj-np-z]{38}$")


# ============================================================
# NUMBER PARSING
# ============================================================

def to_decimal(
    value: Any,
    field_name: str,
    *,
    positive: bool = False,
    non_negative: bool = False,
) -> Decimal:
    """
    Convert a caller-supplied number to a finite Decimal.
    
    Floats go through str() so 0.1 becomes Decimal("0.1").
    
    Args:
        value: Decimal, int, float or numeric string
        field_name: Name used in the error message
        positive: Require value > 0
        non_negative: Require value >= 0
        
    Returns:
        Finite Decimal
        
    Raises:
        InvalidInputError: On missing, malformed, non-finite or
            out-of-range values
    """
    if value is None:
        raise InvalidInputError(f"{field_name} is required", field=field_name)
    
    # bool is an int subclass; True is not a price
    if isinstance(value, bool):
        raise InvalidInputError(f"{field_name} must be a number", field=field_name, value=value)
    
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidInputError(
                f"{field_name} must be a number", field=field_name, value=value
            ) from None
    else:
        raise InvalidInputError(f"{field_name} must be a number", field=field_name, value=value)
    
    if not result.is_finite():
        raise InvalidInputError(f"{field_name} must be finite", field=field_name, value=value)
    
    if positive and result <= 0:
        raise InvalidInputError(f"{field_name} must be positive", field=field_name, value=value)
    
    if non_negative and result < 0:
        raise InvalidInputError(f"{field_name} must not be negative", field=field_name, value=value)
    
    return result


def validate_leverage(leverage: Any, limits: Optional[LeverageLimits] = None) -> Decimal:
    """
    Parse leverage and enforce the configured range.
    
    Raises:
        InvalidInputError: If leverage is outside [min, max]
    """
    limits = limits or LeverageLimits()
    value = to_decimal(leverage, "leverage", positive=True)
    
    if not limits.contains(value):
        raise InvalidInputError(
            f"Leverage must be between {limits.min_leverage} and {limits.max_leverage}",
            field="leverage",
            value=leverage,
        )
    return value


# ============================================================
# ORDER VALIDATION
# ============================================================

@dataclass
class OrderValidationResult:
    """Result of order parameter validation."""
    
    is_valid: bool
    """Whether validation passed."""
    
    errors: List[str] = field(default_factory=list)
    """Every failed check, in evaluation order."""


def validate_order_params(
    order: Mapping[str, Any],
    limits: Optional[LeverageLimits] = None,
) -> OrderValidationResult:
    """
    Validate raw order parameters.
    
    All checks run; the result lists every failure rather than
    stopping at the first one.
    
    Args:
        order: Mapping with market, side, type, size, price, leverage
        limits: Leverage limits (defaults to 1-20)
        
    Returns:
        OrderValidationResult
    """
    limits = limits or LeverageLimits()
    errors: List[str] = []
    
    market = order.get("market")
    if not isinstance(market, str) or sanitize_market_symbol(market) is None:
        errors.append("Valid market symbol required")
    
    if order.get("side") not in {s.value for s in OrderSide}:
        errors.append("Side must be BUY or SELL")
    
    order_type = order.get("type")
    if order_type not in {t.value for t in OrderType}:
        errors.append("Type must be MARKET or LIMIT")
    
    if not _is_positive_number(order.get("size")):
        errors.append("Size must be a positive number")
    
    if order_type == OrderType.LIMIT.value and not _is_positive_number(order.get("price")):
        errors.append("Price required for LIMIT orders")
    
    leverage = _as_number(order.get("leverage"))
    if leverage is None or not limits.contains(leverage):
        errors.append(
            f"Leverage must be between {limits.min_leverage} and {limits.max_leverage}"
        )
    
    if errors:
        logger.info(f"Order validation failed for {market!r}: {errors}")
    
    return OrderValidationResult(is_valid=not errors, errors=errors)


def _as_number(value: Any) -> Optional[Decimal]:
    try:
        return to_decimal(value, "value")
    except InvalidInputError:
        return None


def _is_positive_number(value: Any) -> bool:
    number = _as_number(value)
    return number is not None and number > 0


# ============================================================
# IDENTIFIERS
# ============================================================

def validate_address(address: Any) -> bool:
    """Basic EVM address check: 0x followed by 40 hex characters."""
    if not address or not isinstance(address, str):
        return False
    return bool(_ADDRESS_PATTERN.match(address))


def validate_dydx_address(address: Any) -> bool:
    """Bech32 dYdX chain address check (dydx1 + 38 data characters)."""
    if not address or not isinstance(address, str):
        return False
    return bool(_DYDX_ADDRESS_PATTERN.match(address))


def validate_wallet_address(address: Any) -> bool:
    """Accept either a Base (EVM) or a dYdX chain address."""
    return validate_address(address) or validate_dydx_address(address)


def sanitize_market_symbol(symbol: Optional[str]) -> Optional[str]:
    """Normalize a market symbol ("btc-usd " -> "BTC-USD")."""
    if not symbol:
        return None
    cleaned = symbol.strip().upper()
    return cleaned or None

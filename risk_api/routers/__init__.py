"""
Risk API Routers.
"""
from . import account, health, markets, risk

__all__ = ["account", "health", "markets", "risk"]

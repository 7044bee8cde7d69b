"""
Risk API - Configuration.

Server, logging, rate limit and data source settings, loaded
from the environment (and a .env file when present).
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from core.exceptions import ConfigurationError


# Load environment variables
load_dotenv()


MARKET_DATA_SOURCES = ("indexer", "static")


@dataclass(frozen=True)
class ApiConfig:
    """
    HTTP service configuration.
    
    ============================================================
    ENVIRONMENT VARIABLES
    ============================================================
    API_HOST                    (default 0.0.0.0)
    API_PORT                    (default 8000)
    LOG_LEVEL                   (default INFO)
    LOG_FORMAT                  (json | text, default json)
    RATE_LIMIT_REQUESTS         (default 100)
    RATE_LIMIT_WINDOW_SECONDS   (default 60)
    CORS_ORIGINS                (comma separated, default *)
    MARKET_DATA_SOURCE          (indexer | static, default indexer)
    ============================================================
    """
    
    host: str = "0.0.0.0"
    port: int = 8000
    
    log_level: str = "INFO"
    log_format: str = "json"
    
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60
    
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    
    market_data_source: str = "indexer"
    
    def __post_init__(self) -> None:
        if self.rate_limit_requests < 1:
            raise ConfigurationError(
                "RATE_LIMIT_REQUESTS must be at least 1",
                config_key="RATE_LIMIT_REQUESTS",
                actual_value=self.rate_limit_requests,
            )
        if self.rate_limit_window_seconds < 1:
            raise ConfigurationError(
                "RATE_LIMIT_WINDOW_SECONDS must be at least 1",
                config_key="RATE_LIMIT_WINDOW_SECONDS",
                actual_value=self.rate_limit_window_seconds,
            )
        if self.market_data_source not in MARKET_DATA_SOURCES:
            raise ConfigurationError(
                f"MARKET_DATA_SOURCE must be one of {', '.join(MARKET_DATA_SOURCES)}",
                config_key="MARKET_DATA_SOURCE",
                actual_value=self.market_data_source,
            )
    
    @classmethod
    def from_env(cls) -> "ApiConfig":
        """Load configuration from environment variables."""
        origins = os.getenv("CORS_ORIGINS", "*")
        
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=_env_int("API_PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
            rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 100),
            rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 60),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            market_data_source=os.getenv("MARKET_DATA_SOURCE", "indexer").strip().lower(),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer", config_key=name, actual_value=raw, cause=e
        ) from e

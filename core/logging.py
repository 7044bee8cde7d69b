"""
Core Module - Logging.

============================================================
RESPONSIBILITY
============================================================
Single place where the root logger is configured.

Every module logs through logging.getLogger(__name__);
only entry points call setup_logging().

============================================================
REQUEST CORRELATION
============================================================
The HTTP middleware binds one request id per request with
bind_request_id(). The id lives in a ContextVar, so every
record emitted while serving that request carries it, in
both json and text output. Outside a request it is "-".
============================================================
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Optional


_NO_REQUEST = "-"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> str:
    """Request id bound to the current context, or "-"."""
    return _request_id.get() or _NO_REQUEST


def bind_request_id(request_id: str) -> Token:
    """
    Bind a request id to the current context.
    
    Returns:
        Token to pass to reset_request_id() when the request ends
    """
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request id."""
    
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.
    
    Fields: timestamp, level, logger, request_id, message and,
    when the record carries one, exception.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "message": record.getMessage(),
        }
        
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Set up structured logging.
    
    Args:
        level: Log level
        log_format: Output format (json or text)
    
    Returns:
        Configured service logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    
    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(request_id)s | %(message)s"
        )
    
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(formatter)
    
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]
    
    return logging.getLogger("risk_api")

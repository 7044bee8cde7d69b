"""
Risk API - Rate Limiting.

============================================================
LOGIC
============================================================
- Track request timestamps per identifier (wallet or host)
- Drop timestamps older than the window on every hit
- Reject once `limit` requests fall inside the window
- retry_after = seconds until the oldest hit leaves the window
- Once per window, forget identifiers with no hit inside it

One limiter instance lives on app.state for the lifetime of
the application and is cleared on shutdown.
============================================================
"""

import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from core.exceptions import RateLimitExceededError


logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Per-identifier sliding window request limiter.
    """
    
    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.
        
        Args:
            limit: Maximum requests per identifier inside one window
            window_seconds: Window length in seconds
            clock: Monotonic time source (injectable for tests)
        """
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        # Sync route handlers run in a threadpool
        self._lock = threading.Lock()
    
    @property
    def limit(self) -> int:
        return self._limit
    
    @property
    def window_seconds(self) -> float:
        return self._window
    
    def hit(self, identifier: str) -> int:
        """
        Record one request for identifier.
        
        Returns:
            Requests remaining in the current window
            
        Raises:
            RateLimitExceededError: If the window is already full
        """
        now = self._clock()
        
        with self._lock:
            cutoff = now - self._window
            if now - self._last_sweep >= self._window:
                self._sweep(cutoff)
                self._last_sweep = now
            
            hits = self._hits.setdefault(identifier, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            
            if len(hits) >= self._limit:
                retry_after = max(1, math.ceil(hits[0] + self._window - now))
                logger.warning(f"Rate limit exceeded for {identifier}, retry in {retry_after}s")
                raise RateLimitExceededError(identifier, retry_after)
            
            hits.append(now)
            return self._limit - len(hits)
    
    def _sweep(self, cutoff: float) -> None:
        # Caller holds the lock
        stale = [
            key for key, hits in self._hits.items()
            if not hits or hits[-1] <= cutoff
        ]
        for key in stale:
            del self._hits[key]
        if stale:
            logger.debug(f"Rate limiter dropped {len(stale)} idle identifiers")
    
    def reset(self, identifier: str) -> None:
        """Forget all hits for one identifier."""
        with self._lock:
            self._hits.pop(identifier, None)
    
    def clear(self) -> None:
        """Forget all tracked identifiers."""
        with self._lock:
            self._hits.clear()
    
    def tracked_identifiers(self) -> int:
        with self._lock:
            return len(self._hits)

import asyncio
import time
from typing import Dict, Optional
from dataclasses import dataclass, field

from utils.logger import get_logger

logger = get_logger("rate_limiter")


@dataclass
class RateLimitConfig:
    """Rate limit configuration for an API endpoint"""

    requests_per_window: int
    window_seconds: float = 1.0
    burst_limit: Optional[int] = None  # Max burst if different from rate


@dataclass
class TokenBucket:
    """Token bucket for rate limiting"""

    capacity: float
    tokens: float
    refill_rate: float  # tokens per second
    last_refill: float = field(default_factory=time.monotonic)

    def refill(self):
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        self.refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def wait_time(self, tokens: int = 1) -> float:
        self.refill()
        if self.tokens >= tokens:
            return 0.0
        needed = tokens - self.tokens
        return needed / self.refill_rate


class RateLimiter:
    """Rate limiter using token bucket algorithm"""

    # Public tier limits for the discovery providers.
    LIMITS = {
        "birdeye_general": RateLimitConfig(requests_per_window=15, window_seconds=1),
        "birdeye_trending": RateLimitConfig(requests_per_window=10, window_seconds=1),
        "birdeye_traders": RateLimitConfig(requests_per_window=10, window_seconds=1),
        "birdeye_gainers": RateLimitConfig(requests_per_window=5, window_seconds=1),
        "birdeye_new_listing": RateLimitConfig(requests_per_window=5, window_seconds=1),
        "dexscreener_boosts": RateLimitConfig(requests_per_window=60, window_seconds=60, burst_limit=10),
        "dexscreener_general": RateLimitConfig(requests_per_window=300, window_seconds=60, burst_limit=20),
    }

    def __init__(self, limits: Optional[Dict[str, RateLimitConfig]] = None):
        self._limits = dict(self.LIMITS)
        if limits:
            self._limits.update(limits)
        self._buckets: Dict[str, TokenBucket] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_bucket(self, endpoint: str) -> TokenBucket:
        if endpoint not in self._buckets:
            config = self._limits.get(endpoint, RateLimitConfig(10, 1))
            capacity = config.burst_limit or config.requests_per_window
            refill_rate = config.requests_per_window / config.window_seconds
            self._buckets[endpoint] = TokenBucket(
                capacity=capacity, tokens=capacity, refill_rate=refill_rate
            )
        return self._buckets[endpoint]

    def _get_lock(self, endpoint: str) -> asyncio.Lock:
        if endpoint not in self._locks:
            self._locks[endpoint] = asyncio.Lock()
        return self._locks[endpoint]

    async def acquire(self, endpoint: str, tokens: int = 1) -> float:
        """
        Acquire rate limit permission. Returns wait time (0 if immediate).
        Blocks until permission is granted.
        """
        lock = self._get_lock(endpoint)
        async with lock:
            bucket = self._get_bucket(endpoint)
            wait_time = bucket.wait_time(tokens)

            if wait_time > 0:
                logger.debug(
                    "Rate limit wait", endpoint=endpoint, wait_seconds=round(wait_time, 3)
                )
                await asyncio.sleep(wait_time)
                bucket.refill()

            bucket.consume(tokens)
            return wait_time


# Global rate limiter instance
rate_limiter = RateLimiter()


def endpoint_for_url(url: str) -> str:
    """Determine rate limit endpoint category from URL"""
    if "birdeye" in url:
        if "token_trending" in url:
            return "birdeye_trending"
        if "top_traders" in url:
            return "birdeye_traders"
        if "gainers-losers" in url:
            return "birdeye_gainers"
        if "new_listing" in url:
            return "birdeye_new_listing"
        return "birdeye_general"
    if "dexscreener" in url:
        if "token-boosts" in url:
            return "dexscreener_boosts"
        return "dexscreener_general"
    return "default"

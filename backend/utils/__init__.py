from .logger import setup_logging, get_logger
from .retry import RetryConfig, RetryableClient
from .rate_limiter import RateLimiter, rate_limiter, endpoint_for_url
from .utcnow import utcnow, utcfromtimestamp, hours_since

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",

    # Retry
    "RetryConfig",
    "RetryableClient",

    # Rate Limiter
    "RateLimiter",
    "rate_limiter",
    "endpoint_for_url",

    # Time
    "utcnow",
    "utcfromtimestamp",
    "hours_since",
]

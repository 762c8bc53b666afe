import asyncio
import random
from typing import Optional, Tuple, Type

import httpx

from utils.logger import get_logger
from utils.rate_limiter import RateLimiter, endpoint_for_url, rate_limiter

logger = get_logger("retry")


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 4,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Tuple[Type[Exception], ...] = (
            httpx.TimeoutException,
            httpx.NetworkError,
            httpx.RemoteProtocolError,
            ConnectionError,
            asyncio.TimeoutError,
        ),
        retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504),
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions
        self.retryable_status_codes = retryable_status_codes

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        return cls(
            max_attempts=settings.MAX_RETRY_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY,
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter"""
    delay = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    if config.jitter:
        delay = delay * (0.5 + random.random())
    return delay


def is_retryable_error(error: Exception, config: RetryConfig) -> bool:
    """Check if an error should be retried"""
    if isinstance(error, config.retryable_exceptions):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in config.retryable_status_codes

    return False


class RetryableClient:
    """HTTP client wrapper with rate limiting and automatic retry.

    Every attempt first takes a token from the limiter bucket that matches
    the request URL, so retries are paced by the same budget as fresh calls.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: Optional[RetryConfig] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        self.client = client
        self.config = config or RetryConfig()
        self.limiter = limiter or rate_limiter

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request with retry logic"""
        last_error: Optional[Exception] = None
        endpoint = endpoint_for_url(url)

        for attempt in range(self.config.max_attempts):
            try:
                await self.limiter.acquire(endpoint)
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except Exception as e:
                last_error = e

                if not is_retryable_error(e, self.config):
                    raise

                if attempt < self.config.max_attempts - 1:
                    delay = calculate_delay(attempt, self.config)

                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == 429:
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after:
                            try:
                                delay = max(delay, float(retry_after))
                            except ValueError:
                                pass

                    logger.warning(
                        "Retrying HTTP request",
                        method=method,
                        url=url,
                        attempt=attempt + 1,
                        delay=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        "All retry attempts exhausted",
                        method=method,
                        url=url,
                        attempts=self.config.max_attempts,
                        error=str(e),
                    )

        raise last_error

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

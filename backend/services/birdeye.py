import asyncio
from datetime import timedelta
from typing import Any, Callable, Optional, TypeVar

import httpx

from config import settings
from interfaces.discovery_sources import SourceResponseError
from models.discovery import (
    GainerRecord,
    NewListingFilter,
    NewListingToken,
    TopTrader,
    TrendingToken,
)
from utils.logger import get_logger
from utils.retry import RetryConfig, RetryableClient
from utils.utcnow import utcnow

logger = get_logger("birdeye")

T = TypeVar("T")

# (sort_by, sort_type) strategies merged by the paginated trending fetch.
TRENDING_SORT_STRATEGIES = (
    ("rank", "asc"),
    ("volume24hUSD", "desc"),
    ("liquidity", "desc"),
)
GAINER_TIMEFRAMES = ("today", "yesterday", "1W")
NEW_LISTING_PAGE_SIZE = 20


class BirdEyeClient:
    """Client for the BirdEye public data API.

    Serves four discovery sources: trending tokens, per-token top traders,
    gainer wallets and new listings. Paginated helpers merge pages (and
    sort strategies / timeframes) and drop duplicate addresses, keeping the
    first occurrence.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.base_url = (base_url or settings.BIRDEYE_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.BIRDEYE_API_KEY
        self.retry_config = retry_config or RetryConfig.from_settings(settings)
        self.trending_page_size = settings.TRENDING_PAGE_SIZE
        self.trending_max_pages = settings.TRENDING_MAX_PAGES
        self.traders_page_size = settings.TOP_TRADERS_PAGE_SIZE
        self.traders_max_pages = settings.TOP_TRADERS_MAX_PAGES
        self.gainers_page_size = settings.GAINERS_PAGE_SIZE
        self.gainers_max_pages = settings.GAINERS_MAX_PAGES
        self._client: Optional[httpx.AsyncClient] = None
        self._http: Optional[RetryableClient] = None

        if not self.api_key:
            logger.warning("BIRDEYE_API_KEY is not set; BirdEye requests will be rejected")

    async def _get_http(self) -> RetryableClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=float(settings.API_TIMEOUT_SECONDS))
            self._http = RetryableClient(self._client, self.retry_config)
        return self._http

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_json(self, path: str, params: dict, chain: str) -> Any:
        """GET a BirdEye endpoint and return its ``data`` block."""
        http = await self._get_http()
        headers = {
            "accept": "application/json",
            "x-chain": chain,
        }
        if self.api_key:
            headers["X-API-KEY"] = self.api_key

        response = await http.get(f"{self.base_url}{path}", params=params, headers=headers)
        payload = response.json()
        if not isinstance(payload, dict):
            raise SourceResponseError("birdeye", f"unexpected payload type for {path}")
        if payload.get("success") is False:
            raise SourceResponseError(
                "birdeye", f"{path} failed: {payload.get('message') or 'unknown error'}"
            )
        return payload.get("data")

    @staticmethod
    def _items(data: Any, *keys: str) -> list[dict]:
        if isinstance(data, list):
            rows = data
        elif isinstance(data, dict):
            rows = []
            for key in keys:
                value = data.get(key)
                if isinstance(value, list):
                    rows = value
                    break
        else:
            rows = []
        return [row for row in rows if isinstance(row, dict)]

    async def _paginate(
        self,
        fetch_page: Callable[[int, int], Any],
        page_size: int,
        max_pages: int,
    ) -> list[dict]:
        rows: list[dict] = []
        for page in range(max(1, max_pages)):
            batch = await fetch_page(page * page_size, page_size)
            rows.extend(batch)
            if len(batch) < page_size:
                break
        return rows

    @staticmethod
    def _dedupe(records: list[T], key: Callable[[T], str]) -> list[T]:
        seen: set[str] = set()
        unique: list[T] = []
        for record in records:
            value = key(record)
            if not value or value in seen:
                continue
            seen.add(value)
            unique.append(record)
        return unique

    # ==================== TRENDING ====================

    async def _trending_page(
        self, chain: str, sort_by: str, sort_type: str, offset: int, limit: int
    ) -> list[dict]:
        data = await self._get_json(
            "/defi/token_trending",
            {"sort_by": sort_by, "sort_type": sort_type, "offset": offset, "limit": limit},
            chain,
        )
        return self._items(data, "tokens", "items")

    async def get_trending_tokens(self, chain: str) -> list[TrendingToken]:
        """Single-sort (rank) first page of trending tokens."""
        rows = await self._trending_page(chain, "rank", "asc", 0, self.trending_page_size)
        tokens = [TrendingToken.from_birdeye_response(row) for row in rows]
        return self._dedupe(tokens, lambda t: t.address)

    async def get_trending_tokens_paginated(self, chain: str) -> list[TrendingToken]:
        """Merge every page of every sort strategy into one unique token list."""
        collected: list[TrendingToken] = []
        errors: list[Exception] = []

        for sort_by, sort_type in TRENDING_SORT_STRATEGIES:

            async def fetch_page(offset: int, limit: int, _sort_by=sort_by, _sort_type=sort_type):
                return await self._trending_page(chain, _sort_by, _sort_type, offset, limit)

            try:
                rows = await self._paginate(
                    fetch_page, self.trending_page_size, self.trending_max_pages
                )
            except Exception as e:
                errors.append(e)
                logger.warning(
                    "Trending sort strategy failed",
                    chain=chain,
                    sort_by=sort_by,
                    error=str(e),
                )
                continue
            collected.extend(TrendingToken.from_birdeye_response(row) for row in rows)

        if errors and len(errors) == len(TRENDING_SORT_STRATEGIES):
            raise errors[0]

        unique = self._dedupe(collected, lambda t: t.address)
        logger.debug(
            "Trending pages merged",
            chain=chain,
            raw=len(collected),
            unique=len(unique),
        )
        return unique

    # ==================== TOP TRADERS ====================

    async def get_top_traders_paginated(self, token_address: str, chain: str) -> list[TopTrader]:
        """Top traders of a token over the last 24h, ranked by volume."""

        async def fetch_page(offset: int, limit: int):
            data = await self._get_json(
                "/defi/v2/tokens/top_traders",
                {
                    "address": token_address,
                    "time_frame": "24h",
                    "sort_type": "desc",
                    "sort_by": "volume",
                    "offset": offset,
                    "limit": limit,
                },
                chain,
            )
            return self._items(data, "items")

        rows = await self._paginate(fetch_page, self.traders_page_size, self.traders_max_pages)
        traders = [TopTrader.from_birdeye_response(row) for row in rows]
        return self._dedupe(traders, lambda t: t.owner)

    # ==================== GAINERS ====================

    async def get_gainers_losers_paginated(self, chain: str) -> list[GainerRecord]:
        """Top PnL wallets across all timeframes, first occurrence wins."""
        collected: list[GainerRecord] = []
        errors: list[Exception] = []

        for timeframe in GAINER_TIMEFRAMES:

            async def fetch_page(offset: int, limit: int, _timeframe=timeframe):
                data = await self._get_json(
                    "/trader/gainers-losers",
                    {
                        "type": _timeframe,
                        "sort_by": "PnL",
                        "sort_type": "desc",
                        "offset": offset,
                        "limit": limit,
                    },
                    chain,
                )
                return self._items(data, "items")

            try:
                rows = await self._paginate(fetch_page, self.gainers_page_size, self.gainers_max_pages)
            except Exception as e:
                errors.append(e)
                logger.warning(
                    "Gainers timeframe failed",
                    chain=chain,
                    timeframe=timeframe,
                    error=str(e),
                )
                continue
            collected.extend(GainerRecord.from_birdeye_response(row) for row in rows)

        if errors and len(errors) == len(GAINER_TIMEFRAMES):
            raise errors[0]

        return self._dedupe(collected, lambda g: g.address)

    # ==================== NEW LISTINGS ====================

    async def get_new_listing_tokens(
        self, chain: str, meme_platform_enabled: bool = False
    ) -> list[NewListingToken]:
        data = await self._get_json(
            "/defi/v2/tokens/new_listing",
            {
                "limit": NEW_LISTING_PAGE_SIZE,
                "meme_platform_enabled": str(meme_platform_enabled).lower(),
            },
            chain,
        )
        return [NewListingToken.from_birdeye_response(row) for row in self._items(data, "items")]

    async def get_new_listing_tokens_comprehensive(self, chain: str) -> list[NewListingToken]:
        """New listings from both the DEX feed and the meme-launchpad feed."""
        results = await asyncio.gather(
            self.get_new_listing_tokens(chain, meme_platform_enabled=False),
            self.get_new_listing_tokens(chain, meme_platform_enabled=True),
            return_exceptions=True,
        )
        tokens: list[NewListingToken] = []
        errors: list[BaseException] = []
        for result in results:
            if isinstance(result, BaseException):
                errors.append(result)
                logger.warning("New listing feed failed", chain=chain, error=str(result))
                continue
            tokens.extend(result)

        if errors and len(errors) == len(results):
            raise errors[0]

        return self._dedupe(tokens, lambda t: t.address)

    def filter_new_listing_tokens(
        self, tokens: list[NewListingToken], token_filter: NewListingFilter
    ) -> list[NewListingToken]:
        """Keep liquid, young listings in feed order, up to ``max_tokens``.

        Listings without a liquidity timestamp are kept: age is unknown, not old.
        """
        now = utcnow()
        kept: list[NewListingToken] = []
        for token in tokens:
            if token_filter.min_liquidity is not None and token.liquidity < token_filter.min_liquidity:
                continue
            if token_filter.max_age_hours is not None and token.liquidity_added_at is not None:
                if now - token.liquidity_added_at > timedelta(hours=token_filter.max_age_hours):
                    continue
            kept.append(token)

        if token_filter.max_tokens is not None and token_filter.max_tokens >= 0:
            kept = kept[: token_filter.max_tokens]
        return kept

import logging
from typing import Optional

from interfaces.discovery_sources import (
    BoostedSource,
    GainerSource,
    NewListingSource,
    TraderSource,
    TrendingSource,
)
from models.discovery import (
    BoostedToken,
    DiscoveryConfig,
    GainerRecord,
    NewListingToken,
    TopTrader,
    TrendingToken,
)
from services.trader_filter import TraderFilterThresholds, filter_with_thresholds
from utils.logger import get_logger

logger = get_logger("source_fetchers")

LARGE_TRENDING_SET_WARNING = 1000
TRENDING_DEBUG_SAMPLE = 8
TRADER_DEBUG_SAMPLE = 3


def sort_by_volume_desc(tokens: list[TrendingToken]) -> list[TrendingToken]:
    """Stable descending sort on 24h volume; tokens without volume go last."""
    return sorted(
        tokens,
        key=lambda t: (t.volume_24h is None, -(t.volume_24h or 0.0)),
    )


class SourceFetchers:
    """Normalizing wrappers around each discovery source.

    Every method may raise whatever its source raises; isolating failures
    is the caller's job.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        trending: TrendingSource,
        traders: TraderSource,
        gainers: GainerSource,
        boosted: Optional[BoostedSource] = None,
        new_listings: Optional[NewListingSource] = None,
    ):
        self.config = config
        self.trending = trending
        self.traders = traders
        self.gainers = gainers
        self.boosted = boosted
        self.new_listings = new_listings
        self.thresholds = TraderFilterThresholds.from_config(config)

    async def fetch_trending_tokens(self, chain: str) -> list[TrendingToken]:
        try:
            tokens = await self.trending.get_trending_tokens_paginated(chain)
        except Exception as primary_error:
            logger.error(
                "Multi-sort trending discovery failed, falling back to single sort",
                chain=chain,
                error=str(primary_error),
            )
            try:
                fallback = await self.trending.get_trending_tokens(chain)
            except Exception as fallback_error:
                logger.error(
                    "Fallback trending discovery failed",
                    chain=chain,
                    error=str(fallback_error),
                )
                raise primary_error
            tokens = self._cap_trending(sort_by_volume_desc(fallback))
            logger.warning("Using fallback trending tokens", chain=chain, count=len(tokens))
            return tokens

        tokens = self._cap_trending(sort_by_volume_desc(tokens))
        if len(tokens) > LARGE_TRENDING_SET_WARNING:
            logger.warning(
                "Unusually large trending set",
                chain=chain,
                count=len(tokens),
            )
        logger.info("Trending tokens ready", chain=chain, count=len(tokens))

        if self.config.debug_mode and logger.is_enabled_for(logging.DEBUG):
            for i, token in enumerate(tokens[:TRENDING_DEBUG_SAMPLE], start=1):
                logger.debug(
                    "Top trending token",
                    chain=chain,
                    position=i,
                    symbol=token.symbol,
                    address=token.address,
                    volume_24h=token.volume_24h or 0.0,
                    liquidity=token.liquidity or 0.0,
                    price_change_24h=token.price_change_24h or 0.0,
                )
        return tokens

    def _cap_trending(self, tokens: list[TrendingToken]) -> list[TrendingToken]:
        limit = self.config.max_trending_tokens
        if limit > 0 and len(tokens) > limit:
            return tokens[:limit]
        return tokens

    async def fetch_top_traders(self, token_address: str, chain: str) -> list[TopTrader]:
        raw = await self.traders.get_top_traders_paginated(token_address, chain)
        quality = filter_with_thresholds(raw, self.thresholds)
        quality = quality[: max(self.config.max_traders_per_token, 0)]

        logger.debug(
            "Filtered top traders",
            chain=chain,
            token=token_address,
            raw=len(raw),
            kept=len(quality),
        )
        if self.config.debug_mode and logger.is_enabled_for(logging.DEBUG):
            for i, trader in enumerate(quality[:TRADER_DEBUG_SAMPLE], start=1):
                logger.debug(
                    "Top quality trader",
                    token=token_address,
                    position=i,
                    owner=trader.owner,
                    volume=trader.volume,
                    trades=trader.trade,
                )
        return quality

    async def fetch_gainers(self, chain: str) -> list[GainerRecord]:
        gainers = await self.gainers.get_gainers_losers_paginated(chain)
        return [g for g in gainers if g.address]

    async def fetch_boosted(self) -> tuple[list[BoostedToken], list[BoostedToken]]:
        if self.boosted is None:
            return [], []
        return await self.boosted.get_all_boosted_tokens()

    async def fetch_new_listings(self, chain: str) -> list[NewListingToken]:
        if self.new_listings is None:
            return []
        tokens = await self.new_listings.get_new_listing_tokens_comprehensive(chain)
        token_filter = self.config.new_listing_filter()
        filtered = self.new_listings.filter_new_listing_tokens(tokens, token_filter)
        filtered = filtered[: max(self.config.new_listing_max_tokens, 0)]
        logger.debug(
            "New listings filtered",
            chain=chain,
            raw=len(tokens),
            kept=len(filtered),
        )
        return filtered

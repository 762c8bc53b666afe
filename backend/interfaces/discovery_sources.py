"""Discovery source contracts.

These protocols define the minimum async API the orchestrator needs from
each external provider and from the analysis queue, decoupling the cycle
logic from the concrete BirdEye/DexScreener clients and the SQL queue.
"""

from __future__ import annotations

from typing import Protocol

from models.discovery import (
    BoostedToken,
    GainerRecord,
    NewListingFilter,
    NewListingToken,
    TopTrader,
    TrendingToken,
    WalletTokenObservation,
)


class SourceResponseError(RuntimeError):
    """A provider answered, but not with usable data."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class TrendingSource(Protocol):
    """Trending tokens for a chain."""

    async def get_trending_tokens_paginated(self, chain: str) -> list[TrendingToken]:
        """Multi-sort, multi-page trending discovery (primary strategy)."""

    async def get_trending_tokens(self, chain: str) -> list[TrendingToken]:
        """Single-sort first-page discovery (degraded fallback)."""


class TraderSource(Protocol):
    """Top traders of a single token."""

    async def get_top_traders_paginated(
        self, token_address: str, chain: str
    ) -> list[TopTrader]:
        """Fetch every page of top traders for a token."""


class GainerSource(Protocol):
    """Top gaining wallets, merged across timeframes."""

    async def get_gainers_losers_paginated(self, chain: str) -> list[GainerRecord]:
        """Fetch gainers for all timeframes and pages, deduplicated by wallet."""


class BoostedSource(Protocol):
    """Paid-visibility tokens."""

    async def get_all_boosted_tokens(
        self,
    ) -> tuple[list[BoostedToken], list[BoostedToken]]:
        """Return the (latest, top) boosted token lists."""


class NewListingSource(Protocol):
    """Recently listed tokens."""

    async def get_new_listing_tokens_comprehensive(
        self, chain: str
    ) -> list[NewListingToken]:
        """Fetch new listings from every listing feed of the provider."""

    def filter_new_listing_tokens(
        self, tokens: list[NewListingToken], token_filter: NewListingFilter
    ) -> list[NewListingToken]:
        """Apply liquidity/age/count limits."""


class DedupQueue(Protocol):
    """Downstream analysis queue that owns deduplication."""

    async def publish_batch(self, observations: list[WalletTokenObservation]) -> int:
        """Enqueue observations; return how many were new."""

    async def queue_depth(self) -> int:
        """Number of observations waiting for analysis."""

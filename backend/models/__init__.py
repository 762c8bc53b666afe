from .discovery import (
    BoostedToken,
    ChainCycleResult,
    DiscoveryConfig,
    DiscoveryStats,
    GainerRecord,
    NewListingFilter,
    NewListingToken,
    PublishResult,
    TopTrader,
    TrendingToken,
    WalletTokenObservation,
)

__all__ = [
    "BoostedToken",
    "ChainCycleResult",
    "DiscoveryConfig",
    "DiscoveryStats",
    "GainerRecord",
    "NewListingFilter",
    "NewListingToken",
    "PublishResult",
    "TopTrader",
    "TrendingToken",
    "WalletTokenObservation",
]

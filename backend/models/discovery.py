"""Discovery records produced by the external sources and consumed by the
orchestrator.

Provider payloads are loosely typed (numbers as strings, camelCase and
snake_case keys mixed, optional blocks missing), so every record exposes a
``from_*_response`` constructor that normalizes one raw item.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from utils.utcnow import utcfromtimestamp, utcnow

GAINER_TOKEN_ADDRESS = "ALL_TOKENS"
GAINER_SYMBOL_PREFIX = "GAINER_"
BOOSTED_SYMBOL_PREFIX = "BOOSTED_"


def _to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> str:
    return str(value or "").strip()


class TrendingToken(BaseModel):
    """A high-activity token from the trending source"""

    address: str
    symbol: str = ""
    name: str = ""
    decimals: Optional[int] = None
    price: float = 0.0
    price_change_24h: Optional[float] = None
    volume_24h: Optional[float] = None
    volume_change_24h: Optional[float] = None
    liquidity: Optional[float] = None
    fdv: Optional[float] = None
    marketcap: Optional[float] = None
    rank: Optional[int] = None
    logo_uri: Optional[str] = None
    txns_24h: Optional[int] = None
    last_trade_unix_time: Optional[int] = None

    @classmethod
    def from_birdeye_response(cls, data: dict) -> "TrendingToken":
        return cls(
            address=_text(data.get("address")),
            symbol=_text(data.get("symbol")),
            name=_text(data.get("name")),
            decimals=_to_int(data.get("decimals")),
            price=_to_float(data.get("price"), 0.0),
            price_change_24h=_to_float(
                _first(data, "price24hChangePercent", "priceChange24hPercent", "price_change_24h")
            ),
            volume_24h=_to_float(_first(data, "volume24hUSD", "v24hUSD", "volume24h", "volume_24h")),
            volume_change_24h=_to_float(
                _first(data, "volume24hChangePercent", "volume_change_24h")
            ),
            liquidity=_to_float(data.get("liquidity")),
            fdv=_to_float(data.get("fdv")),
            marketcap=_to_float(_first(data, "marketcap", "marketCap", "mc")),
            rank=_to_int(data.get("rank")),
            logo_uri=_first(data, "logoURI", "logo_uri"),
            txns_24h=_to_int(_first(data, "txns24h", "trade24h")),
            last_trade_unix_time=_to_int(_first(data, "lastTradeUnixTime", "last_trade_unix_time")),
        )


class TopTrader(BaseModel):
    """A wallet with aggregate trading activity on one token"""

    owner: str
    volume: float = 0.0
    trade: int = 0
    volume_buy: float = 0.0
    volume_sell: float = 0.0
    trade_buy: int = 0
    trade_sell: int = 0
    tags: list[str] = []
    # Not every source reports these; unknown values pass the optional filters.
    win_rate: Optional[float] = None
    last_trade_unix_time: Optional[int] = None

    @classmethod
    def from_birdeye_response(cls, data: dict) -> "TopTrader":
        tags = data.get("tags") or []
        return cls(
            owner=_text(_first(data, "owner", "address", "wallet")),
            volume=_to_float(data.get("volume"), 0.0),
            trade=_to_int(_first(data, "trade", "trades", "tradeCount"), 0),
            volume_buy=_to_float(data.get("volumeBuy"), 0.0),
            volume_sell=_to_float(data.get("volumeSell"), 0.0),
            trade_buy=_to_int(data.get("tradeBuy"), 0),
            trade_sell=_to_int(data.get("tradeSell"), 0),
            tags=[str(tag) for tag in tags if tag] if isinstance(tags, list) else [],
            win_rate=_to_float(_first(data, "winRate", "win_rate")),
            last_trade_unix_time=_to_int(_first(data, "lastTradeUnixTime", "last_trade_unix_time")),
        )


class GainerRecord(BaseModel):
    """A wallet with outsized gains over a timeframe"""

    address: str
    pnl: float = 0.0
    volume: float = 0.0
    trade_count: int = 0

    @classmethod
    def from_birdeye_response(cls, data: dict) -> "GainerRecord":
        return cls(
            address=_text(_first(data, "address", "owner", "wallet")),
            pnl=_to_float(data.get("pnl"), 0.0),
            volume=_to_float(data.get("volume"), 0.0),
            trade_count=_to_int(_first(data, "trade_count", "tradeCount", "trade"), 0),
        )


class BoostedToken(BaseModel):
    """A token with paid visibility on the boosted source"""

    chain_id: str
    token_address: str
    amount: Optional[float] = None
    total_amount: Optional[float] = None
    url: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None

    @classmethod
    def from_dexscreener_response(cls, data: dict) -> "BoostedToken":
        return cls(
            chain_id=_text(data.get("chainId")).lower(),
            token_address=_text(data.get("tokenAddress")),
            amount=_to_float(data.get("amount")),
            total_amount=_to_float(data.get("totalAmount")),
            url=data.get("url"),
            description=data.get("description"),
            icon=data.get("icon"),
        )


class NewListingToken(BaseModel):
    """A recently listed token"""

    address: str
    symbol: str = ""
    name: str = ""
    decimals: int = 0
    liquidity: float = 0.0
    liquidity_added_at: Optional[datetime] = None
    source: str = ""
    logo_uri: Optional[str] = None

    @classmethod
    def from_birdeye_response(cls, data: dict) -> "NewListingToken":
        added_at = data.get("liquidityAddedAt")
        parsed: Optional[datetime] = None
        if isinstance(added_at, str) and added_at.strip():
            try:
                parsed = datetime.fromisoformat(added_at.strip().replace("Z", "+00:00"))
            except ValueError:
                parsed = None
            if parsed is not None and parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        elif isinstance(added_at, (int, float)) and added_at > 0:
            parsed = utcfromtimestamp(added_at / 1000.0 if added_at > 1e12 else added_at)
        return cls(
            address=_text(data.get("address")),
            symbol=_text(data.get("symbol")),
            name=_text(data.get("name")),
            decimals=_to_int(data.get("decimals"), 0),
            liquidity=_to_float(data.get("liquidity"), 0.0),
            liquidity_added_at=parsed,
            source=_text(data.get("source")),
            logo_uri=_first(data, "logoURI", "logo_uri"),
        )


class NewListingFilter(BaseModel):
    """Quality filter applied to new listings"""

    min_liquidity: Optional[float] = None
    max_age_hours: Optional[int] = None
    max_tokens: Optional[int] = None


class WalletTokenObservation(BaseModel):
    """One discovered (wallet, token) pair handed to the analysis queue"""

    wallet_address: str = Field(min_length=1)
    chain: str = Field(min_length=1)
    token_address: str
    token_symbol: str = ""
    trader_volume_usd: float = 0.0
    trader_trades: int = 0
    discovered_at: datetime = Field(default_factory=utcnow)


class DiscoveryConfig(BaseModel):
    """Thresholds and pacing for one orchestrator instance. Immutable."""

    model_config = ConfigDict(frozen=True)

    enabled_chains: tuple[str, ...] = ("solana",)
    default_chain: str = "solana"

    min_capital_deployed_sol: float = 1.0
    sol_usd_rate: float = 230.0
    min_total_trades: int = 5
    min_win_rate: Optional[float] = None
    trader_recency_hours: Optional[int] = 24

    max_trending_tokens: int = 0
    max_traders_per_token: int = 10

    boosted_enabled: bool = True
    max_boosted_tokens: int = 20

    new_listing_enabled: bool = True
    new_listing_min_liquidity: float = 5000.0
    new_listing_max_age_hours: int = 24
    new_listing_max_tokens: int = 25

    cycle_interval_seconds: float = 60.0
    stop_poll_seconds: float = 0.5
    token_pacing_seconds: float = 0.5
    pacing_poll_seconds: float = 0.1
    propagate_chain_errors: bool = True
    debug_mode: bool = False

    @model_validator(mode="before")
    @classmethod
    def _check_chains(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        chains = [str(c).strip().lower() for c in data.get("enabled_chains", ("solana",)) if str(c).strip()]
        if not chains:
            raise ValueError("at least one chain must be enabled")
        data = {**data, "enabled_chains": tuple(dict.fromkeys(chains))}
        default_chain = str(data.get("default_chain") or "").strip().lower()
        # Observations must always carry an enabled chain.
        data["default_chain"] = default_chain if default_chain in chains else chains[0]
        return data

    @classmethod
    def from_settings(cls, settings) -> "DiscoveryConfig":
        min_win_rate = settings.TRADER_MIN_WIN_RATE
        recency = settings.TRADER_RECENCY_HOURS
        return cls(
            enabled_chains=tuple(settings.enabled_chain_list),
            default_chain=settings.DEFAULT_CHAIN,
            min_capital_deployed_sol=settings.TRADER_MIN_CAPITAL_SOL,
            sol_usd_rate=settings.SOL_USD_CONVERSION_RATE,
            min_total_trades=settings.TRADER_MIN_TOTAL_TRADES,
            min_win_rate=min_win_rate if min_win_rate and min_win_rate > 0 else None,
            trader_recency_hours=recency if recency and recency > 0 else None,
            max_trending_tokens=settings.MAX_TRENDING_TOKENS,
            max_traders_per_token=settings.MAX_TRADERS_PER_TOKEN,
            boosted_enabled=settings.DEXSCREENER_ENABLED,
            max_boosted_tokens=settings.MAX_BOOSTED_TOKENS,
            new_listing_enabled=settings.NEW_LISTING_ENABLED,
            new_listing_min_liquidity=settings.NEW_LISTING_MIN_LIQUIDITY,
            new_listing_max_age_hours=settings.NEW_LISTING_MAX_AGE_HOURS,
            new_listing_max_tokens=settings.NEW_LISTING_MAX_TOKENS,
            cycle_interval_seconds=settings.DISCOVERY_CYCLE_INTERVAL_SECONDS,
            stop_poll_seconds=settings.DISCOVERY_STOP_POLL_SECONDS,
            token_pacing_seconds=settings.TOKEN_PACING_SECONDS,
            pacing_poll_seconds=settings.TOKEN_PACING_POLL_SECONDS,
            propagate_chain_errors=settings.PROPAGATE_CHAIN_ERRORS,
            debug_mode=settings.DEBUG_MODE,
        )

    def new_listing_filter(self) -> NewListingFilter:
        return NewListingFilter(
            min_liquidity=self.new_listing_min_liquidity,
            max_age_hours=self.new_listing_max_age_hours,
            max_tokens=self.new_listing_max_tokens,
        )


@dataclass
class PublishResult:
    """Outcome of one hand-off to the dedup queue."""

    submitted: int = 0
    queued: int = 0
    failed: bool = False

    @property
    def duplicates(self) -> int:
        if self.failed:
            return 0
        return max(self.submitted - self.queued, 0)


@dataclass
class ChainCycleResult:
    """Newly queued wallet counts for one chain, broken down by source step."""

    chain: str
    trending: int = 0
    gainers: int = 0
    boosted: int = 0
    new_listings: int = 0
    stopped: bool = False

    @property
    def total(self) -> int:
        return self.trending + self.gainers + self.boosted + self.new_listings

    def as_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "trending": self.trending,
            "gainers": self.gainers,
            "boosted": self.boosted,
            "new_listings": self.new_listings,
            "total": self.total,
            "stopped": self.stopped,
        }


class DiscoveryStats(BaseModel):
    """Point-in-time view of the orchestrator"""

    is_running: bool
    wallet_queue_size: int = 0
    config: DiscoveryConfig
    last_cycle_at: Optional[datetime] = None
    last_cycle_total: int = 0
    last_cycle_chains: list[dict[str, Any]] = []

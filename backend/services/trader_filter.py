"""Quality thresholds for top-trader records.

Pure functions only: no I/O, no clock reads unless ``now`` is omitted.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from models.discovery import DiscoveryConfig, TopTrader
from utils.utcnow import hours_since


@dataclass(frozen=True)
class TraderFilterThresholds:
    min_volume_usd: float
    min_trade_count: int
    min_win_rate: Optional[float] = None
    recency_hours: Optional[int] = None

    @classmethod
    def from_config(cls, config: DiscoveryConfig) -> "TraderFilterThresholds":
        # Capital is configured in SOL; trader volume is reported in USD.
        return cls(
            min_volume_usd=config.min_capital_deployed_sol * config.sol_usd_rate,
            min_trade_count=config.min_total_trades,
            min_win_rate=config.min_win_rate,
            recency_hours=config.trader_recency_hours,
        )


def trader_passes(
    trader: TopTrader,
    min_volume_usd: float,
    min_trade_count: int,
    min_win_rate: Optional[float] = None,
    recency_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> bool:
    if trader.volume < min_volume_usd:
        return False
    if trader.trade < min_trade_count:
        return False
    if min_win_rate is not None and trader.win_rate is not None:
        if trader.win_rate < min_win_rate:
            return False
    if recency_hours is not None:
        age = hours_since(trader.last_trade_unix_time, now=now)
        if age is not None and age > recency_hours:
            return False
    return True


def filter_top_traders(
    traders: Iterable[TopTrader],
    min_volume_usd: float,
    min_trade_count: int,
    min_win_rate: Optional[float] = None,
    recency_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[TopTrader]:
    """Keep traders meeting every threshold, in input order.

    Win-rate and recency tests apply only when both the threshold is set and
    the source reported the value; unknown values pass.
    """
    return [
        trader
        for trader in traders
        if trader_passes(
            trader,
            min_volume_usd,
            min_trade_count,
            min_win_rate=min_win_rate,
            recency_hours=recency_hours,
            now=now,
        )
    ]


def filter_with_thresholds(
    traders: Iterable[TopTrader],
    thresholds: TraderFilterThresholds,
    now: Optional[datetime] = None,
) -> list[TopTrader]:
    return filter_top_traders(
        traders,
        thresholds.min_volume_usd,
        thresholds.min_trade_count,
        min_win_rate=thresholds.min_win_rate,
        recency_hours=thresholds.recency_hours,
        now=now,
    )

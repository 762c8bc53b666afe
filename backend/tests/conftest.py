"""Shared fixtures for trending wallet discovery tests."""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest
from unittest.mock import AsyncMock

from models.discovery import (
    DiscoveryConfig,
    GainerRecord,
    TopTrader,
    TrendingToken,
)


class FakeQueue:
    """In-memory dedup queue keyed by (chain, wallet, token)."""

    def __init__(self, existing=None):
        self.keys = set(existing or ())
        self.batches = []

    async def publish_batch(self, observations):
        self.batches.append(list(observations))
        new = 0
        for obs in observations:
            key = (obs.chain, obs.wallet_address, obs.token_address)
            if key in self.keys:
                continue
            self.keys.add(key)
            new += 1
        return new

    async def queue_depth(self):
        return len(self.keys)


def make_trader(owner, volume=1000.0, trade=10, **kwargs):
    return TopTrader(owner=owner, volume=volume, trade=trade, **kwargs)


def make_token(address, volume=None, symbol=None):
    return TrendingToken(address=address, symbol=symbol or address.upper(), volume_24h=volume)


def make_gainer(address, pnl=100.0, volume=500.0, trade_count=7):
    return GainerRecord(address=address, pnl=pnl, volume=volume, trade_count=trade_count)


@pytest.fixture
def fast_config():
    """Config with pacing and polling shrunk to keep tests quick."""
    return DiscoveryConfig(
        enabled_chains=("solana",),
        default_chain="solana",
        min_capital_deployed_sol=1.0,
        sol_usd_rate=230.0,
        min_total_trades=5,
        boosted_enabled=True,
        new_listing_enabled=True,
        cycle_interval_seconds=0.2,
        stop_poll_seconds=0.01,
        token_pacing_seconds=0.0,
        pacing_poll_seconds=0.01,
    )


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def mock_birdeye():
    """A fully-mocked BirdEye-like source returning nothing."""
    client = AsyncMock()
    client.get_trending_tokens_paginated = AsyncMock(return_value=[])
    client.get_trending_tokens = AsyncMock(return_value=[])
    client.get_top_traders_paginated = AsyncMock(return_value=[])
    client.get_gainers_losers_paginated = AsyncMock(return_value=[])
    client.get_new_listing_tokens_comprehensive = AsyncMock(return_value=[])
    client.filter_new_listing_tokens = lambda tokens, token_filter: list(tokens)
    return client


@pytest.fixture
def mock_dexscreener():
    client = AsyncMock()
    client.get_all_boosted_tokens = AsyncMock(return_value=([], []))
    return client

import asyncio
import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from conftest import FakeQueue, make_gainer, make_token, make_trader  # noqa: E402
from models.discovery import ChainCycleResult, DiscoveryConfig  # noqa: E402
from services.discovery_orchestrator import TrendingDiscoveryOrchestrator  # noqa: E402


def _orchestrator(config, birdeye, queue, dexscreener=None, on_status=None):
    return TrendingDiscoveryOrchestrator(
        config,
        trending=birdeye,
        traders=birdeye,
        gainers=birdeye,
        queue=queue,
        boosted=dexscreener,
        new_listings=birdeye,
        on_status=on_status,
    )


def _multi_chain_config(**overrides):
    values = dict(
        enabled_chains=("solana", "base", "ethereum"),
        boosted_enabled=False,
        new_listing_enabled=False,
        cycle_interval_seconds=60.0,
        stop_poll_seconds=0.5,
        token_pacing_seconds=0.0,
    )
    values.update(overrides)
    return DiscoveryConfig(**values)


@pytest.mark.asyncio
async def test_cycle_total_is_sum_of_chain_totals(mock_birdeye, fake_queue):
    config = _multi_chain_config()

    async def _gainers(chain):
        return [make_gainer(f"{chain}-g{i}") for i in range({"solana": 3, "base": 1, "ethereum": 2}[chain])]

    mock_birdeye.get_gainers_losers_paginated.side_effect = _gainers
    orchestrator = _orchestrator(config, mock_birdeye, fake_queue)

    total = await orchestrator.execute_discovery_cycle()

    assert total == 6
    stats = await orchestrator.get_discovery_stats()
    assert [c["chain"] for c in stats.last_cycle_chains] == ["solana", "base", "ethereum"]
    assert sum(c["total"] for c in stats.last_cycle_chains) == total
    assert stats.last_cycle_total == 6
    assert stats.is_running is False


@pytest.mark.asyncio
async def test_trending_scenario_publishes_two(fast_config, mock_birdeye, fake_queue):
    mock_birdeye.get_trending_tokens_paginated.return_value = [
        make_token("ten", 10.0),
        make_token("fifty", 50.0),
        make_token("five", 5.0),
    ]

    async def _traders(token_address, chain):
        return [make_trader("w1"), make_trader("w2")] if token_address == "fifty" else []

    mock_birdeye.get_top_traders_paginated.side_effect = _traders

    total = await _orchestrator(fast_config, mock_birdeye, fake_queue).execute_discovery_cycle()

    assert total == 2


@pytest.mark.asyncio
async def test_chain_failure_propagates_by_default(mock_birdeye, fake_queue, monkeypatch):
    orchestrator = _orchestrator(_multi_chain_config(), mock_birdeye, fake_queue)
    seen = []

    async def _run(chain):
        seen.append(chain)
        if chain == "base":
            raise RuntimeError("chain infrastructure down")
        return ChainCycleResult(chain=chain, gainers=1)

    monkeypatch.setattr(orchestrator.executor, "run", _run)

    with pytest.raises(RuntimeError):
        await orchestrator.execute_discovery_cycle()

    assert seen == ["solana", "base"]
    assert orchestrator.is_running is False
    # The run state is released, so a new cycle can start.
    assert orchestrator.run_state.try_begin("next") is True


@pytest.mark.asyncio
async def test_chain_failure_can_be_isolated(mock_birdeye, fake_queue, monkeypatch):
    orchestrator = _orchestrator(_multi_chain_config(propagate_chain_errors=False), mock_birdeye, fake_queue)

    async def _run(chain):
        if chain == "base":
            raise RuntimeError("chain infrastructure down")
        return ChainCycleResult(chain=chain, gainers=2)

    monkeypatch.setattr(orchestrator.executor, "run", _run)

    assert await orchestrator.execute_discovery_cycle() == 4


@pytest.mark.asyncio
async def test_stopped_chain_skips_remaining_chains(mock_birdeye, fake_queue, monkeypatch):
    orchestrator = _orchestrator(_multi_chain_config(), mock_birdeye, fake_queue)
    seen = []

    async def _run(chain):
        seen.append(chain)
        orchestrator.stop()
        return ChainCycleResult(chain=chain, trending=1, stopped=True)

    monkeypatch.setattr(orchestrator.executor, "run", _run)

    assert await orchestrator.execute_discovery_cycle() == 1
    assert seen == ["solana"]


def test_stop_before_start_is_a_noop(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    orchestrator.stop()
    assert orchestrator.is_running is False


@pytest.mark.asyncio
async def test_duplicate_start_does_not_spawn_second_loop(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    loop_task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.05)
    assert orchestrator.is_running is True

    # Returns immediately instead of looping.
    await asyncio.wait_for(orchestrator.start(), timeout=1.0)
    assert orchestrator.is_running is True
    assert orchestrator.run_state.owner == "loop"

    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=1.0)
    assert orchestrator.is_running is False


@pytest.mark.asyncio
async def test_loop_keeps_running_across_cycles(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    loop_task = asyncio.create_task(orchestrator.start())

    await asyncio.sleep(0.5)
    assert orchestrator.is_running is True
    assert mock_birdeye.get_gainers_losers_paginated.await_count >= 2

    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=1.0)


@pytest.mark.asyncio
async def test_loop_survives_cycle_errors(fast_config, mock_birdeye, fake_queue, monkeypatch):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    calls = []

    async def _run(chain):
        calls.append(chain)
        raise RuntimeError("boom")

    monkeypatch.setattr(orchestrator.executor, "run", _run)
    loop_task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.5)

    assert len(calls) >= 2
    assert orchestrator.is_running is True

    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=1.0)


@pytest.mark.asyncio
async def test_stop_during_inter_cycle_sleep_observed_within_poll(mock_birdeye, fake_queue):
    config = _multi_chain_config(enabled_chains=("solana",), cycle_interval_seconds=60.0, stop_poll_seconds=0.5)
    orchestrator = _orchestrator(config, mock_birdeye, fake_queue)
    loop_task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.1)

    started = time.monotonic()
    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=2.0)

    assert time.monotonic() - started <= 0.5 + 0.2


@pytest.mark.asyncio
async def test_direct_cycle_skipped_while_loop_runs(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    loop_task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.05)

    assert await orchestrator.execute_discovery_cycle() == 0
    # The skipped cycle must not clear the loop's flag.
    assert orchestrator.is_running is True

    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=1.0)


@pytest.mark.asyncio
async def test_start_is_noop_during_direct_cycle(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    release = asyncio.Event()

    async def _slow_gainers(chain):
        await release.wait()
        return []

    mock_birdeye.get_gainers_losers_paginated.side_effect = _slow_gainers
    cycle_task = asyncio.create_task(orchestrator.execute_discovery_cycle())
    await asyncio.sleep(0.05)

    await asyncio.wait_for(orchestrator.start(), timeout=1.0)
    assert orchestrator.run_state.owner == "cycle"

    release.set()
    assert await cycle_task == 0
    assert orchestrator.is_running is False


@pytest.mark.asyncio
async def test_start_after_stop_resumes_loop_still_winding_down(fast_config, mock_birdeye, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    release = asyncio.Event()

    async def _slow_gainers(chain):
        await release.wait()
        return []

    mock_birdeye.get_gainers_losers_paginated.side_effect = _slow_gainers
    loop_task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.05)

    orchestrator.stop()
    assert orchestrator.is_running is False
    await asyncio.wait_for(orchestrator.start(), timeout=1.0)
    assert orchestrator.is_running is True

    release.set()
    await asyncio.sleep(0.4)
    assert loop_task.done() is False
    assert orchestrator.is_running is True
    assert mock_birdeye.get_gainers_losers_paginated.await_count >= 2

    orchestrator.stop()
    await asyncio.wait_for(loop_task, timeout=1.0)
    assert orchestrator.run_state.owner is None


@pytest.mark.asyncio
async def test_stats_degrade_queue_depth_failure_to_zero(fast_config, mock_birdeye):
    queue = FakeQueue()
    queue.queue_depth = AsyncMock(side_effect=ConnectionError("down"))
    orchestrator = _orchestrator(fast_config, mock_birdeye, queue)

    stats = await orchestrator.get_discovery_stats()

    assert stats.wallet_queue_size == 0
    assert stats.is_running is False
    assert stats.config == fast_config


@pytest.mark.asyncio
async def test_stats_report_queue_depth(fast_config, mock_birdeye, fake_queue):
    mock_birdeye.get_gainers_losers_paginated.return_value = [make_gainer("g1"), make_gainer("g2")]
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue)
    await orchestrator.execute_discovery_cycle()

    stats = await orchestrator.get_discovery_stats()
    assert stats.wallet_queue_size == 2
    assert stats.last_cycle_at is not None


@pytest.mark.asyncio
async def test_status_callback_failures_do_not_break_cycle(fast_config, mock_birdeye, fake_queue):
    on_status = AsyncMock(side_effect=RuntimeError("db locked"))
    mock_birdeye.get_gainers_losers_paginated.return_value = [make_gainer("g1")]
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue, on_status=on_status)

    assert await orchestrator.execute_discovery_cycle() == 1
    assert on_status.await_count >= 2
    last_status = on_status.await_args_list[-1].args[0]
    assert last_status["wallets_discovered_last_run"] == 1
    assert last_status["enabled_chains"] == ["solana"]


@pytest.mark.asyncio
async def test_close_closes_each_client_once(fast_config, mock_birdeye, mock_dexscreener, fake_queue):
    orchestrator = _orchestrator(fast_config, mock_birdeye, fake_queue, dexscreener=mock_dexscreener)
    await orchestrator.close()
    mock_birdeye.close.assert_awaited_once()
    mock_dexscreener.close.assert_awaited_once()

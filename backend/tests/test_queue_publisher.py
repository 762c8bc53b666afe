import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from conftest import FakeQueue, make_gainer, make_trader  # noqa: E402
from models.discovery import GAINER_TOKEN_ADDRESS  # noqa: E402
from services.queue_publisher import DedupQueuePublisher  # noqa: E402


@pytest.mark.asyncio
async def test_push_gainers_reports_queued_and_duplicates():
    queue = FakeQueue(
        existing={
            ("solana", "g2", GAINER_TOKEN_ADDRESS),
            ("solana", "g4", GAINER_TOKEN_ADDRESS),
        }
    )
    publisher = DedupQueuePublisher(queue)
    gainers = [make_gainer(f"g{i}") for i in range(1, 6)]

    result = await publisher.push_gainers(gainers, "ALL_TIMEFRAMES", "solana")

    assert result.submitted == 5
    assert result.queued == 3
    assert result.duplicates == 2
    assert result.failed is False


@pytest.mark.asyncio
async def test_gainer_observations_use_placeholder_token_and_keep_order():
    queue = FakeQueue()
    publisher = DedupQueuePublisher(queue)

    await publisher.push_gainers([make_gainer("b", volume=1.5, trade_count=3), make_gainer("a")], "today", "solana")

    batch = queue.batches[0]
    assert [o.wallet_address for o in batch] == ["b", "a"]
    assert all(o.token_address == GAINER_TOKEN_ADDRESS for o in batch)
    assert batch[0].token_symbol == "GAINER_TODAY"
    assert batch[0].trader_volume_usd == 1.5
    assert batch[0].trader_trades == 3


@pytest.mark.asyncio
async def test_publish_traders_converts_without_dropping_or_merging():
    queue = FakeQueue()
    publisher = DedupQueuePublisher(queue)
    traders = [make_trader("w1", volume=10.0, trade=2), make_trader("w1", volume=20.0, trade=4)]

    result = await publisher.publish_traders(traders, "tok", "TOK", "solana")

    # Both records reach the queue; the queue decides the repeat is a duplicate.
    assert len(queue.batches[0]) == 2
    assert queue.batches[0][1].trader_volume_usd == 20.0
    assert result.queued == 1
    assert result.duplicates == 1


@pytest.mark.asyncio
async def test_queue_failure_is_soft():
    queue = AsyncMock()
    queue.publish_batch = AsyncMock(side_effect=ConnectionError("queue unreachable"))
    publisher = DedupQueuePublisher(queue)

    result = await publisher.publish_traders([make_trader("w1")], "tok", "TOK", "solana")

    assert result.failed is True
    assert result.queued == 0
    assert result.duplicates == 0


@pytest.mark.asyncio
async def test_missing_queue_is_soft():
    publisher = DedupQueuePublisher(None)
    result = await publisher.push_gainers([make_gainer("g1")], "ALL_TIMEFRAMES", "solana")
    assert result.failed is True
    assert result.queued == 0


@pytest.mark.asyncio
async def test_empty_input_skips_queue():
    queue = FakeQueue()
    result = await DedupQueuePublisher(queue).publish_traders([], "tok", "TOK", "solana")
    assert result.submitted == 0
    assert queue.batches == []

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from interfaces.discovery_sources import SourceResponseError  # noqa: E402
from services.dexscreener import DexScreenerClient  # noqa: E402


class _FakeResponse:
    def __init__(self, payload):
        self.status_code = 200
        self._payload = payload

    def json(self):
        return self._payload


def _client(payloads):
    client = DexScreenerClient(base_url="https://dexscreener.test")
    seen = []

    async def _get(url, **kwargs):
        seen.append(url)
        return _FakeResponse(payloads[url.rsplit("/token-boosts/", 1)[1]])

    client._get_http = AsyncMock(return_value=SimpleNamespace(get=_get))
    return client, seen


@pytest.mark.asyncio
async def test_get_all_boosted_tokens_returns_latest_and_top():
    client, seen = _client(
        {
            "latest/v1": [
                {"chainId": "Solana", "tokenAddress": "sol1", "amount": 10, "totalAmount": "50"},
                {"chainId": "base", "tokenAddress": ""},
                "garbage",
            ],
            "top/v1": {"chainId": "base", "tokenAddress": "base1", "description": "Top boost"},
        }
    )

    latest, top = await client.get_all_boosted_tokens()

    assert [(t.chain_id, t.token_address) for t in latest] == [("solana", "sol1")]
    assert latest[0].total_amount == 50.0
    assert [(t.chain_id, t.token_address) for t in top] == [("base", "base1")]
    assert seen == [
        "https://dexscreener.test/token-boosts/latest/v1",
        "https://dexscreener.test/token-boosts/top/v1",
    ]


@pytest.mark.asyncio
async def test_unexpected_payload_raises():
    client, _ = _client({"latest/v1": "not json rows", "top/v1": []})
    with pytest.raises(SourceResponseError):
        await client.get_all_boosted_tokens()

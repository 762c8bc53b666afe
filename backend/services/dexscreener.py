from typing import Any, Optional

import httpx

from config import settings
from interfaces.discovery_sources import SourceResponseError
from models.discovery import BoostedToken
from utils.logger import get_logger
from utils.retry import RetryConfig, RetryableClient

logger = get_logger("dexscreener")


class DexScreenerClient:
    """Client for DexScreener's token-boost feeds (no API key required)."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.base_url = (base_url or settings.DEXSCREENER_API_URL).rstrip("/")
        self.retry_config = retry_config or RetryConfig.from_settings(settings)
        self._client: Optional[httpx.AsyncClient] = None
        self._http: Optional[RetryableClient] = None

    async def _get_http(self) -> RetryableClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=float(settings.API_TIMEOUT_SECONDS),
                headers={"accept": "application/json"},
            )
            self._http = RetryableClient(self._client, self.retry_config)
        return self._http

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_boosts(self, path: str) -> list[BoostedToken]:
        http = await self._get_http()
        response = await http.get(f"{self.base_url}{path}")
        payload: Any = response.json()

        # The feed answers with a list, or with a single object when only one boost is live.
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            raise SourceResponseError("dexscreener", f"unexpected payload type for {path}")

        tokens = []
        for row in payload:
            if not isinstance(row, dict):
                continue
            token = BoostedToken.from_dexscreener_response(row)
            if token.token_address and token.chain_id:
                tokens.append(token)
        return tokens

    async def get_latest_boosted_tokens(self) -> list[BoostedToken]:
        return await self._get_boosts("/token-boosts/latest/v1")

    async def get_top_boosted_tokens(self) -> list[BoostedToken]:
        return await self._get_boosts("/token-boosts/top/v1")

    async def get_all_boosted_tokens(self) -> tuple[list[BoostedToken], list[BoostedToken]]:
        """Fetch the latest and the top boost feeds.

        Either feed failing fails the whole call; the caller isolates it.
        """
        latest = await self.get_latest_boosted_tokens()
        top = await self.get_top_boosted_tokens()
        logger.debug("Boosted feeds fetched", latest=len(latest), top=len(top))
        return latest, top

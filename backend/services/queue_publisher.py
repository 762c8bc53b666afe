from typing import Optional

from interfaces.discovery_sources import DedupQueue
from models.discovery import (
    GAINER_SYMBOL_PREFIX,
    GAINER_TOKEN_ADDRESS,
    GainerRecord,
    PublishResult,
    TopTrader,
    WalletTokenObservation,
)
from utils.logger import get_logger

logger = get_logger("queue_publisher")


class DedupQueuePublisher:
    """Converts discovered traders into queue observations and hands them off.

    Order is preserved and nothing is dropped or merged here; the queue owns
    deduplication. A missing or failing queue is a soft failure: it is
    logged and reported as ``PublishResult(failed=True)``, never raised.
    """

    def __init__(self, queue: Optional[DedupQueue]):
        self.queue = queue

    async def publish(self, observations: list[WalletTokenObservation], label: str) -> PublishResult:
        if not observations:
            return PublishResult()

        submitted = len(observations)
        if self.queue is None:
            logger.warning("Analysis queue not available, dropping observations", source=label, count=submitted)
            return PublishResult(submitted=submitted, failed=True)

        try:
            queued = await self.queue.publish_batch(observations)
        except Exception as e:
            logger.error(
                "Failed to publish observations to analysis queue",
                source=label,
                count=submitted,
                error=str(e),
            )
            return PublishResult(submitted=submitted, failed=True)

        result = PublishResult(submitted=submitted, queued=queued)
        if result.duplicates:
            logger.info(
                "Queued wallet-token pairs",
                source=label,
                queued=result.queued,
                skipped_duplicates=result.duplicates,
            )
        else:
            logger.info("Queued wallet-token pairs", source=label, queued=result.queued)
        return result

    async def publish_traders(
        self,
        traders: list[TopTrader],
        token_address: str,
        token_symbol: str,
        chain: str,
    ) -> PublishResult:
        observations = [
            WalletTokenObservation(
                wallet_address=trader.owner,
                chain=chain,
                token_address=token_address,
                token_symbol=token_symbol,
                trader_volume_usd=trader.volume,
                trader_trades=trader.trade,
            )
            for trader in traders
        ]
        return await self.publish(observations, label=f"{token_symbol or token_address}@{chain}")

    async def push_gainers(
        self,
        gainers: list[GainerRecord],
        timeframe: str,
        chain: str,
    ) -> PublishResult:
        """Gainer records are wallets already; they queue against a placeholder token."""
        symbol = f"{GAINER_SYMBOL_PREFIX}{timeframe.upper()}"
        observations = [
            WalletTokenObservation(
                wallet_address=gainer.address,
                chain=chain,
                token_address=GAINER_TOKEN_ADDRESS,
                token_symbol=symbol,
                trader_volume_usd=gainer.volume,
                trader_trades=gainer.trade_count,
            )
            for gainer in gainers
        ]
        return await self.publish(observations, label=f"{symbol}@{chain}")

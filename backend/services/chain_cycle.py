"""One chain's pass over every discovery source.

Steps run in a fixed order, each isolated from the others' failures:

1. trending tokens -> top traders per token
2. gainers -> wallets directly
3. boosted tokens (latest, then top) -> top traders per token
4. new listings -> top traders per token

Per-token steps share one loop: stop check, trader fetch and filter,
publish, then an interruptible pacing delay before the next token. A stop
observed at any checkpoint ends the chain run with what was queued so far.
"""

from dataclasses import dataclass

from models.discovery import BOOSTED_SYMBOL_PREFIX, ChainCycleResult, DiscoveryConfig
from services.queue_publisher import DedupQueuePublisher
from services.run_state import RunState
from services.source_fetchers import SourceFetchers
from utils.logger import get_logger

logger = get_logger("chain_cycle")

GAINER_TIMEFRAME_LABEL = "ALL_TIMEFRAMES"


@dataclass(frozen=True)
class TokenTarget:
    """A token whose top traders should be queued."""

    address: str
    symbol: str
    chain: str


class ChainCycleExecutor:
    def __init__(
        self,
        config: DiscoveryConfig,
        fetchers: SourceFetchers,
        publisher: DedupQueuePublisher,
        run_state: RunState,
    ):
        self.config = config
        self.fetchers = fetchers
        self.publisher = publisher
        self.run_state = run_state

    async def run(self, chain: str) -> ChainCycleResult:
        result = ChainCycleResult(chain=chain)

        result.trending, stopped = await self._trending_step(chain)
        if stopped or self._stop_requested(chain, "gainers"):
            result.stopped = True
            return self._finish(result)

        result.gainers = await self._gainers_step(chain)
        if self._stop_requested(chain, "boosted"):
            result.stopped = True
            return self._finish(result)

        result.boosted, stopped = await self._boosted_step(chain)
        if stopped or self._stop_requested(chain, "new_listings"):
            result.stopped = True
            return self._finish(result)

        result.new_listings, stopped = await self._new_listings_step(chain)
        result.stopped = stopped
        return self._finish(result)

    def _stop_requested(self, chain: str, next_step: str) -> bool:
        if self.run_state.is_running:
            return False
        logger.info("Stop requested, skipping remaining discovery steps", chain=chain, next_step=next_step)
        return True

    def _finish(self, result: ChainCycleResult) -> ChainCycleResult:
        logger.info("Chain discovery finished", **result.as_dict())
        return result

    # ==================== STEPS ====================

    async def _trending_step(self, chain: str) -> tuple[int, bool]:
        try:
            tokens = await self.fetchers.fetch_trending_tokens(chain)
        except Exception as e:
            logger.error("Trending token discovery failed", chain=chain, error=str(e))
            return 0, False

        if not tokens:
            logger.info("No trending tokens found", chain=chain)
            return 0, False

        targets = [TokenTarget(address=t.address, symbol=t.symbol, chain=chain) for t in tokens]
        return await self._process_tokens(targets, step="trending")

    async def _gainers_step(self, chain: str) -> int:
        try:
            gainers = await self.fetchers.fetch_gainers(chain)
        except Exception as e:
            logger.warning("Gainer discovery failed", chain=chain, error=str(e))
            return 0

        if not gainers:
            logger.debug("No gainers found", chain=chain)
            return 0

        logger.info("Gainers found", chain=chain, count=len(gainers))
        published = await self.publisher.push_gainers(gainers, GAINER_TIMEFRAME_LABEL, chain)
        return published.queued

    async def _boosted_step(self, chain: str) -> tuple[int, bool]:
        if not self.config.boosted_enabled or self.fetchers.boosted is None:
            logger.debug("Boosted token discovery disabled", chain=chain)
            return 0, False

        try:
            latest, top = await self.fetchers.fetch_boosted()
        except Exception as e:
            logger.warning("Boosted token discovery failed", chain=chain, error=str(e))
            return 0, False

        total = 0
        for label, tokens in (("latest", latest), ("top", top)):
            targets = self._boosted_targets(tokens, label)
            if not targets:
                continue
            logger.info("Processing boosted tokens", source=label, count=len(targets))
            count, stopped = await self._process_tokens(targets, step=f"boosted_{label}")
            total += count
            if stopped:
                return total, True
        return total, False

    def _boosted_targets(self, tokens, label: str) -> list[TokenTarget]:
        symbol = f"{BOOSTED_SYMBOL_PREFIX}{label.upper()}"
        # Boosted tokens carry their own chain, which may differ from the chain being iterated.
        eligible = [t for t in tokens if t.chain_id in self.config.enabled_chains]
        eligible = eligible[: max(self.config.max_boosted_tokens, 0)]
        return [TokenTarget(address=t.token_address, symbol=symbol, chain=t.chain_id) for t in eligible]

    async def _new_listings_step(self, chain: str) -> tuple[int, bool]:
        if not self.config.new_listing_enabled or self.fetchers.new_listings is None:
            logger.debug("New listing discovery disabled", chain=chain)
            return 0, False

        try:
            tokens = await self.fetchers.fetch_new_listings(chain)
        except Exception as e:
            logger.warning("New listing discovery failed", chain=chain, error=str(e))
            return 0, False

        if not tokens:
            logger.debug("No new listings passed the filter", chain=chain)
            return 0, False

        logger.info("Processing new listings", chain=chain, count=len(tokens))
        targets = [
            TokenTarget(address=t.address, symbol=t.symbol, chain=self.config.default_chain)
            for t in tokens
        ]
        return await self._process_tokens(targets, step="new_listings")

    # ==================== PER-TOKEN LOOP ====================

    async def _process_tokens(self, targets: list[TokenTarget], step: str) -> tuple[int, bool]:
        """Queue the quality traders of each target in order.

        Returns (newly queued count, stopped).
        """
        queued = 0
        last = len(targets) - 1
        for i, target in enumerate(targets):
            if not self.run_state.is_running:
                logger.info("Stop requested during token processing", step=step, position=i + 1, total=len(targets))
                return queued, True

            try:
                traders = await self.fetchers.fetch_top_traders(target.address, target.chain)
                if traders:
                    published = await self.publisher.publish_traders(
                        traders, target.address, target.symbol, target.chain
                    )
                    queued += published.queued
                else:
                    logger.debug("No quality traders for token", step=step, token=target.address)
            except Exception as e:
                logger.warning(
                    "Failed to process token",
                    step=step,
                    token=target.address,
                    chain=target.chain,
                    error=str(e),
                )

            if i < last:
                completed = await self.run_state.sleep_unless_stopped(
                    self.config.token_pacing_seconds,
                    self.config.pacing_poll_seconds,
                )
                if not completed:
                    logger.info("Stop requested during token pacing", step=step, position=i + 1, total=len(targets))
                    return queued, True

        return queued, False

"""Trending wallet discovery orchestrator.

Polls every enabled chain on a fixed interval, pushing the wallets of
quality traders found on trending, gainer, boosted and newly listed tokens
into the analysis queue. The loop is cooperatively cancellable through
``stop()``; sleeps are polled so a stop lands within one poll tick.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from interfaces.discovery_sources import (
    BoostedSource,
    DedupQueue,
    GainerSource,
    NewListingSource,
    TraderSource,
    TrendingSource,
)
from models.discovery import ChainCycleResult, DiscoveryConfig, DiscoveryStats
from services.chain_cycle import ChainCycleExecutor
from services.queue_publisher import DedupQueuePublisher
from services.run_state import RunState
from services.source_fetchers import SourceFetchers
from utils.logger import get_logger
from utils.utcnow import utcnow

logger = get_logger("discovery_orchestrator")

LOOP_OWNER = "loop"
CYCLE_OWNER = "cycle"

StatusCallback = Callable[[dict[str, Any]], Awaitable[None]]


class TrendingDiscoveryOrchestrator:
    def __init__(
        self,
        config: DiscoveryConfig,
        trending: TrendingSource,
        traders: TraderSource,
        gainers: GainerSource,
        queue: Optional[DedupQueue],
        boosted: Optional[BoostedSource] = None,
        new_listings: Optional[NewListingSource] = None,
        run_state: Optional[RunState] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        self.config = config
        self.queue = queue
        self.run_state = run_state or RunState()
        self.fetchers = SourceFetchers(
            config,
            trending=trending,
            traders=traders,
            gainers=gainers,
            boosted=boosted if config.boosted_enabled else None,
            new_listings=new_listings if config.new_listing_enabled else None,
        )
        self.publisher = DedupQueuePublisher(queue)
        self.executor = ChainCycleExecutor(config, self.fetchers, self.publisher, self.run_state)
        self._on_status = on_status
        self._sources = (trending, traders, gainers, boosted, new_listings)

        self._last_cycle_at = None
        self._last_cycle_total = 0
        self._last_cycle_chains: list[ChainCycleResult] = []

    @property
    def is_running(self) -> bool:
        return self.run_state.is_running

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run discovery cycles until ``stop()`` is called.

        A second call while the loop (or a direct cycle) is active is a
        logged no-op. A call after ``stop()`` but before the previous loop
        has wound down keeps that loop running.
        """
        if not self.run_state.try_begin(LOOP_OWNER):
            if self.run_state.rearm(LOOP_OWNER):
                logger.info("Discovery loop restarted before it wound down")
                return
            logger.info("Discovery already running, ignoring start", owner=self.run_state.owner)
            return

        logger.info(
            "Trending discovery loop started",
            chains=list(self.config.enabled_chains),
            interval_seconds=self.config.cycle_interval_seconds,
        )
        try:
            while self.run_state.holds(LOOP_OWNER):
                try:
                    await self._run_cycle()
                except Exception as e:
                    logger.error("Discovery cycle failed", error=str(e), exc_info=True)
                    await self._report(
                        running=True,
                        current_activity=f"Last discovery cycle error: {e}",
                    )

                await self._report(
                    running=True,
                    current_activity="Idle - waiting for next discovery cycle.",
                )
                completed = await self.run_state.sleep_unless_stopped(
                    self.config.cycle_interval_seconds,
                    self.config.stop_poll_seconds,
                )
                if not completed:
                    logger.info("Stop requested during inter-cycle sleep")
                    break
        finally:
            self.run_state.release(LOOP_OWNER)
            logger.info("Trending discovery loop stopped")

    def stop(self) -> None:
        """Request the loop to stop. Safe to call when idle or from any thread."""
        self.run_state.stop()
        logger.info("Trending discovery stop requested")

    async def execute_discovery_cycle(self) -> int:
        """Run one multi-chain cycle on demand and return the newly queued count.

        Returns 0 without running when the loop or another direct cycle
        already holds the run state.
        """
        if not self.run_state.try_begin(CYCLE_OWNER):
            logger.warning("Discovery already running, skipping", owner=self.run_state.owner)
            return 0
        try:
            return await self._run_cycle()
        finally:
            self.run_state.release(CYCLE_OWNER)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self) -> int:
        started = utcnow()
        results: list[ChainCycleResult] = []
        total = 0

        await self._report(running=True, current_activity="Discovering wallets...")
        try:
            for chain in self.config.enabled_chains:
                if not self.run_state.is_running:
                    logger.info("Stop requested, skipping remaining chains", next_chain=chain)
                    break

                logger.info("Processing chain", chain=chain)
                await self._report(running=True, current_activity=f"Discovering wallets on {chain}")
                try:
                    result = await self.executor.run(chain)
                except Exception as e:
                    if self.config.propagate_chain_errors:
                        logger.error("Chain discovery failed, aborting cycle", chain=chain, error=str(e))
                        raise
                    logger.error("Chain discovery failed, continuing with next chain", chain=chain, error=str(e))
                    continue

                results.append(result)
                total += result.total
                if result.stopped:
                    break
        finally:
            self._last_cycle_at = utcnow()
            self._last_cycle_total = total
            self._last_cycle_chains = results

        logger.info(
            "Discovery cycle complete",
            wallets_queued=total,
            chains=len(results),
            duration_seconds=round((utcnow() - started).total_seconds(), 1),
        )
        await self._report(
            running=True,
            last_run_at=self._last_cycle_at,
            wallets_discovered_last_run=total,
        )
        return total

    async def _report(self, **status: Any) -> None:
        if self._on_status is None:
            return
        status.setdefault("enabled_chains", list(self.config.enabled_chains))
        status.setdefault("cycle_interval_seconds", self.config.cycle_interval_seconds)
        try:
            await self._on_status(status)
        except Exception as e:
            logger.warning("Failed to publish discovery status", error=str(e))

    async def close(self) -> None:
        """Close every source client that holds a connection pool."""
        closed = set()
        for source in self._sources:
            if source is None or id(source) in closed:
                continue
            closed.add(id(source))
            close = getattr(source, "close", None)
            if close is not None:
                await close()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_discovery_stats(self) -> DiscoveryStats:
        queue_size = 0
        if self.queue is not None:
            try:
                queue_size = await self.queue.queue_depth()
            except Exception as e:
                logger.warning("Failed to read analysis queue depth", error=str(e))

        return DiscoveryStats(
            is_running=self.is_running,
            wallet_queue_size=queue_size,
            config=self.config,
            last_cycle_at=self._last_cycle_at,
            last_cycle_total=self._last_cycle_total,
            last_cycle_chains=[r.as_dict() for r in self._last_cycle_chains],
        )


def build_orchestrator(
    config: Optional[DiscoveryConfig] = None,
    on_status: Optional[StatusCallback] = None,
) -> TrendingDiscoveryOrchestrator:
    """Wire the orchestrator to the BirdEye, DexScreener and SQL queue backends."""
    from config import settings
    from services.birdeye import BirdEyeClient
    from services.dexscreener import DexScreenerClient
    from services.wallet_queue import WalletTokenQueue

    config = config or DiscoveryConfig.from_settings(settings)
    birdeye = BirdEyeClient()
    dexscreener = DexScreenerClient() if config.boosted_enabled else None
    return TrendingDiscoveryOrchestrator(
        config,
        trending=birdeye,
        traders=birdeye,
        gainers=birdeye,
        queue=WalletTokenQueue(),
        boosted=dexscreener,
        new_listings=birdeye,
        on_status=on_status,
    )

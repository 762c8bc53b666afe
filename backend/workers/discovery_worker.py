"""Discovery worker: runs the trending wallet discovery loop and writes a DB status snapshot.

Run from backend dir:
  python -m workers.discovery_worker          # loop until SIGINT/SIGTERM
  python -m workers.discovery_worker --once   # single discovery cycle
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from typing import Any, Optional

_BACKEND = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND not in sys.path:
    sys.path.insert(0, _BACKEND)
if os.getcwd() != _BACKEND:
    os.chdir(_BACKEND)

from config import settings
from models.database import AsyncSessionLocal, init_database
from services.discovery_orchestrator import TrendingDiscoveryOrchestrator, build_orchestrator
from services.discovery_shared_state import write_discovery_snapshot
from utils.logger import get_logger, setup_logging

logger = get_logger("discovery_worker")


async def _write_status(status: dict[str, Any]) -> None:
    async with AsyncSessionLocal() as session:
        await write_discovery_snapshot(session, status)


def _install_signal_handlers(orchestrator: TrendingDiscoveryOrchestrator) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, lambda *_: orchestrator.stop())


async def _final_snapshot(orchestrator: TrendingDiscoveryOrchestrator, activity: str) -> None:
    stats = await orchestrator.get_discovery_stats()
    try:
        await _write_status(
            {
                "running": False,
                "enabled_chains": list(stats.config.enabled_chains),
                "cycle_interval_seconds": stats.config.cycle_interval_seconds,
                "last_run_at": stats.last_cycle_at,
                "current_activity": activity,
                "wallets_discovered_last_run": stats.last_cycle_total,
                "wallet_queue_size": stats.wallet_queue_size,
            }
        )
    except Exception as e:
        logger.warning("Failed to write final discovery snapshot", error=str(e))


async def run_worker(
    once: bool = False,
    orchestrator: Optional[TrendingDiscoveryOrchestrator] = None,
) -> int:
    """Run the loop (or one cycle) and return the wallets queued by the last cycle."""
    orchestrator = orchestrator or build_orchestrator(on_status=_write_status)
    _install_signal_handlers(orchestrator)

    # Ensure an initial snapshot exists for operators.
    try:
        await _write_status(
            {
                "running": False,
                "enabled_chains": list(orchestrator.config.enabled_chains),
                "cycle_interval_seconds": orchestrator.config.cycle_interval_seconds,
                "current_activity": "Discovery worker started; first cycle pending.",
            }
        )
    except Exception as e:
        logger.warning("Failed to write initial discovery snapshot", error=str(e))

    try:
        if once:
            total = await orchestrator.execute_discovery_cycle()
            logger.info("Single discovery cycle complete", wallets_queued=total)
        else:
            await orchestrator.start()
    finally:
        await _final_snapshot(orchestrator, "Discovery worker stopped.")
        await orchestrator.close()

    stats = await orchestrator.get_discovery_stats()
    return stats.last_cycle_total


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Trending wallet discovery worker")
    parser.add_argument("--once", action="store_true", help="Run a single discovery cycle and exit")
    return parser.parse_args(argv)


async def main(argv: Optional[list[str]] = None) -> None:
    args = _parse_args(argv)
    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        log_file=settings.LOG_FILE,
    )
    await init_database()
    logger.info("Discovery worker started", once=args.once, chains=settings.enabled_chain_list)
    try:
        await run_worker(once=args.once)
    except asyncio.CancelledError:
        logger.info("Discovery worker shutting down")


if __name__ == "__main__":
    asyncio.run(main())

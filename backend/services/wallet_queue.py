"""SQLite-backed analysis queue for discovered (wallet, token) pairs.

Deduplication lives in the table's unique key: publishing an observation
whose ``(chain, wallet_address, token_address)`` already exists is a no-op,
so concurrent publishers never enqueue the same pair twice.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from models.database import AsyncSessionLocal, DiscoveredWalletToken, QueueStatus
from models.discovery import WalletTokenObservation
from utils.logger import get_logger
from utils.utcnow import utcnow

logger = get_logger("wallet_queue")


class WalletTokenQueue:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def publish_batch(self, observations: list[WalletTokenObservation]) -> int:
        """Insert observations in order; return how many were new."""
        if not observations:
            return 0

        inserted = 0
        async with self._session_factory() as session:
            for obs in observations:
                stmt = (
                    sqlite_insert(DiscoveredWalletToken)
                    .values(
                        chain=obs.chain,
                        wallet_address=obs.wallet_address,
                        token_address=obs.token_address,
                        token_symbol=obs.token_symbol,
                        trader_volume_usd=obs.trader_volume_usd,
                        trader_trades=obs.trader_trades,
                        discovered_at=obs.discovered_at,
                        status=QueueStatus.PENDING.value,
                    )
                    .on_conflict_do_nothing(
                        index_elements=["chain", "wallet_address", "token_address"]
                    )
                )
                result = await session.execute(stmt)
                if result.rowcount:
                    inserted += 1
            await session.commit()

        logger.debug(
            "Published wallet-token batch",
            submitted=len(observations),
            inserted=inserted,
        )
        return inserted

    async def queue_depth(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(DiscoveredWalletToken.id)).where(
                    DiscoveredWalletToken.status == QueueStatus.PENDING.value
                )
            )
            return int(result.scalar() or 0)

    async def claim_batch(self, limit: int = 100, chain: Optional[str] = None) -> list[WalletTokenObservation]:
        """Hand the oldest pending pairs to analysis and mark them claimed."""
        if limit <= 0:
            return []

        async with self._session_factory() as session:
            query = select(DiscoveredWalletToken).where(DiscoveredWalletToken.status == QueueStatus.PENDING.value)
            if chain:
                query = query.where(DiscoveredWalletToken.chain == chain)
            query = query.order_by(DiscoveredWalletToken.id.asc()).limit(limit)
            rows = list((await session.execute(query)).scalars().all())
            if not rows:
                return []

            await session.execute(
                update(DiscoveredWalletToken)
                .where(DiscoveredWalletToken.id.in_([row.id for row in rows]))
                .values(status=QueueStatus.CLAIMED.value, claimed_at=utcnow())
            )
            await session.commit()

        return [
            WalletTokenObservation(
                wallet_address=row.wallet_address,
                chain=row.chain,
                token_address=row.token_address,
                token_symbol=row.token_symbol or "",
                trader_volume_usd=row.trader_volume_usd or 0.0,
                trader_trades=row.trader_trades or 0,
                discovered_at=row.discovered_at or utcnow(),
            )
            for row in rows
        ]

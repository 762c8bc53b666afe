from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from pathlib import Path
import enum
import logging

from config import settings
from utils.utcnow import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


class QueueStatus(enum.Enum):
    PENDING = "pending"
    CLAIMED = "claimed"


# ==================== WALLET ANALYSIS QUEUE ====================


class DiscoveredWalletToken(Base):
    """A (wallet, token) pair waiting for downstream P&L analysis.

    The unique key doubles as the dedup key: re-discovering the same wallet
    on the same token and chain never enqueues it twice."""

    __tablename__ = "discovered_wallet_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chain = Column(String, nullable=False)
    wallet_address = Column(String, nullable=False)
    token_address = Column(String, nullable=False)
    token_symbol = Column(String, default="")
    trader_volume_usd = Column(Float, default=0.0)
    trader_trades = Column(Integer, default=0)
    discovered_at = Column(DateTime, default=utcnow)
    status = Column(String, nullable=False, default=QueueStatus.PENDING.value)
    claimed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "chain", "wallet_address", "token_address", name="uq_discovered_wallet_token"
        ),
        Index("idx_discovered_wallet_tokens_status", "status", "id"),
    )


# ==================== WORKER STATUS ====================


class DiscoverySnapshot(Base):
    """Latest discovery status. Written by discovery worker, read by operators."""

    __tablename__ = "discovery_snapshot"

    id = Column(String, primary_key=True, default="latest")
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_run_at = Column(DateTime, nullable=True)
    running = Column(Boolean, default=False)
    current_activity = Column(String, nullable=True)
    enabled_chains = Column(Text, nullable=True)
    cycle_interval_seconds = Column(Float, default=60.0)
    wallets_discovered_last_run = Column(Integer, default=0)
    wallet_queue_size = Column(Integer, default=0)


# ==================== ENGINE ====================

_engine_kw: dict = {"echo": False}
if "sqlite" in settings.DATABASE_URL:
    _engine_kw["connect_args"] = {"timeout": 30}  # Wait up to 30s when DB is locked

async_engine = create_async_engine(settings.DATABASE_URL, **_engine_kw)


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite for better concurrent access (WAL mode, busy timeout)."""
    if "sqlite" not in settings.DATABASE_URL:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")  # Allow concurrent reads during writes
    cursor.execute("PRAGMA busy_timeout=30000")  # Wait up to 30s when locked (ms)
    cursor.close()


event.listen(async_engine.sync_engine, "connect", _set_sqlite_pragma)

AsyncSessionLocal = sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


def _ensure_sqlite_directory(url: str) -> None:
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if url.startswith(prefix):
            path_part = url[len(prefix) :]
            if path_part and path_part != ":memory:":
                Path(path_part).parent.mkdir(parents=True, exist_ok=True)
            return


async def init_database(engine=None):
    """Create the queue and snapshot tables if they do not exist yet."""
    target = engine or async_engine
    _ensure_sqlite_directory(target.url.render_as_string(hide_password=False))
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")

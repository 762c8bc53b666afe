"""Shared DB state for the discovery worker and operators."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.database import DiscoverySnapshot
from utils.utcnow import utcnow

DISCOVERY_SNAPSHOT_ID = "latest"


def _parse_iso_datetime(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _format_iso_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + "Z"


def _default_status() -> dict[str, Any]:
    return {
        "running": False,
        "enabled_chains": settings.enabled_chain_list,
        "cycle_interval_seconds": settings.DISCOVERY_CYCLE_INTERVAL_SECONDS,
        "last_run_at": None,
        "current_activity": "Waiting for discovery worker.",
        "wallets_discovered_last_run": 0,
        "wallet_queue_size": 0,
    }


async def write_discovery_snapshot(
    session: AsyncSession,
    status: dict[str, Any],
) -> None:
    """Merge ``status`` into the latest snapshot row; missing keys keep their value."""
    raw_last_run = status.get("last_run_at")
    if isinstance(raw_last_run, str):
        try:
            last_run = _parse_iso_datetime(raw_last_run)
        except ValueError:
            last_run = None
    elif isinstance(raw_last_run, datetime):
        last_run = raw_last_run
    else:
        last_run = None

    result = await session.execute(select(DiscoverySnapshot).where(DiscoverySnapshot.id == DISCOVERY_SNAPSHOT_ID))
    row = result.scalar_one_or_none()
    if row is None:
        row = DiscoverySnapshot(id=DISCOVERY_SNAPSHOT_ID)
        session.add(row)

    row.updated_at = utcnow()
    row.last_run_at = last_run or row.last_run_at
    row.running = bool(status.get("running", row.running or False))
    row.current_activity = status.get("current_activity", row.current_activity)
    if "enabled_chains" in status:
        row.enabled_chains = json.dumps(list(status["enabled_chains"] or []))
    row.cycle_interval_seconds = float(
        status.get(
            "cycle_interval_seconds",
            row.cycle_interval_seconds or settings.DISCOVERY_CYCLE_INTERVAL_SECONDS,
        )
    )
    row.wallets_discovered_last_run = int(
        status.get("wallets_discovered_last_run", row.wallets_discovered_last_run or 0)
    )
    row.wallet_queue_size = int(status.get("wallet_queue_size", row.wallet_queue_size or 0))
    await session.commit()


async def read_discovery_snapshot(session: AsyncSession) -> dict[str, Any]:
    result = await session.execute(select(DiscoverySnapshot).where(DiscoverySnapshot.id == DISCOVERY_SNAPSHOT_ID))
    row = result.scalar_one_or_none()
    if row is None:
        return _default_status()

    try:
        chains = json.loads(row.enabled_chains) if row.enabled_chains else []
    except ValueError:
        chains = []

    return {
        "running": bool(row.running),
        "enabled_chains": chains,
        "cycle_interval_seconds": float(row.cycle_interval_seconds or settings.DISCOVERY_CYCLE_INTERVAL_SECONDS),
        "last_run_at": _format_iso_utc_z(row.last_run_at),
        "current_activity": row.current_activity,
        "wallets_discovered_last_run": int(row.wallets_discovered_last_run or 0),
        "wallet_queue_size": int(row.wallet_queue_size or 0),
        "updated_at": _format_iso_utc_z(row.updated_at),
    }

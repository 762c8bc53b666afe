from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()


def _detect_project_root(backend_dir: Path) -> Path:
    """Resolve project root from the backend directory in the repo layout."""
    return backend_dir.parent.resolve()


_PROJECT_ROOT = _detect_project_root(_BACKEND_DIR)
_DEFAULT_DB_PATH = (_PROJECT_ROOT / "data" / "wallet_discovery.db").resolve()
_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"
_SQLITE_SYNC_PREFIX = "sqlite:///"


def _split_csv(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    out: list[str] = []
    for item in items:
        text = str(item or "").strip().lower()
        if text and text not in out:
            out.append(text)
    return out


class Settings(BaseSettings):
    # API Base URLs
    BIRDEYE_API_URL: str = "https://public-api.birdeye.so"
    DEXSCREENER_API_URL: str = "https://api.dexscreener.com"

    # Credentials
    BIRDEYE_API_KEY: Optional[str] = None

    # Chains (comma-separated, processed in this order)
    ENABLED_CHAINS: str = "solana"
    DEFAULT_CHAIN: str = "solana"

    # Trending discovery
    MAX_TRENDING_TOKENS: int = 0  # 0 = unlimited
    MAX_TRADERS_PER_TOKEN: int = 10
    TRENDING_PAGE_SIZE: int = 20
    TRENDING_MAX_PAGES: int = 5
    TOP_TRADERS_PAGE_SIZE: int = 10
    TOP_TRADERS_MAX_PAGES: int = 5
    GAINERS_PAGE_SIZE: int = 10
    GAINERS_MAX_PAGES: int = 5

    # Trader quality filter
    TRADER_MIN_CAPITAL_SOL: float = 1.0
    SOL_USD_CONVERSION_RATE: float = 230.0  # Approximate, not a live price
    TRADER_MIN_TOTAL_TRADES: int = 5
    TRADER_MIN_WIN_RATE: float = 0.0
    TRADER_RECENCY_HOURS: int = 24

    # DexScreener boosted tokens
    DEXSCREENER_ENABLED: bool = True
    MAX_BOOSTED_TOKENS: int = 20

    # New listings
    NEW_LISTING_ENABLED: bool = True
    NEW_LISTING_MIN_LIQUIDITY: float = 5000.0
    NEW_LISTING_MAX_AGE_HOURS: int = 24
    NEW_LISTING_MAX_TOKENS: int = 25

    # Orchestrator pacing
    DISCOVERY_CYCLE_INTERVAL_SECONDS: float = 60.0
    DISCOVERY_STOP_POLL_SECONDS: float = 0.5
    TOKEN_PACING_SECONDS: float = 0.5
    TOKEN_PACING_POLL_SECONDS: float = 0.1
    # Abort the remaining chains of a cycle when one chain fails.
    PROPAGATE_CHAIN_ERRORS: bool = True

    # Database - canonical path under project-root data directory
    DATABASE_URL: str = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH}"

    # Production Settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None
    DEBUG_MODE: bool = False

    # API Settings
    API_TIMEOUT_SECONDS: int = 30
    MAX_RETRY_ATTEMPTS: int = 4
    RETRY_BASE_DELAY: float = 1.0

    @property
    def enabled_chain_list(self) -> list[str]:
        return _split_csv(self.ENABLED_CHAINS)

    @field_validator("BIRDEYE_API_URL", "DEXSCREENER_API_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text
        return text.rstrip("/")

    @field_validator("ENABLED_CHAINS", mode="before")
    @classmethod
    def _normalize_chains(cls, value: object) -> object:
        chains = _split_csv(value)
        return ",".join(chains) if chains else "solana"

    @field_validator("DEFAULT_CHAIN", mode="before")
    @classmethod
    def _normalize_default_chain(cls, value: object) -> object:
        text = str(value or "").strip().lower()
        return text or "solana"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: object) -> object:
        """Normalize DB URL so worker cwd changes never split databases."""
        if value is None:
            return value

        text = str(value).strip().strip('"').strip("'")
        if not text:
            return text

        # Convert relative SQLite paths to absolute project-root paths.
        for prefix in (_SQLITE_ASYNC_PREFIX, _SQLITE_SYNC_PREFIX):
            if not text.startswith(prefix):
                continue
            path_part = text[len(prefix) :]
            if not path_part:
                return text
            if path_part in {":memory:", "/:memory:"}:
                return f"{prefix}:memory:"
            absolute = Path(path_part).resolve() if path_part.startswith("/") else (_PROJECT_ROOT / path_part).resolve()
            return f"{prefix}{absolute}"

        return text

    class Config:
        # Load project-root .env first (common workflow), then backend/.env
        # as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

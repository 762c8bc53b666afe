import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import config


def test_detect_project_root_is_backend_parent(tmp_path):
    backend_dir = tmp_path / "project" / "backend"
    backend_dir.mkdir(parents=True, exist_ok=True)

    assert config._detect_project_root(backend_dir.resolve()) == (tmp_path / "project").resolve()


def test_normalize_database_url_resolves_relative_sqlite_path(tmp_path, monkeypatch):
    project_root = tmp_path / "project"
    monkeypatch.setattr(config, "_PROJECT_ROOT", project_root.resolve())

    normalized = config.Settings._normalize_database_url("sqlite+aiosqlite:///./data/wallet_discovery.db")
    expected_path = (project_root / "data" / "wallet_discovery.db").resolve()

    assert normalized == f"sqlite+aiosqlite:///{expected_path}"


def test_normalize_database_url_keeps_memory_and_other_backends():
    assert config.Settings._normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
    assert config.Settings._normalize_database_url(" 'postgresql+asyncpg://db/discovery' ") == (
        "postgresql+asyncpg://db/discovery"
    )


def test_enabled_chains_parsed_from_csv(monkeypatch):
    monkeypatch.setenv("ENABLED_CHAINS", " Solana, base ,solana,,ethereum ")
    monkeypatch.setenv("DEFAULT_CHAIN", "")

    settings = config.Settings()

    assert settings.enabled_chain_list == ["solana", "base", "ethereum"]
    assert settings.DEFAULT_CHAIN == "solana"


def test_url_fields_are_trimmed(monkeypatch):
    monkeypatch.setenv("BIRDEYE_API_URL", '"https://public-api.birdeye.so/"')
    settings = config.Settings()
    assert settings.BIRDEYE_API_URL == "https://public-api.birdeye.so"

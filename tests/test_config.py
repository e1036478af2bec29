"""Tests for storage path resolution."""

from pathlib import Path

from memory_markets.config import (
    ENV_DB_PATH,
    ENV_SUMMARY_INDEX_PATH,
    resolve_db_path,
    resolve_summary_index_path,
)


def test_override_wins_over_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(ENV_DB_PATH, str(tmp_path / "env.duckdb"))

    resolved = resolve_db_path(str(tmp_path / "cli" / "override.duckdb"))

    assert resolved == str((tmp_path / "cli" / "override.duckdb").resolve())
    assert (tmp_path / "cli").is_dir()


def test_env_used_without_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(ENV_SUMMARY_INDEX_PATH, str(tmp_path / "idx" / "summary.json"))

    assert resolve_summary_index_path() == str((tmp_path / "idx" / "summary.json").resolve())


def test_defaults_live_under_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv(ENV_DB_PATH, raising=False)
    monkeypatch.delenv(ENV_SUMMARY_INDEX_PATH, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))

    assert resolve_db_path() == str((tmp_path / ".memory_markets" / "registry.duckdb").resolve())
    assert resolve_summary_index_path() == str(
        (tmp_path / ".memory_markets" / "summary-index.json").resolve()
    )

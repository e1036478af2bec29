"""
Configuration helpers for marketplace storage paths.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "~/.memory_markets/registry.duckdb"
ENV_DB_PATH = "MEMORY_MARKETS_DB_PATH"

DEFAULT_SUMMARY_INDEX_PATH = "~/.memory_markets/summary-index.json"
ENV_SUMMARY_INDEX_PATH = "MEMORY_MARKETS_SUMMARY_INDEX_PATH"


def _resolve(override_path: str | None, env_var: str, default: str) -> str:
    raw_path = override_path or os.getenv(env_var) or default
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the listing database path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) MEMORY_MARKETS_DB_PATH
    3) default path
    """
    return _resolve(override_path, ENV_DB_PATH, DEFAULT_DB_PATH)


def resolve_summary_index_path(override_path: str | None = None) -> str:
    """
    Resolve the persisted summary index path.

    Same precedence as :func:`resolve_db_path`, using
    MEMORY_MARKETS_SUMMARY_INDEX_PATH.
    """
    return _resolve(override_path, ENV_SUMMARY_INDEX_PATH, DEFAULT_SUMMARY_INDEX_PATH)

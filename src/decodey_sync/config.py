"""
config.py - Configuration constants and sync policy for decodey_sync.

Wire paths, storage keys and pragmas are immutable module constants.
Tunable timing and threshold values live in SyncPolicy so callers
can override them without touching global state.
"""

import os
from dataclasses import dataclass, fields
from typing import Final

# Schema version for the local game store
SCHEMA_VERSION: Final[int] = 1

# SQLite PRAGMA settings for the local store
SQLITE_PRAGMAS: Final[dict[str, str]] = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "foreign_keys": "ON",
    "busy_timeout": "5000",
}

# Server endpoints, relative to the auth provider's base URL
RECONCILE_PATH: Final[str] = "/api/games/reconcile"
GAMES_PATH: Final[str] = "/api/games"
GAMES_BATCH_PATH: Final[str] = "/api/games/batch"
SYNC_STATUS_PATH: Final[str] = "/api/games/sync-status"

# Difficulty prefixes recognised in constructed game ids
KNOWN_DIFFICULTIES: Final[tuple[str, ...]] = ("easy", "medium", "hard")

# Keys used in the sync_bookkeeping table
BOOKKEEPING_KEY_LAST_ATTEMPT: Final[str] = "last_sync_attempt"
BOOKKEEPING_KEY_LAST_SUCCESS: Final[str] = "last_successful_sync"
BOOKKEEPING_KEY_LAST_FULL: Final[str] = "last_full_sync"
BOOKKEEPING_KEY_LAUNCH_COUNT: Final[str] = "launch_count"
BOOKKEEPING_KEY_PENDING_UPLOADS: Final[str] = "pending_uploads"

# Prefix for environment overrides of SyncPolicy fields
ENV_PREFIX: Final[str] = "DECODEY_SYNC_"


@dataclass(frozen=True)
class SyncPolicy:
    """
    Tunable reconciliation policy.

    Delays and windows are in seconds.
    """
    # Plan executor
    max_concurrency: int = 3
    download_batch_size: int = 5
    batch_stagger_seconds: float = 1.0
    failure_threshold: float = 0.5

    # Timeouts
    plan_timeout_seconds: float = 120.0
    item_timeout_seconds: float = 45.0

    # Strategy windows
    launch_skip_window: float = 30 * 60
    full_sync_every_launches: int = 10
    login_recent_window: float = 5 * 60
    completion_skip_window: float = 60
    manual_incremental_window: float = 60
    background_skip_window: float = 60 * 60

    # Deferral delays
    launch_defer_seconds: float = 3.0
    login_recent_defer_seconds: float = 2.0
    login_stale_defer_seconds: float = 5.0

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "SyncPolicy":
        """
        Build a policy from DECODEY_SYNC_* environment variables.

        Unset variables keep their defaults, e.g.
        DECODEY_SYNC_MAX_CONCURRENCY=5.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = int(raw) if f.type in (int, "int") else float(raw)
        return cls(**overrides)

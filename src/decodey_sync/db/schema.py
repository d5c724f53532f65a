"""
schema.py - Local store table schema definitions.

All tables use STRICT mode for type enforcement.
"""

from typing import Final

# users table - minimal owner linkage for games
USERS_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
) STRICT;
"""

# games table - one row per played puzzle
GAMES_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS games (
    -- Canonical UUID, lowercase, without variant prefix
    game_id TEXT PRIMARY KEY CHECK(length(game_id) = 36),
    owner_id TEXT NOT NULL,

    -- Puzzle content
    puzzle_text TEXT NOT NULL,
    solution_text TEXT NOT NULL,
    display_text TEXT NOT NULL,

    -- JSON objects, cipher letter -> plain letter
    letter_mapping TEXT NOT NULL,
    solution_mapping TEXT NOT NULL,
    guessed_mapping TEXT NOT NULL,

    -- Progress
    mistakes INTEGER NOT NULL CHECK(mistakes >= 0),
    max_mistakes INTEGER NOT NULL CHECK(max_mistakes >= 0),
    has_won INTEGER NOT NULL CHECK(has_won IN (0, 1)),
    has_lost INTEGER NOT NULL CHECK(has_lost IN (0, 1)),

    -- Classification
    difficulty TEXT NOT NULL,
    is_daily INTEGER NOT NULL CHECK(is_daily IN (0, 1)),
    hardcore INTEGER NOT NULL CHECK(hardcore IN (0, 1)),

    -- Present only once finished
    score INTEGER,
    time_taken INTEGER,

    -- ISO-8601 text plus epoch copy for range queries
    start_time TEXT NOT NULL,
    last_update_time TEXT NOT NULL,
    start_epoch REAL NOT NULL,
    last_update_epoch REAL NOT NULL,

    CHECK(NOT (has_won = 1 AND has_lost = 1)),
    FOREIGN KEY (owner_id) REFERENCES users(user_id)
) STRICT;
"""

GAMES_INDICES: Final[str] = """
-- Index for per-owner scans and modified-since queries
CREATE INDEX IF NOT EXISTS idx_games_owner_updated
ON games(owner_id, last_update_epoch);
"""

# sync_bookkeeping table - persisted key/value sync history
SYNC_BOOKKEEPING_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS sync_bookkeeping (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
) STRICT;
"""

# store_metadata table - schema version of this database
STORE_METADATA_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS store_metadata (
    key TEXT PRIMARY KEY,
    value INTEGER NOT NULL
) STRICT;
"""

ALL_SCHEMA_STATEMENTS: Final[tuple[str, ...]] = (
    USERS_SCHEMA,
    GAMES_SCHEMA,
    GAMES_INDICES,
    SYNC_BOOKKEEPING_SCHEMA,
    STORE_METADATA_SCHEMA,
)

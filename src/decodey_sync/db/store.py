"""
store.py - SQLite-backed local game store and bookkeeping store.

LocalGameStore exposes the small CRUD + predicate surface the
reconciliation engine needs: fetch by id, by owner, modified since,
upsert and delete. Each write runs in its own transaction, so every
record upsert is atomic and independent of its siblings.

A single connection is shared between the event loop and executor
threads; an RLock serializes access to it.
"""

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime
from typing import Protocol

from decodey_sync.config import (
    BOOKKEEPING_KEY_LAST_ATTEMPT,
    BOOKKEEPING_KEY_LAST_FULL,
    BOOKKEEPING_KEY_LAST_SUCCESS,
    BOOKKEEPING_KEY_LAUNCH_COUNT,
)
from decodey_sync.db.connection import (
    create_connection,
    execute_in_transaction,
    initialize_schema,
)
from decodey_sync.errors import DatabaseError
from decodey_sync.models import GameRecord, SyncBookkeeping
from decodey_sync.utils.timestamps import (
    format_timestamp,
    parse_timestamp,
    to_epoch_seconds,
    utc_now,
)

logger = logging.getLogger(__name__)

_GAME_COLUMNS = (
    "game_id", "owner_id", "puzzle_text", "solution_text", "display_text",
    "letter_mapping", "solution_mapping", "guessed_mapping",
    "mistakes", "max_mistakes", "has_won", "has_lost",
    "difficulty", "is_daily", "hardcore", "score", "time_taken",
    "start_time", "last_update_time", "start_epoch", "last_update_epoch",
)

_UPSERT_SQL = (
    f"INSERT INTO games ({', '.join(_GAME_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _GAME_COLUMNS)}) "
    "ON CONFLICT(game_id) DO UPDATE SET "
    + ", ".join(f"{c} = excluded.{c}" for c in _GAME_COLUMNS if c != "game_id")
)


def record_to_row(record: GameRecord) -> tuple:
    """Convert a GameRecord to a games-table row tuple."""
    return (
        str(record.game_id),
        record.owner_id,
        record.puzzle_text,
        record.solution_text,
        record.display_text,
        json.dumps(record.letter_mapping, sort_keys=True),
        json.dumps(record.solution_mapping, sort_keys=True),
        json.dumps(record.guessed_mapping, sort_keys=True),
        record.mistakes,
        record.max_mistakes,
        1 if record.has_won else 0,
        1 if record.has_lost else 0,
        record.difficulty,
        1 if record.is_daily else 0,
        1 if record.hardcore else 0,
        record.score,
        record.time_taken,
        format_timestamp(record.start_time),
        format_timestamp(record.last_update_time),
        to_epoch_seconds(record.start_time),
        to_epoch_seconds(record.last_update_time),
    )


def record_from_row(row: sqlite3.Row) -> GameRecord:
    """Create a GameRecord from a games-table row."""
    return GameRecord(
        game_id=uuid.UUID(row["game_id"]),
        owner_id=row["owner_id"],
        puzzle_text=row["puzzle_text"],
        solution_text=row["solution_text"],
        display_text=row["display_text"],
        letter_mapping=json.loads(row["letter_mapping"]),
        solution_mapping=json.loads(row["solution_mapping"]),
        guessed_mapping=json.loads(row["guessed_mapping"]),
        mistakes=row["mistakes"],
        max_mistakes=row["max_mistakes"],
        has_won=bool(row["has_won"]),
        has_lost=bool(row["has_lost"]),
        difficulty=row["difficulty"],
        is_daily=bool(row["is_daily"]),
        hardcore=bool(row["hardcore"]),
        score=row["score"],
        time_taken=row["time_taken"],
        start_time=parse_timestamp(row["start_time"]),
        last_update_time=parse_timestamp(row["last_update_time"]),
    )


class LocalGameStore:
    """
    Local persistent store for GameRecords and their owners.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = create_connection(self._db_path)
        return self._conn

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def initialize(self) -> None:
        """Create tables if needed."""
        with self._lock:
            initialize_schema(self.connection)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def get(self, game_id: uuid.UUID) -> GameRecord | None:
        with self._lock:
            row = self._query_one("SELECT * FROM games WHERE game_id = ?", (str(game_id),))
        return record_from_row(row) if row is not None else None

    def list_for_owner(self, owner_id: str) -> list[GameRecord]:
        with self._lock:
            rows = self._query_all(
                "SELECT * FROM games WHERE owner_id = ?", (owner_id,)
            )
        return [record_from_row(row) for row in rows]

    def list_modified_since(self, owner_id: str, since: datetime) -> list[GameRecord]:
        """Games of an owner whose last update is strictly after `since`."""
        with self._lock:
            rows = self._query_all(
                "SELECT * FROM games WHERE owner_id = ? AND last_update_epoch > ?",
                (owner_id, to_epoch_seconds(since)),
            )
        return [record_from_row(row) for row in rows]

    def upsert(self, record: GameRecord) -> None:
        """
        Insert or replace a game, creating its owner row if absent.

        Applying the same record twice leaves the row unchanged.
        """
        row = record_to_row(record)

        def do_upsert(conn: sqlite3.Connection) -> None:
            self._ensure_user(conn, record.owner_id)
            conn.execute(_UPSERT_SQL, row)

        with self._lock:
            execute_in_transaction(self.connection, do_upsert)

    def delete(self, game_id: uuid.UUID) -> bool:
        """Delete a game. Returns True if a row was removed."""
        def do_delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM games WHERE game_id = ?", (str(game_id),))
            return cursor.rowcount > 0

        with self._lock:
            return execute_in_transaction(self.connection, do_delete)

    def ensure_user(self, user_id: str) -> bool:
        """Create the owner row if missing. Returns True if it was created."""
        with self._lock:
            return execute_in_transaction(
                self.connection, lambda conn: self._ensure_user(conn, user_id)
            )

    def has_user(self, user_id: str) -> bool:
        with self._lock:
            row = self._query_one("SELECT 1 FROM users WHERE user_id = ?", (user_id,))
        return row is not None

    def _ensure_user(self, conn: sqlite3.Connection, user_id: str) -> bool:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO users (user_id, created_at) VALUES (?, ?)",
            (user_id, format_timestamp(utc_now())),
        )
        if cursor.rowcount > 0:
            logger.info("Created local user record for %s", user_id)
            return True
        return False

    def _query_one(self, sql: str, params: tuple) -> sqlite3.Row | None:
        try:
            return self.connection.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Query failed: {e}", operation="select", sql=sql) from e

    def _query_all(self, sql: str, params: tuple) -> list[sqlite3.Row]:
        try:
            return self.connection.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Query failed: {e}", operation="select", sql=sql) from e


class BookkeepingStore(Protocol):
    """Persistence for SyncBookkeeping."""

    def load(self) -> SyncBookkeeping:
        ...

    def save(self, bookkeeping: SyncBookkeeping) -> None:
        ...


class SQLiteBookkeepingStore:
    """
    Bookkeeping persisted in the local store's sync_bookkeeping table.

    Also offers raw key/value access for other persisted sync state
    such as the pending upload queue.
    """

    def __init__(self, store: LocalGameStore):
        self._store = store

    def load(self) -> SyncBookkeeping:
        values = self._read_all()
        return SyncBookkeeping(
            last_sync_attempt=_optional_time(values.get(BOOKKEEPING_KEY_LAST_ATTEMPT)),
            last_successful_sync=_optional_time(values.get(BOOKKEEPING_KEY_LAST_SUCCESS)),
            last_full_sync=_optional_time(values.get(BOOKKEEPING_KEY_LAST_FULL)),
            launch_count=int(values.get(BOOKKEEPING_KEY_LAUNCH_COUNT, "0")),
        )

    def save(self, bookkeeping: SyncBookkeeping) -> None:
        values = {
            BOOKKEEPING_KEY_LAST_ATTEMPT: bookkeeping.last_sync_attempt,
            BOOKKEEPING_KEY_LAST_SUCCESS: bookkeeping.last_successful_sync,
            BOOKKEEPING_KEY_LAST_FULL: bookkeeping.last_full_sync,
        }

        def do_save(conn: sqlite3.Connection) -> None:
            for key, value in values.items():
                if value is None:
                    conn.execute("DELETE FROM sync_bookkeeping WHERE key = ?", (key,))
                else:
                    self._put(conn, key, format_timestamp(value))
            self._put(conn, BOOKKEEPING_KEY_LAUNCH_COUNT, str(bookkeeping.launch_count))

        with self._store.lock:
            execute_in_transaction(self._store.connection, do_save)

    def get_raw(self, key: str) -> str | None:
        with self._store.lock:
            row = self._store.connection.execute(
                "SELECT value FROM sync_bookkeeping WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row is not None else None

    def set_raw(self, key: str, value: str) -> None:
        with self._store.lock:
            execute_in_transaction(
                self._store.connection, lambda conn: self._put(conn, key, value)
            )

    def _read_all(self) -> dict[str, str]:
        with self._store.lock:
            rows = self._store.connection.execute(
                "SELECT key, value FROM sync_bookkeeping"
            ).fetchall()
        return {row[0]: row[1] for row in rows}

    @staticmethod
    def _put(conn: sqlite3.Connection, key: str, value: str) -> None:
        conn.execute(
            "INSERT INTO sync_bookkeeping (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )


def _optional_time(value: str | None) -> datetime | None:
    return parse_timestamp(value) if value is not None else None

"""
connection.py - SQLite database connection management.

Handles connection creation, PRAGMA configuration and schema setup.

All connections use WAL mode so snapshot reads can run alongside
game-play writes.
"""

import logging
import sqlite3
from typing import Any, Callable

from decodey_sync.config import SCHEMA_VERSION, SQLITE_PRAGMAS
from decodey_sync.db.schema import ALL_SCHEMA_STATEMENTS
from decodey_sync.errors import DatabaseError

logger = logging.getLogger("decodey_sync.db")


def create_connection(db_path: str) -> sqlite3.Connection:
    """
    Create a new SQLite connection with proper configuration.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Configured sqlite3.Connection

    Raises:
        DatabaseError: If connection fails
    """
    try:
        conn = sqlite3.connect(
            db_path,
            isolation_level=None,  # Manual transaction control
            check_same_thread=False,
        )
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Failed to connect to database: {e}",
            operation="connect",
        ) from e

    conn.row_factory = sqlite3.Row
    _apply_pragmas(conn)
    return conn


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    for pragma, value in SQLITE_PRAGMAS.items():
        try:
            conn.execute(f"PRAGMA {pragma} = {value}")
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to set PRAGMA {pragma}: {e}",
                operation="pragma",
                sql=f"PRAGMA {pragma} = {value}",
            ) from e


def initialize_schema(conn: sqlite3.Connection) -> None:
    """
    Create all store tables and record the schema version.

    This is idempotent: can be called multiple times safely.

    Raises:
        DatabaseError: If schema creation fails or the stored
            schema version is not the one this code understands
    """
    try:
        for statement in ALL_SCHEMA_STATEMENTS:
            # Split multi-statement strings
            for sql in statement.strip().split(";"):
                sql = sql.strip()
                if sql:
                    conn.execute(sql)
        conn.execute(
            "INSERT OR IGNORE INTO store_metadata (key, value) VALUES ('schema_version', ?)",
            (SCHEMA_VERSION,),
        )
        row = conn.execute(
            "SELECT value FROM store_metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Failed to create store tables: {e}",
            operation="create_tables",
        ) from e

    if row[0] != SCHEMA_VERSION:
        raise DatabaseError(
            f"Schema version mismatch: expected {SCHEMA_VERSION}, found {row[0]}",
            operation="verify_schema",
        )
    logger.debug("Local store schema ready (version %s)", SCHEMA_VERSION)


def execute_in_transaction(
    conn: sqlite3.Connection,
    operation: Callable[[sqlite3.Connection], Any]
) -> Any:
    """
    Execute an operation within an IMMEDIATE transaction.

    Ensures atomicity: all changes commit or all rollback.

    Raises:
        DatabaseError: If transaction fails
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            result = operation(conn)
            conn.execute("COMMIT")
            return result
        except Exception:
            conn.execute("ROLLBACK")
            raise
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Transaction failed: {e}",
            operation="transaction",
        ) from e


def verify_integrity(conn: sqlite3.Connection) -> bool:
    """
    Run SQLite integrity check.

    Returns:
        True if database is healthy
    """
    try:
        result = conn.execute("PRAGMA integrity_check").fetchone()
        return result is not None and result[0] == "ok"
    except sqlite3.Error:
        return False

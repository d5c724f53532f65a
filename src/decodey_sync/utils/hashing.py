"""
hashing.py - Digest utilities.

SHA-256 is used for the per-game summary checksum the server compares
to detect drift without transferring full payloads.

All hashing is deterministic: same input = same output.
"""

import hashlib
import uuid
from datetime import datetime

from decodey_sync.utils.timestamps import to_epoch_seconds

CHECKSUM_LENGTH = 16


def sha256_hex(data: bytes) -> str:
    """
    Compute SHA-256 hash and return as hex string.

    Args:
        data: Bytes to hash

    Returns:
        64-character lowercase hex string
    """
    return hashlib.sha256(data).hexdigest()


def game_checksum(
    game_id: uuid.UUID,
    last_modified: datetime,
    has_won: bool,
    has_lost: bool,
    score: int | None,
) -> str:
    """
    Short digest over a game's identity and terminal-state fields.

    Fields are joined with "|" so adjacent values cannot run together.
    The timestamp is hashed at microsecond precision.

    Returns:
        16-character lowercase hex string
    """
    content = "|".join(
        [
            str(game_id),
            f"{to_epoch_seconds(last_modified):.6f}",
            "1" if has_won else "0",
            "1" if has_lost else "0",
            "" if score is None else str(score),
        ]
    )
    return sha256_hex(content.encode("utf-8"))[:CHECKSUM_LENGTH]

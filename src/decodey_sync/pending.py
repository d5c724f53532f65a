"""
pending.py - Queue of completed games awaiting upload.

Finished games are queued as wire payloads in the sync_bookkeeping
table and pushed to the server in one batch request. Entries leave
the queue only after the server accepted the batch.
"""

import json
import logging
import threading
from typing import Any

from decodey_sync.config import BOOKKEEPING_KEY_PENDING_UPLOADS
from decodey_sync.db.store import SQLiteBookkeepingStore
from decodey_sync.errors import DecodeFailed, ValidationError
from decodey_sync.models import GameRecord
from decodey_sync.transport.base import GameServerTransport

logger = logging.getLogger(__name__)


class PendingUploadQueue:
    """Persisted upload queue keyed by wire game id."""

    def __init__(self, bookkeeping: SQLiteBookkeepingStore):
        self._bookkeeping = bookkeeping
        self._lock = threading.Lock()

    def enqueue(self, record: GameRecord) -> int:
        """
        Queue a finished game, replacing any earlier entry for it.

        Returns:
            Queue length after the insert

        Raises:
            ValidationError: If the game is not finished yet
        """
        if not record.is_terminal:
            raise ValidationError(
                "Only finished games can be queued for upload",
                field="has_won",
                value=record.wire_id,
            )
        payload = record.to_wire()
        with self._lock:
            queue = [p for p in self._load() if p.get("gameId") != payload["gameId"]]
            queue.append(payload)
            self._save(queue)
        logger.debug("Queued %s for upload (%d pending)", payload["gameId"], len(queue))
        return len(queue)

    def pending(self) -> list[dict[str, Any]]:
        with self._lock:
            return self._load()

    def __len__(self) -> int:
        return len(self.pending())

    async def flush(self, transport: GameServerTransport) -> int:
        """
        Upload every queued game in one batch.

        Entries queued while the request was in flight stay queued.
        Transport errors propagate and leave the queue untouched.

        Returns:
            Number of games the server accepted
        """
        sent = self.pending()
        if not sent:
            return 0

        uploaded = await transport.upload_batch(sent)

        with self._lock:
            remaining = [p for p in self._load() if p not in sent]
            self._save(remaining)
        logger.info("Flushed %d pending uploads (%d accepted)", len(sent), uploaded)
        return uploaded

    def _load(self) -> list[dict[str, Any]]:
        raw = self._bookkeeping.get_raw(BOOKKEEPING_KEY_PENDING_UPLOADS)
        if not raw:
            return []
        try:
            queue = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeFailed("Pending upload queue is corrupt", body=raw) from e
        if not isinstance(queue, list):
            raise DecodeFailed("Pending upload queue must be a list", body=raw)
        return queue

    def _save(self, queue: list[dict[str, Any]]) -> None:
        self._bookkeeping.set_raw(BOOKKEEPING_KEY_PENDING_UPLOADS, json.dumps(queue))

"""
base.py - Abstract base class for game server transports.

All transport implementations must inherit from GameServerTransport.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any

from decodey_sync.models import GameChange, GameRecord, LocalGamesSummary, ReconciliationPlan


class SyncType(Enum):
    """Reconciliation request types understood by the server."""
    FULL = "full"
    INCREMENTAL = "incremental"
    INCREMENTAL_ENHANCED = "incremental_enhanced"


class GameServerTransport(ABC):
    """
    Abstract base class for the reconciliation protocol client.

    Implementations must provide methods for:
    - Requesting a reconciliation plan
    - Fetching a single game
    - Uploading games
    - Reading the server-side sync status

    Every method raises AuthenticationRequired before doing any I/O
    when no token is available.
    """

    @abstractmethod
    async def request_plan(
        self,
        sync_type: SyncType,
        user_id: str,
        summary: LocalGamesSummary | None = None,
        changes: list[GameChange] | None = None,
        since: datetime | None = None,
    ) -> ReconciliationPlan:
        """
        Send a reconciliation request and decode the server's plan.

        Raises:
            AuthenticationRequired, TransportError, ServerRejected, DecodeFailed
        """
        pass

    @abstractmethod
    async def fetch_game(self, game_id: str) -> GameRecord:
        """Download and decode one full game."""
        pass

    @abstractmethod
    async def upload_game(self, record: GameRecord) -> None:
        """Upload one full game."""
        pass

    @abstractmethod
    async def upload_batch(self, payloads: list[dict[str, Any]]) -> int:
        """
        Upload several encoded games in one request.

        Returns:
            Number of games the server accepted
        """
        pass

    @abstractmethod
    async def fetch_sync_status(self) -> dict[str, Any]:
        """Server-side counts and last activity for the signed-in user."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport name for logging."""
        pass

"""
http_transport.py - HTTP-based reconciliation protocol client.

Talks to the game server's REST API over httpx. Every request carries
a bearer token; network failures, non-2xx answers and undecodable
bodies are mapped onto the sync error taxonomy.
"""

import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from decodey_sync.auth import AuthProvider
from decodey_sync.config import (
    GAMES_BATCH_PATH,
    GAMES_PATH,
    RECONCILE_PATH,
    SYNC_STATUS_PATH,
    SyncPolicy,
)
from decodey_sync.errors import (
    AuthenticationRequired,
    DecodeFailed,
    ServerRejected,
    SyncError,
    TransportError,
    ValidationError,
)
from decodey_sync.models import GameChange, GameRecord, LocalGamesSummary, ReconciliationPlan
from decodey_sync.transport.base import GameServerTransport, SyncType
from decodey_sync.utils.timestamps import to_epoch_seconds

logger = logging.getLogger(__name__)


class HTTPGameTransport(GameServerTransport):
    """
    HTTP REST transport for game reconciliation.

    Endpoints expected on server:
    - POST /api/games/reconcile - Compute a reconciliation plan
    - GET /api/games/{id} - Fetch one game
    - POST /api/games - Upload one game
    - POST /api/games/batch - Upload several games
    - GET /api/games/sync-status - Server-side sync statistics
    """

    def __init__(
        self,
        auth: AuthProvider,
        policy: SyncPolicy | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._auth = auth
        self._policy = policy or SyncPolicy()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._policy.item_timeout_seconds)

    @property
    def name(self) -> str:
        return "HTTP"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request_plan(
        self,
        sync_type: SyncType,
        user_id: str,
        summary: LocalGamesSummary | None = None,
        changes: list[GameChange] | None = None,
        since: datetime | None = None,
    ) -> ReconciliationPlan:
        body = build_reconcile_body(sync_type, user_id, summary, changes, since)
        response = await self._request(
            "POST", RECONCILE_PATH, json=body, timeout=self._policy.plan_timeout_seconds
        )
        data = self._decode_json(response)
        plan = ReconciliationPlan.from_wire(data)
        logger.info(
            "Received %s plan: %d downloads, %d uploads, %d conflicts, %d deletions",
            sync_type.value,
            len(plan.download_ids),
            len(plan.upload_ids),
            len(plan.conflicts),
            len(plan.delete_local_ids),
        )
        return plan

    async def fetch_game(self, game_id: str) -> GameRecord:
        response = await self._request("GET", f"{GAMES_PATH}/{quote(game_id, safe='')}")
        data = self._decode_json(response)
        try:
            return GameRecord.from_wire(data)
        except (ValidationError, ValueError, TypeError) as e:
            # Invariant and conversion failures are schema drift, not bad ids
            raise DecodeFailed(
                f"Server game {game_id} could not be decoded: {e}",
                body=response.text,
            ) from e

    async def upload_game(self, record: GameRecord) -> None:
        response = await self._request("POST", GAMES_PATH, json=record.to_wire())
        if response.status_code not in (200, 201):
            raise ServerRejected(
                f"Unexpected upload status {response.status_code}",
                response.status_code,
                str(response.request.url),
            )

    async def upload_batch(self, payloads: list[dict[str, Any]]) -> int:
        if not payloads:
            return 0
        response = await self._request(
            "POST", GAMES_BATCH_PATH, json={"games": payloads}
        )
        data = self._decode_json(response)
        if not isinstance(data, dict):
            raise DecodeFailed("Batch upload response must be an object", body=response.text)
        return int(data.get("uploaded", len(payloads)))

    async def fetch_sync_status(self) -> dict[str, Any]:
        response = await self._request("GET", SYNC_STATUS_PATH)
        data = self._decode_json(response)
        if not isinstance(data, dict):
            raise DecodeFailed("Sync status response must be an object", body=response.text)
        return data.get("stats", data)

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send an authenticated request and classify failures."""
        token = self._auth.get_access_token()
        if not token:
            raise AuthenticationRequired()

        url = f"{self._auth.base_url.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        timeout = timeout if timeout is not None else self._policy.item_timeout_seconds

        try:
            response = await self._client.request(
                method, url, json=json, headers=headers, timeout=timeout
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %ss", method, url, timeout)
            raise TransportError(f"Request timed out after {timeout}s", url=url) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"Network error: {e}", url=url) from e

        if not response.is_success:
            message = extract_error_message(response)
            logger.warning("%s %s rejected (%d): %s", method, url, response.status_code, message)
            raise ServerRejected(message, response.status_code, url)

        return response

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Undecodable response from %s: %.200s", response.request.url, response.text
            )
            raise DecodeFailed("Response body is not valid JSON", body=response.text) from e


def build_reconcile_body(
    sync_type: SyncType,
    user_id: str,
    summary: LocalGamesSummary | None = None,
    changes: list[GameChange] | None = None,
    since: datetime | None = None,
) -> dict[str, Any]:
    """
    Encode a reconciliation request.

    Full requests carry the summary only. Enhanced incremental requests
    carry summary and changes so the server can spot games the client
    has lost entirely, not just recently changed ones.
    """
    if sync_type is SyncType.FULL:
        if summary is None:
            raise SyncError("Full reconciliation requires a local summary")
        changes = None
        since = None
    elif sync_type is SyncType.INCREMENTAL_ENHANCED:
        if summary is None or changes is None or since is None:
            raise SyncError(
                "Enhanced incremental reconciliation requires summary, changes and since"
            )
    elif changes is None or since is None:
        raise SyncError("Incremental reconciliation requires changes and since")

    body: dict[str, Any] = {"type": sync_type.value, "userId": user_id}
    if since is not None:
        body["sinceTimestamp"] = to_epoch_seconds(since)
    if summary is not None:
        body["localSummary"] = summary.to_wire()
    if changes is not None:
        body["localChanges"] = [c.to_wire() for c in changes]
    return body


def extract_error_message(response: httpx.Response) -> str:
    """Pull a human-readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Server error ({response.status_code})"

"""
conftest.py - pytest fixtures for decodey_sync tests.
"""

import asyncio
import contextlib
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from decodey_sync.db.store import LocalGameStore, SQLiteBookkeepingStore
from decodey_sync.models import GameRecord, ReconciliationPlan, SyncBookkeeping
from decodey_sync.transport.base import GameServerTransport

T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_game(
    game_id: uuid.UUID | None = None,
    owner_id: str = "user-1",
    won: bool = False,
    lost: bool = False,
    start: datetime = T0,
    updated: datetime | None = None,
    difficulty: str = "easy",
    is_daily: bool = False,
    hardcore: bool = False,
    score: int = 420,
) -> GameRecord:
    """Build a valid game; finished games get score and time_taken."""
    terminal = won or lost
    return GameRecord(
        game_id=game_id or uuid.uuid4(),
        owner_id=owner_id,
        puzzle_text="XYZ",
        solution_text="CAT",
        display_text="C█T" if not won else "CAT",
        letter_mapping={"C": "X", "A": "Y", "T": "Z"},
        solution_mapping={"X": "C", "Y": "A", "Z": "T"},
        guessed_mapping={"X": "C", "Z": "T"},
        mistakes=1,
        max_mistakes=5,
        has_won=won,
        has_lost=lost,
        difficulty=difficulty,
        is_daily=is_daily,
        start_time=start,
        last_update_time=updated or start + timedelta(minutes=3),
        score=score if terminal else None,
        time_taken=180 if terminal else None,
        hardcore=hardcore,
    )


class MemoryBookkeepingStore:
    """In-memory BookkeepingStore for coordinator tests."""

    def __init__(self, bookkeeping: SyncBookkeeping | None = None):
        self.bookkeeping = bookkeeping or SyncBookkeeping()
        self.saves = 0

    def load(self) -> SyncBookkeeping:
        return self.bookkeeping

    def save(self, bookkeeping: SyncBookkeeping) -> None:
        self.bookkeeping = bookkeeping
        self.saves += 1


class FakeTransport(GameServerTransport):
    """
    Scripted GameServerTransport.

    `remote` maps wire ids to server-side records; ids listed in
    `failing` raise the given error instead.
    """

    def __init__(self, plan: ReconciliationPlan | None = None, delay: float = 0.0):
        self.plan = plan or ReconciliationPlan()
        self.plan_error: Exception | None = None
        self.remote: dict[str, GameRecord] = {}
        self.failing: dict[str, Exception] = {}
        self.delay = delay
        self.plan_requests: list[dict] = []
        self.fetched: list[str] = []
        self.uploaded: list[GameRecord] = []
        self.batches: list[list[dict]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "fake"

    async def request_plan(self, sync_type, user_id, summary=None, changes=None, since=None):
        self.plan_requests.append({
            "sync_type": sync_type,
            "user_id": user_id,
            "summary": summary,
            "changes": changes,
            "since": since,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if self.plan_error is not None:
            raise self.plan_error
        return self.plan

    async def fetch_game(self, game_id: str) -> GameRecord:
        async with self._track():
            if game_id in self.failing:
                raise self.failing[game_id]
            self.fetched.append(game_id)
            return self.remote[game_id]

    async def upload_game(self, record: GameRecord) -> None:
        async with self._track():
            if record.wire_id in self.failing:
                raise self.failing[record.wire_id]
            self.uploaded.append(record)

    async def upload_batch(self, payloads):
        if "batch" in self.failing:
            raise self.failing["batch"]
        self.batches.append(list(payloads))
        return len(payloads)

    async def fetch_sync_status(self):
        return {"totalGames": len(self.remote)}

    async def close(self) -> None:
        pass

    @contextlib.asynccontextmanager
    async def _track(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            yield
        finally:
            self.in_flight -= 1


async def no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test databases."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    return os.path.join(temp_dir, "games.db")


@pytest.fixture
def store(db_path):
    """Create an initialized LocalGameStore in a temp directory."""
    store = LocalGameStore(db_path)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def bookkeeping_store(store):
    return SQLiteBookkeepingStore(store)

"""
test_pending.py - Tests for the pending upload queue.
"""

import asyncio

import pytest

from decodey_sync.config import BOOKKEEPING_KEY_PENDING_UPLOADS
from decodey_sync.errors import DecodeFailed, TransportError, ValidationError
from decodey_sync.pending import PendingUploadQueue

from conftest import FakeTransport, make_game


@pytest.fixture
def queue(bookkeeping_store):
    return PendingUploadQueue(bookkeeping_store)


def test_rejects_unfinished_game(queue):
    with pytest.raises(ValidationError):
        queue.enqueue(make_game())
    assert len(queue) == 0


def test_enqueue_replaces_same_game(queue):
    game = make_game(won=True)
    queue.enqueue(game)
    assert queue.enqueue(game) == 1
    assert queue.pending()[0]["gameId"] == game.wire_id


def test_queue_is_persisted(queue, bookkeeping_store):
    queue.enqueue(make_game(won=True))
    assert len(PendingUploadQueue(bookkeeping_store)) == 1


def test_flush_uploads_and_clears(queue):
    games = [make_game(won=True), make_game(lost=True)]
    for game in games:
        queue.enqueue(game)
    transport = FakeTransport()

    uploaded = asyncio.run(queue.flush(transport))

    assert uploaded == 2
    assert [p["gameId"] for p in transport.batches[0]] == [g.wire_id for g in games]
    assert len(queue) == 0


def test_flush_failure_keeps_queue(queue):
    queue.enqueue(make_game(won=True))
    transport = FakeTransport()
    transport.failing["batch"] = TransportError("offline")

    with pytest.raises(TransportError):
        asyncio.run(queue.flush(transport))

    assert len(queue) == 1


def test_flush_empty_queue(queue):
    transport = FakeTransport()
    assert asyncio.run(queue.flush(transport)) == 0
    assert transport.batches == []


def test_corrupt_queue(queue, bookkeeping_store):
    bookkeeping_store.set_raw(BOOKKEEPING_KEY_PENDING_UPLOADS, "{not json")
    with pytest.raises(DecodeFailed):
        queue.pending()

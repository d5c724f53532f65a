"""
test_snapshot.py - Tests for local summary and change detection.
"""

from datetime import timedelta

from decodey_sync.models import ChangeType
from decodey_sync.snapshot import build_summary, compute_changes

from conftest import T0, make_game


def test_summary_counts(store):
    store.upsert(make_game(won=True, updated=T0 + timedelta(minutes=1)))
    store.upsert(make_game(lost=True, updated=T0 + timedelta(minutes=9)))
    store.upsert(make_game(updated=T0 + timedelta(minutes=4)))
    store.upsert(make_game(owner_id="someone-else", updated=T0 + timedelta(hours=2)))

    summary = build_summary(store, "user-1")

    assert summary.total_games == 3
    assert summary.completed_games == 2
    assert summary.most_recent_modification == T0 + timedelta(minutes=9)
    assert len(summary.games) == 3


def test_summary_empty(store):
    summary = build_summary(store, "user-1")
    assert summary.total_games == 0
    assert summary.most_recent_modification is None
    assert summary.to_wire()["lastModified"] is None


def test_changes_since(store):
    since = T0 + timedelta(minutes=30)
    old = make_game(updated=T0 + timedelta(minutes=10))
    touched = make_game(won=True, updated=T0 + timedelta(hours=1))
    fresh = make_game(start=T0 + timedelta(minutes=45), updated=T0 + timedelta(minutes=50))
    for game in (old, touched, fresh):
        store.upsert(game)

    changes = {c.game_id: c for c in compute_changes(store, "user-1", since)}

    assert set(changes) == {touched.wire_id, fresh.wire_id}
    assert changes[touched.wire_id].change_type is ChangeType.UPDATED
    assert changes[fresh.wire_id].change_type is ChangeType.CREATED


def test_changes_carry_payload_only_when_finished(store):
    finished = make_game(won=True)
    playing = make_game()
    store.upsert(finished)
    store.upsert(playing)

    changes = {c.game_id: c for c in compute_changes(store, "user-1", T0 - timedelta(days=1))}

    assert changes[finished.wire_id].payload == finished.to_wire()
    assert changes[playing.wire_id].payload is None

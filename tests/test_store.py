"""
test_store.py - Tests for the SQLite game and bookkeeping stores.
"""

import os
import tempfile
from datetime import timedelta

import pytest

from decodey_sync.db.connection import create_connection, verify_integrity
from decodey_sync.db.store import LocalGameStore, SQLiteBookkeepingStore
from decodey_sync.models import SyncBookkeeping

from conftest import T0, make_game


class TestLocalGameStore:

    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()
        self.store = LocalGameStore(os.path.join(self.tmpdir, "games.db"))
        self.store.initialize()

    def teardown_method(self):
        self.store.close()
        import shutil
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_upsert_and_get(self):
        game = make_game(won=True, hardcore=True)
        self.store.upsert(game)
        assert self.store.get(game.game_id) == game

    def test_get_missing(self):
        assert self.store.get(make_game().game_id) is None

    def test_upsert_is_idempotent(self):
        game = make_game(won=True)
        self.store.upsert(game)
        first = self.store.get(game.game_id)
        self.store.upsert(game)
        assert self.store.get(game.game_id) == first
        assert len(self.store.list_for_owner("user-1")) == 1

    def test_upsert_replaces(self):
        game = make_game()
        self.store.upsert(game)
        done = game.complete(False, 0, 300, T0 + timedelta(hours=1))
        self.store.upsert(done)
        assert self.store.get(game.game_id).has_lost

    def test_upsert_creates_owner(self):
        assert not self.store.has_user("new-user")
        self.store.upsert(make_game(owner_id="new-user"))
        assert self.store.has_user("new-user")

    def test_ensure_user(self):
        assert self.store.ensure_user("someone") is True
        assert self.store.ensure_user("someone") is False

    def test_list_for_owner(self):
        self.store.upsert(make_game(owner_id="a"))
        self.store.upsert(make_game(owner_id="a"))
        self.store.upsert(make_game(owner_id="b"))
        assert len(self.store.list_for_owner("a")) == 2
        assert len(self.store.list_for_owner("b")) == 1
        assert self.store.list_for_owner("c") == []

    def test_list_modified_since_is_strict(self):
        at_boundary = make_game(updated=T0 + timedelta(minutes=5))
        after = make_game(updated=T0 + timedelta(minutes=6))
        self.store.upsert(at_boundary)
        self.store.upsert(after)
        found = self.store.list_modified_since("user-1", T0 + timedelta(minutes=5))
        assert [g.game_id for g in found] == [after.game_id]

    def test_delete(self):
        game = make_game()
        self.store.upsert(game)
        assert self.store.delete(game.game_id) is True
        assert self.store.get(game.game_id) is None
        assert self.store.delete(game.game_id) is False

    def test_context_manager_closes(self):
        path = os.path.join(self.tmpdir, "other.db")
        with LocalGameStore(path) as store:
            store.initialize()
            store.upsert(make_game())
        with LocalGameStore(path) as store:
            assert len(store.list_for_owner("user-1")) == 1

    def test_integrity(self):
        assert verify_integrity(self.store.connection)


class TestSchema:

    def test_initialize_is_idempotent(self, store):
        store.initialize()
        store.initialize()

    def test_pragmas_applied(self, db_path):
        conn = create_connection(db_path)
        try:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        finally:
            conn.close()


class TestBookkeepingStore:

    def test_empty(self, bookkeeping_store):
        assert bookkeeping_store.load() == SyncBookkeeping()

    def test_save_and_load(self, bookkeeping_store):
        bookkeeping = SyncBookkeeping(
            last_sync_attempt=T0,
            last_successful_sync=T0 - timedelta(minutes=5),
            last_full_sync=T0 - timedelta(days=1),
            launch_count=7,
        )
        bookkeeping_store.save(bookkeeping)
        assert bookkeeping_store.load() == bookkeeping

    def test_none_clears_key(self, bookkeeping_store):
        bookkeeping_store.save(SyncBookkeeping(last_full_sync=T0))
        bookkeeping_store.save(SyncBookkeeping())
        assert bookkeeping_store.load().last_full_sync is None

    def test_survives_reopen(self, db_path):
        with LocalGameStore(db_path) as store:
            store.initialize()
            SQLiteBookkeepingStore(store).save(SyncBookkeeping(launch_count=3))
        with LocalGameStore(db_path) as store:
            assert SQLiteBookkeepingStore(store).load().launch_count == 3

    def test_raw_values(self, bookkeeping_store):
        assert bookkeeping_store.get_raw("anything") is None
        bookkeeping_store.set_raw("anything", "x")
        bookkeeping_store.set_raw("anything", "y")
        assert bookkeeping_store.get_raw("anything") == "y"


def test_store_rejects_schema_version_mismatch(store):
    from decodey_sync.errors import DatabaseError

    store.connection.execute(
        "UPDATE store_metadata SET value = 99 WHERE key = 'schema_version'"
    )
    with pytest.raises(DatabaseError):
        store.initialize()

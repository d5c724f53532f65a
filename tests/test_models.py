"""
test_models.py - Tests for record invariants and wire conversion.
"""

import dataclasses
import uuid
from datetime import timedelta

import pytest

from decodey_sync.errors import DecodeFailed, InvalidIdentifier, ValidationError
from decodey_sync.models import (
    ChangeType,
    GameChange,
    GameRecord,
    GameSummary,
    ReconciliationPlan,
    SyncBookkeeping,
)

from conftest import T0, make_game


class TestGameRecordInvariants:

    def test_guess_outside_solution_rejected(self):
        game = make_game()
        with pytest.raises(ValidationError):
            dataclasses.replace(game, guessed_mapping={"X": "Q"})

    def test_won_and_lost_rejected(self):
        game = make_game(won=True)
        with pytest.raises(ValidationError):
            dataclasses.replace(game, has_lost=True)

    def test_unfinished_mistakes_bounded(self):
        with pytest.raises(ValidationError):
            dataclasses.replace(make_game(), mistakes=6)

    def test_finished_game_may_exceed_max_mistakes(self):
        game = dataclasses.replace(make_game(lost=True), mistakes=6)
        assert game.is_terminal

    def test_unfinished_game_has_no_score(self):
        with pytest.raises(ValidationError):
            dataclasses.replace(make_game(), score=10)

    def test_finished_game_requires_score(self):
        with pytest.raises(ValidationError):
            dataclasses.replace(make_game(won=True), time_taken=None)

    def test_update_before_start_rejected(self):
        with pytest.raises(ValidationError):
            make_game(updated=T0 - timedelta(seconds=1))

    def test_complete(self):
        game = make_game()
        done = game.complete(True, 900, 95, T0 + timedelta(minutes=10))
        assert done.has_won and not done.has_lost
        assert done.score == 900
        assert done.time_taken == 95
        assert done.last_update_time == T0 + timedelta(minutes=10)
        with pytest.raises(ValidationError):
            done.complete(False, 0, 0, T0)


class TestWireFormat:

    def test_wire_id_variants(self):
        game_id = uuid.uuid4()
        assert make_game(game_id).wire_id == f"easy-{game_id}"
        assert make_game(game_id, hardcore=True).wire_id == f"easy-hardcore-{game_id}"
        assert make_game(game_id, is_daily=True).wire_id == f"easy-daily-2025-06-01-{game_id}"
        assert make_game(game_id, difficulty="custom").wire_id == str(game_id)

    def test_payload_keys(self):
        payload = make_game(won=True).to_wire()
        assert set(payload) == {
            "gameId", "userId", "encrypted", "solution", "currentDisplay",
            "mistakes", "maxMistakes", "hasWon", "hasLost", "difficulty",
            "isDaily", "score", "timeTaken", "startTime", "lastUpdateTime",
            "mapping", "correctMappings", "guessedMappings",
        }

    def test_from_wire_restores_record(self):
        game = make_game(won=True, hardcore=True)
        assert GameRecord.from_wire(game.to_wire()) == game

    def test_from_wire_unfinished_drops_score(self):
        payload = make_game().to_wire()
        assert payload["score"] == 0
        restored = GameRecord.from_wire(payload)
        assert restored.score is None
        assert restored.time_taken is None

    def test_from_wire_missing_id(self):
        payload = make_game().to_wire()
        del payload["gameId"]
        with pytest.raises(DecodeFailed):
            GameRecord.from_wire(payload)

    def test_from_wire_bad_id(self):
        payload = make_game().to_wire()
        payload["gameId"] = "easy-daily-2025-13-40-not-a-uuid"
        with pytest.raises(InvalidIdentifier):
            GameRecord.from_wire(payload)

    def test_summary_and_change(self):
        game = make_game(won=True)
        summary = GameSummary.from_record(game).to_wire()
        assert summary["gameId"] == game.wire_id
        assert summary["isCompleted"] is True
        assert summary["checksum"] == game.checksum
        assert len(summary["checksum"]) == 16

        change = GameChange(game.wire_id, ChangeType.UPDATED, game.last_update_time).to_wire()
        assert change["changeType"] == "updated"
        assert change["data"] is None

    def test_checksum_tracks_terminal_fields(self):
        game = make_game(won=True)
        assert game.checksum != dataclasses.replace(game, score=1).checksum
        assert game.checksum == dataclasses.replace(game, display_text="???").checksum


class TestReconciliationPlan:

    def test_from_wire_long_keys(self):
        plan = ReconciliationPlan.from_wire({
            "downloadFromServer": ["a", "b"],
            "uploadToServer": ["c"],
            "conflicts": [{
                "gameId": "d",
                "reason": "Both modified",
                "localTimestamp": "2025-06-01T12:00:00Z",
                "serverTimestamp": 1748779200,
            }],
            "deleteFromLocal": ["e"],
            "summary": "ok",
        })
        assert plan.download_ids == ("a", "b")
        assert plan.upload_ids == ("c",)
        assert plan.conflicts[0].reason == "Both modified"
        assert plan.conflicts[0].server_timestamp is not None
        assert plan.delete_local_ids == ("e",)
        assert plan.total_operations == 5

    def test_from_wire_short_keys(self):
        plan = ReconciliationPlan.from_wire({"downloadIds": ["a"], "uploadIds": ["b"]})
        assert plan.download_ids == ("a",)
        assert plan.upload_ids == ("b",)
        assert plan.total_operations == 2

    def test_empty_plan(self):
        assert ReconciliationPlan.from_wire({}).total_operations == 0

    @pytest.mark.parametrize(
        "data",
        [[], {"downloadFromServer": "abc"}, {"uploadIds": [1]}, {"conflicts": [{}]}],
    )
    def test_malformed(self, data):
        with pytest.raises(DecodeFailed):
            ReconciliationPlan.from_wire(data)


class TestSyncBookkeeping:

    def test_attempt_leaves_success_alone(self):
        earlier = T0 - timedelta(hours=1)
        bookkeeping = SyncBookkeeping(last_successful_sync=earlier).record_attempt(T0)
        assert bookkeeping.last_sync_attempt == T0
        assert bookkeeping.last_successful_sync == earlier

    def test_success_moves_both(self):
        bookkeeping = SyncBookkeeping().record_success(T0)
        assert bookkeeping.last_sync_attempt == T0
        assert bookkeeping.last_successful_sync == T0
        assert bookkeeping.last_full_sync is None

    def test_full_success(self):
        assert SyncBookkeeping().record_success(T0, full=True).last_full_sync == T0

    def test_seconds_since_success(self):
        assert SyncBookkeeping().seconds_since_success(T0) is None
        bookkeeping = SyncBookkeeping(last_successful_sync=T0)
        assert bookkeeping.seconds_since_success(T0 + timedelta(minutes=2)) == 120

"""
test_ids.py - Tests for the game id codec.
"""

import uuid
from datetime import date

import pytest

from decodey_sync.errors import InvalidIdentifier
from decodey_sync.ids import (
    BareId,
    DailyId,
    GameId,
    HardcoreId,
    PlainId,
    decode_game_id,
    encode_game_id,
    try_decode_game_id,
    variant_for,
)

GAME_UUID = uuid.UUID("3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b")


class TestRoundTrip:

    @pytest.mark.parametrize(
        "variant",
        [
            PlainId("easy"),
            HardcoreId("hard"),
            DailyId("medium", date(2025, 3, 14)),
            BareId(),
        ],
    )
    def test_decode_inverts_encode(self, variant):
        decoded = decode_game_id(encode_game_id(GAME_UUID, variant))
        assert decoded == GameId(GAME_UUID, variant)

    def test_wire_shapes(self):
        text = str(GAME_UUID)
        assert encode_game_id(GAME_UUID, PlainId("easy")) == f"easy-{text}"
        assert encode_game_id(GAME_UUID, HardcoreId("hard")) == f"hard-hardcore-{text}"
        assert (
            encode_game_id(GAME_UUID, DailyId("medium", date(2025, 3, 14)))
            == f"medium-daily-2025-03-14-{text}"
        )
        assert encode_game_id(GAME_UUID) == text

    def test_uppercase_uuid_is_emitted_lowercase(self):
        decoded = decode_game_id("EASY-" + str(GAME_UUID).upper())
        assert decoded.variant == PlainId("easy")
        assert str(decoded) == f"easy-{GAME_UUID}"


class TestMalformed:

    def test_invalid_daily_date(self):
        with pytest.raises(InvalidIdentifier):
            decode_game_id("easy-daily-2025-13-40-not-a-uuid")

    def test_daily_without_uuid(self):
        with pytest.raises(InvalidIdentifier):
            decode_game_id("easy-daily-2025-03-14")

    def test_unknown_difficulty(self):
        with pytest.raises(InvalidIdentifier):
            decode_game_id(f"expert-{GAME_UUID}")

    def test_hardcore_unknown_difficulty(self):
        with pytest.raises(InvalidIdentifier):
            decode_game_id(f"expert-hardcore-{GAME_UUID}")

    @pytest.mark.parametrize("text", ["", "   ", "not-a-uuid", GAME_UUID.hex, f"{{{GAME_UUID}}}"])
    def test_garbage(self, text):
        with pytest.raises(InvalidIdentifier):
            decode_game_id(text)

    def test_try_decode_returns_none(self):
        assert try_decode_game_id("easy-daily-2025-13-40-not-a-uuid") is None
        assert try_decode_game_id(str(GAME_UUID)) == GameId(GAME_UUID, BareId())

    def test_encode_rejects_unknown_difficulty(self):
        with pytest.raises(InvalidIdentifier):
            encode_game_id(GAME_UUID, PlainId("expert"))


class TestVariantFor:

    def test_daily_takes_precedence(self):
        day = date(2025, 1, 2)
        assert variant_for("Hard", True, True, day) == DailyId("hard", day)

    def test_hardcore(self):
        assert variant_for("easy", False, True) == HardcoreId("easy")

    def test_plain(self):
        assert variant_for("medium", False, False) == PlainId("medium")

    def test_unknown_difficulty_is_bare(self):
        assert variant_for("expert", True, False, date(2025, 1, 2)) == BareId()

"""
ids.py - Game identifier codec.

A game's canonical identity is a UUID. On the wire it is optionally
wrapped with a variant prefix:

- plain:    "<difficulty>-<uuid>"
- hardcore: "<difficulty>-hardcore-<uuid>"
- daily:    "<difficulty>-daily-<yyyy-mm-dd>-<uuid>"
- bare:     "<uuid>"

Each variant is its own type with exactly one encode/decode pair.
Decoding never guesses: anything that does not fit one of the four
shapes raises InvalidIdentifier, and callers skip that record.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import date

from decodey_sync.config import KNOWN_DIFFICULTIES
from decodey_sync.errors import InvalidIdentifier

_DAILY_MARKER = "-daily-"
_HARDCORE_MARKER = "-hardcore-"
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_UUID_LENGTH = 36
_UUID_HYPHENS = (8, 13, 18, 23)


@dataclass(frozen=True, slots=True)
class PlainId:
    difficulty: str


@dataclass(frozen=True, slots=True)
class HardcoreId:
    difficulty: str


@dataclass(frozen=True, slots=True)
class DailyId:
    difficulty: str
    date: date


@dataclass(frozen=True, slots=True)
class BareId:
    pass


Variant = PlainId | HardcoreId | DailyId | BareId


@dataclass(frozen=True, slots=True)
class GameId:
    """A decoded game identifier: canonical UUID plus its variant."""
    uuid: uuid.UUID
    variant: Variant = field(default_factory=BareId)

    def __str__(self) -> str:
        return encode_game_id(self.uuid, self.variant)


def encode_game_id(game_uuid: uuid.UUID, variant: Variant | None = None) -> str:
    """
    Build the wire form of a game id.

    UUIDs are always emitted lowercase.
    """
    text = str(game_uuid).lower()
    match variant:
        case None | BareId():
            return text
        case PlainId(difficulty=difficulty):
            return f"{_check_difficulty(difficulty)}-{text}"
        case HardcoreId(difficulty=difficulty):
            return f"{_check_difficulty(difficulty)}-hardcore-{text}"
        case DailyId(difficulty=difficulty, date=day):
            return f"{_check_difficulty(difficulty)}-daily-{day.isoformat()}-{text}"
    raise InvalidIdentifier(f"Unknown game id variant {variant!r}")


def decode_game_id(text: str) -> GameId:
    """
    Parse a wire game id.

    Raises:
        InvalidIdentifier: If the text is not one of the known shapes
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidIdentifier("Game id must be a non-empty string", value=str(text))

    raw = text.strip()
    lowered = raw.lower()

    daily_at = lowered.find(_DAILY_MARKER)
    if daily_at >= 0:
        difficulty = _prefix_difficulty(lowered[:daily_at], raw)
        rest = raw[daily_at + len(_DAILY_MARKER):]
        day = _parse_date(rest[:10], raw)
        if rest[10:11] != "-":
            raise InvalidIdentifier("Daily id is missing its UUID", value=raw)
        return GameId(_parse_uuid(rest[11:], raw), DailyId(difficulty, day))

    hardcore_at = lowered.find(_HARDCORE_MARKER)
    if hardcore_at >= 0:
        difficulty = _prefix_difficulty(lowered[:hardcore_at], raw)
        rest = raw[hardcore_at + len(_HARDCORE_MARKER):]
        return GameId(_parse_uuid(rest, raw), HardcoreId(difficulty))

    for difficulty in KNOWN_DIFFICULTIES:
        prefix = difficulty + "-"
        if lowered.startswith(prefix):
            return GameId(_parse_uuid(raw[len(prefix):], raw), PlainId(difficulty))

    return GameId(_parse_uuid(raw, raw), BareId())


def try_decode_game_id(text: str) -> GameId | None:
    """Like decode_game_id, but returns None for malformed input."""
    try:
        return decode_game_id(text)
    except InvalidIdentifier:
        return None


def variant_for(
    difficulty: str, is_daily: bool, hardcore: bool, day: date | None = None
) -> Variant:
    """
    Pick the variant a locally created game is published under.

    Daily games need the challenge date; unknown difficulties fall back
    to a bare id.
    """
    difficulty = (difficulty or "").lower()
    if difficulty not in KNOWN_DIFFICULTIES:
        return BareId()
    if is_daily and day is not None:
        return DailyId(difficulty, day)
    if hardcore:
        return HardcoreId(difficulty)
    return PlainId(difficulty)


def _check_difficulty(difficulty: str) -> str:
    lowered = difficulty.lower()
    if lowered not in KNOWN_DIFFICULTIES:
        raise InvalidIdentifier("Unknown difficulty prefix", value=difficulty)
    return lowered


def _prefix_difficulty(prefix: str, raw: str) -> str:
    if prefix not in KNOWN_DIFFICULTIES:
        raise InvalidIdentifier("Unknown difficulty prefix", value=raw)
    return prefix


def _parse_date(text: str, raw: str) -> date:
    if not _DATE_PATTERN.match(text):
        raise InvalidIdentifier("Daily id has no yyyy-mm-dd date", value=raw)
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise InvalidIdentifier(f"Daily id has an invalid date: {e}", value=raw) from e


def _parse_uuid(text: str, raw: str) -> uuid.UUID:
    # Shape check first so uuid.UUID never sees braces, urn: prefixes or bare hex
    if len(text) != _UUID_LENGTH or text.count("-") != len(_UUID_HYPHENS):
        raise InvalidIdentifier("Malformed UUID portion", value=raw)
    if any(text[i] != "-" for i in _UUID_HYPHENS):
        raise InvalidIdentifier("Malformed UUID portion", value=raw)
    try:
        return uuid.UUID(text)
    except ValueError as e:
        raise InvalidIdentifier("Malformed UUID portion", value=raw) from e

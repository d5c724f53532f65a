"""
models.py - Game and reconciliation data structures.

GameRecord mirrors one row of the local games table. It is frozen:
game play produces new records via dataclasses.replace, and the
invariants below are checked every time one is built.

Wire conversion (camelCase JSON used by the server) lives next to
each type as to_wire/from_wire so request encoding and plan decoding
share one definition of every field name.
"""

import dataclasses
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from decodey_sync.errors import DecodeFailed, ValidationError
from decodey_sync.ids import HardcoreId, decode_game_id, encode_game_id, variant_for
from decodey_sync.utils.hashing import game_checksum
from decodey_sync.utils.timestamps import format_timestamp, parse_timestamp


@dataclass(frozen=True, slots=True)
class GameRecord:
    """
    Immutable representation of one played puzzle.

    Once has_won or has_lost is set the record is terminal and only
    sync metadata may change.
    """
    game_id: uuid.UUID
    owner_id: str
    puzzle_text: str
    solution_text: str
    display_text: str
    letter_mapping: dict[str, str]
    solution_mapping: dict[str, str]
    guessed_mapping: dict[str, str]
    mistakes: int
    max_mistakes: int
    has_won: bool
    has_lost: bool
    difficulty: str
    is_daily: bool
    start_time: datetime
    last_update_time: datetime
    score: int | None = None
    time_taken: int | None = None
    hardcore: bool = False

    def __post_init__(self) -> None:
        """Validate record invariants after initialization."""
        if self.mistakes < 0 or self.max_mistakes < 0:
            raise ValidationError(
                "mistakes and max_mistakes must be non-negative",
                field="mistakes",
                value=(self.mistakes, self.max_mistakes),
            )
        if self.has_won and self.has_lost:
            raise ValidationError("A game cannot be both won and lost", field="has_won")
        if not self.is_terminal and self.mistakes > self.max_mistakes:
            raise ValidationError(
                f"mistakes ({self.mistakes}) exceed max_mistakes ({self.max_mistakes}) "
                "on an unfinished game",
                field="mistakes",
            )
        for key, value in self.guessed_mapping.items():
            if self.solution_mapping.get(key) != value:
                raise ValidationError(
                    "guessed_mapping must be a subset of solution_mapping",
                    field="guessed_mapping",
                    value=key,
                )
        if self.is_terminal:
            if self.score is None or self.time_taken is None:
                raise ValidationError(
                    "Finished games must carry score and time_taken", field="score"
                )
        elif self.score is not None or self.time_taken is not None:
            raise ValidationError(
                "Unfinished games must not carry score or time_taken", field="score"
            )
        if self.last_update_time < self.start_time:
            raise ValidationError(
                "last_update_time precedes start_time", field="last_update_time"
            )

    @property
    def is_terminal(self) -> bool:
        return self.has_won or self.has_lost

    @property
    def wire_id(self) -> str:
        """The constructed id this game is published under."""
        variant = variant_for(
            self.difficulty, self.is_daily, self.hardcore, self.start_time.date()
        )
        return encode_game_id(self.game_id, variant)

    @property
    def checksum(self) -> str:
        return game_checksum(
            self.game_id, self.last_update_time, self.has_won, self.has_lost, self.score
        )

    def complete(self, won: bool, score: int, time_taken: int, at: datetime) -> "GameRecord":
        """Return the terminal version of this game."""
        if self.is_terminal:
            raise ValidationError("Game is already finished", field="has_won")
        return dataclasses.replace(
            self,
            has_won=won,
            has_lost=not won,
            score=score,
            time_taken=time_taken,
            last_update_time=max(at, self.last_update_time),
        )

    def to_wire(self) -> dict[str, Any]:
        """Encode as the server's full game payload."""
        return {
            "gameId": self.wire_id,
            "userId": self.owner_id,
            "encrypted": self.puzzle_text,
            "solution": self.solution_text,
            "currentDisplay": self.display_text,
            "mistakes": self.mistakes,
            "maxMistakes": self.max_mistakes,
            "hasWon": self.has_won,
            "hasLost": self.has_lost,
            "difficulty": self.difficulty,
            "isDaily": self.is_daily,
            "score": self.score or 0,
            "timeTaken": self.time_taken or 0,
            "startTime": format_timestamp(self.start_time),
            "lastUpdateTime": format_timestamp(self.last_update_time),
            "mapping": dict(self.letter_mapping),
            "correctMappings": dict(self.solution_mapping),
            "guessedMappings": dict(self.guessed_mapping),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any], owner_id: str | None = None) -> "GameRecord":
        """
        Decode a full game payload.

        Raises:
            DecodeFailed: Missing or mistyped fields
            InvalidIdentifier: Unparseable gameId
            ValidationError: Payload violates record invariants
        """
        if not isinstance(data, dict):
            raise DecodeFailed("Game payload must be an object", body=repr(data))

        parsed_id = decode_game_id(_required(data, "gameId", str))
        has_won = bool(data.get("hasWon", False))
        has_lost = bool(data.get("hasLost", False))
        terminal = has_won or has_lost

        return cls(
            game_id=parsed_id.uuid,
            owner_id=owner_id or _required(data, "userId", str),
            puzzle_text=data.get("encrypted") or "",
            solution_text=data.get("solution") or "",
            display_text=data.get("currentDisplay") or "",
            letter_mapping=_mapping(data, "mapping"),
            solution_mapping=_mapping(data, "correctMappings"),
            guessed_mapping=_mapping(data, "guessedMappings"),
            mistakes=int(data.get("mistakes") or 0),
            max_mistakes=int(data.get("maxMistakes") or 0),
            has_won=has_won,
            has_lost=has_lost,
            difficulty=data.get("difficulty") or "medium",
            is_daily=bool(data.get("isDaily", False)),
            start_time=parse_timestamp(_required(data, "startTime", (str, int, float)), "startTime"),
            last_update_time=parse_timestamp(
                _required(data, "lastUpdateTime", (str, int, float)), "lastUpdateTime"
            ),
            score=int(data.get("score") or 0) if terminal else None,
            time_taken=int(data.get("timeTaken") or 0) if terminal else None,
            hardcore=isinstance(parsed_id.variant, HardcoreId),
        )


class ChangeType(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class GameSummary:
    """Drift-detection summary of one local game."""
    game_id: str
    last_modified: datetime
    is_completed: bool
    score: int | None
    checksum: str

    @classmethod
    def from_record(cls, record: GameRecord) -> "GameSummary":
        return cls(
            game_id=record.wire_id,
            last_modified=record.last_update_time,
            is_completed=record.is_terminal,
            score=record.score,
            checksum=record.checksum,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "lastModified": format_timestamp(self.last_modified),
            "isCompleted": self.is_completed,
            "score": self.score,
            "checksum": self.checksum,
        }


@dataclass(frozen=True, slots=True)
class LocalGamesSummary:
    total_games: int
    completed_games: int
    most_recent_modification: datetime | None
    games: tuple[GameSummary, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return {
            "totalGames": self.total_games,
            "completedGames": self.completed_games,
            "lastModified": (
                format_timestamp(self.most_recent_modification)
                if self.most_recent_modification else None
            ),
            "games": [g.to_wire() for g in self.games],
        }


@dataclass(frozen=True, slots=True)
class GameChange:
    """
    A local change since the last sync.

    payload is only attached for finished games; the server scores
    and ranks completed games only.
    """
    game_id: str
    change_type: ChangeType
    last_modified: datetime
    payload: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "changeType": self.change_type.value,
            "lastModified": format_timestamp(self.last_modified),
            "data": self.payload,
        }


@dataclass(frozen=True, slots=True)
class GameConflict:
    game_id: str
    reason: str
    local_timestamp: datetime | None
    server_timestamp: datetime | None

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "GameConflict":
        if not isinstance(data, dict):
            raise DecodeFailed("Conflict entry must be an object", body=repr(data))
        return cls(
            game_id=_required(data, "gameId", str),
            reason=str(data.get("reason") or "unspecified"),
            local_timestamp=_optional_timestamp(data, "localTimestamp"),
            server_timestamp=_optional_timestamp(data, "serverTimestamp"),
        )


@dataclass(frozen=True, slots=True)
class ReconciliationPlan:
    """Server-authored instruction set for one reconciliation cycle."""
    summary: str = ""
    download_ids: tuple[str, ...] = ()
    upload_ids: tuple[str, ...] = ()
    conflicts: tuple[GameConflict, ...] = ()
    delete_local_ids: tuple[str, ...] = ()

    @property
    def total_operations(self) -> int:
        return (
            len(self.download_ids)
            + len(self.upload_ids)
            + len(self.conflicts)
            + len(self.delete_local_ids)
        )

    @classmethod
    def from_wire(cls, data: Any) -> "ReconciliationPlan":
        """
        Decode a plan, accepting both the server's historical key names
        (downloadFromServer, uploadToServer, deleteFromLocal) and the
        shorter downloadIds/uploadIds/deleteLocalIds forms.
        """
        if not isinstance(data, dict):
            raise DecodeFailed("Reconciliation plan must be an object", body=repr(data))
        return cls(
            summary=str(data.get("summary") or ""),
            download_ids=_id_list(data, "downloadFromServer", "downloadIds"),
            upload_ids=_id_list(data, "uploadToServer", "uploadIds"),
            conflicts=tuple(
                GameConflict.from_wire(c) for c in _list(data, "conflicts")
            ),
            delete_local_ids=_id_list(data, "deleteFromLocal", "deleteLocalIds"),
        )


@dataclass(frozen=True, slots=True)
class SyncBookkeeping:
    """
    Persisted sync history that drives strategy decisions.

    last_successful_sync only moves on a cycle with no failed
    operations; last_sync_attempt moves on every executed cycle.
    """
    last_sync_attempt: datetime | None = None
    last_successful_sync: datetime | None = None
    last_full_sync: datetime | None = None
    launch_count: int = 0

    def record_attempt(self, at: datetime) -> "SyncBookkeeping":
        return dataclasses.replace(self, last_sync_attempt=at)

    def record_success(self, at: datetime, full: bool = False) -> "SyncBookkeeping":
        updated = dataclasses.replace(self, last_sync_attempt=at, last_successful_sync=at)
        return updated.record_full_sync(at) if full else updated

    def record_full_sync(self, at: datetime) -> "SyncBookkeeping":
        return dataclasses.replace(self, last_full_sync=at)

    def record_launch(self) -> "SyncBookkeeping":
        return dataclasses.replace(self, launch_count=self.launch_count + 1)

    def seconds_since_success(self, now: datetime) -> float | None:
        if self.last_successful_sync is None:
            return None
        return (now - self.last_successful_sync).total_seconds()


def _required(data: dict, key: str, kind: type | tuple) -> Any:
    value = data.get(key)
    if value is None or not isinstance(value, kind) or isinstance(value, bool):
        raise DecodeFailed(f"Missing or invalid field '{key}'", field=key, body=repr(data))
    return value


def _optional_timestamp(data: dict, key: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    return parse_timestamp(value, key)


def _mapping(data: dict, key: str) -> dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise DecodeFailed(f"Field '{key}' must be an object", field=key)
    return {str(k): str(v) for k, v in value.items()}


def _list(data: dict, *keys: str) -> list:
    for key in keys:
        if key in data and data[key] is not None:
            value = data[key]
            if not isinstance(value, list):
                raise DecodeFailed(f"Field '{key}' must be a list", field=key, body=repr(value))
            return value
    return []


def _id_list(data: dict, *keys: str) -> tuple[str, ...]:
    ids = _list(data, *keys)
    for item in ids:
        if not isinstance(item, str):
            raise DecodeFailed("Plan ids must be strings", field=keys[0], body=repr(item))
    return tuple(ids)

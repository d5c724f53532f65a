"""
snapshot.py - Local snapshot builder.

Produces the two views of local state the server needs: an aggregate
summary of every game (for drift detection) and the list of changes
since a point in time. Both are read-only.
"""

import logging
from datetime import datetime

from decodey_sync.db.store import LocalGameStore
from decodey_sync.models import ChangeType, GameChange, GameRecord, GameSummary, LocalGamesSummary

logger = logging.getLogger(__name__)


def build_summary(store: LocalGameStore, owner_id: str) -> LocalGamesSummary:
    """
    Summarize every local game of an owner.

    Order of the per-game summaries is not significant.
    """
    summaries = tuple(GameSummary.from_record(r) for r in store.list_for_owner(owner_id))
    summary = LocalGamesSummary(
        total_games=len(summaries),
        completed_games=sum(1 for s in summaries if s.is_completed),
        most_recent_modification=max((s.last_modified for s in summaries), default=None),
        games=summaries,
    )
    logger.debug(
        "Built local summary for %s: %d games, %d completed",
        owner_id, summary.total_games, summary.completed_games,
    )
    return summary


def compute_changes(store: LocalGameStore, owner_id: str, since: datetime) -> list[GameChange]:
    """
    Local games modified strictly after `since`.

    Deletions are not observable locally; they only arrive through
    the server plan.
    """
    changes = [_change_for(record, since) for record in store.list_modified_since(owner_id, since)]
    logger.debug("Found %d local changes for %s since %s", len(changes), owner_id, since)
    return changes


def _change_for(record: GameRecord, since: datetime) -> GameChange:
    change_type = ChangeType.CREATED if record.start_time > since else ChangeType.UPDATED
    return GameChange(
        game_id=record.wire_id,
        change_type=change_type,
        last_modified=record.last_update_time,
        payload=record.to_wire() if record.is_terminal else None,
    )

"""
strategy.py - Sync strategy selection.

Maps a trigger and the persisted sync history to a decision. Pure
apart from the launch counter, which is returned as updated
bookkeeping for the caller to persist.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from decodey_sync.config import SyncPolicy
from decodey_sync.models import SyncBookkeeping


class Trigger(Enum):
    APP_LAUNCH = "app_launch"
    USER_LOGIN = "user_login"
    GAME_COMPLETION = "game_completion"
    MANUAL = "manual"
    BACKGROUND = "background"


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str


@dataclass(frozen=True, slots=True)
class Incremental:
    pass


@dataclass(frozen=True, slots=True)
class Full:
    pass


@dataclass(frozen=True, slots=True)
class Deferred:
    delay: float


Decision = Skip | Incremental | Full | Deferred


def describe(decision: Decision) -> str:
    match decision:
        case Skip():
            return "skip"
        case Incremental():
            return "incremental"
        case Full():
            return "full"
        case Deferred(delay=delay):
            return f"deferred({delay:g}s)"
    raise TypeError(f"Unknown decision: {decision!r}")


def select_strategy(
    trigger: Trigger,
    bookkeeping: SyncBookkeeping,
    now: datetime,
    policy: SyncPolicy | None = None,
) -> tuple[Decision, SyncBookkeeping]:
    """
    Decide what kind of cycle a trigger should run.

    Only APP_LAUNCH changes the bookkeeping (launch_count + 1).
    """
    policy = policy or SyncPolicy()
    since_success = bookkeeping.seconds_since_success(now)

    def within(window: float) -> bool:
        return since_success is not None and since_success < window

    match trigger:
        case Trigger.APP_LAUNCH:
            # The stored count is tested before it is bumped: launches 1, 11, 21...
            periodic = (
                policy.full_sync_every_launches > 0
                and bookkeeping.launch_count % policy.full_sync_every_launches == 0
            )
            bookkeeping = bookkeeping.record_launch()
            if (
                bookkeeping.last_full_sync is None
                or bookkeeping.last_successful_sync is None
                or periodic
            ):
                return Full(), bookkeeping
            if within(policy.launch_skip_window):
                return Skip("Recent sync on launch"), bookkeeping
            return Deferred(policy.launch_defer_seconds), bookkeeping

        case Trigger.USER_LOGIN:
            if within(policy.login_recent_window):
                return Deferred(policy.login_recent_defer_seconds), bookkeeping
            return Deferred(policy.login_stale_defer_seconds), bookkeeping

        case Trigger.GAME_COMPLETION:
            if within(policy.completion_skip_window):
                return Skip("Synced within the last minute"), bookkeeping
            return Incremental(), bookkeeping

        case Trigger.MANUAL:
            if within(policy.manual_incremental_window):
                return Incremental(), bookkeeping
            return Full(), bookkeeping

        case Trigger.BACKGROUND:
            if within(policy.background_skip_window):
                return Skip("Synced within the background window"), bookkeeping
            return Incremental(), bookkeeping

    raise ValueError(f"Unknown trigger: {trigger!r}")

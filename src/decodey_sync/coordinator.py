"""
coordinator.py - Reconciliation coordinator.

The externally visible entry point. One call to reconcile() resolves a
trigger to a strategy, builds the local snapshot, asks the server for
a plan, executes it and updates the sync bookkeeping.

Bookkeeping rule: last_sync_attempt moves on every executed cycle,
last_successful_sync only when no operation failed. A cycle that lost
data is therefore never mistaken for a complete one by the next
strategy decision.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from decodey_sync.auth import AuthProvider
from decodey_sync.config import SyncPolicy
from decodey_sync.db.store import BookkeepingStore, LocalGameStore
from decodey_sync.errors import AuthenticationRequired, SyncError
from decodey_sync.executor import ExecutionReport, Outcome, PlanExecutor
from decodey_sync.metrics import SyncLogger
from decodey_sync.models import SyncBookkeeping
from decodey_sync.snapshot import build_summary, compute_changes
from decodey_sync.strategy import (
    Deferred,
    Full,
    Incremental,
    Skip,
    Trigger,
    describe,
    select_strategy,
)
from decodey_sync.transport.base import GameServerTransport, SyncType
from decodey_sync.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """What the caller of reconcile() gets back."""
    success: bool
    message: str | None = None
    report: ExecutionReport | None = None


class ReconciliationCoordinator:
    """
    Runs reconciliation cycles for the signed-in user.

    Concurrent calls are serialized: only one cycle is in flight at a
    time, so bookkeeping is always written after a full join of its
    own cycle's operations.
    """

    def __init__(
        self,
        auth: AuthProvider,
        store: LocalGameStore,
        bookkeeping_store: BookkeepingStore,
        transport: GameServerTransport,
        policy: SyncPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        sync_logger: SyncLogger | None = None,
    ):
        self.auth = auth
        self.store = store
        self.bookkeeping_store = bookkeeping_store
        self.transport = transport
        self.policy = policy or SyncPolicy()
        self._clock = clock
        self._sleep = sleep
        self._sync_logger = sync_logger or SyncLogger()
        self._executor = PlanExecutor(
            transport, store, self.policy, sleep=sleep, sync_logger=self._sync_logger
        )
        self._lock = asyncio.Lock()

    async def reconcile(self, trigger: Trigger) -> SyncOutcome:
        async with self._lock:
            return await self._reconcile(trigger)

    def schedule(
        self,
        trigger: Trigger,
        on_complete: Callable[[bool, str | None], None] | None = None,
    ) -> asyncio.Task:
        """
        Run reconcile() as a background task.

        on_complete receives (success, message) once the cycle, including
        any deferral delay, has finished.
        """
        task = asyncio.create_task(self.reconcile(trigger))
        if on_complete is not None:
            def _done(t: asyncio.Task) -> None:
                if t.cancelled():
                    on_complete(False, "Sync cancelled")
                elif t.exception() is not None:
                    on_complete(False, str(t.exception()))
                else:
                    outcome = t.result()
                    on_complete(outcome.success, outcome.message)

            task.add_done_callback(_done)
        return task

    async def _reconcile(self, trigger: Trigger) -> SyncOutcome:
        user_id = self.auth.user_id
        if not self.auth.get_access_token() or not user_id:
            logger.info("Not authenticated; skipping %s sync", trigger.value)
            return SyncOutcome(success=True, message="Not authenticated")

        loaded = await self._in_executor(self.bookkeeping_store.load)
        decision, bookkeeping = select_strategy(trigger, loaded, self._clock(), self.policy)
        if bookkeeping != loaded:
            await self._in_executor(self.bookkeeping_store.save, bookkeeping)

        reason = decision.reason if isinstance(decision, Skip) else None
        self._sync_logger.strategy_selected(trigger.value, describe(decision), reason)

        match decision:
            case Skip(reason=reason):
                return SyncOutcome(success=True, message=reason)
            case Deferred(delay=delay):
                await self._sleep(delay)
                full = False
            case Full():
                full = True
            case Incremental():
                full = False

        if not full and bookkeeping.last_successful_sync is None:
            logger.info("No previous sync recorded; running full sync instead of incremental")
            full = True

        return await self._run_cycle(trigger, user_id, bookkeeping, full)

    async def _run_cycle(
        self,
        trigger: Trigger,
        user_id: str,
        bookkeeping: SyncBookkeeping,
        full: bool,
    ) -> SyncOutcome:
        sync_type = SyncType.FULL if full else SyncType.INCREMENTAL_ENHANCED
        # Timestamps record the cycle start so edits made mid-cycle are seen next time
        started_at = self._clock()
        start = time.perf_counter()
        self._sync_logger.reconcile_started(user_id, trigger.value, sync_type.value)

        try:
            summary = await self._in_executor(build_summary, self.store, user_id)
            if full:
                plan = await self.transport.request_plan(sync_type, user_id, summary=summary)
            else:
                since = bookkeeping.last_successful_sync
                changes = await self._in_executor(compute_changes, self.store, user_id, since)
                plan = await self.transport.request_plan(
                    sync_type, user_id, summary=summary, changes=changes, since=since
                )
        except AuthenticationRequired:
            logger.info("Signed out during %s sync; skipping", trigger.value)
            return SyncOutcome(success=True, message="Not authenticated")
        except SyncError as e:
            await self._record_attempt(bookkeeping, started_at)
            self._sync_logger.reconcile_failed(user_id, trigger.value, str(e))
            return SyncOutcome(success=False, message=e.message)
        except Exception as e:
            await self._record_attempt(bookkeeping, started_at)
            self._sync_logger.reconcile_failed(user_id, trigger.value, str(e))
            raise

        try:
            report = await self._executor.execute(plan)
        except Exception as e:
            await self._record_attempt(bookkeeping, started_at)
            self._sync_logger.reconcile_failed(user_id, trigger.value, str(e))
            raise

        if report.failed == 0:
            bookkeeping = bookkeeping.record_success(started_at, full=full)
        else:
            bookkeeping = bookkeeping.record_attempt(started_at)
        await self._in_executor(self.bookkeeping_store.save, bookkeeping)

        outcome = report.outcome
        self._sync_logger.reconcile_completed(
            user_id,
            trigger.value,
            sync_type.value,
            outcome.value,
            report.succeeded,
            report.failed,
            (time.perf_counter() - start) * 1000,
        )
        return SyncOutcome(
            success=report.failed == 0,
            message=outcome_message(report),
            report=report,
        )

    async def _record_attempt(self, bookkeeping: SyncBookkeeping, started_at: datetime) -> None:
        await self._in_executor(
            self.bookkeeping_store.save, bookkeeping.record_attempt(started_at)
        )

    @staticmethod
    async def _in_executor(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)


def outcome_message(report: ExecutionReport) -> str:
    match report.outcome:
        case Outcome.NOTHING_TO_DO:
            return "Nothing to sync"
        case Outcome.SUCCESS:
            return f"Sync completed: {report.succeeded} operations"
        case Outcome.PARTIAL:
            return f"Partial sync completed: {report.failed} operations failed"
        case Outcome.FAILURE:
            return f"Sync failed: {report.failed} of {report.total} operations failed"
    raise ValueError(f"Unknown outcome: {report.outcome!r}")

"""
executor.py - Plan executor.

Applies a server reconciliation plan with bounded concurrency:
downloads (and server-wins conflicts) in staggered batches, uploads
and local deletions alongside, all joined once before the report is
returned. Every operation fails on its own; nothing aborts the batch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from decodey_sync.config import SyncPolicy
from decodey_sync.db.store import LocalGameStore
from decodey_sync.errors import LocalRecordMissing, SyncError, TransportError
from decodey_sync.ids import decode_game_id
from decodey_sync.metrics import SyncLogger
from decodey_sync.models import ReconciliationPlan
from decodey_sync.transport.base import GameServerTransport

logger = logging.getLogger(__name__)


class Outcome(Enum):
    NOTHING_TO_DO = "nothing_to_do"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class Operation(Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"
    CONFLICT = "conflict"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class OperationError:
    """One failed plan operation."""
    game_id: str
    operation: Operation
    error: str
    error_type: str


@dataclass
class ExecutionReport:
    succeeded: int = 0
    failed: int = 0
    errors: list[OperationError] = field(default_factory=list)
    failure_threshold: float = 0.5

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def outcome(self) -> Outcome:
        return classify_outcome(self.succeeded, self.failed, self.failure_threshold)


def classify_outcome(succeeded: int, failed: int, threshold: float = 0.5) -> Outcome:
    """
    Classify a finished cycle.

    A failure ratio at or above the threshold is a FAILURE, below it
    a PARTIAL.
    """
    total = succeeded + failed
    if total == 0:
        return Outcome.NOTHING_TO_DO
    if failed == 0:
        return Outcome.SUCCESS
    if failed / total >= threshold:
        return Outcome.FAILURE
    return Outcome.PARTIAL


_Result = OperationError | None


class PlanExecutor:
    """
    Executes a ReconciliationPlan against the transport and local store.

    Store calls run in the default thread pool so the event loop never
    blocks on SQLite; the store serializes them with its own lock.
    """

    def __init__(
        self,
        transport: GameServerTransport,
        store: LocalGameStore,
        policy: SyncPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        sync_logger: SyncLogger | None = None,
    ):
        self.transport = transport
        self.store = store
        self.policy = policy or SyncPolicy()
        self._sleep = sleep
        self._sync_logger = sync_logger or SyncLogger()

    async def execute(self, plan: ReconciliationPlan) -> ExecutionReport:
        report = ExecutionReport(failure_threshold=self.policy.failure_threshold)
        if plan.total_operations == 0:
            return report

        semaphore = asyncio.Semaphore(self.policy.max_concurrency)

        for conflict in plan.conflicts:
            self._sync_logger.conflict_resolved(conflict.game_id, conflict.reason)

        fetches = [(gid, Operation.DOWNLOAD) for gid in plan.download_ids]
        fetches += [(c.game_id, Operation.CONFLICT) for c in plan.conflicts]
        size = max(1, self.policy.download_batch_size)
        batches = [fetches[i:i + size] for i in range(0, len(fetches), size)]

        jobs = [self._run_batch(index, batch, semaphore) for index, batch in enumerate(batches)]
        jobs += [self._upload(gid, semaphore) for gid in plan.upload_ids]
        jobs += [self._delete(gid) for gid in plan.delete_local_ids]

        logger.info(
            "Executing plan: %d downloads in %d batches, %d conflicts, %d uploads, %d deletions",
            len(plan.download_ids), len(batches), len(plan.conflicts),
            len(plan.upload_ids), len(plan.delete_local_ids),
        )

        for result in await asyncio.gather(*jobs):
            for item in result if isinstance(result, list) else [result]:
                if item is None:
                    report.succeeded += 1
                else:
                    report.failed += 1
                    report.errors.append(item)

        logger.info(
            "Plan executed: %d succeeded, %d failed (%s)",
            report.succeeded, report.failed, report.outcome.value,
        )
        return report

    async def _run_batch(
        self,
        index: int,
        batch: list[tuple[str, Operation]],
        semaphore: asyncio.Semaphore,
    ) -> list[_Result]:
        delay = index * self.policy.batch_stagger_seconds
        if delay > 0:
            await self._sleep(delay)
        return list(
            await asyncio.gather(*(self._download(gid, op, semaphore) for gid, op in batch))
        )

    async def _download(
        self, game_id: str, operation: Operation, semaphore: asyncio.Semaphore
    ) -> _Result:
        try:
            decode_game_id(game_id)
            async with semaphore:
                record = await self._with_timeout(self.transport.fetch_game(game_id), game_id)
            await self._in_executor(self.store.upsert, record)
        except Exception as e:
            return self._failed(game_id, operation, e)
        logger.debug("Downloaded %s", game_id)
        self._sync_logger.operation_finished(operation.value, True)
        return None

    async def _upload(self, game_id: str, semaphore: asyncio.Semaphore) -> _Result:
        try:
            parsed = decode_game_id(game_id)
            record = await self._in_executor(self.store.get, parsed.uuid)
            if record is None:
                raise LocalRecordMissing(game_id)
            async with semaphore:
                await self._with_timeout(self.transport.upload_game(record), game_id)
        except Exception as e:
            return self._failed(game_id, Operation.UPLOAD, e)
        logger.debug("Uploaded %s", game_id)
        self._sync_logger.operation_finished(Operation.UPLOAD.value, True)
        return None

    async def _delete(self, game_id: str) -> _Result:
        try:
            parsed = decode_game_id(game_id)
            removed = await self._in_executor(self.store.delete, parsed.uuid)
        except Exception as e:
            return self._failed(game_id, Operation.DELETE, e)
        logger.debug("Deleted %s locally (present=%s)", game_id, removed)
        self._sync_logger.operation_finished(Operation.DELETE.value, True)
        return None

    async def _with_timeout(self, coro, game_id: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.policy.item_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Operation on {game_id} timed out after {self.policy.item_timeout_seconds}s"
            ) from e

    @staticmethod
    async def _in_executor(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _failed(self, game_id: str, operation: Operation, error: Exception) -> OperationError:
        logger.warning(
            "%s of %s failed: %s", operation.value, game_id, error,
            exc_info=not isinstance(error, SyncError),
        )
        self._sync_logger.operation_finished(operation.value, False)
        return OperationError(
            game_id=game_id,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )

"""
decodey_sync - Offline-first game reconciliation for Decodey

Keeps completed cryptogram games consistent between a local SQLite
store and the game server across devices, restarts and flaky networks.
"""

from decodey_sync.auth import AuthProvider, StaticAuthProvider
from decodey_sync.config import SyncPolicy
from decodey_sync.coordinator import ReconciliationCoordinator, SyncOutcome
from decodey_sync.db.store import LocalGameStore, SQLiteBookkeepingStore
from decodey_sync.errors import (
    AuthenticationRequired,
    DatabaseError,
    DecodeFailed,
    InvalidIdentifier,
    LocalRecordMissing,
    ServerRejected,
    SyncError,
    TransportError,
    ValidationError,
)
from decodey_sync.executor import ExecutionReport, Outcome, PlanExecutor
from decodey_sync.ids import decode_game_id, encode_game_id
from decodey_sync.models import GameRecord, ReconciliationPlan, SyncBookkeeping
from decodey_sync.pending import PendingUploadQueue
from decodey_sync.strategy import Trigger, select_strategy
from decodey_sync.transport import GameServerTransport, HTTPGameTransport, SyncType

__version__ = "0.1.0"
__all__ = [
    # Core
    "ReconciliationCoordinator",
    "SyncOutcome",
    "PlanExecutor",
    "ExecutionReport",
    "Outcome",
    "Trigger",
    "select_strategy",
    "SyncPolicy",
    # Data
    "GameRecord",
    "ReconciliationPlan",
    "SyncBookkeeping",
    "decode_game_id",
    "encode_game_id",
    # Storage
    "LocalGameStore",
    "SQLiteBookkeepingStore",
    "PendingUploadQueue",
    # Transport
    "AuthProvider",
    "StaticAuthProvider",
    "GameServerTransport",
    "HTTPGameTransport",
    "SyncType",
    # Errors
    "SyncError",
    "AuthenticationRequired",
    "TransportError",
    "ServerRejected",
    "DecodeFailed",
    "InvalidIdentifier",
    "LocalRecordMissing",
    "ValidationError",
    "DatabaseError",
]

"""
errors.py - Domain-specific exceptions for decodey_sync.

All exceptions inherit from SyncError for unified handling.
Each exception type represents a distinct failure mode. None of them
is fatal to the host process: every path resolves to "report and let
the next trigger retry".
"""

from typing import Any


class SyncError(Exception):
    """Base exception for all decodey_sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class AuthenticationRequired(SyncError):
    """
    Raised when no access token is available.

    The reconciliation cycle is skipped; this is not an error state.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class TransportError(SyncError):
    """
    Raised on network-level failures, including timeouts.

    Retryable on the next trigger.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        context = {}
        if url is not None:
            context["url"] = url
        super().__init__(message, context=context)
        self.url = url


class ServerRejected(SyncError):
    """
    Raised when the server answers with a non-2xx status.

    The message is taken from the response body when present.
    """

    def __init__(self, message: str, status_code: int, url: str | None = None) -> None:
        context: dict[str, Any] = {"status_code": status_code}
        if url is not None:
            context["url"] = url
        super().__init__(message, context=context)
        self.status_code = status_code
        self.url = url


class DecodeFailed(SyncError):
    """
    Raised when a server payload cannot be decoded.

    Carries an excerpt of the offending body so schema drift can be
    diagnosed from logs.
    """

    def __init__(
        self, message: str, body: str | None = None, field: str | None = None
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if body is not None:
            context["body"] = body[:200] + "..." if len(body) > 200 else body
        super().__init__(message, context=context)
        self.body = body
        self.field = field


class InvalidIdentifier(SyncError):
    """
    Raised when a game id cannot be parsed.

    Callers skip the affected record and never fail the surrounding batch.
    """

    def __init__(self, message: str, value: str | None = None) -> None:
        context = {}
        if value is not None:
            context["value"] = value[:100]
        super().__init__(message, context=context)
        self.value = value


class LocalRecordMissing(SyncError):
    """Raised when an upload target no longer exists in the local store."""

    def __init__(self, game_id: str) -> None:
        super().__init__("Local game not found", context={"game_id": game_id})
        self.game_id = game_id


class ValidationError(SyncError):
    """
    Raised when a record violates a data-model invariant.

    This includes guessed letters outside the solution mapping,
    conflicting win/loss flags, or scores on unfinished games.
    """

    def __init__(
        self, message: str, field: str | None = None, value: Any = None
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = repr(value)[:100]
        super().__init__(message, context=context)
        self.field = field
        self.value = value


class DatabaseError(SyncError):
    """
    Raised when a local store operation fails unexpectedly.

    This wraps SQLite errors with additional context about
    what operation was being attempted.
    """

    def __init__(
        self, message: str, operation: str | None = None, sql: str | None = None
    ) -> None:
        context = {}
        if operation is not None:
            context["operation"] = operation
        if sql is not None:
            # Truncate long SQL for readability
            context["sql"] = sql[:200] + "..." if len(sql) > 200 else sql
        super().__init__(message, context=context)
        self.operation = operation
        self.sql = sql

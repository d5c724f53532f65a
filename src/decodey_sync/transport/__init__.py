"""
transport/__init__.py - Transport layer for the reconciliation protocol.

Provides the abstract transport and its HTTP implementation.
"""

from decodey_sync.transport.base import GameServerTransport, SyncType
from decodey_sync.transport.http_transport import HTTPGameTransport

__all__ = [
    "GameServerTransport",
    "HTTPGameTransport",
    "SyncType",
]

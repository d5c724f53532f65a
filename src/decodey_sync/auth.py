"""
auth.py - Authentication provider interface.

Token storage and login flows belong to the host application; the
reconciliation engine only asks for the current token, the server
base URL and the signed-in user.
"""

from dataclasses import dataclass
from typing import Protocol


class AuthProvider(Protocol):
    """What the reconciliation engine needs from the auth layer."""

    @property
    def base_url(self) -> str:
        ...

    @property
    def user_id(self) -> str | None:
        ...

    def get_access_token(self) -> str | None:
        ...


@dataclass
class StaticAuthProvider:
    """Fixed credentials, for the CLI and tests."""
    base_url: str
    user_id: str | None = None
    token: str | None = None

    def get_access_token(self) -> str | None:
        return self.token or None

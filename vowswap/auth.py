"""
Auth collaborator: exposes the current session, if any.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class Session:
    user_id: str
    access_token: Optional[str] = None


class AuthClient(Protocol):
    """Defines the session lookup the services need."""

    def get_session(self) -> Optional[Session]:
        ...


@dataclass
class StaticAuthClient:
    """Auth client holding a fixed user id (or none for anonymous callers)."""

    user_id: Optional[str] = None

    def get_session(self) -> Optional[Session]:
        if not self.user_id:
            return None
        return Session(user_id=self.user_id)

    def sign_in(self, user_id: str) -> None:
        self.user_id = user_id

    def sign_out(self) -> None:
        self.user_id = None

"""The session store contract.

The session manager only talks to sessions through this interface, so the
backing storage (MongoDB in production, memory in tests) stays opaque to it.
Implementations raise `SessionNotFoundError` for unknown IDs and `StoreError`
when the storage itself fails; they never retry on their own.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

from cs2kz.core.modules.session.models import SessionData, SessionID
from cs2kz.core.modules.user.models import UserID
from cs2kz.core.modules.user.permissions import Permissions


class SessionNotFoundError(LookupError):
    """No session exists for the given ID."""

    def __init__(self, session_id: SessionID) -> None:
        super().__init__(f"session '{session_id}' not found")
        self.session_id = session_id


class SessionStore(ABC):
    """Persistent storage for login sessions."""

    @abstractmethod
    async def create(self, user_id: UserID, permissions: Permissions, ttl: timedelta) -> SessionID:
        """Persist a new session expiring `ttl` from now and return its ID."""

    @abstractmethod
    async def load(self, session_id: SessionID) -> SessionData:
        """Look up a session. Does not touch its expiry."""

    @abstractmethod
    async def extend(self, session_id: SessionID, ttl: timedelta) -> bool:
        """Move a session's expiry to `ttl` from now. Returns False if it does not exist."""

    @abstractmethod
    async def revoke(self, session_id: SessionID) -> None:
        """Delete a session. Revoking an unknown session is not an error."""

    @abstractmethod
    async def revoke_all(self, user_id: UserID) -> int:
        """Delete every session of a user and return how many were removed."""

    @abstractmethod
    async def update_permissions(self, user_id: UserID, permissions: Permissions) -> int:
        """Replace the permission snapshot on all of a user's sessions."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Delete all expired sessions and return how many were removed."""

"""Session authorization strategies.

A strategy decides whether an authenticated session may make a given request.
The session manager runs it after the session was loaded and checked for
expiry; a strategy signals rejection by raising an `AccessDeniedError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

from starlette.requests import HTTPConnection

from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.errors import AccessDeniedError, NotFoundError

if TYPE_CHECKING:
    from cs2kz.core.modules.server.service import ServerService
    from cs2kz.core.modules.session.models import Session


class InsufficientPermissionsError(AccessDeniedError):
    error_type = "insufficient_permissions"

    def __init__(self, required: Permissions, actual: Permissions) -> None:
        super().__init__("Insufficient permissions")
        self.required = required
        self.actual = actual


class NotServerOwnerError(AccessDeniedError):
    error_type = "not_server_owner"

    def __init__(self) -> None:
        super().__init__("You are not the owner of this server")


class AuthorizeSession(ABC):
    """How to authorize a session."""

    @abstractmethod
    async def authorize_session(self, session: Session, request: HTTPConnection) -> None:
        """Raise an `AccessDeniedError` if `session` may not make `request`."""

    def or_(self, fallback: AuthorizeSession) -> Either:
        """Combine `self` with a fallback strategy."""
        return Either(self, fallback)


class NoAuthorization(AuthorizeSession):
    """Always succeeds; for routes that only need an identity."""

    async def authorize_session(self, session: Session, request: HTTPConnection) -> None:
        return None

    def __repr__(self) -> str:
        return "NoAuthorization()"


class HasPermissions(AuthorizeSession):
    """Requires the session's user to hold `required`."""

    def __init__(self, required: Permissions) -> None:
        self.required = required

    async def authorize_session(self, session: Session, request: HTTPConnection) -> None:
        actual = session.data.permissions
        if not actual.contains(self.required):
            raise InsufficientPermissionsError(self.required, actual)

    def __repr__(self) -> str:
        return f"HasPermissions({self.required!r})"


class IsServerOwner(AuthorizeSession):
    """Requires the session's user to own the server named by the `server_id` path parameter."""

    def __init__(self, servers: ServerService) -> None:
        self._servers = servers

    async def authorize_session(self, session: Session, request: HTTPConnection) -> None:
        raw_server_id = request.path_params.get("server_id")
        if raw_server_id is None:
            raise NotServerOwnerError
        try:
            server = self._servers.get_server(UUID(str(raw_server_id)))
        except (ValueError, NotFoundError):
            raise NotServerOwnerError from None
        if server.owner_id != session.user_id:
            raise NotServerOwnerError

    def __repr__(self) -> str:
        return "IsServerOwner()"


class Either(AuthorizeSession):
    """Authorize using `first`, or try `fallback` if that fails."""

    def __init__(self, first: AuthorizeSession, fallback: AuthorizeSession) -> None:
        self.first = first
        self.fallback = fallback

    async def authorize_session(self, session: Session, request: HTTPConnection) -> None:
        try:
            await self.first.authorize_session(session, request)
        except AccessDeniedError:
            await self.fallback.authorize_session(session, request)

    def __repr__(self) -> str:
        return f"Either({self.first!r}, {self.fallback!r})"

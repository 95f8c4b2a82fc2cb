"""Per-request session authentication and authorization.

`SessionManager.authenticate()` walks a request through these steps:

1. Find the session cookie. Without one, the request is rejected with
   `MissingCookieError` unless the strictness is `Strict.LAX`.
2. Decode the cookie into a `SessionID`. Malformed values are rejected with
   `MalformedSessionCookieError`, again unless `Strict.LAX`.
3. Load the session from the store. Unknown or expired sessions are always
   rejected with `InvalidSessionError`; the strictness only governs missing
   credentials, never invalid ones.
4. Under `Strict.REQUIRE_AUTHORIZATION`, run the authorization strategy. A
   failure always rejects the request.

Storage failures propagate as `StoreError`.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

import structlog
from starlette.requests import HTTPConnection
from starlette.responses import Response

from cs2kz.core.modules.session.authorization import AuthorizeSession, NoAuthorization
from cs2kz.core.modules.session.models import (
    SESSION_COOKIE_NAME,
    DecodeSessionIDError,
    Session,
    SessionID,
    SessionState,
    Strict,
)
from cs2kz.core.modules.session.store import SessionNotFoundError, SessionStore
from cs2kz.core.modules.user.models import UserID
from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.errors import InvalidSessionError, MalformedSessionCookieError, MissingCookieError
from cs2kz.utils import Clock, now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CookieOptions:
    """Attributes of the session cookie."""

    domain: str | None = None
    path: str = "/"
    secure: bool = True
    http_only: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"


class SessionManager:
    """Resolves, issues, and revokes sessions for HTTP requests."""

    def __init__(
        self,
        store: SessionStore,
        cookie_options: CookieOptions,
        *,
        ttl: timedelta,
        sliding_expiry: bool = True,
        clock: Clock = now,
    ) -> None:
        self.store = store
        self.cookie_options = cookie_options
        self.ttl = ttl
        self.sliding_expiry = sliding_expiry
        self._clock = clock

    async def authenticate(
        self,
        request: HTTPConnection,
        strict: Strict = Strict.REQUIRE_AUTHORIZATION,
        authorization: AuthorizeSession | None = None,
    ) -> Session | None:
        """Resolve the session of `request`.

        Returns None only under `Strict.LAX` when no usable cookie was sent.
        """
        cookie = request.cookies.get(SESSION_COOKIE_NAME)
        if cookie is None:
            if strict is Strict.LAX:
                return None
            raise MissingCookieError

        try:
            session_id = SessionID.decode(cookie)
        except DecodeSessionIDError:
            logger.debug("malformed_session_cookie", strict=strict.value)
            if strict is Strict.LAX:
                return None
            raise MalformedSessionCookieError from None

        try:
            data = await self.store.load(session_id)
        except SessionNotFoundError:
            raise InvalidSessionError from None

        # The store may hand back a row its expiry sweep has not removed yet
        if data.has_expired(self._clock()):
            logger.debug("session_expired", user_id=data.user_id)
            raise InvalidSessionError

        session = Session(id=session_id, data=data)

        if strict is Strict.REQUIRE_AUTHORIZATION:
            await (authorization or NoAuthorization()).authorize_session(session, request)
            session.state = SessionState.AUTHORIZED

        request.state.session = session
        return session

    async def refresh(self, session: Session, response: Response) -> None:
        """Extend the session's expiry and re-issue its cookie, if sliding expiry is enabled."""
        if not self.sliding_expiry:
            return
        if await self.store.extend(session.id, self.ttl):
            self.set_cookie(response, session.id)

    async def login(self, user_id: UserID, permissions: Permissions, response: Response) -> SessionID:
        """Create a session for `user_id` and attach its cookie to `response`."""
        session_id = await self.store.create(user_id, permissions, self.ttl)
        self.set_cookie(response, session_id)
        logger.info("user_logged_in", user_id=user_id)
        return session_id

    async def logout(self, session: Session, response: Response, *, everywhere: bool = False) -> None:
        """Revoke `session` (or every session of its user) and remove the cookie."""
        if everywhere:
            await self.store.revoke_all(session.user_id)
        else:
            await self.store.revoke(session.id)
        self.remove_cookie(response)
        logger.info("user_logged_out", user_id=session.user_id, everywhere=everywhere)

    def set_cookie(self, response: Response, session_id: SessionID) -> None:
        options = self.cookie_options
        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=session_id.encode(),
            max_age=int(self.ttl.total_seconds()),
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )

    def remove_cookie(self, response: Response) -> None:
        options = self.cookie_options
        response.delete_cookie(
            key=SESSION_COOKIE_NAME,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )

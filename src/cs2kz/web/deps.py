from collections.abc import Callable
from typing import Annotated, cast

from fastapi import Depends, Request, Response
from fastapi.security import APIKeyCookie
from starlette.requests import HTTPConnection

from cs2kz.app import App
from cs2kz.core.modules.session.authorization import AuthorizeSession, HasPermissions
from cs2kz.core.modules.session.manager import SessionManager
from cs2kz.core.modules.session.models import SESSION_COOKIE_NAME, Session, Strict
from cs2kz.core.modules.user.permissions import Permissions

# Documents the cookie in OpenAPI; the session manager reads it itself
cookie_scheme = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)

type AuthorizationFactory = Callable[[App], AuthorizeSession]


async def get_app(connection: HTTPConnection) -> App:
    return cast(App, connection.app.state.app)


async def get_session_manager(connection: HTTPConnection) -> SessionManager:
    return cast(SessionManager, connection.app.state.app.session_manager)


class SessionAuth:
    """Dependency resolving the request's session through the `SessionManager`.

    With sliding expiry enabled, a resolved session is extended and its cookie
    re-issued on the response.
    """

    def __init__(
        self,
        strict: Strict = Strict.REQUIRE_AUTHORIZATION,
        authorization: AuthorizationFactory | None = None,
        *,
        refresh: bool = True,
    ) -> None:
        self.strict = strict
        self.authorization = authorization
        self.refresh = refresh

    async def __call__(
        self,
        request: Request,
        response: Response,
        app: Annotated[App, Depends(get_app)],
        manager: Annotated[SessionManager, Depends(get_session_manager)],
        _cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
    ) -> Session | None:
        authorization = self.authorization(app) if self.authorization is not None else None
        session = await manager.authenticate(request, self.strict, authorization)
        if session is not None and self.refresh:
            await manager.refresh(session, response)
        return session


def require_permissions(required: Permissions) -> SessionAuth:
    return SessionAuth(authorization=lambda _app: HasPermissions(required))


def require_permissions_or_server_owner(required: Permissions) -> SessionAuth:
    return SessionAuth(authorization=lambda app: HasPermissions(required).or_(app.server_owner()))


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
SessionDep = Annotated[Session, Depends(SessionAuth(Strict.REQUIRE_AUTHENTICATION))]
OptionalSessionDep = Annotated[Session | None, Depends(SessionAuth(Strict.LAX))]
LogoutSessionDep = Annotated[Session, Depends(SessionAuth(Strict.REQUIRE_AUTHENTICATION, refresh=False))]
AdminSessionDep = Annotated[Session, Depends(require_permissions(Permissions.ADMIN))]
ServerManagerSessionDep = Annotated[Session, Depends(require_permissions(Permissions.MANAGE_SERVERS))]
ServerOwnerSessionDep = Annotated[Session, Depends(require_permissions_or_server_owner(Permissions.MANAGE_SERVERS))]

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

import httpx
import structlog
from starlette.responses import Response

from cs2kz.config import Config
from cs2kz.core.core import Core
from cs2kz.core.modules.server.connection import ServerConnection
from cs2kz.core.modules.server.models import AccessKeyView, RegisteredServerView, Server, ServerView
from cs2kz.core.modules.session.authorization import AuthorizeSession, IsServerOwner
from cs2kz.core.modules.session.manager import SessionManager
from cs2kz.core.modules.session.models import Session
from cs2kz.core.modules.steam.openid import CallbackPayload, login_url
from cs2kz.core.modules.user.models import UserID, UserView
from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.core.tasks import CancellationToken
from cs2kz.core.websocket.close_reason import CloseReason
from cs2kz.core.websocket.transport import WebSocketTransport
from cs2kz.errors import StoreError, TaskManagerClosedError

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations; routes never talk to Core directly."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)
        self._http: httpx.AsyncClient | None = None

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Start services and background jobs; drain them on exit."""
        async with self._core.lifespan():
            self._core.tasks.spawn("session-sweeper", self._sweep_sessions)
            async with httpx.AsyncClient(timeout=10.0) as client:
                self._http = client
                try:
                    yield
                finally:
                    self._http = None

    @property
    def config(self) -> Config:
        return self._core.config

    @property
    def session_manager(self) -> SessionManager:
        return self._core.session_manager

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("HTTP client is only available while the app is running")
        return self._http

    def server_owner(self) -> AuthorizeSession:
        """Authorization strategy accepting the owner of the server in the request path."""
        return IsServerOwner(self._core.services.server)

    # Authentication

    def steam_login_url(self, redirect_to: str) -> str:
        """URL that sends the user to Steam and back to `redirect_to` afterwards."""
        return_to = f"{self.config.public_url.rstrip('/')}/auth/callback"
        return login_url(return_to, redirect_to)

    async def complete_login(self, payload: CallbackPayload, response: Response) -> str:
        """Verify Steam's callback, start a session, and return where to send the user."""
        expected_host = httpx.URL(self.config.public_url).host
        steam_id = await payload.verify(expected_host, self.http_client)
        user = await self._core.services.user.register_login(UserID(steam_id))
        await self.session_manager.login(user.id, user.permissions, response)
        return payload.userdata

    async def logout(self, session: Session, response: Response, *, everywhere: bool = False) -> None:
        await self.session_manager.logout(session, response, everywhere=everywhere)

    # Users

    def get_user(self, user_id: UserID) -> UserView:
        return UserView.from_domain(self._core.services.user.get_user(user_id))

    async def set_permissions(self, user_id: UserID, permissions: Permissions) -> UserView:
        """Replace a user's permissions (ADMIN is enforced by the route)."""
        user = await self._core.services.user.set_permissions(user_id, permissions)
        return UserView.from_domain(user)

    # Servers

    async def register_server(self, session: Session, name: str, host: str, port: int) -> RegisteredServerView:
        server = await self._core.services.server.register_server(name, host, port, session.user_id)
        return RegisteredServerView.from_server(server)

    def get_server(self, server_id: UUID) -> ServerView:
        return ServerView.from_domain(self._core.services.server.get_server(server_id))

    async def reset_access_key(self, server_id: UUID) -> AccessKeyView:
        access_key = await self._core.services.server.reset_access_key(server_id)
        return AccessKeyView(access_key=access_key)

    async def clear_access_key(self, server_id: UUID) -> None:
        await self._core.services.server.clear_access_key(server_id)

    def authenticate_server(self, access_key: UUID) -> Server | None:
        return self._core.services.server.find_by_access_key(access_key)

    async def serve_server_connection(self, transport: WebSocketTransport, server: Server) -> CloseReason | None:
        """Run a game server's connection as a tracked task until it closes.

        Only the task manager may cancel the connection; the caller being
        cancelled leaves it running until shutdown.
        """
        config = self.config
        connection = ServerConnection(
            transport,
            server,
            handshake_timeout=config.websocket_handshake_timeout,
            heartbeat_interval=config.websocket_heartbeat_interval,
            close_grace_period=config.websocket_close_grace_period,
        )
        try:
            task = self._core.tasks.spawn(f"server-connection:{server.id}", connection.run)
        except TaskManagerClosedError:
            code, reason = CloseReason.server_shutdown().as_close_frame()
            await transport.close(code, reason)
            return CloseReason.server_shutdown()
        return await asyncio.shield(task)

    # Background jobs

    async def _sweep_sessions(self, token: CancellationToken) -> None:
        """Periodically delete expired sessions until cancelled."""
        interval = self.config.session_sweep_interval
        while True:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(token.wait(), timeout=interval)
            if token.is_cancelled:
                return
            try:
                purged = await self._core.services.session.purge_expired()
            except StoreError:
                logger.exception("session_sweep_failed")
                continue
            logger.debug("sessions_purged", count=purged)

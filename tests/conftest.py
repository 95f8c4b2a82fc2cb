"""Shared pytest fixtures."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from cs2kz.core.modules.session.manager import CookieOptions, SessionManager
from cs2kz.core.modules.session.models import SessionData, SessionID
from cs2kz.core.modules.session.store import SessionNotFoundError, SessionStore
from cs2kz.core.modules.user.models import UserID
from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.core.websocket.transport import Frame


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class InMemorySessionStore(SessionStore):
    """Session store keeping rows in a dict; expired rows stay until purged, like a lagging TTL index."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.rows: dict[SessionID, SessionData] = {}

    async def create(self, user_id: UserID, permissions: Permissions, ttl: timedelta) -> SessionID:
        session_id = SessionID.generate()
        self.rows[session_id] = SessionData(
            user_id=user_id, permissions=permissions, expires_on=self.clock() + ttl
        )
        return session_id

    async def load(self, session_id: SessionID) -> SessionData:
        if session_id not in self.rows:
            raise SessionNotFoundError(session_id)
        return self.rows[session_id]

    async def extend(self, session_id: SessionID, ttl: timedelta) -> bool:
        if session_id not in self.rows:
            return False
        self.rows[session_id] = self.rows[session_id].model_copy(update={"expires_on": self.clock() + ttl})
        return True

    async def revoke(self, session_id: SessionID) -> None:
        self.rows.pop(session_id, None)

    async def revoke_all(self, user_id: UserID) -> int:
        doomed = [sid for sid, data in self.rows.items() if data.user_id == user_id]
        for session_id in doomed:
            del self.rows[session_id]
        return len(doomed)

    async def update_permissions(self, user_id: UserID, permissions: Permissions) -> int:
        updated = 0
        for session_id, data in self.rows.items():
            if data.user_id == user_id:
                self.rows[session_id] = data.model_copy(update={"permissions": permissions})
                updated += 1
        return updated

    async def purge_expired(self) -> int:
        expired = [sid for sid, data in self.rows.items() if data.has_expired(self.clock())]
        for session_id in expired:
            del self.rows[session_id]
        return len(expired)


class FakeTransport:
    """In-memory WebSocket transport.

    Frames pushed with `push()` are handed out by `receive()`; `end()` makes
    `receive()` report the end of the stream.
    """

    def __init__(self) -> None:
        self._incoming: asyncio.Queue[Frame | None] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed: list[tuple[int, str]] = []
        self.close_hangs = False

    def push(self, frame: Frame) -> None:
        self._incoming.put_nowait(frame)

    def push_text(self, data: str) -> None:
        self.push(Frame.text(data))

    def end(self) -> None:
        self._incoming.put_nowait(None)

    async def receive(self) -> Frame | None:
        return await self._incoming.get()

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int, reason: str) -> None:
        if self.close_hangs:
            await asyncio.Event().wait()
        self.closed.append((code, reason))


@pytest.fixture
def clock():
    """A fake clock starting at a fixed instant."""
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def session_store(clock):
    return InMemorySessionStore(clock)


@pytest.fixture
def session_manager(session_store, clock):
    """Session manager over the in-memory store with a one hour TTL."""
    return SessionManager(
        session_store,
        CookieOptions(secure=False),
        ttl=timedelta(hours=1),
        clock=clock,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for tests that need several transports at once."""
    return FakeTransport

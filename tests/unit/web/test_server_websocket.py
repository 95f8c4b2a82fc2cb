"""Tests for the game-server WebSocket endpoint."""

import threading
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from cs2kz.core.modules.server.connection import ServerConnection
from cs2kz.core.modules.server.models import Server
from cs2kz.core.modules.user.models import UserID
from cs2kz.core.tasks import CancellationToken
from cs2kz.core.websocket.close_reason import CloseReasonKind
from cs2kz.web.routers import servers_router
from cs2kz.web.routers.servers import parse_access_key

ACCESS_KEY = uuid4()
HELLO = '{"plugin_version": "1.0.0", "current_map": "kz_grotto"}'


@pytest.fixture
def server():
    return Server(name="kz-eu-2", host="10.0.0.2", port=27015, owner_id=UserID(76561198000000001), access_key=ACCESS_KEY)


@pytest.fixture
def served():
    """Close reasons of finished connections, plus an event set when one finishes."""
    return SimpleNamespace(reasons=[], done=threading.Event())


@pytest.fixture
def client(server, served):
    async def serve_server_connection(transport, connected_server):
        connection = ServerConnection(transport, connected_server, handshake_timeout=2.0)
        reason = await connection.run(CancellationToken())
        served.reasons.append(reason)
        served.done.set()
        return reason

    app = FastAPI()
    app.include_router(servers_router)
    app.state.app = SimpleNamespace(
        authenticate_server=lambda key: server if key == ACCESS_KEY else None,
        serve_server_connection=serve_server_connection,
    )
    return TestClient(app)


def connect(client: TestClient):
    return client.websocket_connect("/servers/ws", headers={"Authorization": f"Bearer {ACCESS_KEY}"})


class TestParseAccessKey:
    """Test reading the access key from the Authorization header."""

    def test_bearer_token(self):
        """A Bearer token holding a UUID is accepted."""
        assert parse_access_key(f"Bearer {ACCESS_KEY}") == ACCESS_KEY

    def test_scheme_is_case_insensitive(self):
        """The scheme may be written in any case."""
        assert parse_access_key(f"bearer {ACCESS_KEY}") == ACCESS_KEY

    @pytest.mark.parametrize("header", [None, "", f"Basic {ACCESS_KEY}", "Bearer not-a-key", "Bearer"])
    def test_invalid_headers(self, header):
        """Missing, foreign, or malformed credentials yield no key."""
        assert parse_access_key(header) is None


class TestServerWebSocket:
    """Test the /servers/ws endpoint end to end."""

    def test_unknown_key_is_rejected(self, client):
        """An unknown access key is refused with a policy violation."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/servers/ws", headers={"Authorization": f"Bearer {uuid4()}"}):
                pass
        assert exc_info.value.code == 1008

    def test_missing_key_is_rejected(self, client):
        """A connection without credentials is refused with a policy violation."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/servers/ws"):
                pass
        assert exc_info.value.code == 1008

    def test_handshake_and_map_change(self, client, served):
        """The server acknowledges the handshake and map changes until the client closes."""
        with connect(client) as ws:
            ws.send_text(HELLO)
            assert ws.receive_json() == {"heartbeat_interval": 30.0}

            ws.send_json({"id": 5, "type": "map-change", "payload": {"map_name": "kz_ladder"}})
            assert ws.receive_json() == {"id": 5, "type": "ack", "payload": {}}

            ws.close(1000)
            assert served.done.wait(timeout=2.0)

        [reason] = served.reasons
        assert reason.kind is CloseReasonKind.CLIENT_ERROR

    def test_invalid_handshake_is_closed_by_server(self, client, served):
        """A first message that is not a handshake gets the connection closed."""
        with connect(client) as ws:
            ws.send_text('{"id": 1, "type": "heartbeat", "payload": {"players": []}}')
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
            assert served.done.wait(timeout=2.0)

        assert exc_info.value.code == 1008
        assert served.reasons[0].kind is CloseReasonKind.CLIENT_ERROR

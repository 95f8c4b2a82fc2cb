"""The game-server side of the WebSocket protocol."""

import structlog

from cs2kz.core.modules.server.models import Server
from cs2kz.core.websocket.close_reason import CloseReason
from cs2kz.core.websocket.connection import Connection
from cs2kz.core.websocket.message import AckPayload, Heartbeat, Hello, IncomingMessage, MapChange, Outgoing, PlayerInfo
from cs2kz.core.websocket.transport import WebSocketTransport

logger = structlog.get_logger(__name__)


class ServerConnection(Connection):
    """A connection opened by a registered game server.

    Keeps track of the map the server is on and the players it reported in its
    latest heartbeat.
    """

    def __init__(self, transport: WebSocketTransport, server: Server, **kwargs: float) -> None:
        super().__init__(transport, **kwargs)
        self.server = server
        self.current_map: str | None = None
        self.players: list[PlayerInfo] = []
        self._log = logger.bind(server_id=str(server.id), server_name=server.name)

    def heartbeat_timeout_reason(self) -> CloseReason:
        return CloseReason.client_timeout()

    def cancelled_reason(self) -> CloseReason:
        return CloseReason.server_shutdown()

    async def on_hello(self, hello: Hello) -> None:
        self.current_map = hello.current_map
        self._log.info("server_connected", plugin_version=hello.plugin_version, current_map=hello.current_map)

    async def handle(self, message: IncomingMessage) -> Outgoing | None:
        match message.payload:
            case Heartbeat(players=players):
                self.players = players
                self._log.debug("server_heartbeat", message_id=message.id, player_count=len(players))
                return None
            case MapChange(map_name=map_name):
                self._log.info("server_map_changed", old_map=self.current_map, new_map=map_name)
                self.current_map = map_name
                return AckPayload()
        return None

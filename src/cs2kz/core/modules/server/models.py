from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from cs2kz.core.db import MongoModel
from cs2kz.core.modules.user.models import UserID
from cs2kz.utils import now


class Server(MongoModel):
    """A game server allowed to connect to the API.

    Indexed on name - unique, access_key - unique (sparse).
    """

    name: str
    host: str
    port: int
    owner_id: UserID
    access_key: UUID | None = None  # API key presented on the WebSocket upgrade
    created_at: datetime = Field(default_factory=now)


class ServerView(BaseModel):
    """Game server information (API representation)."""

    id: UUID = Field(..., description="Server ID")
    name: str = Field(..., description="Server name")
    host: str = Field(..., description="Hostname or IP address")
    port: int = Field(..., description="Port the server listens on")
    owner_id: UserID = Field(..., description="SteamID64 of the server owner")
    created_at: datetime = Field(..., description="When the server was registered")

    @classmethod
    def from_domain(cls, server: Server) -> "ServerView":
        return cls(
            id=server.id,
            name=server.name,
            host=server.host,
            port=server.port,
            owner_id=server.owner_id,
            created_at=server.created_at,
        )


class AccessKeyView(BaseModel):
    """A freshly generated server access key."""

    access_key: UUID = Field(..., description="Key to send as a Bearer token when connecting")


class RegisteredServerView(ServerView):
    """A newly registered server, including its initial access key."""

    access_key: UUID = Field(..., description="Key to send as a Bearer token when connecting")

    @classmethod
    def from_server(cls, server: Server) -> "RegisteredServerView":
        if server.access_key is None:
            raise ValueError("server has no access key")
        view = ServerView.from_domain(server)
        return cls(**view.model_dump(), access_key=server.access_key)

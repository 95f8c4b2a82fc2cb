from typing import Any
from uuid import UUID, uuid4

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from cs2kz.core.core import Service
from cs2kz.core.modules.server.models import Server
from cs2kz.core.modules.user.models import UserID
from cs2kz.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class ServerService(Service):
    """Manages game servers and their access keys with in-memory caching."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("servers")
        self._servers: dict[UUID, Server] = {}

    async def on_start(self) -> None:
        await self._collection.create_index([("name", 1)], unique=True)
        await self._collection.create_index(
            [("access_key", 1)], unique=True, partialFilterExpression={"access_key": {"$type": "binData"}}
        )
        servers = await Server.list_cursor(self._collection.find())
        self._servers = {server.id: server for server in servers}
        logger.debug("server_service_started", server_count=len(self._servers))

    def get_server(self, server_id: UUID) -> Server:
        if server_id not in self._servers:
            raise NotFoundError(f"Server '{server_id}' not found")
        return self._servers[server_id]

    def find_by_access_key(self, access_key: UUID) -> Server | None:
        """Resolve the server an access key belongs to."""
        return next((s for s in self._servers.values() if s.access_key == access_key), None)

    async def register_server(self, name: str, host: str, port: int, owner_id: UserID) -> Server:
        if any(server.name == name for server in self._servers.values()):
            raise ValidationError(f"Server '{name}' already exists")
        if not 0 < port < 65536:
            raise ValidationError(f"Invalid port {port}")
        server = Server(name=name, host=host, port=port, owner_id=owner_id, access_key=uuid4())
        await self._collection.insert_one(server.to_mongo())
        logger.info("server_registered", server_id=str(server.id), owner_id=owner_id)
        return await self.update_server_cache(server.id)

    async def reset_access_key(self, server_id: UUID) -> UUID:
        """Generate a new access key, invalidating the previous one."""
        self.get_server(server_id)
        access_key = uuid4()
        await self._collection.update_one({"_id": server_id}, {"$set": {"access_key": access_key}})
        await self.update_server_cache(server_id)
        logger.info("server_access_key_reset", server_id=str(server_id))
        return access_key

    async def clear_access_key(self, server_id: UUID) -> None:
        """Remove the access key so the server can no longer connect."""
        self.get_server(server_id)
        await self._collection.update_one({"_id": server_id}, {"$set": {"access_key": None}})
        await self.update_server_cache(server_id)
        logger.info("server_access_key_cleared", server_id=str(server_id))

    async def update_server_cache(self, server_id: UUID) -> Server:
        server = Server.from_mongo(await self._collection.find_one({"_id": server_id}))
        if server is None:
            raise NotFoundError(f"Server '{server_id}' not found")
        self._servers[server_id] = server
        return server

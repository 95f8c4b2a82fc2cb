from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, cast
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from cs2kz.config import Config
from cs2kz.core.modules.session.manager import CookieOptions, SessionManager
from cs2kz.core.tasks import TaskManager


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from cs2kz.core.modules.server.service import ServerService  # noqa: PLC0415
    from cs2kz.core.modules.session.service import SessionService  # noqa: PLC0415
    from cs2kz.core.modules.user.service import UserService  # noqa: PLC0415

    user: UserService
    session: SessionService
    server: ServerService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("user", "cs2kz.core.modules.user.service", "UserService"),
            ("session", "cs2kz.core.modules.session.service", "SessionService"),
            ("server", "cs2kz.core.modules.server.service", "ServerService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, task manager, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    services: Services
    tasks: TaskManager
    session_manager: SessionManager

    def __init__(self, config: Config) -> None:
        """Initialize core with config, MongoDB, the task manager, and auto-register services."""
        self.config = config
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.services = Services(self.database)
        self.services.set_core(self)
        self.tasks = TaskManager()
        self.session_manager = SessionManager(
            self.services.session,
            CookieOptions(domain=config.cookie_domain, path=config.cookie_path, secure=config.cookie_secure),
            ttl=timedelta(seconds=config.session_ttl),
            sliding_expiry=config.session_sliding_expiry,
        )

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Start all services on application startup."""
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Drain background tasks, stop services, and close the MongoDB connection."""
        await self.tasks.shutdown()
        await self.services.stop_all()
        await self.mongo_client.aclose()

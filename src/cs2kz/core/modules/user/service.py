from typing import Any

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from cs2kz.core.core import Service
from cs2kz.core.modules.user.models import User, UserID
from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.errors import NotFoundError
from cs2kz.utils import now

logger = structlog.get_logger(__name__)


class UserService(Service):
    """Manages users with in-memory cache."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")
        self._users: dict[UserID, User] = {}

    async def on_start(self) -> None:
        users = await User.list_cursor(self._collection.find())
        self._users = {user.id: user for user in users}
        logger.debug("user_service_started", user_count=len(self._users))

    def get_user(self, user_id: UserID) -> User:
        """Get user by ID from cache."""
        if user_id not in self._users:
            raise NotFoundError(f"User '{user_id}' not found")
        return self._users[user_id]

    def has_user(self, user_id: UserID) -> bool:
        return user_id in self._users

    async def register_login(self, user_id: UserID, name: str | None = None) -> User:
        """Create the user on first login, or refresh its name on later ones."""
        on_insert: dict[str, Any] = {"permissions": [], "created_at": now()}
        update: dict[str, Any] = {"$setOnInsert": on_insert}
        if name is None:
            on_insert["name"] = str(user_id)
        else:
            update["$set"] = {"name": name}
        doc = await self._collection.find_one_and_update(
            {"_id": user_id}, update, upsert=True, return_document=ReturnDocument.AFTER
        )
        user = User.model_validate(doc)
        self._users[user.id] = user
        return user

    async def set_permissions(self, user_id: UserID, permissions: Permissions) -> User:
        """Replace a user's permissions and propagate them to the user's live sessions."""
        self.get_user(user_id)
        await self._collection.update_one({"_id": user_id}, {"$set": {"permissions": permissions.names()}})
        updated_sessions = await self.core.services.session.update_permissions(user_id, permissions)
        logger.info(
            "permissions_updated",
            user_id=user_id,
            permissions=permissions.names(),
            updated_sessions=updated_sessions,
        )
        return await self.update_user_cache(user_id)

    async def update_user_cache(self, user_id: UserID) -> User:
        """Reload a specific user from the database."""
        user = User.from_mongo(await self._collection.find_one({"_id": user_id}))
        if user is None:
            raise NotFoundError(f"User '{user_id}' not found")
        self._users[user_id] = user
        return user

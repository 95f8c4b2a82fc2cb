from datetime import timedelta
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from cs2kz.core.core import Service
from cs2kz.core.modules.session.models import SessionData, SessionID, StoredSession
from cs2kz.core.modules.session.store import SessionNotFoundError, SessionStore
from cs2kz.core.modules.user.models import UserID
from cs2kz.core.modules.user.permissions import Permissions
from cs2kz.errors import StoreError
from cs2kz.utils import now

logger = structlog.get_logger(__name__)

MAX_CREATE_ATTEMPTS = 3


class SessionService(Service, SessionStore):
    """MongoDB-backed session store."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        try:
            await self._collection.create_index([("user_id", 1)])
            # MongoDB removes documents on its own once `expires_on` has passed
            await self._collection.create_index([("expires_on", 1)], expireAfterSeconds=0)
        except PyMongoError as e:
            raise StoreError("failed to create session indexes") from e

    async def create(self, user_id: UserID, permissions: Permissions, ttl: timedelta) -> SessionID:
        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            session_id = SessionID.generate()
            created_at = now()
            row = StoredSession(
                id=session_id.to_bytes(),
                user_id=user_id,
                permissions=permissions,
                created_at=created_at,
                expires_on=created_at + ttl,
            )
            try:
                await self._collection.insert_one(row.to_mongo())
            except DuplicateKeyError:
                logger.warning("session_id_collision", attempt=attempt)
                continue
            except PyMongoError as e:
                raise StoreError("failed to create session") from e
            logger.debug("session_created", user_id=user_id, expires_on=row.expires_on.isoformat())
            return session_id
        raise StoreError("failed to allocate a unique session ID")

    async def load(self, session_id: SessionID) -> SessionData:
        try:
            doc = await self._collection.find_one({"_id": session_id.to_bytes()})
        except PyMongoError as e:
            raise StoreError("failed to load session") from e
        if doc is None:
            raise SessionNotFoundError(session_id)
        return StoredSession.model_validate(doc).to_session_data()

    async def extend(self, session_id: SessionID, ttl: timedelta) -> bool:
        try:
            result = await self._collection.update_one(
                {"_id": session_id.to_bytes()}, {"$set": {"expires_on": now() + ttl}}
            )
        except PyMongoError as e:
            raise StoreError("failed to extend session") from e
        return result.matched_count > 0

    async def revoke(self, session_id: SessionID) -> None:
        try:
            await self._collection.delete_one({"_id": session_id.to_bytes()})
        except PyMongoError as e:
            raise StoreError("failed to revoke session") from e

    async def revoke_all(self, user_id: UserID) -> int:
        try:
            result = await self._collection.delete_many({"user_id": user_id})
        except PyMongoError as e:
            raise StoreError("failed to revoke sessions") from e
        logger.info("sessions_revoked", user_id=user_id, count=result.deleted_count)
        return result.deleted_count

    async def update_permissions(self, user_id: UserID, permissions: Permissions) -> int:
        try:
            result = await self._collection.update_many(
                {"user_id": user_id}, {"$set": {"permissions": permissions.names()}}
            )
        except PyMongoError as e:
            raise StoreError("failed to update session permissions") from e
        return result.modified_count

    async def purge_expired(self) -> int:
        try:
            result = await self._collection.delete_many({"expires_on": {"$lte": now()}})
        except PyMongoError as e:
            raise StoreError("failed to purge expired sessions") from e
        return result.deleted_count

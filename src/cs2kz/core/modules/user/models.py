from datetime import datetime
from typing import NewType

from pydantic import BaseModel, Field

from cs2kz.core.db import MongoModel
from cs2kz.core.modules.user.permissions import PermissionsField
from cs2kz.utils import now

UserID = NewType("UserID", int)  # SteamID64


class User(MongoModel):
    """A user who logged in through Steam."""

    id: UserID = Field(alias="_id", serialization_alias="id")  # type: ignore[assignment]
    name: str
    permissions: PermissionsField
    created_at: datetime = Field(default_factory=now)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UserID = Field(..., description="SteamID64 of the user")
    name: str = Field(..., description="Display name")
    permissions: PermissionsField = Field(..., description="Granted permissions")
    created_at: datetime = Field(..., description="When the user first logged in")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, name=user.name, permissions=user.permissions, created_at=user.created_at)

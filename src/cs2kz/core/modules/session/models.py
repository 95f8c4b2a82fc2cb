"""Session management models."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from cs2kz.core.modules.user.models import UserID
from cs2kz.core.modules.user.permissions import PermissionsField
from cs2kz.utils import now

SESSION_COOKIE_NAME = "kz-auth"

_SESSION_ID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


class DecodeSessionIDError(ValueError):
    """Raised when a string is not a canonical session ID."""

    def __init__(self, value: str) -> None:
        super().__init__(f"failed to parse session ID: {value!r}")


@dataclass(frozen=True, slots=True)
class SessionID:
    """An opaque, randomly generated ID uniquely identifying a user session."""

    value: uuid.UUID

    @classmethod
    def generate(cls) -> Self:
        return cls(uuid.uuid4())

    def encode(self) -> str:
        """Canonical hyphenated lowercase form, as sent in the session cookie."""
        return str(self.value)

    @classmethod
    def decode(cls, value: str) -> Self:
        if not _SESSION_ID_RE.fullmatch(value):
            raise DecodeSessionIDError(value)
        return cls(uuid.UUID(value))

    def to_bytes(self) -> bytes:
        return self.value.bytes

    @classmethod
    def from_bytes(cls, value: bytes) -> Self:
        if len(value) != 16:
            raise DecodeSessionIDError(value.hex())
        return cls(uuid.UUID(bytes=bytes(value)))

    def __str__(self) -> str:
        return self.encode()


class SessionData(BaseModel):
    """The authenticated principal behind a session."""

    model_config = ConfigDict(frozen=True)

    user_id: UserID
    permissions: PermissionsField
    expires_on: datetime

    def has_expired(self, at: datetime | None = None) -> bool:
        return self.expires_on <= (at if at is not None else now())


class StoredSession(BaseModel):
    """A row in the sessions collection.

    Indexed on user_id and expires_on (TTL, documents are removed once expired).
    """

    id: bytes = Field(alias="_id")
    user_id: UserID
    permissions: PermissionsField
    created_at: datetime = Field(default_factory=now)
    expires_on: datetime

    model_config = ConfigDict(populate_by_name=True)

    def to_mongo(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)

    def to_session_data(self) -> SessionData:
        return SessionData(user_id=self.user_id, permissions=self.permissions, expires_on=self.expires_on)


class Strict(StrEnum):
    """How strict the session manager is when checking requests."""

    LAX = "lax"  # requests without a session cookie are let through
    REQUIRE_AUTHENTICATION = "require-authentication"
    REQUIRE_AUTHORIZATION = "require-authorization"


class SessionState(StrEnum):
    AUTHENTICATED = "authenticated"
    AUTHORIZED = "authorized"


@dataclass
class Session:
    """A session resolved for the current request."""

    id: SessionID
    data: SessionData
    state: SessionState = field(default=SessionState.AUTHENTICATED)

    @property
    def user_id(self) -> UserID:
        return self.data.user_id

    @property
    def is_authorized(self) -> bool:
        return self.state is SessionState.AUTHORIZED


class SessionView(BaseModel):
    """Information about the current session (API representation)."""

    user_id: UserID = Field(..., description="SteamID64 of the logged-in user")
    permissions: PermissionsField = Field(..., description="Permissions granted to the session")
    expires_on: datetime = Field(..., description="When the session expires")

    @classmethod
    def from_domain(cls, session: Session) -> "SessionView":
        return cls(
            user_id=session.data.user_id,
            permissions=session.data.permissions,
            expires_on=session.data.expires_on,
        )

"""Reasons to close a WebSocket connection."""

from dataclasses import dataclass
from enum import StrEnum

from cs2kz.errors import StoreError
from cs2kz.utils import truncate_utf8

# Close frames carry at most 125 bytes, 2 of which are the code
MAX_REASON_BYTES = 123

INTERNAL_ERROR_REASON = "something went wrong; please report this incident"


class CloseReasonKind(StrEnum):
    CLIENT_ERROR = "client-error"  # the client did something wrong
    TIMEOUT = "timeout"  # no message in time (handshake or heartbeat)
    CANCELLED = "cancelled"  # the task managing the connection was cancelled
    SERVER_SHUTDOWN = "server-shutdown"
    CLIENT_TIMEOUT = "client-timeout"
    ERROR = "error"  # irrecoverable server-side error


# see: https://developer.mozilla.org/en-US/docs/Web/API/CloseEvent/code#value
_CLOSE_CODES = {
    CloseReasonKind.CLIENT_ERROR: 1008,
    CloseReasonKind.TIMEOUT: 1008,
    CloseReasonKind.CANCELLED: 1012,
    CloseReasonKind.SERVER_SHUTDOWN: 1012,
    CloseReasonKind.CLIENT_TIMEOUT: 1000,
    CloseReasonKind.ERROR: 1002,
}

_FIXED_REASONS = {
    CloseReasonKind.TIMEOUT: "connection timeout",
    CloseReasonKind.CANCELLED: "API is shutting down",
    CloseReasonKind.SERVER_SHUTDOWN: "API is shutting down",
    CloseReasonKind.CLIENT_TIMEOUT: "did not receive heartbeat in time",
}


@dataclass(frozen=True)
class CloseReason:
    """Why a connection was closed, and the close frame that tells the client."""

    kind: CloseReasonKind
    message: str | None = None
    cause: BaseException | None = None

    @classmethod
    def client_error(cls, message: str) -> "CloseReason":
        return cls(CloseReasonKind.CLIENT_ERROR, message=message)

    @classmethod
    def timeout(cls) -> "CloseReason":
        return cls(CloseReasonKind.TIMEOUT)

    @classmethod
    def cancelled(cls) -> "CloseReason":
        return cls(CloseReasonKind.CANCELLED)

    @classmethod
    def server_shutdown(cls) -> "CloseReason":
        return cls(CloseReasonKind.SERVER_SHUTDOWN)

    @classmethod
    def client_timeout(cls) -> "CloseReason":
        return cls(CloseReasonKind.CLIENT_TIMEOUT)

    @classmethod
    def error(cls, cause: BaseException) -> "CloseReason":
        return cls(CloseReasonKind.ERROR, cause=cause)

    @property
    def code(self) -> int:
        return _CLOSE_CODES[self.kind]

    @property
    def reason(self) -> str:
        """The human-readable part of the close frame."""
        if self.kind is CloseReasonKind.CLIENT_ERROR:
            text = self.message or "client error"
        elif self.kind is CloseReasonKind.ERROR:
            # storage failures must not leak details to the client
            if self.cause is None or isinstance(self.cause, StoreError):
                text = INTERNAL_ERROR_REASON
            else:
                text = str(self.cause) or INTERNAL_ERROR_REASON
        else:
            text = _FIXED_REASONS[self.kind]
        return truncate_utf8(text, MAX_REASON_BYTES)

    @property
    def is_fault(self) -> bool:
        """Whether this close was caused by a server-side failure rather than a normal condition."""
        return self.kind is CloseReasonKind.ERROR

    def as_close_frame(self) -> tuple[int, str]:
        return self.code, self.reason

from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """

    error_type: str | None = None


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""

    def __init__(self, message: str = "You are not permitted to make this request") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class MissingCookieError(AuthenticationError):
    """The request did not carry a session cookie."""

    error_type = "missing_cookie"

    def __init__(self) -> None:
        super().__init__("Missing session cookie")


class MalformedSessionCookieError(ValidationError):
    """The session cookie could not be decoded into a session ID."""

    error_type = "parse_session_id"

    def __init__(self) -> None:
        super().__init__("Malformed session cookie")


class InvalidSessionError(AuthenticationError):
    """The session ID is unknown or the session has expired."""

    error_type = "invalid_session_id"

    def __init__(self) -> None:
        super().__init__("Invalid or expired session")


class StoreError(Exception):
    """Raised when the backing storage of a store is unavailable or a query fails.

    Not a UserError: details must never reach clients.
    """


class TaskManagerClosedError(RuntimeError):
    """Raised when spawning a task after shutdown has begun."""

    def __init__(self) -> None:
        super().__init__("task manager has been shut down")

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from cs2kz.errors import AccessDeniedError, AuthenticationError, NotFoundError, StoreError, UserError, ValidationError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "something went wrong; please report this incident"

# (error class, status code, default type), checked in order
_USER_ERROR_STATUS: list[tuple[type[UserError], int, str]] = [
    (AuthenticationError, 401, "authentication_error"),
    (AccessDeniedError, 403, "access_denied"),
    (NotFoundError, 404, "not_found"),
    (ValidationError, 400, "validation_error"),
]


def create_json_error_response(status_code: int, message: str, error_type: str | None = None) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    status_code, error_type = 400, "bad_request"
    for error_class, status, default_type in _USER_ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code, error_type = status, default_type
            break

    # Subclasses may carry a more specific type, e.g. "missing_cookie"
    if isinstance(exc, UserError) and exc.error_type:
        error_type = exc.error_type

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    if isinstance(exc, StoreError):
        logger.exception("Store failure: %s", exc)
    else:
        logger.exception("Unexpected error: %s", exc)
    return create_json_error_response(
        status_code=500, message=INTERNAL_ERROR_MESSAGE, error_type="internal_server_error"
    )

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import HttpUrl
from pydantic import ValidationError as PydanticValidationError

from cs2kz.core.modules.session.models import SessionView
from cs2kz.core.modules.steam.openid import CallbackPayload
from cs2kz.errors import ValidationError
from cs2kz.web.deps import AppDep, LogoutSessionDep, OptionalSessionDep
from cs2kz.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


@router.get(
    "/auth/login",
    summary="Log in with Steam",
    description="Redirect to Steam's login page. After logging in, the user is sent back to `redirect_to`.",
    operation_id="login",
    status_code=303,
    response_class=RedirectResponse,
)
async def login(app: AppDep, redirect_to: HttpUrl = Query(..., description="Where to go after logging in")) -> str:
    return app.steam_login_url(str(redirect_to))


@router.get(
    "/auth/callback",
    summary="Steam login callback",
    description="Steam redirects here after a login. Creates a session and redirects to the original `redirect_to`.",
    operation_id="loginCallback",
    status_code=303,
    responses={
        303: {"description": "Logged in; the session cookie is set"},
        400: {"model": ErrorResponse, "description": "Malformed callback"},
        401: {"model": ErrorResponse, "description": "Steam did not confirm the login"},
    },
)
async def login_callback(request: Request, app: AppDep) -> RedirectResponse:
    try:
        payload = CallbackPayload.model_validate(dict(request.query_params))
    except PydanticValidationError as e:
        raise ValidationError("Invalid OpenID callback") from e

    response = RedirectResponse(url=payload.userdata, status_code=303)
    await app.complete_login(payload, response)
    return response


@router.get(
    "/auth/logout",
    summary="Log out",
    description="End the current session, or every session of the user with `invalidate_all_sessions`.",
    operation_id="logout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(
    app: AppDep,
    session: LogoutSessionDep,
    response: Response,
    invalidate_all_sessions: bool = False,
) -> None:
    await app.logout(session, response, everywhere=invalidate_all_sessions)


@router.get(
    "/auth/session",
    summary="Current session",
    description="Information about the current session, or null if the request carries none.",
    operation_id="getSession",
    responses={
        401: {"model": ErrorResponse, "description": "The session is invalid or expired"},
    },
)
async def get_session(session: OptionalSessionDep) -> SessionView | None:
    if session is None:
        return None
    return SessionView.from_domain(session)

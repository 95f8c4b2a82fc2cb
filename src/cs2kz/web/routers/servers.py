from uuid import UUID

import structlog
from fastapi import APIRouter, WebSocket, status
from pydantic import BaseModel, Field

from cs2kz.core.modules.server.models import AccessKeyView, RegisteredServerView, ServerView
from cs2kz.core.websocket.transport import StarletteTransport
from cs2kz.web.deps import AppDep, ServerManagerSessionDep, ServerOwnerSessionDep
from cs2kz.web.openapi import ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["servers"])


class RegisterServerRequest(BaseModel):
    """Request to register a new game server."""

    name: str = Field(..., min_length=1, max_length=64, description="Unique server name")
    host: str = Field(..., min_length=1, description="Hostname or IP address")
    port: int = Field(..., description="Port the server listens on")


def parse_access_key(authorization: str | None) -> UUID | None:
    """Extract the access key from an `Authorization: Bearer <key>` header."""
    if authorization is None:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    try:
        return UUID(credentials.strip())
    except ValueError:
        return None


@router.post(
    "/servers",
    summary="Register server",
    description="Register a new game server owned by the current user. The response carries its first access key.",
    operation_id="registerServer",
    status_code=201,
    responses={
        201: {"description": "Server registered"},
        400: {"model": ErrorResponse, "description": "Invalid request or duplicate name"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Missing the `manage-servers` permission"},
    },
)
async def register_server(
    request: RegisterServerRequest, app: AppDep, session: ServerManagerSessionDep
) -> RegisteredServerView:
    return await app.register_server(session, request.name, request.host, request.port)


@router.get(
    "/servers/{server_id}",
    summary="Get server",
    operation_id="getServer",
    responses={404: {"model": ErrorResponse, "description": "Server not found"}},
)
async def get_server(server_id: UUID, app: AppDep) -> ServerView:
    return app.get_server(server_id)


@router.put(
    "/servers/{server_id}/access-key",
    summary="Reset access key",
    description="Generate a new access key. The old one stops working immediately.",
    operation_id="resetAccessKey",
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not the owner and missing `manage-servers`"},
        404: {"model": ErrorResponse, "description": "Server not found"},
    },
)
async def reset_access_key(server_id: UUID, app: AppDep, _session: ServerOwnerSessionDep) -> AccessKeyView:
    return await app.reset_access_key(server_id)


@router.delete(
    "/servers/{server_id}/access-key",
    summary="Delete access key",
    description="Remove the access key so the server can no longer connect.",
    operation_id="deleteAccessKey",
    status_code=204,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not the owner and missing `manage-servers`"},
        404: {"model": ErrorResponse, "description": "Server not found"},
    },
)
async def delete_access_key(server_id: UUID, app: AppDep, _session: ServerOwnerSessionDep) -> None:
    await app.clear_access_key(server_id)


@router.websocket("/servers/ws")
async def server_websocket(websocket: WebSocket, app: AppDep) -> None:
    """Game servers connect here, authenticating with their access key."""
    access_key = parse_access_key(websocket.headers.get("authorization"))
    server = app.authenticate_server(access_key) if access_key is not None else None
    if server is None:
        logger.info("server_rejected", client=str(websocket.client))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="invalid access key")
        return

    await websocket.accept()
    reason = await app.serve_server_connection(StarletteTransport(websocket), server)
    logger.debug("server_disconnected", server_id=str(server.id), close_code=reason.code if reason else None)

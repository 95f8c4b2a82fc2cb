from fastapi import APIRouter
from pydantic import BaseModel, Field

from cs2kz.core.modules.user.models import UserID, UserView
from cs2kz.core.modules.user.permissions import PermissionsField
from cs2kz.web.deps import AdminSessionDep, AppDep
from cs2kz.web.openapi import ErrorResponse

router = APIRouter(tags=["users"])


class SetPermissionsRequest(BaseModel):
    """Request to replace a user's permissions."""

    permissions: PermissionsField = Field(..., description="The complete new set of permissions")


@router.get(
    "/users/{user_id}",
    summary="Get user",
    description="Get a user by SteamID64.",
    operation_id="getUser",
    responses={
        200: {"description": "User information"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def get_user(user_id: int, app: AppDep) -> UserView:
    return app.get_user(UserID(user_id))


@router.put(
    "/users/{user_id}/permissions",
    summary="Update permissions",
    description="Replace a user's permissions. Live sessions of the user pick up the change immediately.",
    operation_id="setUserPermissions",
    responses={
        200: {"description": "Permissions updated"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def set_user_permissions(
    user_id: int, update: SetPermissionsRequest, app: AppDep, _session: AdminSessionDep
) -> UserView:
    return await app.set_permissions(UserID(user_id), update.permissions)

from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

from cs2kz.core.modules.session.models import SESSION_COOKIE_NAME


def set_custom_openapi(app: FastAPI, version: str = "0.1.0") -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="CS2KZ API",
            version=version,
            summary="Backend for the CS2KZ community: logins, permissions, and game server connections",
            routes=app.routes,
        )

        components = openapi_schema.setdefault("components", {})
        components["securitySchemes"] = {
            "SessionCookie": {
                "type": "apiKey",
                "in": "cookie",
                "name": SESSION_COOKIE_NAME,
                "description": "Session ID issued after logging in with Steam",
            },
        }

        # Apply security globally (will be overridden for public endpoints)
        openapi_schema["security"] = [{"SessionCookie": []}]

        public_endpoints = {
            ("GET", "/health"),
            ("GET", "/auth/login"),
            ("GET", "/auth/callback"),
            ("GET", "/auth/session"),
            ("GET", "/users/{user_id}"),
            ("GET", "/servers/{server_id}"),
        }

        for path, path_item in openapi_schema["paths"].items():
            for method, operation in path_item.items():
                if (method.upper(), path) in public_endpoints:
                    operation["security"] = []

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Missing session cookie", "type": "missing_cookie"},
                {"message": "Insufficient permissions", "type": "insufficient_permissions"},
                {"message": "Server '…' not found", "type": "not_found"},
            ]
        }
    }

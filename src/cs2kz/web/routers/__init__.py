from cs2kz.web.routers.auth import router as auth_router
from cs2kz.web.routers.servers import router as servers_router
from cs2kz.web.routers.users import router as users_router

__all__ = [
    "auth_router",
    "servers_router",
    "users_router",
]

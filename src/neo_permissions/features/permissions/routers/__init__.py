"""Permission routers."""

from .permission_router import router as permission_router
from .dependencies import get_permission_resolver, get_invalidation_coordinator

__all__ = [
    "permission_router",
    "get_permission_resolver",
    "get_invalidation_coordinator",
]

"""Permission services: resolution, boundary checks, invalidation, management and warming."""

from .boundary_validator import EntityBoundaryValidator
from .cache_codec import PermissionCacheCodec
from .resolver import PermissionResolver
from .invalidation import InvalidationCoordinator
from .role_management import RoleManagementService
from .cache_warming import CacheWarmingService, WarmingResult

__all__ = [
    "EntityBoundaryValidator",
    "PermissionCacheCodec",
    "PermissionResolver",
    "InvalidationCoordinator",
    "RoleManagementService",
    "CacheWarmingService",
    "WarmingResult",
]

"""Neo-Permissions - Multi-tenant permission resolution engine.

Answers "may principal P perform action A on resource R in tenant T" from
flat roles and direct grants, with a tiered (local + Redis) decision cache
kept coherent by event-driven invalidation.
"""

# Initialize logging configuration on import
from .config.logging_config import setup_logging
setup_logging()

from .__version__ import __version__

from .config import PermissionSettings, get_settings

from .core.exceptions import (
    # Base Exception
    NeoPermissionsError,

    # Resolution Exceptions
    PermissionResolutionError,
    TenantContextMissingError,
    StoreUnavailableError,
    ResolutionTimeoutError,

    # Domain Exceptions
    EntityBoundaryViolationError,
    InvariantViolationError,
    AuthorizationError,
    EntityNotFoundError,

    # Infrastructure Exceptions
    ConfigurationError,
    CacheError,
    CacheUnavailableError,

    # Utility Functions
    get_http_status_code,
    create_error_response,
)

from .features.permissions import (
    PermissionKey,
    PermissionCheck,
    PermissionDecision,
    DecisionReason,
    PermissionResolver,
    EntityBoundaryValidator,
    InvalidationCoordinator,
    RoleManagementService,
    CacheWarmingService,
    InMemoryPermissionStore,
    AsyncPGPermissionStore,
)

from .engine import PermissionEngine, build_permission_engine

__all__ = [
    "__version__",
    "setup_logging",
    "PermissionSettings",
    "get_settings",
    "NeoPermissionsError",
    "PermissionResolutionError",
    "TenantContextMissingError",
    "StoreUnavailableError",
    "ResolutionTimeoutError",
    "EntityBoundaryViolationError",
    "InvariantViolationError",
    "AuthorizationError",
    "EntityNotFoundError",
    "ConfigurationError",
    "CacheError",
    "CacheUnavailableError",
    "get_http_status_code",
    "create_error_response",
    "PermissionKey",
    "PermissionCheck",
    "PermissionDecision",
    "DecisionReason",
    "PermissionResolver",
    "EntityBoundaryValidator",
    "InvalidationCoordinator",
    "RoleManagementService",
    "CacheWarmingService",
    "InMemoryPermissionStore",
    "AsyncPGPermissionStore",
    "PermissionEngine",
    "build_permission_engine",
]

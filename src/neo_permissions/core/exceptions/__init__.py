"""Exception hierarchy for neo-permissions."""

from .base import NeoPermissionsError, create_error_response
from .domain import (
    PermissionResolutionError,
    TenantContextMissingError,
    StoreUnavailableError,
    ResolutionTimeoutError,
    EntityBoundaryViolationError,
    InvariantViolationError,
    AuthorizationError,
    EntityNotFoundError,
)
from .infrastructure import (
    ConfigurationError,
    CacheError,
    CacheUnavailableError,
    CacheSerializationError,
)
from .http_mapping import get_http_status_code

__all__ = [
    "NeoPermissionsError",
    "get_http_status_code",
    "create_error_response",
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
    "CacheSerializationError",
]

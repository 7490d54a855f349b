"""HTTP status code mapping for exceptions."""

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
from .infrastructure import ConfigurationError, CacheError, CacheUnavailableError


# Ordered most specific first; lookup walks the MRO
HTTP_STATUS_MAP = {
    # 400 Bad Request
    TenantContextMissingError: 400,
    InvariantViolationError: 400,

    # 403 Forbidden
    AuthorizationError: 403,
    EntityBoundaryViolationError: 403,

    # 404 Not Found
    EntityNotFoundError: 404,

    # 500 Internal Server Error
    PermissionResolutionError: 500,
    ConfigurationError: 500,
    CacheError: 500,

    # 503 Service Unavailable
    StoreUnavailableError: 503,
    CacheUnavailableError: 503,

    # 504 Gateway Timeout
    ResolutionTimeoutError: 504,
}


def get_http_status_code(exception: Exception) -> int:
    """Get HTTP status code for an exception, defaulting to 500."""
    for exc_type in type(exception).__mro__:
        if exc_type in HTTP_STATUS_MAP:
            return HTTP_STATUS_MAP[exc_type]
    return 500

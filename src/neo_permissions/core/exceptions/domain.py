"""Domain exceptions for permission resolution and role management."""

from .base import NeoPermissionsError
from ...config.constants import ErrorCodes


# Resolution errors. Every one of these resolves to a deny.
class PermissionResolutionError(NeoPermissionsError):
    """Base class for errors that prevent a permission decision."""
    default_error_code = ErrorCodes.RESOLUTION_FAILED


class TenantContextMissingError(PermissionResolutionError):
    """Raised when a non-SuperAdmin check has no tenant context."""
    default_error_code = ErrorCodes.TENANT_CONTEXT_MISSING


class StoreUnavailableError(PermissionResolutionError):
    """Raised when the permission store cannot be reached."""
    default_error_code = ErrorCodes.STORE_UNAVAILABLE


class ResolutionTimeoutError(PermissionResolutionError):
    """Raised when a resolution exceeds its deadline."""
    default_error_code = ErrorCodes.TIMEOUT


# Boundary and invariant errors
class EntityBoundaryViolationError(NeoPermissionsError):
    """Raised when an entity is used outside its tenant."""
    default_error_code = ErrorCodes.BOUNDARY_VIOLATION


class InvariantViolationError(NeoPermissionsError):
    """Raised when data breaks a model invariant."""
    default_error_code = ErrorCodes.INVARIANT_VIOLATION


class AuthorizationError(NeoPermissionsError):
    """Raised when an acting principal may not perform a mutation."""
    default_error_code = ErrorCodes.NOT_AUTHORIZED


class EntityNotFoundError(NeoPermissionsError):
    """Raised when a referenced role, permission or tenant does not exist."""
    default_error_code = ErrorCodes.NOT_FOUND

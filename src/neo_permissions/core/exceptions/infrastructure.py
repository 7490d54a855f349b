"""Infrastructure exceptions for neo-permissions.

Adapters translate third-party errors into these at their boundary.
"""

from .base import NeoPermissionsError
from ...config.constants import ErrorCodes


class ConfigurationError(NeoPermissionsError):
    """Raised when the engine is wired with invalid configuration."""
    default_error_code = ErrorCodes.CONFIGURATION_ERROR


# Cache Errors
class CacheError(NeoPermissionsError):
    """Base class for cache-related errors."""
    pass


class CacheUnavailableError(CacheError):
    """Raised when the shared cache tier cannot be reached."""
    default_error_code = ErrorCodes.CACHE_UNAVAILABLE


class CacheSerializationError(CacheError):
    """Raised when cache value serialization/deserialization fails."""
    pass

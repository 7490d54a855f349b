"""Constants and enums for neo-permissions.

This module defines the constants, enums, and default values used
throughout the permission engine. Enum values correspond to the
values stored in the persisted schema.
"""

from enum import Enum
from typing import Final


class PerformanceTargets:
    """Performance targets for permission resolution."""

    PERMISSION_CHECK_MAX_MS: Final[int] = 15
    CACHE_HIT_RATE_MIN_PERCENT: Final[int] = 90


class CacheTTL:
    """Cache TTL values in seconds."""

    LOCAL_DEFAULT: Final[int] = 300          # 5 minutes
    SHARED_DEFAULT: Final[int] = 3600        # 1 hour


class CacheKeyParts:
    """Cache key building blocks.

    Keys are ``{namespace}:{kind}:{principal}:{tenant}:...`` so that every
    entry of a principal/tenant pair shares one prefix.
    """

    DEFAULT_NAMESPACE: Final[str] = "neo:perm:v1"
    DECISION: Final[str] = "d"
    SUPERADMIN: Final[str] = "sa"
    ANY_INSTANCE: Final[str] = "*"
    EFFECTIVE: Final[str] = "*"
    MEMBERSHIP: Final[str] = "@membership"


class SystemRoles:
    """Names of system-scoped roles."""

    SUPERADMIN: Final[str] = "SuperAdmin"


class DefaultRoles:
    """Tenant role assigned on principal provisioning."""

    MEMBER: Final[str] = "Member"


class ManagementPermission:
    """Permission required to mutate role/grant data in a tenant."""

    RESOURCE: Final[str] = "roles"
    ACTION: Final[str] = "manage"


class InvalidationChannels:
    """Redis pub/sub channels for cross-instance invalidation."""

    DEFAULT: Final[str] = "neo:perm:invalidation"


class TenantStatus(str, Enum):
    """Tenant lifecycle status."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class ErrorCodes:
    """Caller-visible error codes."""

    TENANT_CONTEXT_MISSING: Final[str] = "TENANT_CONTEXT_MISSING"
    STORE_UNAVAILABLE: Final[str] = "STORE_UNAVAILABLE"
    TIMEOUT: Final[str] = "TIMEOUT"
    CACHE_UNAVAILABLE: Final[str] = "CACHE_UNAVAILABLE"
    RESOLUTION_FAILED: Final[str] = "RESOLUTION_FAILED"
    BOUNDARY_VIOLATION: Final[str] = "BOUNDARY_VIOLATION"
    INVARIANT_VIOLATION: Final[str] = "INVARIANT_VIOLATION"
    NOT_AUTHORIZED: Final[str] = "NOT_AUTHORIZED"
    NOT_FOUND: Final[str] = "NOT_FOUND"
    CONFIGURATION_ERROR: Final[str] = "CONFIGURATION_ERROR"

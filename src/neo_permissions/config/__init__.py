"""Configuration for neo-permissions."""

from .settings import PermissionSettings, get_settings
from .constants import (
    CacheTTL,
    CacheKeyParts,
    SystemRoles,
    DefaultRoles,
    ManagementPermission,
    InvalidationChannels,
    TenantStatus,
    ErrorCodes,
)
from .logging_config import LoggingConfig, setup_logging, get_logger

__all__ = [
    "PermissionSettings",
    "get_settings",
    "CacheTTL",
    "CacheKeyParts",
    "SystemRoles",
    "DefaultRoles",
    "ManagementPermission",
    "InvalidationChannels",
    "TenantStatus",
    "ErrorCodes",
    "LoggingConfig",
    "setup_logging",
    "get_logger",
]

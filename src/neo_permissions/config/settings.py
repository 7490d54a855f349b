"""
Configuration for the neo-permissions engine.

All values can be provided through environment variables prefixed with
``NEO_PERM_`` or through a ``.env`` file.
"""
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, PostgresDsn, RedisDsn, model_validator

from .constants import (
    CacheTTL,
    CacheKeyParts,
    SystemRoles,
    DefaultRoles,
    ManagementPermission,
    InvalidationChannels,
)


class PermissionSettings(BaseSettings):
    """Settings consumed by the resolution engine and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="NEO_PERM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Store
    database_url: Optional[PostgresDsn] = Field(default=None)
    db_pool_min_size: int = Field(default=2, ge=1)
    db_pool_max_size: int = Field(default=20, ge=1)
    store_timeout_seconds: float = Field(default=1.0, gt=0)

    # Cache
    redis_url: Optional[RedisDsn] = Field(default=None)
    cache_local_ttl_seconds: int = Field(default=CacheTTL.LOCAL_DEFAULT)
    cache_shared_ttl_seconds: int = Field(default=CacheTTL.SHARED_DEFAULT)
    cache_local_max_entries: int = Field(default=10_000, ge=1)
    cache_local_shards: int = Field(default=16, ge=1)
    cache_namespace: str = Field(default=CacheKeyParts.DEFAULT_NAMESPACE, min_length=1)
    redis_socket_timeout_seconds: float = Field(default=0.25, gt=0)

    # Invalidation broadcast
    invalidation_channel: str = Field(default=InvalidationChannels.DEFAULT)
    node_id: Optional[str] = Field(default=None)
    invalidation_retry_max_seconds: float = Field(default=30.0, gt=0)

    # Roles
    superadmin_role_name: str = Field(default=SystemRoles.SUPERADMIN)
    superadmin_role_id: Optional[str] = Field(default=None)
    default_role_name: Optional[str] = Field(default=DefaultRoles.MEMBER)
    management_resource: str = Field(default=ManagementPermission.RESOURCE)
    management_action: str = Field(default=ManagementPermission.ACTION)

    # Resolution
    resolution_timeout_seconds: float = Field(default=2.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="simple")

    @model_validator(mode="after")
    def _validate_cache_ttls(self) -> "PermissionSettings":
        if self.cache_local_ttl_seconds <= 0 or self.cache_shared_ttl_seconds <= 0:
            raise ValueError("Cache TTLs must be positive")
        if self.cache_shared_ttl_seconds < self.cache_local_ttl_seconds:
            raise ValueError("Shared cache TTL must not be shorter than the local TTL")
        if self.db_pool_max_size < self.db_pool_min_size:
            raise ValueError("db_pool_max_size must be >= db_pool_min_size")
        return self

    @property
    def is_shared_cache_enabled(self) -> bool:
        """Check if the Redis shared tier is configured."""
        return self.redis_url is not None

    @property
    def is_store_configured(self) -> bool:
        """Check if a relational store is configured."""
        return self.database_url is not None


@lru_cache()
def get_settings() -> PermissionSettings:
    """Get cached settings instance."""
    return PermissionSettings()
